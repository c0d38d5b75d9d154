import pytest
from urllib.parse import quote
from unittest.mock import patch


def _data_url(student_id):
    return f"/api/reports/students/{student_id}/data"


def _pdf_url(student_id):
    return f"/api/reports/students/{student_id}/pdf"


# ── JSON snapshot ────────────────────────────────────────────────


def test_teacher_gets_snapshot(client, report_world, auth):
    student_id = report_world["student"].id
    teacher = report_world["teacher_user"]

    resp = client.get(_data_url(student_id), headers=auth(teacher))
    assert resp.status_code == 200, resp.text

    data = resp.json()
    assert set(data) == {
        "student", "teacher", "period", "performance", "statistics", "subjects",
        "monthlyProgress", "recentAssignments", "goals", "insights", "generatedAt",
    }
    assert data["student"]["firstName"] == "Ayşe"
    assert data["performance"]["assignmentCompletion"] == 80
    assert data["performance"]["gradingRate"] == 63
    assert data["performance"]["averageGrade"] == 80
    assert len(data["monthlyProgress"]) == 6
    assert set(data["insights"]) == {"strengths", "areasForImprovement", "recommendations"}


def test_metadata_headers(client, report_world, auth):
    student_id = report_world["student"].id
    teacher = report_world["teacher_user"]

    resp = client.get(_data_url(student_id), headers=auth(teacher))
    assert resp.headers["X-Student-ID"] == str(student_id)
    assert resp.headers["X-Requested-By"] == str(teacher.id)
    assert resp.headers["X-Report-Source"] == "aggregated"
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["X-Report-Generated-At"]


def test_parent_gets_linked_child(client, report_world, auth):
    resp = client.get(_data_url(report_world["student"].id), headers=auth(report_world["parent"]))
    assert resp.status_code == 200
    # Owning teacher fills the teacher block for a parent viewer
    assert resp.json()["teacher"]["lastName"] == "Demir"


def test_admin_gets_snapshot(client, report_world, auth):
    resp = client.get(_data_url(report_world["student"].id), headers=auth(report_world["admin"]))
    assert resp.status_code == 200


def test_date_window_params(client, report_world, auth):
    resp = client.get(
        _data_url(report_world["student"].id),
        params={"start_date": "2020-01-01", "end_date": "2020-02-01"},
        headers=auth(report_world["teacher_user"]),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["statistics"]["totalAssignments"] == 0
    assert [s["name"] for s in data["subjects"]] == ["Genel"]
    assert data["period"]["start"].startswith("2020-01-01")


# ── Errors ───────────────────────────────────────────────────────


def test_unrelated_parent_gets_404(client, report_world, auth):
    resp = client.get(_data_url(report_world["student"].id), headers=auth(report_world["outsider"]))
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "REPORT_NOT_FOUND"


def test_unknown_student_404(client, report_world, auth):
    resp = client.get(_data_url(999999), headers=auth(report_world["teacher_user"]))
    assert resp.status_code == 404


@pytest.mark.parametrize("bad_id", ["abc", "0", "-4"])
def test_malformed_student_id_400(client, report_world, auth, bad_id):
    resp = client.get(_data_url(bad_id), headers=auth(report_world["teacher_user"]))
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "REPORT_INVALID_INPUT"


def test_inverted_period_400(client, report_world, auth):
    resp = client.get(
        _data_url(report_world["student"].id),
        params={"start_date": "2026-05-01", "end_date": "2026-04-01"},
        headers=auth(report_world["teacher_user"]),
    )
    assert resp.status_code == 400


def test_unparsable_date_400(client, report_world, auth):
    resp = client.get(
        _data_url(report_world["student"].id),
        params={"start_date": "last-week"},
        headers=auth(report_world["teacher_user"]),
    )
    assert resp.status_code == 400
    assert "start_date" in resp.json()["detail"]


def test_student_role_forbidden(client, report_world, auth):
    resp = client.get(_data_url(report_world["student"].id), headers=auth(report_world["student_user"]))
    assert resp.status_code == 403


def test_requires_auth(client, report_world):
    resp = client.get(_data_url(report_world["student"].id))
    assert resp.status_code == 401


def test_invalid_token(client, report_world):
    resp = client.get(
        _data_url(report_world["student"].id),
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert resp.status_code == 401


# ── PDF ──────────────────────────────────────────────────────────


def test_download_pdf(client, report_world, auth):
    student_id = report_world["student"].id
    resp = client.get(_pdf_url(student_id), headers=auth(report_world["teacher_user"]))

    assert resp.status_code == 200, resp.text
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")
    disposition = resp.headers["content-disposition"]
    assert disposition.startswith("attachment;")
    # Non-ASCII student name, so the RFC 5987 form is used
    day = resp.headers["X-Report-Generated-At"][:10]
    assert disposition == "attachment; filename*=utf-8''" + quote(f"report_Ayşe_Yılmaz_{day}.pdf")
    assert resp.headers["X-Report-Source"] == "aggregated"


def test_generate_pdf_with_body(client, report_world, auth):
    resp = client.post(
        _pdf_url(report_world["student"].id),
        json={"startDate": "2026-01-01", "endDate": "2026-12-31"},
        headers=auth(report_world["parent"]),
    )
    assert resp.status_code == 200, resp.text
    assert resp.content.startswith(b"%PDF")
    assert resp.headers["X-Requested-By"] == str(report_world["parent"].id)


def test_pdf_inverted_body_400(client, report_world, auth):
    resp = client.post(
        _pdf_url(report_world["student"].id),
        json={"startDate": "2026-12-31", "endDate": "2026-01-01"},
        headers=auth(report_world["teacher_user"]),
    )
    assert resp.status_code == 400


def test_pdf_falls_back_when_assignments_unavailable(client, report_world, auth):
    with patch(
        "app.services.report_data_source.ReportDataSource.list_assignments",
        side_effect=RuntimeError("database is locked"),
    ):
        resp = client.get(_pdf_url(report_world["student"].id), headers=auth(report_world["teacher_user"]))

    assert resp.status_code == 200
    assert resp.headers["X-Report-Source"] == "fallback"
    assert resp.content.startswith(b"%PDF")


def test_data_falls_back_when_assignments_unavailable(client, report_world, auth):
    with patch(
        "app.services.report_data_source.ReportDataSource.list_assignments",
        side_effect=RuntimeError("database is locked"),
    ):
        resp = client.get(_data_url(report_world["student"].id), headers=auth(report_world["teacher_user"]))

    assert resp.status_code == 200
    data = resp.json()
    assert data["statistics"]["totalAssignments"] == 0
    assert data["subjects"] == [{"name": "Genel", "totalAssignments": 0, "completedAssignments": 0, "averageGrade": 0}]
    assert len(data["monthlyProgress"]) == 6


def test_render_failure_is_500(client, report_world, auth):
    from app.core.errors import RenderError

    with patch("app.api.routes.reports.render_snapshot", side_effect=RenderError("encoder rejected document")):
        resp = client.get(_pdf_url(report_world["student"].id), headers=auth(report_world["teacher_user"]))
    assert resp.status_code == 500
    assert resp.json()["error_code"] == "REPORT_RENDER_FAILED"


def test_ascii_filename_uses_plain_form():
    from app.api.routes.reports import _content_disposition

    assert _content_disposition("report_Ali_Can_2026-10-19.pdf") == (
        'attachment; filename="report_Ali_Can_2026-10-19.pdf"'
    )
