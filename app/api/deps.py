from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_access_token
from app.db.database import get_db
from app.models.user import User, UserRole

# Tokens are issued by the main product's login endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

REPORT_VIEWER_ROLES = (UserRole.TEACHER, UserRole.PARENT, UserRole.ADMIN)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user."""
    try:
        subject = decode_access_token(token).get("sub")
    except JWTError:
        raise _unauthorized()
    if subject is None or not str(subject).isdigit():
        raise _unauthorized()

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None or not user.is_active:
        raise _unauthorized()

    # Rate limiter keys on this
    request.state.user_id = user.id
    return user


def require_role(*roles: UserRole):
    """Dependency factory that checks the current user has one of the required roles."""
    def checker(current_user: User = Depends(get_current_user)):
        if not any(current_user.has_role(r) for r in roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user
    return checker


# Roles that may request a student's report; per-student access is checked by the pipeline
require_report_viewer = require_role(*REPORT_VIEWER_ROLES)
