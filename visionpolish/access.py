"""
Access guard for role-gated endpoints.

Every protected request re-checks roles against the profiles table; no
result is cached between requests.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .auth import decode_access_token
from .database import SessionLocal, get_db
from .logger import log_security_event
from .session import AuthenticatedUser, SessionContext, EDITOR_ROLES, STAFF_ROLES, load_profile

LOGIN_PATH = "/login"
UNAUTHORIZED_PATH = "/unauthorized"

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_factory():
    return SessionLocal


def has_role(db: Session, user_id: str, role: str) -> bool:
    """Role check: the caller's active profile holds exactly ``role``."""
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    return bool(profile and profile.is_active and profile.role == role)


@dataclass
class RoleRequirement:
    admin_only: bool = False
    staff_only: bool = False
    editor_only: bool = False
    required_role: Optional[str] = None
    required_roles: Sequence[str] = ()

    def candidate_roles(self) -> Optional[List[str]]:
        """Roles any one of which satisfies the requirement; None means any signed-in user."""
        if self.admin_only:
            return ["admin"]
        if self.staff_only:
            return list(STAFF_ROLES)
        if self.editor_only:
            return list(EDITOR_ROLES)
        if self.required_role:
            return [self.required_role]
        if self.required_roles:
            return list(self.required_roles)
        return None


def check_access(db: Session, user_id: str, requirement: RoleRequirement) -> bool:
    roles = requirement.candidate_roles()
    if roles is None:
        return True
    for role in roles:
        if has_role(db, user_id, role):
            return True
    return False


def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session_factory=Depends(get_session_factory),
) -> Optional[SessionContext]:
    token = credentials.credentials if credentials else None
    claims = decode_access_token(token)
    if claims is None:
        return None
    user = AuthenticatedUser(id=claims["sub"], email=claims.get("email"), full_name=claims.get("name"))
    return SessionContext(user=user, profile_result=load_profile(user, session_factory), token=token)


def get_current_session(
    request: Request,
    session: Optional[SessionContext] = Depends(get_optional_session),
) -> SessionContext:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Authentication required", "redirect": LOGIN_PATH, "from": request.url.path},
        )
    if not session.is_active:
        log_security_event("inactive_account_access", user_id=session.user.id, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "This account has been deactivated", "redirect": UNAUTHORIZED_PATH},
        )
    return session


def require(**kwargs):
    """Build a dependency that admits only callers meeting the given role requirement."""
    requirement = RoleRequirement(**kwargs)

    def dependency(
        request: Request,
        session: SessionContext = Depends(get_current_session),
        db: Session = Depends(get_db),
    ) -> SessionContext:
        if not check_access(db, session.user.id, requirement):
            log_security_event(
                "access_denied",
                user_id=session.user.id,
                path=request.url.path,
                required=requirement.candidate_roles(),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"message": "You do not have permission to access this resource", "redirect": UNAUTHORIZED_PATH},
            )
        return session

    return dependency


admin_only = require(admin_only=True)
staff_only = require(staff_only=True)
editor_only = require(editor_only=True)
