"""
Per-request session and role context.

A request's identity comes from its bearer token; its role comes from the
profile row. Loading the profile races a timeout so a slow database never
blocks a request indefinitely. When the race is lost (or the load fails)
the caller still gets a usable profile, but ``ProfileResult.authoritative``
is False so role-sensitive code can tell a best guess from stored data.
"""
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from . import models
from .config import PROFILE_LOAD_TIMEOUT_SECONDS, SEED_ROLE_EMAILS
from .logger import logger

ROLES = ("customer", "editor", "staff", "admin")
EDITOR_ROLES = ("admin", "staff", "editor")
STAFF_ROLES = ("admin", "staff")

_profile_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="profile-load")


@dataclass
class AuthenticatedUser:
    id: str
    email: str
    full_name: Optional[str] = None


@dataclass
class ProfileData:
    id: str
    role: str
    full_name: Optional[str] = None
    is_active: bool = True
    phone: Optional[str] = None
    department: Optional[str] = None

    @classmethod
    def from_row(cls, row: models.Profile) -> "ProfileData":
        return cls(
            id=row.id,
            role=row.role,
            full_name=row.full_name,
            is_active=row.is_active,
            phone=row.phone,
            department=row.department,
        )


@dataclass
class ProfileResult:
    profile: ProfileData
    authoritative: bool


@dataclass
class SessionContext:
    user: AuthenticatedUser
    profile_result: ProfileResult
    token: Optional[str] = field(default=None, repr=False)

    @property
    def profile(self) -> ProfileData:
        return self.profile_result.profile

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def is_active(self) -> bool:
        return self.profile.is_active

    # A deactivated profile holds no role
    @property
    def is_admin(self) -> bool:
        return self.has_role("admin")

    @property
    def is_staff(self) -> bool:
        return self.has_any_role(STAFF_ROLES)

    @property
    def is_editor(self) -> bool:
        return self.has_any_role(EDITOR_ROLES)

    @property
    def is_customer(self) -> bool:
        return self.has_role("customer")

    def has_role(self, role: str) -> bool:
        return self.is_active and self.role == role

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return self.is_active and self.role in roles


def seed_role_for(email: Optional[str]) -> str:
    return SEED_ROLE_EMAILS.get((email or "").strip().lower(), "customer")


def display_name_for(user: AuthenticatedUser) -> str:
    if user.full_name:
        return user.full_name
    if user.email:
        return user.email.split("@")[0]
    return "Customer"


def fallback_profile(user: AuthenticatedUser) -> ProfileData:
    return ProfileData(id=user.id, role=seed_role_for(user.email), full_name=display_name_for(user))


def load_or_create_profile(session_factory: Callable, user: AuthenticatedUser) -> ProfileData:
    """Read the profile row, creating it on a miss. Uses its own DB session."""
    db = session_factory()
    try:
        row = db.query(models.Profile).filter(models.Profile.id == user.id).first()
        if row is None:
            row = models.Profile(
                id=user.id,
                full_name=display_name_for(user),
                role=seed_role_for(user.email),
                is_active=True,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Created profile for {user.id} with role '{row.role}'")
        return ProfileData.from_row(row)
    finally:
        db.close()


def schedule_profile_sync(profile: ProfileData) -> None:
    from . import tasks

    try:
        tasks.sync_profile.delay(profile.id, profile.full_name, profile.role)
    except Exception as e:
        logger.warning(f"Could not queue profile sync for {profile.id}: {e}")


def load_profile(user: AuthenticatedUser, session_factory: Callable,
                 timeout: float = PROFILE_LOAD_TIMEOUT_SECONDS) -> ProfileResult:
    future = _profile_executor.submit(load_or_create_profile, session_factory, user)
    try:
        return ProfileResult(profile=future.result(timeout=timeout), authoritative=True)
    except FuturesTimeout:
        logger.warning(f"Profile load for {user.id} exceeded {timeout}s, using fallback profile")
    except Exception as e:
        logger.error(f"Profile load for {user.id} failed, using fallback profile: {e}")

    fallback = fallback_profile(user)
    schedule_profile_sync(fallback)
    return ProfileResult(profile=fallback, authoritative=False)
