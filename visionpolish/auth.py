import base64
import hashlib
import hmac
import os
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from . import models
from .config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from .errors import PermissionDenied, ValidationFailed
from .logger import logger, log_security_event
from .validation import validate_password

PBKDF2_ITERATIONS = 260000

def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return f"{base64.b64encode(salt).decode()}${base64.b64encode(digest).decode()}"

def verify_password(password: str, password_hash: str) -> bool:
    try:
        salt_b64, digest_b64 = password_hash.split("$", 1)
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(digest_b64)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest, expected)

# JWT token generation
def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta if expires_delta else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def decode_access_token(token: str) -> Optional[dict]:
    """Return the token claims, or None when the token is missing, expired or forged."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload

def token_for_user(user: models.AuthUser) -> str:
    return create_access_token({"sub": user.id, "email": user.email, "name": user.full_name})

def get_user_by_email(db: Session, email: str):
    return db.query(models.AuthUser).filter(models.AuthUser.email == email.strip().lower()).first()

def sign_up(db: Session, email: str, password: str, full_name: str = None) -> models.AuthUser:
    email = email.strip().lower()
    password_error = validate_password(password)
    if password_error:
        raise ValidationFailed(password_error)
    if get_user_by_email(db, email):
        raise ValidationFailed("An account with this email already exists")

    user = models.AuthUser(email=email, password_hash=hash_password(password), full_name=full_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Signed up user {user.id}")
    return user

def sign_in(db: Session, email: str, password: str) -> Optional[models.AuthUser]:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        log_security_event("failed_login", email=email.strip().lower())
        return None
    profile = db.query(models.Profile).filter(models.Profile.id == user.id).first()
    if profile is not None and not profile.is_active:
        log_security_event("inactive_login", user_id=user.id)
        raise PermissionDenied("This account has been deactivated")
    return user

def update_password(db: Session, user_id: str, current_password: str, new_password: str) -> None:
    user = db.query(models.AuthUser).filter(models.AuthUser.id == user_id).first()
    if user is None or not verify_password(current_password, user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    password_error = validate_password(new_password)
    if password_error:
        raise ValidationFailed(password_error)
    user.password_hash = hash_password(new_password)
    db.commit()
    log_security_event("password_changed", user_id=user_id)
