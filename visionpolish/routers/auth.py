from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import auth, crud, schemas
from ..access import get_current_session
from ..database import get_db
from ..logger import logger
from ..session import SessionContext
from ..validation import sanitize_input

router = APIRouter(tags=["auth"])


def _session_response(session: SessionContext) -> dict:
    return {
        "user": session.user,
        "profile": session.profile,
        "profile_authoritative": session.profile_result.authoritative,
    }


@router.post("/auth/signup", response_model=schemas.TokenResponse, status_code=201)
def signup(payload: schemas.SignUpRequest, db: Session = Depends(get_db)):
    user = auth.sign_up(db, payload.email, payload.password, sanitize_input(payload.full_name))
    return {"access_token": auth.token_for_user(user), "user": user}


@router.post("/auth/signin", response_model=schemas.TokenResponse)
def signin(payload: schemas.SignInRequest, db: Session = Depends(get_db)):
    user = auth.sign_in(db, payload.email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    logger.info(f"User {user.id} signed in")
    return {"access_token": auth.token_for_user(user), "user": user}


@router.post("/auth/signout")
def signout():
    # Tokens are stateless; the client discards its copy
    return {"success": True}


@router.get("/auth/session", response_model=schemas.SessionResponse)
def current_session(session: SessionContext = Depends(get_current_session)):
    return _session_response(session)


@router.post("/auth/password")
def change_password(
    payload: schemas.PasswordUpdate,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    auth.update_password(db, session.user.id, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password updated"}


@router.put("/profile", response_model=schemas.Profile)
def update_own_profile(
    payload: schemas.ProfileUpdate,
    session: SessionContext = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    fields = {key: sanitize_input(value) for key, value in payload.dict(exclude_unset=True).items()}
    profile = crud.update_profile(db, session.user.id, **fields)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile
