"""
User API Endpoints

Responsibilities:
1. Sign up (returns an access token straight away)
2. Log in
3. Current user / user list
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import UserCreate, UserLogin, UserResponse, Token
from core.user_manager import UserManager
from core.exceptions import JamAppException
from services.auth_service import Identity, create_access_token
from api.deps import get_current_identity, to_http_error

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger(__name__)


def _issue_token(user) -> Token:
    return Token(
        access_token=create_access_token(user.id, user.username),
        user=UserResponse.model_validate(user),
    )


@router.post("", response_model=Token, status_code=201)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Create an account and authenticate it immediately

    Validation:
    - username, password and at least one band role present
    - username not taken
    - every band role is a catalog role
    """
    try:
        user = UserManager.register_user(db, user_data.model_dump())
        return _issue_token(user)

    except JamAppException as e:
        raise to_http_error(e)
    except Exception as e:
        logger.error(f"Failed to register user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Exchange username/password for an access token"""
    try:
        user = UserManager.authenticate(db, credentials.username, credentials.password)
        return _issue_token(user)

    except JamAppException as e:
        raise to_http_error(e)


@router.get("/me", response_model=UserResponse)
def read_current_user(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    try:
        return UserResponse.model_validate(UserManager.get_user(db, identity.user_id))

    except JamAppException as e:
        raise to_http_error(e)


@router.get("", response_model=List[UserResponse])
def list_users(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """All users; a verification aid rather than part of the normal flow"""
    return [UserResponse.model_validate(user) for user in UserManager.find_all_users(db)]
