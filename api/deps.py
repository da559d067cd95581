"""
Shared FastAPI dependencies and error mapping
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.exceptions import (
    JamAppException,
    ValidationError,
    NotFound,
    Forbidden,
    InvalidState,
    Conflict,
)
from core.jam_manager import JamManager
from core.user_manager import UserManager
from services.auth_service import Identity, InvalidToken, verify_access_token

bearer_scheme = HTTPBearer(auto_error=False)

# Most specific first; JamAppException itself falls through to 400
STATUS_BY_ERROR = [
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (Conflict, status.HTTP_409_CONFLICT),
    (InvalidState, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
]


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Identity:
    """
    Verify the bearer token and return (user_id, username)

    The engine trusts this identity and never re-checks credentials.
    """
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return verify_access_token(credentials.credentials)
    except InvalidToken:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )


def get_jam_manager() -> JamManager:
    return JamManager()


def get_user_manager() -> UserManager:
    return UserManager()


def to_http_error(error: JamAppException) -> HTTPException:
    """Translate a business-rule failure into an HTTP error with the message verbatim"""
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
