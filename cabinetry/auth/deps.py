from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError
from sqlalchemy.orm import Session

from cabinetry.auth.jwt import decode_token
from cabinetry.db import get_db
from cabinetry.models import User

bearer = HTTPBearer(auto_error=False)

COOKIE_NAME = "access_token"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def token_from_request(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    # the browser session cookie wins over an Authorization header
    return request.cookies.get(COOKIE_NAME) or (creds.credentials if creds else None) or None


def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """The logged-in portal customer, from the session cookie or a bearer token."""
    token = token_from_request(request, creds)
    if token is None:
        raise _unauthorized("Not authenticated")
    try:
        user_id = decode_token(token)["sub"]
    except PyJWTError:
        raise _unauthorized("Invalid token")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    request.state.user_id = user.id
    return user
