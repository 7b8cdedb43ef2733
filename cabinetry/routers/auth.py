from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cabinetry.auth.deps import COOKIE_NAME, get_current_user
from cabinetry.auth.jwt import create_access_token
from cabinetry.core.settings import settings
from cabinetry.db import get_db
from cabinetry.models import User
from cabinetry.schemas.portal import RegisterIn, TokenIn, TokenOut, UserOut
from cabinetry.services import account_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User, status_code: int = 200) -> JSONResponse:
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    resp = JSONResponse(
        TokenOut(access_token=token).model_dump(), status_code=status_code
    )
    resp.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=str(settings.PUBLIC_BASE_URL).startswith("https"),
        max_age=60 * 60 * settings.JWT_EXP_HOURS,
        path="/",
    )
    return resp


@router.post("/register", response_model=TokenOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    user = account_service.register(
        db, payload.email, payload.password, full_name=payload.full_name, phone=payload.phone
    )
    return _token_response(user, status_code=201)


@router.post("/token", response_model=TokenOut)
def token(payload: TokenIn, db: Session = Depends(get_db)):
    user = account_service.authenticate(db, payload.email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return _token_response(user)


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout():
    resp = JSONResponse({"status": "logged_out"})
    resp.delete_cookie(COOKIE_NAME, path="/")
    return resp
