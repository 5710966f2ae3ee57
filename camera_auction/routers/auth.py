# camera_auction/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status, Body
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import database, models, schemas
from ..config.time_policy import now_utc
from ..logic.accounts import delete_account
from ..security import (
    Identity,
    create_access_token,
    get_current_identity,
    get_password_hash,
    verify_password,
)
from ..store import DocumentStore, get_store
from ._common import translate_error

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=schemas.UserOut,
    status_code=status.HTTP_201_CREATED,
    summary="회원가입 (이메일 + 비밀번호)",
    operation_id="Auth__Register",
)
def register(body: schemas.UserCreate = Body(...), db: Session = Depends(database.get_db)):
    email = body.email.strip().lower()
    if db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = models.User(email=email, hashed_password=get_password_hash(body.password), name=body.name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/login", response_model=schemas.TokenOut, operation_id="Auth__Login")
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(database.get_db)):
    """
    이메일 + 비밀번호로 로그인하고 JWT 토큰 발급
    """
    email = form_data.username.strip().lower()
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not user.is_active or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token(user_id=user.id, email=user.email, email_verified=user.email_verified)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", summary="현재 토큰의 신원", operation_id="Auth__Me")
def me(identity: Identity = Depends(get_current_identity)):
    return {
        "user_id": identity.user_id,
        "email": identity.email,
        "email_verified": identity.email_verified,
        "is_admin": identity.is_admin,
    }


@router.post(
    "/delete-account",
    response_model=schemas.AccountDeletedOut,
    summary="회원 탈퇴 (진행 중인 리스팅/거래가 없을 때만)",
    operation_id="Auth__DeleteAccount",
)
def delete_my_account(
    identity: Identity = Depends(get_current_identity),
    store: DocumentStore = Depends(get_store),
):
    try:
        return delete_account(store, email=identity.email, now=now_utc())
    except Exception as e:
        translate_error(e)
