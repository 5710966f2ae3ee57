# camera_auction/security.py
# 인증/권한
# - JWT(HS256) 발급/검증: python-jose
# - 비밀번호 해싱: passlib(bcrypt)
# - FastAPI dependency: get_current_identity / require_admin / require_cron
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from camera_auction.config import env
from camera_auction.errors import Unauthenticated

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# -----------------------------------------------------
# 🔑 비밀번호 해싱
# -----------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# -----------------------------------------------------
# 👤 호출자 신원
# -----------------------------------------------------
@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    email_verified: bool = False

    @property
    def is_admin(self) -> bool:
        return bool(env.ADMIN_EMAIL) and self.email == env.ADMIN_EMAIL


def create_access_token(
    *,
    user_id: str,
    email: str,
    email_verified: bool = False,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=env.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": str(user_id),
        "email": email.strip().lower(),
        "email_verified": bool(email_verified),
        "exp": expire,
    }
    return jwt.encode(claims, env.SECRET_KEY, algorithm=ALGORITHM)


def verify_caller_token(token: Optional[str]) -> Identity:
    """토큰 → Identity. 반환된 email 을 소유권 판정의 기준으로 쓴다."""
    if not token:
        raise Unauthenticated("Not authenticated (token missing)")
    try:
        payload = jwt.decode(token, env.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        raise Unauthenticated("Invalid token") from e

    user_id = payload.get("sub")
    email = (payload.get("email") or "").strip().lower()
    if not user_id or not email:
        raise Unauthenticated("Invalid token payload")
    return Identity(user_id=str(user_id), email=email, email_verified=bool(payload.get("email_verified")))


# -----------------------------------------------------
# 🪙 FastAPI dependencies
# -----------------------------------------------------
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_current_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Identity:
    try:
        return verify_caller_token(token)
    except Unauthenticated as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return identity


def _cron_secret_ok(x_cron_secret: Optional[str], authorization: Optional[str]) -> bool:
    secret = env.CRON_SECRET
    if not secret:
        return False
    candidates = [x_cron_secret or ""]
    if authorization and authorization.lower().startswith("bearer "):
        candidates.append(authorization[7:].strip())
    return any(c and hmac.compare_digest(c, secret) for c in candidates)


def require_cron(
    x_cron_secret: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> str:
    if not _cron_secret_ok(x_cron_secret, authorization):
        logger.warning("[security] scheduler call rejected (bad or missing cron secret)")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return "cron"


def require_admin_or_cron(
    x_cron_secret: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
) -> str:
    """관리자 JWT 또는 cron 비밀값. 반환값은 감사 로그용 actor."""
    if _cron_secret_ok(x_cron_secret, authorization):
        return "cron"
    token = authorization[7:].strip() if authorization and authorization.lower().startswith("bearer ") else None
    try:
        identity = verify_caller_token(token)
    except Unauthenticated as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return identity.email
