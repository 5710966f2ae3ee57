# camera_auction/config/env.py
# 비밀키/URL 등 배포 환경마다 달라지는 값. 전부 os.getenv 로 읽는다.
# 호출부에서는 `env.ADMIN_EMAIL` 처럼 모듈 속성으로 참조한다 (테스트에서 monkeypatch 가능).
from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


# -------------------------------------------------------
# 🔹 DB / 로깅
# -------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./camera_auction.db")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SITE_URL = os.getenv("SITE_URL", "http://localhost:8000").rstrip("/")

# -------------------------------------------------------
# 🔹 인증 / 관리자
# -------------------------------------------------------
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = _int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com").strip().lower()

# 탈퇴한 판매자의 과거 리스팅에 남기는 대체 이메일
DELETED_EMAIL_PLACEHOLDER = os.getenv("DELETED_EMAIL_PLACEHOLDER", "deleted@example.com").strip().lower()

# 스케줄러(cron) 호출용 공유 비밀값. 비어 있으면 스케줄러 엔드포인트는 항상 401.
CRON_SECRET = os.getenv("CRON_SECRET", "")

# -------------------------------------------------------
# 🔹 결제 (Stripe REST)
# -------------------------------------------------------
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com/v1").rstrip("/")
STRIPE_TIMEOUT_SECONDS = _int_env("STRIPE_TIMEOUT_SECONDS", 20)

# -------------------------------------------------------
# 🔹 메일 (SMTP)
# -------------------------------------------------------
SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = _int_env("SMTP_PORT", 587)
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "auctions@example.com")

# -------------------------------------------------------
# 🔹 수수료 테이블 YAML (없으면 project_rules 기본값)
# -------------------------------------------------------
FEE_POLICY_YAML_PATH = os.getenv("FEE_POLICY_YAML_PATH", "")
