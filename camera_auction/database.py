# camera_auction/database.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from camera_auction.config import env

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # 요청 스레드와 생성 스레드가 다를 수 있음
        return {"connect_args": {"check_same_thread": False}}
    # 장시간 유휴 후 끊긴 커넥션 재사용 방지 (Postgres 등)
    return {"pool_pre_ping": True}


engine = create_engine(env.DATABASE_URL, **_engine_options(env.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    """요청 단위 세션. 커밋은 store 가 쓰기마다 직접 한다."""
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# 비밀번호가 로그에 남지 않게 호스트 부분만
logger.info("Using database: %s", env.DATABASE_URL.split("@")[-1])
