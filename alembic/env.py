# alembic/env.py
# 마이그레이션은 앱과 같은 DATABASE_URL / 같은 metadata 를 본다.
from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

from camera_auction.config import env
from camera_auction.database import Base
from camera_auction import models  # noqa: F401  (테이블 등록)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    # alembic.ini 에 명시된 url 이 우선, 없으면 앱 설정
    return config.get_main_option("sqlalchemy.url") or env.DATABASE_URL


def _configure(**kwargs) -> None:
    url = _database_url()
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite 는 ALTER 제약이 있어서 batch 모드로 테이블 재생성
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """SQL 스크립트만 출력 (DB 연결 없음)."""
    _configure(url=_database_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
