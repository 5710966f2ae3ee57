# camera_auction/main.py
from __future__ import annotations

import importlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from camera_auction import models  # noqa: F401  (테이블 등록)
from camera_auction.config import env
from camera_auction.config.time_policy import set_now_utc_for_testing
from camera_auction.database import Base, engine
from camera_auction.errors import AuctionError
from camera_auction.routers._common import error_detail, error_headers, status_for

logging.basicConfig(
    level=getattr(logging, env.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("camera_auction")

APP_VERSION = "1.0.0"


# Lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # DB 테이블 생성은 import 시점이 아니라 startup 시점에서
    Base.metadata.create_all(bind=engine)
    logger.info("startup complete")

    yield

    # shutdown: 테스트 시각 오버라이드 해제
    set_now_utc_for_testing(None)


app = FastAPI(title="Camera Auction API", version=APP_VERSION, lifespan=lifespan)


# 예외 핸들러
@app.exception_handler(StarletteHTTPException)
async def http_exc_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(AuctionError)
async def auction_exc_handler(request: Request, exc: AuctionError):
    # 라우터 밖(dependency 등)에서 올라온 도메인 예외
    return JSONResponse(status_code=status_for(exc), content={"detail": error_detail(exc)}, headers=error_headers(exc))


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("unhandled error at %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _include_router(module_path: str, *, label: str) -> None:
    mod = importlib.import_module(f"camera_auction.routers.{module_path}")
    app.include_router(mod.router)
    logger.debug("Mounted router [%s]", label)


# --------------------------------------------------
# 1️⃣ 인증
# --------------------------------------------------
_include_router("auth", label="auth")

# --------------------------------------------------
# 2️⃣ 리스팅 → 입찰 → 즉시구매
# --------------------------------------------------
_include_router("listings", label="listings")
_include_router("bids", label="bids")
_include_router("buy_now", label="buy_now")
_include_router("auctions", label="auctions")

# --------------------------------------------------
# 3️⃣ 거래 / 결제
# --------------------------------------------------
_include_router("transactions", label="transactions")
_include_router("payments", label="payments")

# --------------------------------------------------
# 4️⃣ 관리자 / 문의
# --------------------------------------------------
_include_router("admin", label="admin")
_include_router("contact", label="contact")


# Health/Version
@app.get("/")
def root():
    return {"message": "Camera Auction API is running"}


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/version")
def version():
    return {"version": APP_VERSION}
