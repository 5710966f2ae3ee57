# camera_auction/errors.py
# 도메인 예외 모음. 순수 계산/상태머신은 여기 예외만 raise 하고,
# HTTP 상태코드 변환은 routers 쪽(_common.translate_error)에서 한다.
from __future__ import annotations


class AuctionError(Exception):
    pass


class NotFoundError(AuctionError):
    pass


class ConflictError(AuctionError):
    pass


class InvalidAmount(AuctionError, ValueError):
    """정산 입력값 위반 (정수 아님 / 0 이하 / 비정상적으로 큰 금액)."""


class InvalidTimeZoneInput(AuctionError, ValueError):
    """시계/타임존 입력을 쓸 수 없음."""


class ValidationFailed(AuctionError, ValueError):
    """요청 입력이 비즈니스 규칙을 위반 (예: 리스팅 가격 규칙)."""


class Forbidden(AuctionError):
    pass


class Unauthenticated(AuctionError):
    pass


class InvalidStateTransition(ConflictError):
    """현재 상태에서 허용되지 않는 전이."""


class ConcurrentModification(ConflictError):
    """읽은 시점과 쓰는 시점 사이에 다른 요청이 상태를 바꿈."""


class UpstreamUnavailable(AuctionError):
    """DB / 결제 / 인증 등 외부 협력자가 실패하거나 타임아웃."""


class SchemaDrift(AuctionError):
    """저장소 스키마가 모르는 필드. write_tolerant 안에서만 처리된다."""

    def __init__(self, field: str, collection: str | None = None):
        self.field = field
        self.collection = collection
        where = f"{collection}." if collection else ""
        super().__init__(f"Unknown attribute: {where}{field}")


class InvalidSignature(AuctionError):
    pass


class PaymentDeclined(AuctionError):
    """결제가 succeeded 로 끝나지 않음 (failed / requires_action 등)."""

    def __init__(self, message: str, *, status: str | None = None, charge_id: str | None = None):
        self.status = status
        self.charge_id = charge_id
        super().__init__(message)


class RateLimited(AuctionError):
    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Too many requests, retry in {retry_after_seconds}s")
