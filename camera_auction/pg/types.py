# camera_auction/pg/types.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

ChargeStatus = Literal["succeeded", "requires_action", "failed"]


@dataclass
class ChargeRequest:
    """
    결제(승인) 요청 모델.

    - 금액은 최소 단위(펜스)
    - idempotency_key 는 같은 결제 의도에 대해 항상 같은 값이어야 함
      (예: f"winner-charge-{listing_id}-{amount_minor}")
    """
    amount_minor: int
    customer_ref: Optional[str]
    payment_method_ref: Optional[str]
    idempotency_key: str

    currency: str = "gbp"
    description: Optional[str] = None

    # 웹훅 대사(reconcile)용 상관 id (transactionId / listingId 등)
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass
class ChargeResult:
    """
    결제 결과를 내부 표현으로 통일한 모델.
    succeeded 만 결제 확정으로 취급한다.
    """
    status: ChargeStatus

    # PG 쪽 결제 id (Stripe PaymentIntent id)
    charge_id: Optional[str]

    amount_minor: Optional[int] = None
    metadata: dict[str, str] = field(default_factory=dict)

    # 디버깅/로깅용 원본 응답
    raw: Optional[dict[str, Any]] = None

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"
