# camera_auction/pg/client.py
# 결제 프로세서(Stripe) 연동.
#
# - StripePaymentService: Stripe REST API 를 requests 로 직접 호출 (form-encoded)
# - DummyPaymentService : 키가 없는 개발환경용. 항상 succeeded
# - verify_webhook_signature: Stripe-Signature 헤더(t=…,v1=…) HMAC-SHA256 검증
#
# 라우터/로직 쪽은 PaymentService 인터페이스만 알고, PG 교체 시 이 파일만 고치면 된다.
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Any, Optional

import requests

from camera_auction.config import env
from camera_auction.config import project_rules as R
from camera_auction.config.feature_flags import is_enabled
from camera_auction.errors import InvalidSignature, UpstreamUnavailable
from .types import ChargeRequest, ChargeResult

logger = logging.getLogger(__name__)


def _normalize_status(raw_status: Optional[str]) -> str:
    if raw_status == "succeeded":
        return "succeeded"
    if raw_status in ("requires_action", "requires_confirmation", "processing"):
        return "requires_action"
    return "failed"


def _result_from_intent(intent: dict[str, Any]) -> ChargeResult:
    last_error = intent.get("last_payment_error") or {}
    return ChargeResult(
        status=_normalize_status(intent.get("status")),
        charge_id=intent.get("id"),
        amount_minor=intent.get("amount"),
        metadata=dict(intent.get("metadata") or {}),
        raw=intent,
        error_code=last_error.get("code"),
        error_message=last_error.get("message"),
    )


class PaymentService:
    def create_and_confirm_charge(self, req: ChargeRequest) -> ChargeResult:
        raise NotImplementedError

    def retrieve_charge(self, charge_id: str) -> ChargeResult:
        raise NotImplementedError


class StripePaymentService(PaymentService):
    def __init__(
        self,
        secret_key: str,
        *,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 20,
        session: Optional[requests.Session] = None,
    ):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, *, data: Optional[dict] = None, idempotency_key: Optional[str] = None) -> dict:
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        try:
            resp = self.session.request(
                method,
                f"{self.api_base}{path}",
                data=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("[pg] stripe %s %s transport error: %s", method, path, e)
            raise UpstreamUnavailable(f"payment processor unreachable: {e.__class__.__name__}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"payment processor returned non-JSON (status={resp.status_code})") from e

        # 카드 거절 등은 402/400 + error.payment_intent 로 온다 → 실패 결과로 변환
        if resp.status_code in (400, 402) and isinstance(body.get("error"), dict):
            return {"_error": body["error"]}
        if resp.status_code >= 400:
            err = body.get("error") or {}
            logger.error("[pg] stripe %s %s failed: %s %s", method, path, resp.status_code, err.get("message"))
            raise UpstreamUnavailable(f"payment processor error {resp.status_code}")
        return body

    def create_and_confirm_charge(self, req: ChargeRequest) -> ChargeResult:
        data: dict[str, Any] = {
            "amount": req.amount_minor,
            "currency": req.currency,
            "confirm": "true",
            "off_session": "true",
        }
        if req.customer_ref:
            data["customer"] = req.customer_ref
        if req.payment_method_ref:
            data["payment_method"] = req.payment_method_ref
        if req.description:
            data["description"] = req.description
        for k, v in req.metadata.items():
            data[f"metadata[{k}]"] = v

        body = self._request("POST", "/payment_intents", data=data, idempotency_key=req.idempotency_key)

        if "_error" in body:
            err = body["_error"]
            intent = err.get("payment_intent") or {}
            logger.info("[pg] charge declined key=%s code=%s", req.idempotency_key, err.get("code"))
            return ChargeResult(
                status="requires_action" if intent.get("status") == "requires_action" else "failed",
                charge_id=intent.get("id"),
                amount_minor=req.amount_minor,
                metadata=dict(req.metadata),
                raw=err,
                error_code=err.get("decline_code") or err.get("code"),
                error_message=err.get("message"),
            )
        return _result_from_intent(body)

    def retrieve_charge(self, charge_id: str) -> ChargeResult:
        body = self._request("GET", f"/payment_intents/{charge_id}")
        if "_error" in body:
            return ChargeResult(status="failed", charge_id=charge_id, raw=body["_error"],
                                error_message=body["_error"].get("message"))
        return _result_from_intent(body)


class DummyPaymentService(PaymentService):
    """
    개발용 더미 구현:
    - 항상 succeeded, charge_id 는 idempotency_key 로부터 결정적으로 생성
    - 같은 키 재호출 시 같은 결과 (PG 의 멱등키 동작 흉내)
    """

    def __init__(self):
        self._charges: dict[str, ChargeResult] = {}

    def create_and_confirm_charge(self, req: ChargeRequest) -> ChargeResult:
        logger.warning("[pg] dummy charge (no STRIPE_SECRET_KEY): %s amount=%s", req.idempotency_key, req.amount_minor)
        charge_id = f"pi_dummy_{hashlib.sha1(req.idempotency_key.encode()).hexdigest()[:16]}"
        result = self._charges.get(charge_id)
        if result is None:
            result = ChargeResult(
                status="succeeded",
                charge_id=charge_id,
                amount_minor=req.amount_minor,
                metadata=dict(req.metadata),
                raw={"dummy": True},
            )
            self._charges[charge_id] = result
        return result

    def retrieve_charge(self, charge_id: str) -> ChargeResult:
        return self._charges.get(charge_id) or ChargeResult(
            status="failed", charge_id=charge_id, error_message="unknown charge"
        )


# -------------------------------------------------------
# 웹훅 서명 검증
# -------------------------------------------------------
def verify_webhook_signature(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: str,
    *,
    tolerance_seconds: int = R.WEBHOOK_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> dict:
    """
    Stripe-Signature: t=<unix>,v1=<hex>[,v1=<hex>...]
    signed_payload = f"{t}." + raw_body,  HMAC-SHA256(secret)
    """
    if not secret:
        raise InvalidSignature("webhook secret is not configured")
    if not signature_header:
        raise InvalidSignature("missing signature header")

    timestamp: Optional[int] = None
    signatures: list[str] = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError as e:
                raise InvalidSignature("malformed signature timestamp") from e
        elif key == "v1" and value:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise InvalidSignature("malformed signature header")

    signed = f"{timestamp}.".encode() + raw_body
    expected = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, s) for s in signatures):
        raise InvalidSignature("signature mismatch")

    current = time.time() if now is None else now
    if tolerance_seconds and abs(current - timestamp) > tolerance_seconds:
        raise InvalidSignature("signature timestamp outside tolerance")

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidSignature("webhook body is not valid JSON") from e
    if not isinstance(event, dict):
        raise InvalidSignature("webhook body must be a JSON object")
    return event


def sign_webhook_payload(raw_body: bytes, secret: str, timestamp: int) -> str:
    """테스트/로컬 리플레이용 Stripe-Signature 헤더 생성."""
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + raw_body, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


# -------------------------------------------------------
# 프로세스 단위 인스턴스 (FastAPI dependency)
# -------------------------------------------------------
_SERVICE: Optional[PaymentService] = None


def get_payment_service() -> PaymentService:
    global _SERVICE
    if _SERVICE is None:
        if env.STRIPE_SECRET_KEY:
            _SERVICE = StripePaymentService(
                env.STRIPE_SECRET_KEY,
                api_base=env.STRIPE_API_BASE,
                timeout=env.STRIPE_TIMEOUT_SECONDS,
            )
        elif is_enabled("ALLOW_DUMMY_PAYMENTS"):
            _SERVICE = DummyPaymentService()
        else:
            raise UpstreamUnavailable("payment processor is not configured")
    return _SERVICE
