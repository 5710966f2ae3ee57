# tests/test_webhook_signature.py
import json

import pytest

from camera_auction.errors import InvalidSignature
from camera_auction.pg.client import sign_webhook_payload, verify_webhook_signature

SECRET = "whsec_unit"
TS = 1_700_000_000
BODY = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}).encode()


def test_valid_signature_returns_event():
    header = sign_webhook_payload(BODY, SECRET, TS)
    event = verify_webhook_signature(BODY, header, SECRET, now=TS + 10)
    assert event["type"] == "payment_intent.succeeded"


def test_any_matching_v1_is_accepted():
    good = sign_webhook_payload(BODY, SECRET, TS).split("v1=")[1]
    header = f"t={TS},v1={'0' * 64},v1={good}"
    assert verify_webhook_signature(BODY, header, SECRET, now=TS)["id"] == "evt_1"


@pytest.mark.parametrize(
    "body, header, secret, now",
    [
        (BODY + b" ", None, SECRET, TS),                 # 본문 변조 (header 는 아래에서 채움)
        (BODY, None, "whsec_other", TS),                 # 다른 비밀값
        (BODY, None, SECRET, TS + 301),                  # 허용 시간 초과
        (BODY, "", SECRET, TS),                          # 헤더 없음
        (BODY, "t=abc,v1=00", SECRET, TS),               # 잘못된 타임스탬프
        (BODY, f"t={TS}", SECRET, TS),                   # 서명 없음
        (BODY, None, "", TS),                            # 비밀값 미설정
    ],
)
def test_invalid_signatures(body, header, secret, now):
    if header is None:
        header = sign_webhook_payload(BODY, SECRET, TS)
    with pytest.raises(InvalidSignature):
        verify_webhook_signature(body, header, secret, now=now)


def test_non_json_body_is_rejected():
    raw = b"not json"
    header = sign_webhook_payload(raw, SECRET, TS)
    with pytest.raises(InvalidSignature):
        verify_webhook_signature(raw, header, SECRET, now=TS)
