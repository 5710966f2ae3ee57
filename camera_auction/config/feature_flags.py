# camera_auction/config/feature_flags.py
# Feature Flags (dev convenience)

FEATURE_FLAGS = {
    # STRIPE_SECRET_KEY 가 없을 때 더미 결제(항상 succeeded)를 허용
    "ALLOW_DUMMY_PAYMENTS": True,
    # 문의 폼 in-memory rate limit
    "CONTACT_RATE_LIMIT": True,
    # 유찰 시 relist_until_sold 리스팅을 다음 창으로 자동 재등록
    "AUTO_RELIST": True,
}


def is_enabled(name: str) -> bool:
    return bool(FEATURE_FLAGS.get(name, False))
