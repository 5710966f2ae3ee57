# camera_auction/logic/notifications.py
# 메일 알림 포트.
# - 항상 "권위 있는 상태 쓰기"가 끝난 뒤에 notify_safely() 로 호출한다.
# - 발송 실패는 로그만 남기고 호출자에게 전파하지 않는다.
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Optional

from camera_auction.config import env

logger = logging.getLogger(__name__)


class Notifier:
    def send(self, to: str, subject: str, text: str) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    """SMTP 미설정 환경: 보내지 않고 로그만."""

    def send(self, to: str, subject: str, text: str) -> None:
        logger.info("[mail] (disabled) to=%s subject=%s", to, subject)


class SmtpNotifier(Notifier):
    def __init__(self, host: str, port: int, user: str, password: str, sender: str, timeout: float = 15):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        server.starttls()
        return server

    def send(self, to: str, subject: str, text: str) -> None:
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain"))

        with self._connect() as server:
            if self.user:
                server.login(self.user, self.password)
            server.send_message(msg)
        logger.info("[mail] sent to=%s subject=%s", to, subject)


_NOTIFIER: Optional[Notifier] = None


def get_notifier() -> Notifier:
    global _NOTIFIER
    if _NOTIFIER is None:
        if env.SMTP_HOST:
            _NOTIFIER = SmtpNotifier(env.SMTP_HOST, env.SMTP_PORT, env.SMTP_USER, env.SMTP_PASSWORD, env.EMAIL_FROM)
        else:
            _NOTIFIER = NullNotifier()
    return _NOTIFIER


def notify_safely(notifier: Notifier, to: Optional[str], subject: str, text: str) -> bool:
    """fire-and-forget. 실패해도 False 만 리턴."""
    if not to:
        return False
    try:
        notifier.send(to, subject, text)
        return True
    except Exception:
        logger.exception("[mail] failed to send to=%s subject=%s", to, subject)
        return False


def notify_many(notifier: Notifier, messages: Iterable[tuple[Optional[str], str, str]]) -> int:
    return sum(1 for to, subject, text in messages if notify_safely(notifier, to, subject, text))


# -------------------------------------------------------
# 메시지 템플릿
# -------------------------------------------------------
def _gbp(amount) -> str:
    return f"£{int(amount or 0):,}"


def _when(dt) -> str:
    return f"{dt:%a %d %b %Y %H:%M} UTC" if dt else "TBC"


def listing_approved(listing: dict) -> tuple[str, str]:
    start = listing.get("auction_start")
    end = listing.get("auction_end")
    return (
        f"Your listing is approved: {listing.get('title')}",
        "Good news, your listing has been approved and queued for the weekly auction.\n\n"
        f"Auction starts: {_when(start)}\n"
        f"Auction ends:   {_when(end)}\n\n"
        f"{env.SITE_URL}/listings/{listing.get('id')}",
    )


def listing_rejected(listing: dict, reason: str) -> tuple[str, str]:
    return (
        f"Your listing was not approved: {listing.get('title')}",
        f"Unfortunately we could not approve your listing.\n\nReason: {reason}\n",
    )


def listing_relisted(listing: dict, *, automatic: bool = True) -> tuple[str, str]:
    how = "automatically" if automatic else "at your request"
    return (
        f"Relisted: {listing.get('title')}",
        f"Your item did not sell and has been relisted {how}.\n\n"
        f"Auction starts: {_when(listing.get('auction_start'))}\n"
        f"Auction ends:   {_when(listing.get('auction_end'))}\n\n"
        f"{env.SITE_URL}/listings/{listing.get('id')}",
    )


def bid_placed_bidder(listing: dict, amount: int) -> tuple[str, str]:
    return (
        f"Bid placed: {_gbp(amount)} on {listing.get('title')}",
        f"Your bid of {_gbp(amount)} is currently the highest.\n\n{env.SITE_URL}/listings/{listing.get('id')}",
    )


def bid_placed_seller(listing: dict, amount: int) -> tuple[str, str]:
    return (
        f"New bid on {listing.get('title')}",
        f"A new bid of {_gbp(amount)} has been placed on your listing.",
    )


def sale_buyer(tx: dict) -> tuple[str, str]:
    return (
        f"Payment received: {tx.get('listing_title')}",
        f"Thanks, your payment of {_gbp(tx.get('sale_price'))} was successful. "
        "We'll let you know when the seller dispatches your item.",
    )


def sale_seller(tx: dict) -> tuple[str, str]:
    return (
        f"Sold: {tx.get('listing_title')}",
        f"Your item sold for {_gbp(tx.get('sale_price'))}.\n"
        f"Commission ({tx.get('commission_rate')}%): {_gbp(tx.get('commission_amount'))}\n"
        f"Your payout: {_gbp(tx.get('seller_payout'))}\n\n"
        "Please dispatch the item and confirm dispatch from your dashboard.",
    )


def sale_admin(tx: dict) -> tuple[str, str]:
    return (
        f"[admin] Sale completed: {tx.get('listing_title')}",
        f"Transaction {tx.get('id')} ({tx.get('sale_channel')}): {_gbp(tx.get('sale_price'))}\n"
        f"Seller: {tx.get('seller_email')}\nBuyer: {tx.get('buyer_email')}",
    )


def dispatch_sent(tx: dict) -> tuple[str, str]:
    tracking = tx.get("dispatch_tracking") or "not provided"
    return (
        f"Dispatched: {tx.get('listing_title')}",
        f"The seller has dispatched your item.\nCarrier: {tx.get('dispatch_carrier') or '-'}\n"
        f"Tracking: {tracking}\n\nPlease confirm receipt once it arrives.",
    )


def receipt_confirmed(tx: dict) -> tuple[str, str]:
    return (
        f"Buyer confirmed receipt: {tx.get('listing_title')}",
        f"The buyer has confirmed receipt. Your payout of {_gbp(tx.get('seller_payout'))} is now ready.",
    )


def contact_message(name: str, email: str, message: str) -> tuple[str, str]:
    return (f"[contact] {name}", f"From: {name} <{email}>\n\n{message}")
