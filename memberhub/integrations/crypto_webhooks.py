import hmac
import hashlib
import json
from typing import Any, Mapping

PAYMENT_COMPLETED = "payment_completed"
PAYMENT_EXPIRED = "payment_expired"
PAYMENT_FAILED = "payment_failed"
PAYMENT_UPDATED = "payment_updated"


def _sorted_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def sign_nowpayments(secret: str, payload: dict[str, Any]) -> str:
    """
    NowPayments signs the IPN body with its keys sorted:
    HMAC SHA512 with the IPN secret, hex digest, sent as x-nowpayments-sig.
    """
    return hmac.new(secret.encode("utf-8"), _sorted_json(payload).encode("utf-8"), hashlib.sha512).hexdigest()


def sign_btcpay(secret: str, raw_body: bytes) -> str:
    """BTCPay signs the raw body: "sha256=" + HMAC SHA256 hex digest, sent as btcpay-sig."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_nowpayments_signature(*, secret: str, signature: str, payload: dict[str, Any]) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_nowpayments(secret, payload), signature)


def verify_btcpay_signature(*, secret: str, signature: str, raw_body: bytes) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(sign_btcpay(secret, raw_body), signature)


def parse_webhook_event(gateway: str, data: dict[str, Any]) -> dict[str, Any]:
    """Map a gateway notification onto one of our payment events."""
    if gateway == "btcpay":
        invoice_id = data.get("invoiceId")
        kind = data.get("type")
        event = {
            "InvoiceSettled": PAYMENT_COMPLETED,
            "InvoiceExpired": PAYMENT_EXPIRED,
            "InvoiceInvalid": PAYMENT_FAILED,
        }.get(kind, PAYMENT_UPDATED)
        return {"gateway": gateway, "event": event, "invoiceId": invoice_id, "status": kind}

    status = data.get("payment_status")
    if status in ("confirmed", "finished"):
        event = PAYMENT_COMPLETED
    elif status == "expired":
        event = PAYMENT_EXPIRED
    elif status == "failed":
        event = PAYMENT_FAILED
    else:
        event = PAYMENT_UPDATED
    invoice_id = data.get("payment_id")
    return {
        "gateway": gateway,
        "event": event,
        "invoiceId": str(invoice_id) if invoice_id is not None else None,
        "status": status,
    }


def verify_webhook_signature(
    gateway: str,
    *,
    secret: str,
    headers: Mapping[str, str],
    raw_body: bytes,
    payload: dict[str, Any],
) -> bool:
    if gateway == "btcpay":
        return verify_btcpay_signature(secret=secret, signature=headers.get("btcpay-sig", ""), raw_body=raw_body)
    return verify_nowpayments_signature(secret=secret, signature=headers.get("x-nowpayments-sig", ""), payload=payload)
