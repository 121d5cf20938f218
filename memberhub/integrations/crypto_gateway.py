import logging
from typing import Any

import httpx
from memberhub.core.config import settings
from memberhub.core.errors import GatewayError

logger = logging.getLogger(__name__)

# NowPayments statuses that mean the invoice is paid
NOWPAYMENTS_PAID = ("confirmed", "finished")
BTCPAY_PAID = ("Settled",)


def gateway_name() -> str:
    return (settings.crypto_gateway or "nowpayments").lower()


def _webhook_url() -> str:
    return f"{settings.app_base_url}/api/payments/crypto/webhook"


async def _request(method: str, url: str, headers: dict, payload: dict | None = None) -> dict[str, Any]:
    async with httpx.AsyncClient(timeout=20) as client:
        r = await client.request(method, url, json=payload, headers=headers)
    if r.status_code not in (200, 201):
        # keep body as text to avoid json decode surprises
        logger.error("Crypto gateway %s %s -> %s", method, url, r.status_code)
        raise GatewayError(
            "Crypto gateway request failed",
            error={"gateway_status": r.status_code, "gateway_response": r.text},
        )
    return r.json() if r.content else {}


# ---------------------------
# NowPayments
# ---------------------------

def _nowpayments_headers() -> dict:
    return {"x-api-key": settings.nowpayments_api_key}


async def nowpayments_create_invoice(amount: float, currency: str, order_id: str, description: str) -> dict[str, Any]:
    """
    Creates a payment and returns the normalized invoice.
    Docs: POST /payment
    """
    payload = {
        "price_amount": amount,
        "price_currency": currency,
        "pay_currency": "btc",
        "order_id": order_id,
        "order_description": description,
        "ipn_callback_url": _webhook_url(),
        "is_fixed_rate": True,
        "is_fee_paid_by_user": False,
    }
    data = await _request("POST", f"{settings.nowpayments_base_url}/payment", _nowpayments_headers(), payload)
    payment_id = data.get("payment_id")
    return {
        "gateway": "nowpayments",
        "invoiceId": str(payment_id) if payment_id is not None else None,
        "paymentUrl": f"https://nowpayments.io/payment/?iid={payment_id}",
        "paymentAddress": data.get("pay_address"),
        "amount": data.get("price_amount"),
        "currency": data.get("price_currency"),
        "payCurrency": data.get("pay_currency"),
        "status": data.get("payment_status"),
    }


async def nowpayments_invoice_status(invoice_id: str) -> dict[str, Any]:
    data = await _request("GET", f"{settings.nowpayments_base_url}/payment/{invoice_id}", _nowpayments_headers())
    status = data.get("payment_status")
    return {
        "gateway": "nowpayments",
        "status": status,
        "amount": data.get("price_amount"),
        "currency": data.get("price_currency"),
        "paid": status in NOWPAYMENTS_PAID,
    }


# ---------------------------
# BTCPay Server
# ---------------------------

def _btcpay_headers() -> dict:
    return {"Authorization": f"token {settings.btcpay_api_key}"}


def _btcpay_invoices_url() -> str:
    return f"{settings.btcpay_url}/api/v1/stores/{settings.btcpay_store_id}/invoices"


async def btcpay_create_invoice(amount: float, currency: str, order_id: str, description: str) -> dict[str, Any]:
    """
    Creates an invoice and returns the normalized invoice.
    Docs: POST /api/v1/stores/{storeId}/invoices
    """
    payload = {
        "amount": amount,
        "currency": currency.upper(),
        "metadata": {"orderId": order_id, "itemDesc": description},
        "checkout": {"redirectURL": f"{settings.frontend_url}/payment/success"},
    }
    data = await _request("POST", _btcpay_invoices_url(), _btcpay_headers(), payload)
    return {
        "gateway": "btcpay",
        "invoiceId": data.get("id"),
        "paymentUrl": data.get("checkoutLink"),
        "amount": data.get("amount"),
        "currency": data.get("currency"),
        "status": data.get("status"),
    }


async def btcpay_invoice_status(invoice_id: str) -> dict[str, Any]:
    data = await _request("GET", f"{_btcpay_invoices_url()}/{invoice_id}", _btcpay_headers())
    status = data.get("status")
    return {
        "gateway": "btcpay",
        "status": status,
        "amount": data.get("amount"),
        "currency": data.get("currency"),
        "paid": status in BTCPAY_PAID,
    }


# ---------------------------
# gateway-agnostic entry points
# ---------------------------

async def create_invoice(amount: float, currency: str, order_id: str, description: str) -> dict[str, Any]:
    if gateway_name() == "btcpay":
        return await btcpay_create_invoice(amount, currency, order_id, description)
    return await nowpayments_create_invoice(amount, currency, order_id, description)


async def get_invoice_status(invoice_id: str) -> dict[str, Any]:
    if gateway_name() == "btcpay":
        return await btcpay_invoice_status(invoice_id)
    return await nowpayments_invoice_status(invoice_id)
