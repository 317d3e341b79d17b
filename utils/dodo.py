import os
import asyncio
import httpx
from typing import Dict, Any, Optional, Tuple
from core.config import logger, DODO_API_BASE, DODO_API_KEY, DODO_ADHOC_PRODUCT_ID, STORE_CURRENCY


def build_headers_list() -> list[dict]:
    api_key = (DODO_API_KEY or "").strip()
    headers_list = [
        {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "StorefrontBackend/1.0",
        },
        {
            "X-API-KEY": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "StorefrontBackend/1.0",
        },
    ]
    business_id = (os.getenv("DODO_BUSINESS_ID") or "").strip()
    env_hdr = (os.getenv("DODO_PAYMENTS_ENVIRONMENT") or os.getenv("DODO_ENV") or "").strip().strip('"')
    base = (DODO_API_BASE or "").lower()
    if not env_hdr and ("test.dodopayments.com" in base or "sandbox" in base):
        env_hdr = "sandbox"
    if env_hdr.lower() == "prod":
        env_hdr = "production"

    for h in headers_list:
        if business_id:
            h["Dodo-Business-Id"] = business_id
        if env_hdr:
            h["Dodo-Environment"] = env_hdr
    return headers_list


def adhoc_product_id(currency: str = STORE_CURRENCY) -> str:
    """Pay-what-you-want product used to charge a cart total; a per-currency override wins."""
    cur = (currency or "").strip().upper()
    return (os.getenv(f"DODO_ADHOC_PRODUCT_ID_{cur}") or DODO_ADHOC_PRODUCT_ID or "").strip()


def pick_checkout_url(data: Dict[str, Any]) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    link = (
        data.get("checkout_url")
        or data.get("session_url")
        or data.get("url")
        or data.get("payment_link")
    )
    if link:
        return str(link)
    obj = data.get("data")
    if isinstance(obj, dict):
        return pick_checkout_url(obj)
    return None


def pick_session_id(data: Dict[str, Any]) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    sid = data.get("session_id") or data.get("id") or data.get("payment_id")
    if sid:
        return str(sid)
    obj = data.get("data")
    if isinstance(obj, dict):
        return pick_session_id(obj)
    return None


def build_checkout_payload(
    amount_cents: int,
    customer_email: Optional[str],
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, str],
    currency: str = STORE_CURRENCY,
) -> dict:
    payload: Dict[str, Any] = {
        "product_cart": [
            {"product_id": adhoc_product_id(currency), "quantity": 1, "amount": int(amount_cents)},
        ],
        "billing_currency": (currency or STORE_CURRENCY).upper(),
        "return_url": success_url,
        "cancel_url": cancel_url,
        # Dodo metadata values must be strings
        "metadata": {str(k): str(v) for k, v in (metadata or {}).items()},
    }
    if customer_email:
        payload["customer"] = {"email": customer_email}
    return payload


async def create_checkout_session(payload: dict) -> Tuple[Optional[dict], Optional[dict]]:
    """POST the payload to the checkout-session endpoints. Returns (data, last_error)."""
    base = (DODO_API_BASE or "https://test.dodopayments.com").rstrip("/")
    headers_list = build_headers_list()
    endpoints = [
        f"{base}/checkouts",
        f"{base}/v1/checkout-sessions",
    ]
    last_error = None
    async with httpx.AsyncClient(timeout=30.0) as client:
        for url in endpoints:
            for headers in headers_list:
                try:
                    logger.info(f"[dodo] creating checkout session via {url} with headers {list(headers.keys())}")
                    resp = await client.post(url, headers=headers, json=payload)
                    if resp.status_code in (200, 201):
                        try:
                            data = resp.json()
                        except Exception:
                            data = {}
                        return data, None
                    last_error = {
                        "status": resp.status_code,
                        "endpoint": url,
                        "payload_keys": list(payload.keys()),
                        "body": (resp.text or "")[:2000],
                    }
                    if resp.status_code == 429:
                        logger.warning(f"[dodo] rate limited at {url}; backing off briefly")
                        await asyncio.sleep(0.8)
                except Exception as ex:
                    last_error = {"exception": str(ex), "endpoint": url, "payload_keys": list(payload.keys())}
    if last_error:
        logger.warning(f"[dodo] checkout session creation failed: {last_error}")
    return None, last_error
