"""
Checkout and gateway-callback routes.

    POST /payments/purchase  JSON checkout -> auto-submitting redirect form
    POST /payments/callback  gateway form POST -> classified result (JSON)
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from vinti4net.client import Vinti4Net
from vinti4net.core.exceptions import InvalidArgument
from vinti4net.core.limiter import checkout_rate_limit, limiter
from vinti4net.core.monitoring import monitor_errors, sanitize_fields
from vinti4net.schemas.checkout import PurchaseCheckout
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gateway_client(request: Request) -> Vinti4Net:
    """A fresh one-shot client per request, built from the app configuration."""
    return Vinti4Net.from_config(request.app.state.config)


@router.post("/purchase", response_class=HTMLResponse)
@limiter.limit(checkout_rate_limit)
@monitor_errors("purchase_checkout")
async def purchase_checkout(
    request: Request,
    payload: PurchaseCheckout,
    client: Vinti4Net = Depends(get_gateway_client),
):
    """Prepare a 3-D Secure purchase and return the redirect page."""
    response_url = payload.response_url or request.app.state.config.gateway.response_url
    if not response_url:
        raise InvalidArgument(
            "response_url is required when VINTI4_RESPONSE_URL is not configured",
            field="response_url",
        )

    html = client.prepare_purchase(
        payload.amount, payload.billing, payload.currency
    ).create_payment_form(response_url, payload.merchant_ref)

    return HTMLResponse(content=html)


@router.post("/callback")
@limiter.exempt
async def gateway_callback(request: Request, client: Vinti4Net = Depends(get_gateway_client)):
    """
    Receive the gateway's form-encoded POST.

    Always answers 200 with the client-safe view of the result; the raw
    data and fingerprint debug info only go to the server log.
    """
    form = await request.form()
    post_data = {key: value for key, value in form.items() if isinstance(value, str)}

    result = client.process_response(post_data)

    log = logger.warning if result.has_invalid_fingerprint() else logger.info
    log(
        f"Gateway callback classified as {result.status.value}",
        extra={"callback": sanitize_fields(result.to_dict())},
    )

    return JSONResponse(content=result.to_safe_dict())
