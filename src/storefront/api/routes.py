"""FastAPI routes for the storefront: checkout, promo codes, operator actions
and payment gateway webhooks.

Gateway endpoints follow the contract the gateways rely on for retries:
200 when the event was handled (or deliberately ignored), 400 for a bad
signature, 404 for an unknown order, 5xx for anything else.
"""

import json
import secrets
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    CancelOrderRequest,
    CheckoutRequest,
    CheckoutResponse,
    ConfirmationLineSchema,
    ConfirmationResponse,
    CreateCatalogDiscountRequest,
    CreatePromotionalCodeRequest,
    DiscountIdResponse,
    ExpireDraftsRequest,
    ExpireDraftsResponse,
    OrderStatusResponse,
    OverrideRequest,
    PromotionalCodeIdResponse,
    ShipOrderRequest,
    StatusResponse,
    UpdateCatalogDiscountRequest,
    ValidatePromoCodeRequest,
    ValidatePromoCodeResponse,
    WebhookResponse,
)
from storefront.checkout.checkout import CheckoutLine, CheckoutOrchestrator, CheckoutSubmission
from storefront.discount.management import (
    CreateCatalogDiscount,
    DeactivateCatalogDiscount,
    DeleteCatalogDiscount,
    UpdateCatalogDiscount,
)
from storefront.domain import logger
from storefront.errors import (
    DiscountRejected,
    GatewaySignatureInvalid,
    InvalidTransition,
    OrderNotFound,
    PaymentInitiationFailed,
    PersistenceConflict,
)
from storefront.order import fulfillment
from storefront.order.document import build_confirmation_document, render_text
from storefront.order.expiry import expire_stale_drafts
from storefront.order.order import Order
from storefront.payment import paysera_callback, stripe_webhook
from storefront.payment.reconciliation import reconcile
from storefront.promotion.management import CreatePromotionalCode, DeactivatePromotionalCode
from storefront.promotion.validator import validate_code
from storefront.utils.settings import get_settings

checkout_router = APIRouter(tags=["checkout"])
promo_router = APIRouter(prefix="/promo-codes", tags=["promo-codes"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
@contextmanager
def _http_errors() -> Iterator[None]:
    """Translate domain errors into HTTP responses."""
    try:
        yield
    except DiscountRejected as exc:
        raise HTTPException(status_code=422, detail={"reason": exc.reason.value, "message": exc.message}) from exc
    except InvalidTransition as exc:
        logger.warning("Invalid order transition rejected", error=exc.messages)
        raise HTTPException(status_code=409, detail=exc.messages) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.messages) from exc
    except (OrderNotFound, ObjectNotFoundError) as exc:
        raise HTTPException(status_code=404, detail="Order not found") from exc
    except PersistenceConflict as exc:
        raise HTTPException(status_code=503, detail="Please retry") from exc
    except PaymentInitiationFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@contextmanager
def _gateway_errors(gateway: str) -> Iterator[None]:
    """The webhook response contract, with request-scoped log context."""
    with structlog.contextvars.bound_contextvars(gateway=gateway, request_id=uuid4().hex):
        try:
            yield
        except GatewaySignatureInvalid as exc:
            logger.warning("Webhook signature rejected", error=str(exc))
            raise HTTPException(status_code=400, detail="Invalid signature") from exc
        except OrderNotFound as exc:
            logger.warning("Webhook for unknown order", reference=exc.reference)
            raise HTTPException(status_code=404, detail="Order not found") from exc
        except PersistenceConflict as exc:
            logger.error("Webhook could not be applied", error=str(exc))
            raise HTTPException(status_code=503, detail="Please retry") from exc
        except HTTPException:
            raise
        except Exception as exc:
            logger.exception("Webhook processing failed")
            raise HTTPException(status_code=500, detail="Internal error") from exc


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@checkout_router.post("/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    x_user_id: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None),
) -> CheckoutResponse:
    """Price the cart, place a draft order and start the payment."""
    session_token = x_session_token or secrets.token_urlsafe(24)
    submission = CheckoutSubmission(
        email=body.email,
        phone=body.phone,
        customer_name=body.customer_name,
        shipping_address=body.shipping_address.model_dump(),
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        items=[
            CheckoutLine(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                client_price=item.price,
            )
            for item in body.items
        ],
        shipping_method=body.shipping_method,
        payment_method=body.payment_method,
        promo_code=body.promo_code,
        user_id=x_user_id,
        session_token=session_token,
        pickup_point=body.pickup_point.model_dump() if body.pickup_point else None,
        notes=body.notes,
    )
    with _http_errors():
        result = CheckoutOrchestrator().checkout(submission)
    return CheckoutResponse(
        order_id=result.order_id,
        payment_reference=result.payment_reference,
        redirect_url=result.redirect_url,
        total=result.total,
        currency=result.currency,
    )


@checkout_router.get("/orders/{order_id}/confirmation", response_model=ConfirmationResponse)
async def order_confirmation(
    order_id: str,
    token: str | None = None,
    x_user_id: str | None = Header(default=None),
    x_session_token: str | None = Header(default=None),
) -> ConfirmationResponse:
    """Regenerate the confirmation document for the order's owner."""
    with _http_errors():
        order = current_domain.repository_for(Order).get_live(order_id)
    if not order.is_owned_by(user_id=x_user_id, session_token=x_session_token or token):
        raise HTTPException(status_code=404, detail="Order not found")

    document = build_confirmation_document(order)
    return ConfirmationResponse(
        reference=document.reference,
        order_number=document.order_number,
        invoice_number=document.invoice_number,
        status=document.status,
        payment_status=document.payment_status,
        lines=[ConfirmationLineSchema(**vars(line)) for line in document.lines],
        original_subtotal=document.original_subtotal,
        product_discount=document.product_discount,
        subtotal=document.subtotal,
        subtotal_excl_vat=document.subtotal_excl_vat,
        vat_amount=document.vat_amount,
        discount=document.discount,
        shipping_cost=document.shipping_cost,
        total=document.total,
        currency=document.currency,
        promo_code=document.promo_code,
        tracking_number=document.tracking_number,
        text=render_text(document),
    )


# ---------------------------------------------------------------------------
# Promotional codes
# ---------------------------------------------------------------------------
@promo_router.post("/validate", response_model=ValidatePromoCodeResponse)
async def validate_promo_code(
    body: ValidatePromoCodeRequest,
    x_user_id: str | None = Header(default=None),
) -> ValidatePromoCodeResponse:
    """Preview a code against a subtotal. Nothing is reserved."""
    try:
        quote = validate_code(body.code, body.subtotal, user_id=x_user_id, email=body.email)
    except DiscountRejected as exc:
        return ValidatePromoCodeResponse(valid=False, reason=exc.reason.value, message=exc.message)
    return ValidatePromoCodeResponse(
        valid=True,
        code=quote.code,
        discount_amount=quote.discount,
        formatted_value=quote.formatted_value,
    )


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------
@admin_router.post("/promo-codes", status_code=201, response_model=PromotionalCodeIdResponse)
async def create_promo_code(body: CreatePromotionalCodeRequest) -> PromotionalCodeIdResponse:
    command = CreatePromotionalCode(
        code=body.code,
        discount_type=body.discount_type,
        value=str(body.value),
        min_order_amount=str(body.min_order_amount) if body.min_order_amount is not None else None,
        max_discount_amount=str(body.max_discount_amount) if body.max_discount_amount is not None else None,
        usage_limit=body.usage_limit,
        per_user_limit=body.per_user_limit,
        starts_at=body.starts_at,
        expires_at=body.expires_at,
        is_active=body.is_active,
    )
    with _http_errors():
        code_id = current_domain.process(command, asynchronous=False)
    return PromotionalCodeIdResponse(code_id=code_id)


@admin_router.post("/promo-codes/{code_id}/deactivate", response_model=StatusResponse)
async def deactivate_promo_code(code_id: str) -> StatusResponse:
    with _http_errors():
        current_domain.process(DeactivatePromotionalCode(code_id=code_id), asynchronous=False)
    return StatusResponse()


@admin_router.post("/discounts", status_code=201, response_model=DiscountIdResponse)
async def create_discount(body: CreateCatalogDiscountRequest) -> DiscountIdResponse:
    command = CreateCatalogDiscount(
        name=body.name,
        discount_type=body.discount_type,
        value=str(body.value),
        scope=body.scope,
        target_ids=json.dumps(body.target_ids),
        priority=body.priority,
        is_active=body.is_active,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
    )
    with _http_errors():
        discount_id = current_domain.process(command, asynchronous=False)
    return DiscountIdResponse(discount_id=discount_id)


@admin_router.put("/discounts/{discount_id}", response_model=StatusResponse)
async def update_discount(discount_id: str, body: UpdateCatalogDiscountRequest) -> StatusResponse:
    command = UpdateCatalogDiscount(
        discount_id=discount_id,
        name=body.name,
        discount_type=body.discount_type,
        value=str(body.value) if body.value is not None else None,
        scope=body.scope,
        target_ids=json.dumps(body.target_ids) if body.target_ids is not None else None,
        priority=body.priority,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
    )
    with _http_errors():
        current_domain.process(command, asynchronous=False)
    return StatusResponse()


@admin_router.post("/discounts/{discount_id}/deactivate", response_model=StatusResponse)
async def deactivate_discount(discount_id: str) -> StatusResponse:
    with _http_errors():
        current_domain.process(DeactivateCatalogDiscount(discount_id=discount_id), asynchronous=False)
    return StatusResponse()


@admin_router.delete("/discounts/{discount_id}", response_model=StatusResponse)
async def delete_discount(discount_id: str) -> StatusResponse:
    with _http_errors():
        current_domain.process(DeleteCatalogDiscount(discount_id=discount_id), asynchronous=False)
    return StatusResponse()


def _status(order: Order) -> OrderStatusResponse:
    return OrderStatusResponse(order_id=str(order.id), status=order.status, payment_status=order.payment_status)


@admin_router.post("/orders/{order_id}/processing", response_model=OrderStatusResponse)
async def mark_processing(order_id: str, body: OverrideRequest | None = None) -> OrderStatusResponse:
    override = body.override if body else False
    with _http_errors():
        return _status(fulfillment.mark_processing(order_id, override=override))


@admin_router.post("/orders/{order_id}/ship", response_model=OrderStatusResponse)
async def ship_order(order_id: str, body: ShipOrderRequest) -> OrderStatusResponse:
    with _http_errors():
        order = fulfillment.ship(order_id, body.tracking_number, carrier=body.carrier, override=body.override)
    return _status(order)


@admin_router.post("/orders/{order_id}/complete", response_model=OrderStatusResponse)
async def complete_order(order_id: str, body: OverrideRequest | None = None) -> OrderStatusResponse:
    override = body.override if body else False
    with _http_errors():
        return _status(fulfillment.complete(order_id, override=override))


@admin_router.post("/orders/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest | None = None) -> OrderStatusResponse:
    with _http_errors():
        return _status(fulfillment.cancel(order_id, reason=body.reason if body else None))


@admin_router.delete("/orders/{order_id}", response_model=StatusResponse)
async def delete_order(order_id: str) -> StatusResponse:
    with _http_errors():
        fulfillment.soft_delete_order(order_id)
    return StatusResponse()


@admin_router.post("/maintenance/expire-drafts", response_model=ExpireDraftsResponse)
async def expire_drafts(body: ExpireDraftsRequest | None = None) -> ExpireDraftsResponse:
    """Reclaim abandoned drafts. Meant to be called by an external scheduler."""
    count = expire_stale_drafts(older_than_minutes=body.older_than_minutes if body else None)
    return ExpireDraftsResponse(expired_count=count)


# ---------------------------------------------------------------------------
# Gateway A: Stripe
# ---------------------------------------------------------------------------
@payments_router.post("/stripe/webhook", response_model=WebhookResponse)
async def stripe_webhook_endpoint(
    request: Request,
    stripe_signature: str = Header(default=""),
) -> WebhookResponse:
    payload = await request.body()
    with _gateway_errors(stripe_webhook.GATEWAY):
        event = stripe_webhook.parse_webhook(payload, stripe_signature)
        if event is None:
            return WebhookResponse(result="ignored")
        result = reconcile(event)
    return WebhookResponse(result=result.outcome.value)


# ---------------------------------------------------------------------------
# Gateway B: Paysera
# ---------------------------------------------------------------------------
@payments_router.post("/paysera/callback", response_class=PlainTextResponse)
async def paysera_callback_endpoint(request: Request) -> PlainTextResponse:
    form = await request.form()
    fields = {key: str(value) for key, value in form.items()}
    with _gateway_errors(paysera_callback.GATEWAY):
        event = paysera_callback.parse_webhook(fields)
        reconcile(event)
    # Paysera retries until the body is exactly "OK".
    return PlainTextResponse("OK")


@payments_router.get("/paysera/accept")
async def paysera_accept(request: Request) -> RedirectResponse:
    """Shopper returns from Paysera after paying; the callback confirms the order."""
    settings = get_settings()
    with _gateway_errors(paysera_callback.GATEWAY):
        params = paysera_callback.decode_signed(dict(request.query_params))
    reference = params.get("orderid", "")
    target = settings.payment_success_path.format(reference=reference)
    return RedirectResponse(url=f"{settings.base_url}{target}", status_code=303)


@payments_router.get("/paysera/cancel")
async def paysera_cancel(request: Request) -> RedirectResponse:
    """Shopper abandoned the Paysera page; an unpaid order is marked failed."""
    settings = get_settings()
    fields = dict(request.query_params)
    if fields.get("data"):
        with _gateway_errors(paysera_callback.GATEWAY):
            try:
                reconcile(paysera_callback.cancellation_event(fields))
            except OrderNotFound:
                logger.warning("Paysera cancel for unknown order")
    return RedirectResponse(url=f"{settings.base_url}{settings.payment_cancel_path}", status_code=303)
