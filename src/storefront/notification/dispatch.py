"""Order confirmation dispatch.

Called once per confirmed order, after the confirmation is persisted. In
``background`` mode the emails are handed to a small thread pool so a slow
mail provider never holds up a gateway webhook response.
"""

from concurrent.futures import Future, ThreadPoolExecutor

from storefront.domain import logger
from storefront.notification import get_email_channel
from storefront.order.document import build_confirmation_document, render_text
from storefront.order.order import Order
from storefront.utils.settings import get_settings

_executor: ThreadPoolExecutor | None = None


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="storefront-notify")
    return _executor


def shutdown_dispatcher(wait: bool = True) -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=wait)
        _executor = None


def _send_confirmation(messages: list[dict], order_id: str) -> None:
    channel = get_email_channel()
    for message in messages:
        try:
            result = channel.send(**message)
        except Exception:
            logger.exception("Confirmation email raised", order_id=order_id, to=message["to"])
            continue
        if result.get("status") != "sent":
            logger.error(
                "Confirmation email failed",
                order_id=order_id,
                to=message["to"],
                error=result.get("error"),
            )
        else:
            logger.info("Confirmation email sent", order_id=order_id, to=message["to"])


def dispatch_order_confirmation(order: Order) -> Future | None:
    """Send the confirmation to the customer and to the shop operator."""
    settings = get_settings()
    document = build_confirmation_document(order)
    body = render_text(document)

    messages = [
        {
            "to": order.customer_email,
            "subject": f"Order {document.reference} confirmed",
            "body": body,
        },
        {
            "to": settings.admin_email,
            "subject": f"New order {document.reference} from {order.customer_name}",
            "body": body,
        },
    ]

    if settings.notification_dispatch == "inline":
        _send_confirmation(messages, str(order.id))
        return None
    return _get_executor().submit(_send_confirmation, messages, str(order.id))
