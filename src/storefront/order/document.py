"""Order confirmation document.

Built purely from the persisted order and its item snapshots, so it can be
regenerated at any time with the same result. Rendering to PDF or HTML is
left to the document generator of the hosting application; ``render_text``
is the plain-text body used for confirmation emails.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from storefront.order.order import Order
from storefront.pricing.money import format_money, from_cents


@dataclass(frozen=True)
class DocumentLine:
    product_name: str
    sku: str
    variant_label: str | None
    quantity: int
    unit_price: Decimal
    unit_discount: Decimal
    total: Decimal


@dataclass(frozen=True)
class ConfirmationDocument:
    order_id: str
    reference: str
    order_number: str | None
    invoice_number: str | None
    status: str
    payment_status: str
    customer_name: str
    customer_email: str
    shipping_address: dict
    billing_address: dict
    shipping_method: str | None
    currency: str
    original_subtotal: Decimal
    product_discount: Decimal
    subtotal: Decimal
    subtotal_excl_vat: Decimal
    vat_amount: Decimal
    discount: Decimal
    shipping_cost: Decimal
    total: Decimal
    promo_code: str | None = None
    tracking_number: str | None = None
    lines: list[DocumentLine] = field(default_factory=list)


def _address(address) -> dict:
    if address is None:
        return {}
    return {
        "name": address.full_name,
        "street": address.street,
        "apartment": address.apartment,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
        "phone": address.phone,
    }


def build_confirmation_document(order: Order) -> ConfirmationDocument:
    pricing = order.pricing
    lines = [
        DocumentLine(
            product_name=item.product_name,
            sku=item.sku,
            variant_label=item.variant_label,
            quantity=item.quantity,
            unit_price=from_cents(item.unit_price),
            unit_discount=from_cents(item.unit_discount),
            total=from_cents(item.total),
        )
        for item in sorted(order.items, key=lambda i: (i.sku, str(i.id)))
    ]

    return ConfirmationDocument(
        order_id=str(order.id),
        reference=order.public_reference,
        order_number=order.order_number,
        invoice_number=order.invoice_number,
        status=order.status,
        payment_status=order.payment_status,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        shipping_method=order.shipping_method,
        currency=pricing.currency,
        original_subtotal=pricing.amount("original_subtotal"),
        product_discount=pricing.amount("product_discount"),
        subtotal=pricing.amount("subtotal"),
        subtotal_excl_vat=pricing.amount("subtotal_excl_vat"),
        vat_amount=pricing.amount("vat_amount"),
        discount=pricing.amount("discount"),
        shipping_cost=pricing.amount("shipping_cost"),
        total=pricing.amount("total"),
        promo_code=order.promo_code,
        tracking_number=order.tracking_number,
        lines=lines,
    )


def render_text(document: ConfirmationDocument) -> str:
    currency = document.currency
    rows = [
        f"Order {document.reference}",
        f"Invoice {document.invoice_number or '-'}",
        "",
    ]
    for line in document.lines:
        label = f"{line.product_name} ({line.variant_label})" if line.variant_label else line.product_name
        rows.append(f"{line.quantity} x {label} [{line.sku}]  {format_money(line.total, currency)}")
    rows.append("")
    if document.product_discount:
        rows.append(f"Product discount: -{format_money(document.product_discount, currency)}")
    rows.append(f"Subtotal: {format_money(document.subtotal, currency)}")
    rows.append(f"  of which VAT: {format_money(document.vat_amount, currency)}")
    if document.discount:
        rows.append(f"Promo code {document.promo_code}: -{format_money(document.discount, currency)}")
    rows.append(f"Shipping: {format_money(document.shipping_cost, currency)}")
    rows.append(f"Total: {format_money(document.total, currency)}")
    return "\n".join(rows)
