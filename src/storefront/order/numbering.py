"""Sequential public numbers for orders and invoices.

Each sequence is a single row advanced under its own record lock, so two
confirmations can never draw the same number.
"""

from protean.fields import Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.utils.locks import record_lock

ORDER_SEQUENCE = "order_number"
INVOICE_SEQUENCE = "invoice_number"

FIRST_ORDER_NUMBER = 6002
FIRST_INVOICE_NUMBER = 1362
INVOICE_PREFIX = "IN"


@storefront.aggregate
class NumberSequence:
    name = String(required=True, max_length=50, unique=True)
    last_value = Integer(required=True, min_value=0)


def _advance(name: str, first: int) -> int:
    repo = current_domain.repository_for(NumberSequence)
    with record_lock("sequence", name):
        sequence = repo._dao.query.filter(name=name).all().first
        if sequence is None:
            sequence = NumberSequence(name=name, last_value=first)
        else:
            sequence.last_value += 1
        repo.add(sequence)
        return sequence.last_value


def next_order_number() -> str:
    return str(_advance(ORDER_SEQUENCE, FIRST_ORDER_NUMBER))


def next_invoice_number() -> str:
    return f"{INVOICE_PREFIX}{_advance(INVOICE_SEQUENCE, FIRST_INVOICE_NUMBER):06d}"
