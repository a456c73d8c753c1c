"""
Order notifications as plain data.

Rendering into HTML mail is the transport's business; these messages carry
everything a template needs.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from shared.config import settings


def format_eur(amount: Decimal) -> str:
    """Italian formatting, e.g. 1.234,50 €"""
    text = f"{amount:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"{text} €"


def payment_reference(customer_name: str) -> str:
    return f"Acquisto GIN - {customer_name}"


class MessageLine(BaseModel):
    product_name: str
    quantity: int
    price: str
    total: str


class BankDetails(BaseModel):
    iban: str
    bank_name: str
    beneficiary: str
    reference: str


class Notification(BaseModel):
    kind: str  # customer_confirmation | staff_notice
    to: str
    subject: str
    order_id: str
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    lines: List[MessageLine]
    subtotal: str
    shipping_cost: str
    total: str
    shipping_address: dict
    bank_details: Optional[BankDetails] = None
    dashboard_url: Optional[str] = None


def _common(order, customer) -> dict:
    name = customer.full_name if customer is not None else order.customer_name
    return {
        "order_id": order.id,
        "order_number": order.number,
        "customer_name": name,
        "customer_email": order.customer_email,
        "customer_phone": customer.phone if customer is not None else None,
        "lines": [
            MessageLine(
                product_name=item.product_name,
                quantity=item.quantity,
                price=format_eur(item.price),
                total=format_eur(item.total),
            )
            for item in order.items
        ],
        "subtotal": format_eur(order.subtotal),
        "shipping_cost": format_eur(order.shipping_cost),
        "total": format_eur(order.total),
        "shipping_address": dict(order.shipping_address),
    }


def customer_confirmation(order, customer) -> Notification:
    common = _common(order, customer)
    return Notification(
        kind="customer_confirmation",
        to=order.customer_email,
        subject=f"Conferma Ordine {order.number} - {settings.STORE_NAME}",
        bank_details=BankDetails(
            iban=settings.BANK_IBAN,
            bank_name=settings.BANK_NAME,
            beneficiary=settings.BANK_BENEFICIARY,
            reference=payment_reference(common["customer_name"]),
        ),
        **common,
    )


def staff_notice(order, customer) -> Optional[Notification]:
    """None when no staff address is configured."""
    if not settings.ADMIN_EMAIL:
        return None
    common = _common(order, customer)
    return Notification(
        kind="staff_notice",
        to=settings.ADMIN_EMAIL,
        subject=f"Nuovo Ordine {order.number} - {common['customer_name']}",
        dashboard_url=f"{settings.ADMIN_URL.rstrip('/')}/orders",
        **common,
    )
