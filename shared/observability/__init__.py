from .setup import setup_observability
from .metrics import (
    backoffice_orders_total,
    backoffice_order_transaction_seconds,
    backoffice_transaction_retries_total,
    backoffice_stock_units_sold_total,
    backoffice_notifications_total
)
