from prometheus_client import Counter, Histogram

# Business Metrics
backoffice_orders_total = Counter(
    "backoffice_orders_total",
    "Order placement attempts by outcome",
    ["outcome"]  # Labels: 'committed', 'replayed', 'out_of_stock', 'not_found', ...
)

backoffice_order_transaction_seconds = Histogram(
    "backoffice_order_transaction_seconds",
    "Order transaction duration in seconds, retries included"
)

backoffice_transaction_retries_total = Counter(
    "backoffice_transaction_retries_total",
    "Transactions re-run after an optimistic concurrency conflict",
    ["operation"]  # Labels: 'place_order', 'restock', 'update_order', ...
)

backoffice_stock_units_sold_total = Counter(
    "backoffice_stock_units_sold_total",
    "Bottles removed from stock by committed orders"
)

backoffice_notifications_total = Counter(
    "backoffice_notifications_total",
    "Order notifications handed to the transport",
    ["kind", "status"]  # kind: 'customer_confirmation' | 'staff_notice'; status: 'sent' | 'failed'
)
