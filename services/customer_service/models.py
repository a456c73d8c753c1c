from decimal import Decimal

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text

from shared.config.database import Base, new_id, utcnow

ZERO = Decimal("0.00")
VIP_SPEND = Decimal("500")
VIP_ORDERS = 10
REGULAR_ORDERS = 3


def calculate_segment(total_spent: Decimal, order_count: int) -> str:
    if order_count == 0:
        return "new"
    if total_spent >= VIP_SPEND or order_count >= VIP_ORDERS:
        return "vip"
    if order_count >= REGULAR_ORDERS:
        return "regular"
    return "new"


class Customer(Base):
    """
    The customer ledger. `order_ids`, `order_count`, `total_spent` and
    `last_order_at` are written only inside order transactions.
    """
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(50), nullable=False, default="")
    last_name = Column(String(50), nullable=False, default="")
    phone = Column(String(20), nullable=True)
    default_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    order_ids = Column(JSON, nullable=False, default=list)
    order_count = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(12, 2), nullable=False, default=ZERO)
    last_order_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version}

    @property
    def segment(self) -> str:
        return calculate_segment(self.total_spent or ZERO, self.order_count or 0)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def record_order(self, order_id: str, spend: Decimal, placed_at) -> None:
        # JSON columns are only persisted on reassignment
        self.order_ids = [*(self.order_ids or []), order_id]
        self.order_count = (self.order_count or 0) + 1
        self.last_order_at = placed_at
        self.add_spend(spend)

    def forget_order(self, order_id: str, spend: Decimal) -> None:
        if order_id in (self.order_ids or []):
            self.order_ids = [oid for oid in self.order_ids if oid != order_id]
            self.order_count = max((self.order_count or 0) - 1, 0)
        self.add_spend(-spend)

    def add_spend(self, amount: Decimal) -> None:
        self.total_spent = (self.total_spent or ZERO) + amount
        self.updated_at = utcnow()
