from sqlalchemy import Boolean, Column, DateTime, Float, Integer, Numeric, String, Text

from shared.config.database import Base, new_id, utcnow
from shared.errors import ValidationError

from .schemas import MAX_STOCK


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    sku = Column(String(50), unique=True, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="active")  # active, inactive, out_of_stock
    category = Column(String(50), nullable=False, index=True)
    featured = Column(Boolean, nullable=False, default=False)
    image_url = Column(String(500), nullable=True)
    alcohol_content = Column(Float, nullable=True)
    bottle_size = Column(Float, nullable=True)  # litres
    # Bumped on every UPDATE; a write against a stale version fails with StaleDataError
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version}

    def adjust_stock(self, delta: int) -> None:
        """Apply a stock change and keep `status` in step with availability."""
        new_stock = self.stock + delta
        if new_stock < 0:
            raise ValueError(f"Stock for {self.id} cannot go below zero")
        if new_stock > MAX_STOCK:
            raise ValidationError(f"Stock for {self.name} cannot exceed {MAX_STOCK} (currently {self.stock})")
        self.stock = new_stock
        self.updated_at = utcnow()
        if self.stock == 0 and self.status == "active":
            self.status = "out_of_stock"
        elif self.stock > 0 and self.status == "out_of_stock":
            self.status = "active"
