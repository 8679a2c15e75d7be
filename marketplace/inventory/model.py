from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, JSON, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ..common.db import Base, utcnow


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("available_units >= 0", name="ck_products_available_units_nonneg"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_units: Mapped[int] = mapped_column(Integer, nullable=False)
    available_units: Mapped[int] = mapped_column(Integer, nullable=False)
    min_order_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    order_multiple: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # normalized variation key -> units left for that variant
    variation_stocks: Mapped[Optional[Dict[str, int]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "title": self.title,
            "category": self.category,
            "price": float(self.price),
            "total_units": self.total_units,
            "available_units": self.available_units,
            "min_order_quantity": self.min_order_quantity,
            "order_multiple": self.order_multiple,
            "variation_stocks": self.variation_stocks,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
