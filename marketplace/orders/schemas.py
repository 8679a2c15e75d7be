from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .status import INITIAL_STATUSES, OrderStatus


class OrderItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: int = Field(gt=0, alias="productId")
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0, alias="unitPrice")
    total_price: Optional[Decimal] = Field(default=None, ge=0, alias="totalPrice")
    selected_variations: Optional[Dict[str, str]] = Field(default=None, alias="selectedVariations")

    @model_validator(mode="after")
    def _total_matches(self) -> "OrderItemIn":
        if self.total_price is not None and abs(self.total_price - self.unit_price * self.quantity) > Decimal("0.01"):
            raise ValueError("totalPrice must equal unitPrice * quantity")
        return self

    @property
    def line_total(self) -> Decimal:
        if self.total_price is not None:
            return self.total_price
        return self.unit_price * self.quantity


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    seller_id: int = Field(gt=0, alias="sellerId")
    total_amount: Optional[Decimal] = Field(default=None, ge=0, alias="totalAmount")
    status: Optional[OrderStatus] = None
    shipping_details: Optional[Dict[str, Any]] = Field(default=None, alias="shippingDetails")
    payment_details: Optional[Dict[str, Any]] = Field(default=None, alias="paymentDetails")
    estimated_delivery_date: Optional[datetime] = Field(default=None, alias="estimatedDeliveryDate")
    items: List[OrderItemIn] = Field(min_length=1)

    @field_validator("status")
    @classmethod
    def _initial_status_only(cls, value: Optional[OrderStatus]) -> Optional[OrderStatus]:
        if value is not None and value not in INITIAL_STATUSES:
            raise ValueError("new orders must start as 'ordered' or 'awaiting_wire'")
        return value


class CartCheckout(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    shipping_details: Optional[Dict[str, Any]] = Field(default=None, alias="shippingDetails")
    payment_details: Optional[Dict[str, Any]] = Field(default=None, alias="paymentDetails")
    estimated_delivery_date: Optional[datetime] = Field(default=None, alias="estimatedDeliveryDate")
    items: List[OrderItemIn] = Field(min_length=1)


class OrderUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    status: Optional[OrderStatus] = None
    tracking_number: Optional[str] = Field(default=None, max_length=64, alias="trackingNumber")
