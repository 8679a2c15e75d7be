from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class VariationStock(BaseModel):
    selection: Dict[str, str] = Field(min_length=1)
    units: int = Field(ge=0)


class ProductCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(min_length=1, max_length=255)
    category: str = Field(default="general", max_length=64)
    price: Decimal = Field(gt=0)
    total_units: int = Field(gt=0, alias="totalUnits")
    available_units: Optional[int] = Field(default=None, ge=0, alias="availableUnits")
    min_order_quantity: int = Field(default=1, gt=0, alias="minOrderQuantity")
    order_multiple: int = Field(default=1, gt=0, alias="orderMultiple")
    variation_stocks: Optional[List[VariationStock]] = Field(default=None, alias="variationStocks")

    @model_validator(mode="after")
    def _units_consistent(self) -> "ProductCreate":
        if self.available_units is not None and self.available_units > self.total_units:
            raise ValueError("availableUnits cannot exceed totalUnits")
        if self.min_order_quantity > self.total_units:
            raise ValueError("minOrderQuantity cannot exceed totalUnits")
        return self


class StockUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    available_units: int = Field(ge=0, alias="availableUnits")
    variation_stocks: Optional[List[VariationStock]] = Field(default=None, alias="variationStocks")
