import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa

from ..auth.model import Role, User
from ..common import database
from ..common.errors import Forbidden, NotFound
from .model import Product
from .schemas import ProductCreate, StockUpdate
from .variations import normalize_stocks

_logger = logging.getLogger(__name__)


async def get_products(category: Optional[str] = None, seller_id: Optional[int] = None) -> List[Dict[str, Any]]:
    return await database.fetch_products(category=category, seller_id=seller_id)


async def get_product(product_id: int) -> Dict[str, Any]:
    prod = await database.fetch_product(product_id)
    if prod is None:
        raise NotFound("Product not found", product_id=product_id)
    return prod


async def create_product(seller: User, data: ProductCreate) -> Dict[str, Any]:
    stocks = None
    if data.variation_stocks:
        stocks = normalize_stocks((v.selection, v.units) for v in data.variation_stocks)
    async with database.get_session() as session:
        prod = Product(
            seller_id=seller.id,
            title=data.title,
            category=data.category,
            price=data.price,
            total_units=data.total_units,
            available_units=data.total_units if data.available_units is None else data.available_units,
            min_order_quantity=data.min_order_quantity,
            order_multiple=data.order_multiple,
            variation_stocks=stocks,
        )
        session.add(prod)
        await session.commit()
        _logger.info("Product created | product_id=%s seller_id=%s units=%s", prod.id, seller.id, prod.available_units)
        return prod.to_dict()


async def set_stock(actor: User, product_id: int, data: StockUpdate) -> Dict[str, Any]:
    async with database.get_session() as session:
        async with session.begin():
            prod = await session.get(Product, product_id)
            if prod is None:
                raise NotFound("Product not found", product_id=product_id)
            if actor.role != Role.ADMIN.value and prod.seller_id != actor.id:
                raise Forbidden("Only the owning seller can change stock")
            prod.available_units = data.available_units
            if data.available_units > prod.total_units:
                prod.total_units = data.available_units
            if data.variation_stocks is not None:
                prod.variation_stocks = normalize_stocks((v.selection, v.units) for v in data.variation_stocks)
        _logger.info("DB set stock | product_id=%s new_stock=%s", product_id, data.available_units)
        return prod.to_dict()


async def get_low_stock(seller_id: int, threshold: int) -> List[Dict[str, Any]]:
    async with database.get_session() as session:
        stmt = (
            sa.select(Product)
            .where(Product.seller_id == seller_id, Product.available_units <= threshold)
            .order_by(Product.available_units, Product.id)
        )
        res = await session.execute(stmt)
        return [prod.to_dict() for prod in res.scalars().all()]
