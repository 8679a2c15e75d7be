import logging
from typing import Any, Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .db import Base
from ..auth.model import User
from ..inventory.model import Product
from ..orders.model import Order, OrderItem  # noqa: F401  (registers tables)

_logger = logging.getLogger(__name__)

# Async SQLAlchemy engine and session factory
engine: AsyncEngine = create_async_engine(settings.DB_URL, future=True, echo=False)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def init_engine(db_url: str) -> AsyncEngine:
    """Rebind the module engine and session factory (tests, alternate DBs)."""
    global engine, AsyncSessionLocal
    engine = create_async_engine(db_url, future=True, echo=False)
    AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return engine


def get_session() -> AsyncSession:
    return AsyncSessionLocal()


async def init_db(seed: bool = False) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if seed:
        from ..seed import seed_demo_data

        await seed_demo_data()


async def dispose_engine() -> None:
    await engine.dispose()


async def fetch_user(user_id: int) -> Optional[User]:
    async with AsyncSessionLocal() as session:
        return await session.get(User, user_id)


async def fetch_product(product_id: int) -> Optional[Dict[str, Any]]:
    async with AsyncSessionLocal() as session:
        prod = await session.get(Product, product_id)
        return prod.to_dict() if prod else None


async def fetch_products(category: Optional[str] = None, seller_id: Optional[int] = None) -> List[Dict[str, Any]]:
    async with AsyncSessionLocal() as session:
        stmt = sa.select(Product).order_by(Product.id)
        if category:
            stmt = stmt.where(Product.category == category)
        if seller_id is not None:
            stmt = stmt.where(Product.seller_id == seller_id)
        res = await session.execute(stmt)
        return [prod.to_dict() for prod in res.scalars().all()]


async def try_reserve_stock(session: AsyncSession, product_id: int, quantity: int) -> bool:
    """Atomically decrement stock if available, inside the caller's transaction.

    The guard in the WHERE clause makes the check and the write a single
    statement, so concurrent checkouts cannot both spend the same units.
    """
    stmt = (
        sa.update(Product)
        .where(Product.id == product_id, Product.available_units >= quantity)
        .values(available_units=Product.available_units - quantity)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return (res.rowcount or 0) > 0


async def release_stock(session: AsyncSession, product_id: int, quantity: int) -> None:
    stmt = (
        sa.update(Product)
        .where(Product.id == product_id)
        .values(available_units=Product.available_units + quantity)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)
