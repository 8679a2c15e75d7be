import asyncio
import logging
from decimal import Decimal

import sqlalchemy as sa

from .auth.model import Role, User
from .auth.passwords import hash_password
from .common import database
from .inventory.model import Product
from .inventory.variations import variation_key

_logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

SAMPLE_USERS = [
    {"username": "admin", "email": "admin@sycloseouts.com", "first_name": "Admin", "last_name": "User",
     "company": "SY Closeouts", "role": Role.ADMIN},
    {"username": "acme", "email": "sales@acme-liquidators.com", "first_name": "Dana", "last_name": "Reyes",
     "company": "Acme Liquidators", "role": Role.SELLER},
    {"username": "overstock", "email": "ops@overstock-lots.com", "first_name": "Sam", "last_name": "Okafor",
     "company": "Overstock Lots", "role": Role.SELLER},
    {"username": "buyer", "email": "buyer@example.com", "first_name": "Jordan", "last_name": "Lee",
     "company": "Corner Discount", "role": Role.BUYER},
]

SAMPLE_PRODUCTS = [
    {"seller": "acme", "title": "Wireless Earbuds, 500-unit lot", "category": "electronics",
     "price": "6.50", "units": 500, "moq": 50, "multiple": 25},
    {"seller": "acme", "title": "USB-C Cables 1m (mixed colors)", "category": "electronics",
     "price": "0.85", "units": 2000, "moq": 200, "multiple": 100,
     "variations": [({"color": "black"}, 1200), ({"color": "white"}, 800)]},
    {"seller": "overstock", "title": "Cotton T-Shirts, assorted", "category": "apparel",
     "price": "1.90", "units": 1200, "moq": 120, "multiple": 12,
     "variations": [({"size": "M", "color": "navy"}, 600), ({"size": "L", "color": "navy"}, 600)]},
    {"seller": "overstock", "title": "Stainless Water Bottles 750ml", "category": "home",
     "price": "3.25", "units": 300, "moq": 24, "multiple": 24},
]


async def seed_demo_data() -> None:
    async with database.get_session() as session:
        async with session.begin():
            users = {}
            for row in SAMPLE_USERS:
                res = await session.execute(sa.select(User).where(User.username == row["username"]))
                user = res.scalars().first()
                if user is None:
                    role = row["role"]
                    user = User(
                        username=row["username"],
                        password=hash_password(DEMO_PASSWORD),
                        email=row["email"],
                        first_name=row["first_name"],
                        last_name=row["last_name"],
                        company=row["company"],
                        role=role.value,
                        is_seller=role == Role.SELLER,
                        is_approved=True,
                    )
                    session.add(user)
                    await session.flush()
                users[row["username"]] = user

            added = 0
            for p in SAMPLE_PRODUCTS:
                # avoid duplicates by title
                res = await session.execute(sa.select(Product.id).where(Product.title == p["title"]))
                if res.first():
                    continue
                stocks = None
                if p.get("variations"):
                    stocks = {variation_key(sel): units for sel, units in p["variations"]}
                session.add(Product(
                    seller_id=users[p["seller"]].id,
                    title=p["title"],
                    category=p["category"],
                    price=Decimal(p["price"]),
                    total_units=p["units"],
                    available_units=p["units"],
                    min_order_quantity=p["moq"],
                    order_multiple=p["multiple"],
                    variation_stocks=stocks,
                ))
                added += 1
    _logger.info("Seed complete | users=%s products_added=%s", len(users), added)


async def amain():
    await database.init_db()
    await seed_demo_data()
    await database.dispose_engine()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(amain())
