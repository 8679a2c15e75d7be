import pytest

from marketplace.common import database
from marketplace.seed import SAMPLE_PRODUCTS, seed_demo_data


@pytest.mark.asyncio
async def test_seed_is_idempotent():
    await seed_demo_data()
    await seed_demo_data()

    products = await database.fetch_products()

    assert len(products) == len(SAMPLE_PRODUCTS)
    shirts = next(p for p in products if p["category"] == "apparel")
    assert shirts["variation_stocks"] == {"color=navy|size=M": 600, "color=navy|size=L": 600}
