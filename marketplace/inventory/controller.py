from quart import Blueprint, g, jsonify, request

from ..auth.guards import roles_required
from ..common.errors import ValidationFailed
from ..common.validation import parse_body
from .schemas import ProductCreate, StockUpdate
from .service import create_product, get_low_stock, get_product, get_products, set_stock

bp = Blueprint("inventory", __name__, url_prefix="/api")


def _int_arg(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed(f"Invalid {name}", fields=[{"field": name, "message": "must be an integer"}]) from None


@bp.get("/products")
async def products_list():
    items = await get_products(
        category=request.args.get("category") or None,
        seller_id=_int_arg("seller_id"),
    )
    return jsonify(items)


@bp.get("/products/low-stock")
@roles_required("seller")
async def products_low_stock():
    threshold = _int_arg("threshold", 5)
    return jsonify(await get_low_stock(g.user.id, threshold))


@bp.get("/products/<int:product_id>")
async def product_detail(product_id: int):
    return jsonify(await get_product(product_id))


@bp.post("/products")
@roles_required("seller", "admin")
async def product_create():
    data = parse_body(ProductCreate, await request.get_json(silent=True))
    return jsonify(await create_product(g.user, data)), 201


@bp.put("/products/<int:product_id>/stock")
@roles_required("seller", "admin")
async def product_stock_put(product_id: int):
    data = parse_body(StockUpdate, await request.get_json(silent=True))
    return jsonify(await set_stock(g.user, product_id, data))
