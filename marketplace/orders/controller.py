from quart import Blueprint, g, jsonify, request

from ..auth.guards import login_required, roles_required
from ..common.validation import parse_body
from .schemas import CartCheckout, OrderCreate, OrderUpdate
from .service import (
    cancel_order,
    cancel_wire_order,
    checkout_cart,
    create_order,
    get_order,
    list_orders,
    mark_wire_paid,
    update_order,
)

bp = Blueprint("orders", __name__, url_prefix="/api")


@bp.post("/orders")
@roles_required("buyer")
async def orders_create():
    data = parse_body(OrderCreate, await request.get_json(silent=True))
    return jsonify(await create_order(g.user, data)), 201


@bp.post("/checkout")
@roles_required("buyer")
async def checkout():
    data = parse_body(CartCheckout, await request.get_json(silent=True))
    return jsonify(await checkout_cart(g.user, data)), 201


@bp.get("/orders")
@login_required
async def orders_list():
    return jsonify(await list_orders(g.user))


@bp.get("/orders/<int:order_id>")
@login_required
async def order_detail(order_id: int):
    return jsonify(await get_order(g.user, order_id))


@bp.put("/orders/<int:order_id>")
@roles_required("seller", "admin")
async def order_update(order_id: int):
    data = parse_body(OrderUpdate, await request.get_json(silent=True))
    return jsonify(await update_order(g.user, order_id, data))


@bp.patch("/orders/<int:order_id>/cancel")
@login_required
async def order_cancel(order_id: int):
    return jsonify(await cancel_order(g.user, order_id))


@bp.post("/admin/orders/<int:order_id>/mark-wire-paid")
@roles_required("admin")
async def admin_mark_wire_paid(order_id: int):
    return jsonify(await mark_wire_paid(g.user, order_id))


@bp.post("/admin/orders/<int:order_id>/cancel")
@roles_required("admin")
async def admin_cancel(order_id: int):
    return jsonify(await cancel_wire_order(g.user, order_id))
