import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.model import Role, User
from ..common import database
from ..common.config import settings
from ..common.db import utcnow
from ..common.errors import Forbidden, InsufficientStock, NotFound, OrderNotCancellable, ValidationFailed
from ..inventory.model import Product
from ..inventory.variations import variation_key
from ..notifications import dispatcher
from .codes import generate_order_code, money, seller_payout, temporary_code
from .model import Order, OrderItem
from .schemas import CartCheckout, OrderCreate, OrderItemIn, OrderUpdate
from .status import INITIAL_STATUSES, OrderStatus, ensure_transition

_logger = logging.getLogger(__name__)

InvoiceLine = Dict[str, Any]


def _initial_status(payment_details: Optional[Dict[str, Any]], requested: Optional[OrderStatus]) -> OrderStatus:
    if payment_details and payment_details.get("method") == "wire":
        return OrderStatus.AWAITING_WIRE
    return requested or OrderStatus.ORDERED


def _default_eta(eta: Optional[datetime]) -> datetime:
    if eta is not None:
        if eta.tzinfo is not None:
            eta = eta.astimezone(timezone.utc)
        return eta.replace(tzinfo=None)
    return utcnow() + timedelta(days=settings.ESTIMATED_DELIVERY_DAYS)


async def _reserve_item(session: AsyncSession, seller_id: int, item: OrderItemIn) -> Product:
    product = await session.get(Product, item.product_id)
    if product is None:
        raise NotFound("Product not found", product_id=item.product_id)
    if product.seller_id != seller_id:
        raise ValidationFailed(
            "Product does not belong to this seller", product_id=product.id, seller_id=seller_id
        )
    if item.quantity < product.min_order_quantity:
        raise ValidationFailed(
            f"Minimum order quantity is {product.min_order_quantity}", product_id=product.id
        )
    if item.quantity % product.order_multiple:
        raise ValidationFailed(
            f"Quantity must be a multiple of {product.order_multiple}", product_id=product.id
        )

    available = product.available_units
    if not await database.try_reserve_stock(session, product.id, item.quantity):
        raise InsufficientStock(
            "Not enough units available", product_id=product.id, requested=item.quantity, available=available
        )

    # the decrement above holds the row's write lock until commit
    await session.refresh(product)
    key = variation_key(item.selected_variations)
    stocks = product.variation_stocks or {}
    if key is not None and key in stocks:
        if stocks[key] < item.quantity:
            raise InsufficientStock(
                "Not enough units of the selected variation",
                product_id=product.id,
                variation=key,
                requested=item.quantity,
                available=stocks[key],
            )
        # reassign so the JSON column is flagged dirty
        product.variation_stocks = {**stocks, key: stocks[key] - item.quantity}
    return product


async def _place_order(
    session: AsyncSession,
    buyer: User,
    seller_id: int,
    items: Sequence[OrderItemIn],
    shipping_details: Optional[Dict[str, Any]],
    payment_details: Optional[Dict[str, Any]],
    eta: Optional[datetime],
    status: OrderStatus,
) -> Tuple[Order, List[InvoiceLine]]:
    order = Order(
        code=temporary_code(),
        buyer_id=buyer.id,
        seller_id=seller_id,
        total_amount=Decimal("0"),
        status=status.value,
        shipping_details=shipping_details,
        payment_details=payment_details,
        estimated_delivery_date=_default_eta(eta),
        items=[],
    )
    session.add(order)
    await session.flush()
    order.code = generate_order_code(order.id)

    total = Decimal("0")
    invoice: List[InvoiceLine] = []
    for item in items:
        product = await _reserve_item(session, seller_id, item)
        line_total = money(item.line_total)
        order.items.append(OrderItem(
            product_id=product.id,
            quantity=item.quantity,
            unit_price=money(item.unit_price),
            total_price=line_total,
            selected_variations=item.selected_variations,
        ))
        total += line_total
        invoice.append({
            "title": product.title,
            "quantity": item.quantity,
            "unit_price": float(money(item.unit_price)),
            "total_price": float(line_total),
            "selected_variations": item.selected_variations,
        })
    order.total_amount = money(total)
    await session.flush()
    _logger.info(
        "Order created | order_id=%s code=%s buyer_id=%s seller_id=%s items=%s total=%s",
        order.id, order.code, buyer.id, seller_id, len(invoice), order.total_amount,
    )
    return order, invoice


def _notify_order_placed(buyer: User, seller: Optional[User], order: Order, invoice: List[InvoiceLine]) -> None:
    order_data = order.to_dict(include_items=False)
    if order.status == OrderStatus.AWAITING_WIRE.value:
        # invoice and seller notice wait until the wire is marked paid
        dispatcher.dispatch("wire_instructions", {"to": buyer.email, "order": order_data})
        return
    dispatcher.dispatch("invoice", {
        "to": buyer.email, "order": order_data, "items": invoice, "buyer_name": buyer.full_name,
    })
    if seller is not None:
        dispatcher.dispatch("seller_order", {
            "to": seller.email,
            "order": order_data,
            "items": invoice,
            "buyer_name": buyer.full_name,
            "payout": float(seller_payout(order.total_amount, settings.COMMISSION_RATE)),
        })


async def create_order(buyer: User, data: OrderCreate) -> Dict[str, Any]:
    """Persist one seller's order, its items and the stock decrements atomically."""
    status = _initial_status(data.payment_details, data.status)
    async with database.get_session() as session:
        async with session.begin():
            order, invoice = await _place_order(
                session, buyer, data.seller_id, data.items,
                data.shipping_details, data.payment_details, data.estimated_delivery_date, status,
            )
            seller = await session.get(User, data.seller_id)
    if data.total_amount is not None and money(data.total_amount) != order.total_amount:
        _logger.warning(
            "Client total differs from item sum | order_id=%s client=%s computed=%s",
            order.id, data.total_amount, order.total_amount,
        )
    _notify_order_placed(buyer, seller, order, invoice)
    return order.to_dict()


async def checkout_cart(buyer: User, data: CartCheckout) -> List[Dict[str, Any]]:
    """Split a cart by seller and create one order per seller in a single transaction."""
    status = _initial_status(data.payment_details, None)
    product_ids = sorted({item.product_id for item in data.items})
    placed: List[Tuple[Order, List[InvoiceLine], Optional[User]]] = []
    async with database.get_session() as session:
        async with session.begin():
            res = await session.execute(
                sa.select(Product.id, Product.seller_id).where(Product.id.in_(product_ids))
            )
            owners = dict(res.all())
            missing = [pid for pid in product_ids if pid not in owners]
            if missing:
                raise NotFound("Product not found", product_id=missing[0])

            by_seller: Dict[int, List[OrderItemIn]] = {}
            for item in data.items:
                by_seller.setdefault(owners[item.product_id], []).append(item)

            for seller_id, items in by_seller.items():
                order, invoice = await _place_order(
                    session, buyer, seller_id, items,
                    data.shipping_details, data.payment_details, data.estimated_delivery_date, status,
                )
                placed.append((order, invoice, await session.get(User, seller_id)))
    _logger.info("Checkout complete | buyer_id=%s orders=%s", buyer.id, len(placed))
    for order, invoice, seller in placed:
        _notify_order_placed(buyer, seller, order, invoice)
    return [order.to_dict() for order, _, _ in placed]


def _view(order: Order, viewer: User) -> Dict[str, Any]:
    data = order.to_dict()
    if viewer.role == Role.ADMIN.value or viewer.id == order.seller_id:
        data["seller_payout"] = float(seller_payout(order.total_amount, settings.COMMISSION_RATE))
    return data


async def list_orders(viewer: User) -> List[Dict[str, Any]]:
    async with database.get_session() as session:
        stmt = sa.select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if viewer.role == Role.BUYER.value:
            stmt = stmt.where(Order.buyer_id == viewer.id)
        elif viewer.role == Role.SELLER.value:
            stmt = stmt.where(Order.seller_id == viewer.id)
        res = await session.execute(stmt)
        return [_view(order, viewer) for order in res.scalars().all()]


async def _load_order(session: AsyncSession, order_id: int) -> Order:
    order = await session.get(Order, order_id)
    if order is None:
        raise NotFound("Order not found", order_id=order_id)
    return order


async def get_order(viewer: User, order_id: int) -> Dict[str, Any]:
    async with database.get_session() as session:
        order = await _load_order(session, order_id)
    if viewer.role != Role.ADMIN.value and viewer.id not in (order.buyer_id, order.seller_id):
        raise Forbidden("Not your order")
    return _view(order, viewer)


async def _restore_stock(session: AsyncSession, order: Order) -> None:
    for item in order.items:
        await database.release_stock(session, item.product_id, item.quantity)
        key = variation_key(item.selected_variations)
        if key is None:
            continue
        product = await session.get(Product, item.product_id, populate_existing=True)
        stocks = (product.variation_stocks or {}) if product else {}
        if key in stocks:
            product.variation_stocks = {**stocks, key: stocks[key] + item.quantity}
    _logger.info("Stock restored | order_id=%s items=%s", order.id, len(order.items))


async def _invoice_lines(session: AsyncSession, order: Order) -> List[InvoiceLine]:
    ids = [item.product_id for item in order.items]
    res = await session.execute(sa.select(Product.id, Product.title).where(Product.id.in_(ids)))
    titles = dict(res.all())
    return [
        {
            "title": titles.get(item.product_id, f"Product #{item.product_id}"),
            "quantity": item.quantity,
            "unit_price": float(item.unit_price),
            "total_price": float(item.total_price),
            "selected_variations": item.selected_variations,
        }
        for item in order.items
    ]


async def update_order(actor: User, order_id: int, data: OrderUpdate) -> Dict[str, Any]:
    is_admin = actor.role == Role.ADMIN.value
    target = data.status
    if data.tracking_number and target is None:
        target = OrderStatus.SHIPPED
    if not is_admin and target not in (None, OrderStatus.SHIPPED):
        raise Forbidden("Sellers can only mark orders as shipped")

    changed = False
    async with database.get_session() as session:
        async with session.begin():
            order = await _load_order(session, order_id)
            if not is_admin and order.seller_id != actor.id:
                raise Forbidden("Only the seller of this order can update it")
            if data.tracking_number:
                order.tracking_number = data.tracking_number
            prev = order.status
            if target is not None and target.value != prev:
                new = ensure_transition(prev, target.value)
                if new == OrderStatus.CANCELLED and OrderStatus(prev) in INITIAL_STATUSES:
                    await _restore_stock(session, order)
                if new == OrderStatus.DELIVERED:
                    order.delivered_at = utcnow()
                order.status = new.value
                changed = True
            buyer = await session.get(User, order.buyer_id)
    if changed:
        _logger.info("Order status changed | order_id=%s from=%s to=%s by=%s", order.id, prev, order.status, actor.id)
        if buyer is not None:
            dispatcher.dispatch("shipping_update", {"to": buyer.email, "order": order.to_dict(include_items=False)})
    return _view(order, actor)


async def _cancel(order_id: int, required: OrderStatus, check_actor=None) -> Order:
    async with database.get_session() as session:
        async with session.begin():
            order = await _load_order(session, order_id)
            if check_actor is not None:
                check_actor(order)
            if order.status != required.value:
                raise OrderNotCancellable("Order cannot be cancelled", status=order.status)
            ensure_transition(order.status, OrderStatus.CANCELLED.value)
            await _restore_stock(session, order)
            order.status = OrderStatus.CANCELLED.value
            buyer = await session.get(User, order.buyer_id)
    _logger.info("Order cancelled | order_id=%s", order.id)
    if buyer is not None:
        dispatcher.dispatch("order_cancelled", {"to": buyer.email, "order_code": order.code})
    return order


async def cancel_order(actor: User, order_id: int) -> Dict[str, Any]:
    def _check(order: Order) -> None:
        if actor.role != Role.ADMIN.value and actor.id not in (order.buyer_id, order.seller_id):
            raise Forbidden("Not your order")

    order = await _cancel(order_id, OrderStatus.ORDERED, _check)
    return _view(order, actor)


async def cancel_wire_order(admin: User, order_id: int) -> Dict[str, Any]:
    order = await _cancel(order_id, OrderStatus.AWAITING_WIRE)
    return _view(order, admin)


async def mark_wire_paid(admin: User, order_id: int) -> Dict[str, Any]:
    async with database.get_session() as session:
        async with session.begin():
            order = await _load_order(session, order_id)
            order.status = ensure_transition(order.status, OrderStatus.ORDERED.value).value
            invoice = await _invoice_lines(session, order)
            buyer = await session.get(User, order.buyer_id)
            seller = await session.get(User, order.seller_id)
    _logger.info("Wire payment received | order_id=%s", order.id)
    if buyer is not None:
        _notify_order_placed(buyer, seller, order, invoice)
    return _view(order, admin)
