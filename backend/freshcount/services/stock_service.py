# Overview: Service-layer operations for the stock ledger; movements and product balances.

# backend/freshcount/services/stock_service.py

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from ..errors import (
    ConflictError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    format_quantity,
)
from ..extensions import db
from ..models import Product, StockMovement, User
from ..permissions import role_has_permission
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import round_quantity
from .concurrency import lock_for_update, run_with_retry
"""
FreshCount Stock Ledger Invariants (authoritative)

Balance model:
- StockMovement rows are the ledger. Each is an IN or OUT of a positive quantity.
- Product.current_stock is a stored running balance, written only here.
- After every committed ledger operation:
    current_stock == opening_stock + SUM(IN) - SUM(OUT)
  over the product's surviving movements.
- current_stock never goes negative.

Atomicity:
- The movement insert (or delete) and the balance update commit together.
- Product.version_id turns a concurrent balance write into StaleDataError;
  the whole operation is then retried against a fresh read.

Authorization:
- Recording OUT needs RECORD_STOCK_OUT (admin). Staff may only record IN.

Time semantics:
- created_at is UTC-naive, set by the server.
- list filters are inclusive; a date-only end_date covers that whole day.
"""

# Upper bound for GET /api/stock page size
MAX_LIST_LIMIT = 1000
DEFAULT_LIST_LIMIT = 200


def _conflict_on_stale(func_):
    """Run a ledger unit with retry; an exhausted version conflict becomes a 409."""
    try:
        return run_with_retry(func_)
    except StaleDataError:
        raise ConflictError("Stock was updated concurrently. Please retry.")


def _locked_product(product_id: int) -> Product | None:
    return lock_for_update(
        db.session.query(Product).filter(Product.id == product_id)
    ).first()


def get_product_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def record_movement(
    *,
    product_id: int,
    movement_type: str,
    quantity: float,
    actor: User,
    notes: str = "",
) -> tuple[StockMovement, float]:
    """
    Record one IN or OUT movement and apply it to the product balance.

    Inputs are expected to be validated by validation.enforce_rules_movement.

    Returns (movement, new_current_stock).

    Raises:
        ForbiddenError: actor may not record this direction
        NotFoundError: product does not exist
        InsufficientStockError: OUT larger than the current balance
        ConflictError: version conflict survived every retry
    """
    if movement_type == "OUT" and not role_has_permission(actor.role, "RECORD_STOCK_OUT"):
        current_app.logger.warning(
            "Denied OUT movement for user id=%s role=%s product_id=%s",
            actor.id, actor.role, product_id,
        )
        raise ForbiddenError("Staff can only add stock (IN). Contact admin for stock removal.")

    def _op():
        product = _locked_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")

        current = round_quantity(product.current_stock)
        if movement_type == "OUT" and current < quantity:
            raise InsufficientStockError(current)

        now = utcnow()
        movement = StockMovement(
            product_id=product.id,
            type=movement_type,
            quantity=quantity,
            unit_type=product.unit_type,
            notes=notes or "",
            created_by_user_id=actor.id,
            created_by_name=actor.email,
            created_at=now,
        )
        db.session.add(movement)

        delta = quantity if movement_type == "IN" else -quantity
        product.current_stock = round_quantity(current + delta)
        product.last_updated = now

        db.session.commit()
        return movement, product.current_stock

    movement, new_stock = _conflict_on_stale(_op)
    current_app.logger.info(
        "Recorded %s %s on product id=%s by user id=%s; balance now %s",
        movement.type, movement.quantity, movement.product_id, actor.id, new_stock,
    )
    return movement, new_stock


def delete_movement(*, movement_id: int, actor: User) -> None:
    """
    Delete a movement and reverse its effect on the product balance.

    The compensating update is applied to the current balance: an IN is
    subtracted, an OUT added back. If the product is gone only the movement
    row is removed. A reversal that would leave the balance negative (the IN
    was already consumed by later OUTs) is rejected.
    """
    if not role_has_permission(actor.role, "DELETE_STOCK_MOVEMENT"):
        raise ForbiddenError("Only admins can delete stock movements")

    def _op():
        movement = db.session.get(StockMovement, movement_id)
        if movement is None:
            raise NotFoundError("Stock movement not found")

        product = _locked_product(movement.product_id)
        if product is not None:
            current = round_quantity(product.current_stock)
            reversed_stock = round_quantity(current - movement.signed_quantity)
            if reversed_stock < 0:
                raise InsufficientStockError(
                    current,
                    f"Cannot delete movement: reversing it would make stock negative. "
                    f"Current stock: {format_quantity(current)}",
                )
            product.current_stock = reversed_stock
            product.last_updated = utcnow()

        db.session.delete(movement)
        db.session.commit()
        return product.current_stock if product is not None else None

    new_stock = _conflict_on_stale(_op)
    current_app.logger.info(
        "Deleted stock movement id=%s by user id=%s; balance now %s",
        movement_id, actor.id, new_stock,
    )


def rebase_opening_stock(product: Product, new_opening: float) -> None:
    """
    Shift current_stock by the change in opening_stock.

    Does not commit; the caller commits together with its other product
    edits, and the product's version_id guards the combined write.
    """
    new_opening = round_quantity(new_opening)
    delta = round_quantity(new_opening - product.opening_stock)
    if delta == 0:
        return

    new_current = round_quantity(product.current_stock + delta)
    if new_current < 0:
        raise InsufficientStockError(
            product.current_stock,
            f"Opening stock change would make current stock negative. "
            f"Current stock: {format_quantity(product.current_stock)}",
        )

    product.opening_stock = new_opening
    product.current_stock = new_current
    product.last_updated = utcnow()


def _movement_totals(product_id: int) -> tuple[float, float]:
    rows = (
        db.session.query(StockMovement.type, StockMovement.quantity)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .all()
    )
    total_in = 0.0
    total_out = 0.0
    for movement_type, quantity in rows:
        if movement_type == "IN":
            total_in = round_quantity(total_in + quantity)
        else:
            total_out = round_quantity(total_out + quantity)
    return total_in, total_out


def closing_stock(product_id: int) -> dict:
    """
    Replay the ledger for one product.

    in_sync is False when the stored balance disagrees with the replay;
    nothing is corrected here (see `flask stock reconcile`).
    """
    product = get_product_or_404(product_id)
    total_in, total_out = _movement_totals(product.id)
    closing = round_quantity(product.opening_stock + total_in - total_out)

    return {
        "product_id": product.id,
        "opening_stock": product.opening_stock,
        "current_stock": product.current_stock,
        "closing_stock": closing,
        "total_in": total_in,
        "total_out": total_out,
        "in_sync": round_quantity(product.current_stock) == closing,
    }


def find_divergent_products() -> list[dict]:
    """Return closing_stock() results for every product whose balance disagrees with its ledger."""
    product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id.asc())]
    return [r for r in (closing_stock(pid) for pid in product_ids) if not r["in_sync"]]


def reconcile_product(product_id: int) -> dict:
    """
    Rewrite current_stock from the ledger replay.

    Operator repair path; never called from request handling.
    """
    def _op():
        product = _locked_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        total_in, total_out = _movement_totals(product.id)
        before = product.current_stock
        product.current_stock = round_quantity(product.opening_stock + total_in - total_out)
        product.last_updated = utcnow()
        db.session.commit()
        return {"product_id": product.id, "before": before, "after": product.current_stock}

    result = _conflict_on_stale(_op)
    current_app.logger.warning(
        "Reconciled product id=%s current_stock %s -> %s",
        result["product_id"], result["before"], result["after"],
    )
    return result


def stock_summary() -> dict:
    """
    Classify every product by its balance.

    out_of_stock: current_stock == 0
    low_stock: otherwise current_stock < LOW_STOCK_RATIO * opening_stock
    (a product that opened at 0 is never low stock)
    """
    ratio = current_app.config.get("LOW_STOCK_RATIO", 0.2)
    products = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()

    out_of_stock = []
    low_stock = []
    for p in products:
        if p.current_stock == 0:
            out_of_stock.append({
                "id": p.id,
                "name": p.name,
                "category_id": p.category_id,
            })
        elif p.current_stock < p.opening_stock * ratio:
            low_stock.append({
                "id": p.id,
                "name": p.name,
                "current_stock": p.current_stock,
                "opening_stock": p.opening_stock,
                "category_id": p.category_id,
            })

    return {
        "total_products": len(products),
        "out_of_stock_products": out_of_stock,
        "low_stock_products": low_stock,
    }


def _parse_bound(value, field: str, *, end: bool) -> datetime | None:
    if value in (None, ""):
        return None
    try:
        parsed = parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
    if end and len(value.strip()) == 10:
        # Date-only end bound covers the whole day
        return parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int | None = None,
) -> list[StockMovement]:
    """Newest first. Date bounds are inclusive."""
    if movement_type not in (None, "", "IN", "OUT"):
        raise ValidationError("Type must be either IN or OUT")

    start = _parse_bound(start_date, "start_date", end=False)
    end = _parse_bound(end_date, "end_date", end=True)
    if start and end and start > end:
        raise ValidationError("start_date must not be after end_date")

    limit = DEFAULT_LIST_LIMIT if limit is None else limit
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    limit = min(limit, MAX_LIST_LIMIT)

    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        q = q.filter(StockMovement.type == movement_type)
    if start is not None:
        q = q.filter(StockMovement.created_at >= start)
    if end is not None:
        q = q.filter(StockMovement.created_at <= end)

    return (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def get_movement(movement_id: int) -> StockMovement:
    movement = db.session.get(StockMovement, movement_id)
    if movement is None:
        raise NotFoundError("Stock movement not found")
    return movement
