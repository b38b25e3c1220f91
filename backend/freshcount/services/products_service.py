# backend/freshcount/services/products_service.py
"""
Products Service

Product master data: name, category, unit of measure and opening stock.

BALANCE OWNERSHIP: current_stock is not writable here. A change to
opening_stock is handed to stock_service.rebase_opening_stock, which moves
current_stock by the same delta so the ledger identity keeps holding.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, FreshCountError, NotFoundError
from ..extensions import db
from ..models import Category, Product, StockMovement
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .stock_service import get_product_or_404, rebase_opening_stock

PRODUCT_MUTABLE_FIELDS = {"name", "category_id", "unit_type"}

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def list_products(
    category_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing ordered by name, with optional pagination.

    Args:
        category_id: Only products in this category
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or DEFAULT_PER_PAGE, MAX_PER_PAGE)
    per_page = max(per_page, 1)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> dict:
    product = get_product_or_404(product_id)
    data = product.to_dict()
    data["category_name"] = product.category.name if product.category else None
    return data


def create_product(*, patch: dict, actor_id: int | None = None) -> dict:
    """
    Create product using a validated patch dict.

    current_stock starts equal to opening_stock.

    Raises:
        NotFoundError: category does not exist
    """
    _require_category(patch["category_id"])

    opening = patch["opening_stock"]
    now = utcnow()
    p = Product(
        opening_stock=opening,
        current_stock=opening,
        created_by_user_id=actor_id,
        created_at=now,
        last_updated=now,
    )
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    current_app.logger.info("Created product id=%s name=%r opening_stock=%s", p.id, p.name, opening)
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    """
    Update a product.

    Raises:
        NotFoundError: product or new category missing
        InsufficientStockError: opening_stock change would make current_stock negative
        ConflictError: concurrent balance change survived every retry
    """
    def _op():
        p = get_product_or_404(product_id)

        if "category_id" in patch and patch["category_id"] != p.category_id:
            _require_category(patch["category_id"])

        apply_product_patch(p, patch)
        if "opening_stock" in patch:
            rebase_opening_stock(p, patch["opening_stock"])

        p.updated_at = utcnow()
        db.session.commit()
        return p.to_dict()

    try:
        return run_with_retry(_op)
    except StaleDataError:
        raise ConflictError("Product was updated concurrently. Please retry.")
    except FreshCountError:
        # Discard a half-applied patch
        db.session.rollback()
        raise


def delete_product(*, product_id: int) -> None:
    """
    Hard-delete a product that has no stock movements.

    Raises:
        NotFoundError: product does not exist
        ConflictError: movements reference the product
    """
    p = get_product_or_404(product_id)

    has_movements = (
        db.session.query(StockMovement.id)
        .filter(StockMovement.product_id == p.id)
        .first()
    )
    if has_movements:
        raise ConflictError("Cannot delete product with existing stock movements")

    db.session.delete(p)
    db.session.commit()
    current_app.logger.info("Deleted product id=%s", product_id)
