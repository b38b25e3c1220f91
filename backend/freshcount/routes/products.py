# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/freshcount/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS (closing stock requires VIEW_STOCK)
- Write operations require MANAGE_PRODUCTS (admin)

current_stock is not in PRODUCT_POLICY; sending it is rejected.
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import FreshCountError
from ..models import Product
from ..services import products_service, stock_service
from ..validation import ModelValidationPolicy, enforce_rules_product, int_arg, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category_id", "unit_type", "opening_stock"},
    required_on_create={"name", "category_id", "unit_type", "opening_stock"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    List products ordered by name.

    Query params:
    - category_id: int (optional) - only products in this category
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        result = products_service.list_products(
            category_id=int_arg(request.args, "category_id"),
            page=int_arg(request.args, "page"),
            per_page=int_arg(request.args, "per_page"),
        )
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    response = {"products": result["items"], "count": result["count"]}
    if "pagination" in result:
        response["pagination"] = result["pagination"]
    return response


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product; current_stock starts at opening_stock.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(patch=patch, actor_id=g.current_user.id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Product created successfully", "product": created}, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """
    Update name, category_id, unit_type or opening_stock.

    An opening_stock change shifts current_stock by the same amount.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Product updated successfully", "product": updated}


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id=product_id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Product deleted successfully"}


@products_bp.get("/<int:product_id>/closing-stock")
@require_auth
@require_permission("VIEW_STOCK")
def closing_stock_route(product_id: int):
    try:
        return stock_service.closing_stock(product_id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code
