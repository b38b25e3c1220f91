# Overview: Flask API routes for category operations; parses input and returns JSON responses.

# backend/freshcount/routes/categories.py
"""
Category routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_CATEGORIES
- Write operations require MANAGE_CATEGORIES (admin)
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import FreshCountError
from ..models import Category
from ..services import category_service
from ..validation import ModelValidationPolicy, validate_payload

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_CATEGORIES")
def list_categories_route():
    categories = category_service.list_categories()
    return {"categories": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.get("/<int:category_id>")
@require_auth
@require_permission("VIEW_CATEGORIES")
def get_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code
    return category.to_dict()


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = category_service.create_category(patch=patch, actor_id=g.current_user.id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Category created successfully", "category": category.to_dict()}, 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        category = category_service.update_category(category_id=category_id, patch=patch)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Category updated successfully", "category": category.to_dict()}


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(category_id=category_id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Category deleted successfully"}
