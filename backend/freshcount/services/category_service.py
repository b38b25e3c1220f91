# backend/freshcount/services/category_service.py
"""
Category Service

Categories are a flat list of unique names. A category cannot be deleted
while any product points at it; reassign or delete those products first.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Category, Product
from ..time_utils import utcnow

CATEGORY_MUTABLE_FIELDS = {"name", "description"}


def _name_taken(name: str, *, exclude_id: int | None = None) -> bool:
    # Case-insensitive so "Veg" and "veg" do not coexist
    query = db.session.query(Category.id).filter(db.func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc(), Category.id.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


def create_category(*, patch: dict, actor_id: int | None = None) -> Category:
    """
    Create a category from a validated patch.

    Raises ConflictError when the name already exists.
    """
    name = patch["name"]
    if _name_taken(name):
        raise ConflictError("Category already exists")

    category = Category(
        name=name,
        description=patch.get("description") or "",
        created_by_user_id=actor_id,
        created_at=utcnow(),
    )
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Category already exists")

    current_app.logger.info("Created category id=%s name=%r", category.id, category.name)
    return category


def update_category(*, category_id: int, patch: dict) -> Category:
    category = get_category(category_id)

    if "name" in patch and patch["name"] != category.name:
        if _name_taken(patch["name"], exclude_id=category.id):
            raise ConflictError("Category already exists")

    for k, v in patch.items():
        if k in CATEGORY_MUTABLE_FIELDS:
            setattr(category, k, v)
    category.updated_at = utcnow()

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Category already exists")
    return category


def delete_category(*, category_id: int) -> None:
    category = get_category(category_id)

    in_use = db.session.query(Product.id).filter(Product.category_id == category.id).first()
    if in_use:
        raise ConflictError(
            "Cannot delete category with existing products. "
            "Please reassign or delete products first."
        )

    db.session.delete(category)
    db.session.commit()
    current_app.logger.info("Deleted category id=%s", category_id)
