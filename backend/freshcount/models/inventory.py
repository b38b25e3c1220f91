from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

UNIT_TYPES = ("kg", "gram", "litre", "ml", "unit", "piece")
MOVEMENT_TYPES = ("IN", "OUT")


class Category(db.Model):
    """
    Named classification referenced by products.

    Name uniqueness is a database constraint; category_service also checks it
    up front so the common case answers with a clean 409.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description or "",
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data with a stored running balance.

    BALANCE OWNERSHIP:
    current_stock is written only by services/stock_service.py. It always
    equals opening_stock + sum(IN) - sum(OUT) over the product's surviving
    movements; the movement row and the balance change commit together.

    version_id is SQLAlchemy's optimistic lock: a concurrent balance update
    raises StaleDataError instead of silently losing a write.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    unit_type = db.Column(db.String(16), nullable=False)

    opening_stock = db.Column(db.Float, nullable=False, default=0)
    current_stock = db.Column(db.Float, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_by_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    # Product edits (name, category, unit)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # Last balance change made by the stock ledger
    last_updated = db.Column(db.DateTime(timezone=True), nullable=True)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} current_stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category_id": self.category_id,
            "unit_type": self.unit_type,
            "opening_stock": self.opening_stock,
            "current_stock": self.current_stock,
            "version_id": self.version_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "last_updated": to_utc_z(self.last_updated),
        }


class StockMovement(db.Model):
    """
    One IN or OUT quantity event against a product.

    Immutable once written; the only mutation is deletion, which applies the
    inverse change to Product.current_stock. unit_type and created_by_name
    are snapshots taken when the movement is recorded.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_stock_movements_type"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False, index=True)
    quantity = db.Column(db.Float, nullable=False)
    unit_type = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.String(500), nullable=False, default="")

    created_by_user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_by_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} product_id={self.product_id} {self.type} {self.quantity}>"

    @property
    def signed_quantity(self) -> float:
        return self.quantity if self.type == "IN" else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "unit_type": self.unit_type,
            "notes": self.notes or "",
            "created_by_user_id": self.created_by_user_id,
            "created_by_name": self.created_by_name,
            "created_at": to_utc_z(self.created_at),
        }
