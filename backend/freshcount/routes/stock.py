# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

# backend/freshcount/routes/stock.py
"""
Stock movement routes.

SECURITY: All routes require authentication.
- Reads require VIEW_STOCK
- POST requires RECORD_STOCK_IN; OUT additionally needs RECORD_STOCK_OUT,
  checked by stock_service (staff get 403 for OUT)
- DELETE requires DELETE_STOCK_MOVEMENT (admin)
"""
from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..errors import FreshCountError
from ..services import stock_service
from ..validation import enforce_rules_movement, int_arg

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
@require_auth
@require_permission("VIEW_STOCK")
def list_movements_route():
    """
    List stock movements, newest first.

    Query params:
    - product_id: int (optional)
    - type: IN | OUT (optional)
    - start_date / end_date: ISO-8601, inclusive (optional)
    - limit: int (optional, default 200, max 1000)
    """
    try:
        movements = stock_service.list_movements(
            product_id=int_arg(request.args, "product_id"),
            movement_type=request.args.get("type"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=int_arg(request.args, "limit"),
        )
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"movements": [m.to_dict() for m in movements], "count": len(movements)}


@stock_bp.get("/summary")
@require_auth
@require_permission("VIEW_STOCK")
def stock_summary_route():
    return {"summary": stock_service.stock_summary()}


@stock_bp.get("/<int:movement_id>")
@require_auth
@require_permission("VIEW_STOCK")
def get_movement_route(movement_id: int):
    try:
        movement = stock_service.get_movement(movement_id)
    except FreshCountError as e:
        return e.to_dict(), e.status_code
    return movement.to_dict()


@stock_bp.post("")
@require_auth
@require_permission("RECORD_STOCK_IN")
def create_movement_route():
    """
    Record an IN or OUT movement.

    Body: {product_id, type, quantity, notes?}
    Returns the movement with the product's new current_stock.
    """
    payload = request.get_json(silent=True) or {}

    try:
        data = enforce_rules_movement(payload)
        movement, new_stock = stock_service.record_movement(
            product_id=data["product_id"],
            movement_type=data["type"],
            quantity=data["quantity"],
            notes=data["notes"],
            actor=g.current_user,
        )
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    body = movement.to_dict()
    body["current_stock"] = new_stock
    return {"message": "Stock movement created successfully", "movement": body}, 201


@stock_bp.delete("/<int:movement_id>")
@require_auth
@require_permission("DELETE_STOCK_MOVEMENT")
def delete_movement_route(movement_id: int):
    """Delete a movement and reverse its effect on the product balance."""
    try:
        stock_service.delete_movement(movement_id=movement_id, actor=g.current_user)
    except FreshCountError as e:
        return e.to_dict(), e.status_code

    return {"message": "Stock movement deleted successfully"}
