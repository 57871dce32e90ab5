# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""
Sales API Routes

Thin wrappers over sales_service: every rule (item availability, customer
requirement, balance reconciliation, closed-session lock) lives there.

SECURITY:
- sales:write to create/edit, sales:delete to delete, sales:read to view
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import with_actor
from ..services import sales_service
from ..services.permission_service import require_permission
from ..validation import UNSET


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@with_actor
def create_sale_route():
    """
    Create a sale.

    Request body:
    {
        "items": [{"item_id": 1, "unit_price": 50000}, ...],
        "customer_id": 3,  (optional, required unless fully paid)
        "discount_amount": 5000,
        "paid_amount": 40000,
        "payment_method": "cash",
        "date": "2026-01-05T10:00:00Z",  (optional)
        "notes": "..."  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.create_sale(
            items=data.get("items"),
            customer_id=data.get("customer_id"),
            discount_amount=data.get("discount_amount", 0),
            paid_amount=data.get("paid_amount", 0),
            payment_method=data.get("payment_method", "cash"),
            date=data.get("date"),
            notes=data.get("notes"),
            actor=g.actor,
        )
        return jsonify({"sale": sales_service.sale_to_dict(sale)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@with_actor
def get_sale_route(sale_id: int):
    require_permission(g.actor, "sales:read")
    sale = sales_service.get_sale(sale_id)
    return jsonify({"sale": sales_service.sale_to_dict(sale)}), 200


@sales_bp.put("/<int:sale_id>")
@with_actor
def edit_sale_route(sale_id: int):
    """Comprehensive edit; omitted fields keep their current value."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.edit_sale(
            sale_id,
            items=data.get("items"),
            customer_id=data["customer_id"] if "customer_id" in data else UNSET,
            discount_amount=data.get("discount_amount"),
            paid_amount=data.get("paid_amount"),
            payment_method=data.get("payment_method"),
            date=data.get("date"),
            notes=data["notes"] if "notes" in data else UNSET,
            actor=g.actor,
        )
        return jsonify({"sale": sales_service.sale_to_dict(sale)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@with_actor
def delete_sale_route(sale_id: int):
    try:
        deleted = sales_service.delete_sale(sale_id, actor=g.actor)
        return jsonify({"deleted": deleted}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
