# Overview: Flask API routes for purchase invoices; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import with_actor
from ..services import purchase_service
from ..services.permission_service import require_permission
from ..validation import UNSET


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchase-invoices")


@purchases_bp.post("")
@with_actor
def create_purchase_route():
    """
    Receive stock from a supplier.

    Request body:
    {
        "items": [{"product_id": 1, "imei": "356...", "unit_price": 30000}, ...],
        "supplier_id": 2,  (optional)
        "discount_amount": 0,
        "paid_amount": 0,
        "date": "2026-01-05T10:00:00Z",  (optional)
        "notes": "..."  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = purchase_service.create_purchase(
            items=data.get("items"),
            supplier_id=data.get("supplier_id"),
            discount_amount=data.get("discount_amount", 0),
            paid_amount=data.get("paid_amount", 0),
            date=data.get("date"),
            notes=data.get("notes"),
            actor=g.actor,
        )
        return jsonify({"purchase_invoice": purchase_service.purchase_to_dict(invoice)}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase invoice")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:invoice_id>")
@with_actor
def get_purchase_route(invoice_id: int):
    require_permission(g.actor, "purchases:read")
    invoice = purchase_service.get_purchase(invoice_id)
    return jsonify({"purchase_invoice": purchase_service.purchase_to_dict(invoice)}), 200


@purchases_bp.put("/<int:invoice_id>")
@with_actor
def edit_purchase_route(invoice_id: int):
    """Comprehensive edit; lines with item_id are kept, lines without are new stock."""
    try:
        data = request.get_json(silent=True) or {}
        invoice = purchase_service.edit_purchase(
            invoice_id,
            items=data.get("items"),
            supplier_id=data["supplier_id"] if "supplier_id" in data else UNSET,
            discount_amount=data.get("discount_amount"),
            paid_amount=data.get("paid_amount"),
            date=data.get("date"),
            notes=data["notes"] if "notes" in data else UNSET,
            actor=g.actor,
        )
        return jsonify({"purchase_invoice": purchase_service.purchase_to_dict(invoice)}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit purchase invoice")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:invoice_id>")
@with_actor
def delete_purchase_route(invoice_id: int):
    try:
        deleted = purchase_service.delete_purchase(invoice_id, actor=g.actor)
        return jsonify({"deleted": deleted}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete purchase invoice")
        return jsonify({"error": "Internal server error"}), 500
