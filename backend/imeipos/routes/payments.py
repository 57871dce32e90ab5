# Overview: Flask API routes for payments and refunds; parses input and returns JSON responses.

"""
Payment API Routes

WHY: Settle customer receivables and supplier payables, or refund.

SECURITY:
- payments:write to record/edit, payments:read to list
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import with_actor
from ..services import payment_service
from ..services.permission_service import require_permission
from ..validation import UNSET, require_id


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@with_actor
def record_payment_route():
    """
    Record a payment or refund.

    Request body:
    {
        "entity_type": "customer",  (customer | supplier)
        "entity_id": 3,
        "amount": 2000,
        "transaction_type": "payment",  (payment | refund)
        "payment_method": "cash",
        "reference": "RCPT-1",  (optional)
        "notes": "..."  (optional)
    }

    Returns:
        201: Payment recorded
        400: Invalid input
        404: Customer/supplier not found
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.record_payment(
            entity_type=data.get("entity_type"),
            entity_id=data.get("entity_id"),
            amount=data.get("amount"),
            transaction_type=data.get("transaction_type", "payment"),
            payment_method=data.get("payment_method", "cash"),
            date=data.get("date"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor=g.actor,
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.patch("/<int:payment_id>")
@with_actor
def edit_payment_route(payment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        payment = payment_service.edit_payment(
            payment_id,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            date=data.get("date"),
            reference=data["reference"] if "reference" in data else UNSET,
            notes=data["notes"] if "notes" in data else UNSET,
            actor=g.actor,
        )
        return jsonify({"payment": payment.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("")
@with_actor
def list_payments_route():
    require_permission(g.actor, "payments:read")
    entity_type = request.args.get("entity_type")
    entity_id = require_id(request.args.get("entity_id"), "entity_id")
    payments = payment_service.list_payments(entity_type, entity_id)
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200
