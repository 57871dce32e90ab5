# Overview: Flask API routes for expenses; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import with_actor
from ..services import expense_service
from ..services.permission_service import require_permission


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.post("")
@with_actor
def record_expense_route():
    try:
        data = request.get_json(silent=True) or {}
        expense = expense_service.record_expense(
            description=data.get("description"),
            category=data.get("category"),
            amount=data.get("amount"),
            payment_method=data.get("payment_method", "cash"),
            date=data.get("date"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor=g.actor,
        )
        return jsonify({"expense": expense.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("")
@with_actor
def list_expenses_route():
    require_permission(g.actor, "expenses:read")
    session_id = request.args.get("session_id", type=int)
    expenses = expense_service.list_expenses(session_id=session_id)
    return jsonify({"expenses": [e.to_dict() for e in expenses]}), 200


@expenses_bp.delete("/<int:expense_id>")
@with_actor
def delete_expense_route(expense_id: int):
    try:
        deleted = expense_service.delete_expense(expense_id, actor=g.actor)
        return jsonify({"deleted": deleted}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500
