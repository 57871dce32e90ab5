# Overview: Flask API routes for archive/restore/hard-delete and ledger statements.

"""
Entity Lifecycle and Ledger API Routes

URL kinds are plural resource names; they map onto lifecycle_service kinds:
customers, suppliers, products, items, sales, purchase-invoices, payments,
expenses.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..constants import ENTITY_CUSTOMER, ENTITY_SUPPLIER
from ..errors import LedgerError, ValidationError
from ..decorators import with_actor
from ..services import balance_service, lifecycle_service
from ..services.permission_service import require_permission


entities_bp = Blueprint("entities", __name__, url_prefix="/api")

URL_KINDS = {
    "customers": "customer",
    "suppliers": "supplier",
    "products": "product",
    "items": "item",
    "sales": "sale",
    "purchase-invoices": "purchase",
    "payments": "payment",
    "expenses": "expense",
}

STATEMENT_KINDS = {
    "customers": (ENTITY_CUSTOMER, "customers:read"),
    "suppliers": (ENTITY_SUPPLIER, "suppliers:read"),
}


def _kind(resource: str) -> str:
    if resource not in URL_KINDS:
        raise ValidationError(f"Unknown resource: {resource}")
    return URL_KINDS[resource]


@entities_bp.post("/<resource>/<int:entity_id>/archive")
@with_actor
def archive_route(resource: str, entity_id: int):
    try:
        row = lifecycle_service.archive_entity(_kind(resource), entity_id, actor=g.actor)
        return jsonify({"archived": row.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to archive %s %s", resource, entity_id)
        return jsonify({"error": "Internal server error"}), 500


@entities_bp.post("/<resource>/<int:entity_id>/restore")
@with_actor
def restore_route(resource: str, entity_id: int):
    try:
        row = lifecycle_service.restore_entity(_kind(resource), entity_id, actor=g.actor)
        return jsonify({"restored": row.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restore %s %s", resource, entity_id)
        return jsonify({"error": "Internal server error"}), 500


@entities_bp.delete("/<resource>/<int:entity_id>/hard-delete")
@with_actor
def hard_delete_route(resource: str, entity_id: int):
    try:
        summary = lifecycle_service.hard_delete_entity(_kind(resource), entity_id, actor=g.actor)
        return jsonify({"deleted": summary}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to hard-delete %s %s", resource, entity_id)
        return jsonify({"error": "Internal server error"}), 500


@entities_bp.get("/archived")
@with_actor
def archived_route():
    resource = request.args.get("kind", "")
    kind = _kind(resource)
    _, area = lifecycle_service.ARCHIVABLE[kind]
    require_permission(g.actor, f"{area}:read")
    rows = lifecycle_service.list_archived(kind)
    return jsonify({"kind": resource, "items": [row.to_dict() for row in rows]}), 200


@entities_bp.get("/<resource>/<int:entity_id>/statement")
@with_actor
def statement_route(resource: str, entity_id: int):
    """Ledger statement (most recent first) with running balance."""
    if resource not in STATEMENT_KINDS:
        raise ValidationError(f"Statements are available for {sorted(STATEMENT_KINDS)}")
    entity_type, permission = STATEMENT_KINDS[resource]
    require_permission(g.actor, permission)
    statement = balance_service.build_statement(entity_type, entity_id)
    return jsonify(statement.to_dict()), 200
