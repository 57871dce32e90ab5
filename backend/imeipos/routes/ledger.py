# Overview: Flask API route for reading the append-only ledger event trail.

from flask import Blueprint, request, jsonify, g

from ..decorators import with_actor
from ..services.ledger_service import get_events
from ..services.permission_service import require_permission

"""
Filters (all optional, combined with AND):
- entity_type / entity_id: the row an event is about (sale, payment, ...)
- party_type / party_id: the customer or supplier whose balance moved
Results are newest first; limit is clamped to 1..500.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@with_actor
def list_ledger_events_route():
    require_permission(g.actor, "reports:read")

    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 500))

    events = get_events(
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        party_type=request.args.get("party_type"),
        party_id=request.args.get("party_id", type=int),
        limit=limit,
    )
    return jsonify({"items": [event.to_dict() for event in events], "limit": limit}), 200
