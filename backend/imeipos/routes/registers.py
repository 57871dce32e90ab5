# Overview: Flask API routes for cash register sessions; parses input and returns JSON responses.

"""
Cash Register API Routes

DESIGN:
- Session lifecycle: open -> close (terminal)
- Active summary recomputed from attributed cash-method rows
- Opened-at correction for sessions opened before the app was used

SECURITY:
- cash_register:write to open/close/correct, cash_register:read to view
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import with_actor
from ..services import register_service
from ..services.permission_service import require_permission
from ..validation import optional_datetime


registers_bp = Blueprint("registers", __name__, url_prefix="/api/cash-register")


@registers_bp.post("/open")
@with_actor
def open_session_route():
    """
    Open the cash register.

    Request body:
    {
        "opening_balance": 10000,
        "opened_by": "Alice",
        "notes": "Morning shift",  (optional)
        "opened_at": "2026-01-05T08:00:00Z"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        session = register_service.open_session(
            opening_balance=data.get("opening_balance"),
            opened_by=data.get("opened_by"),
            notes=data.get("notes"),
            opened_at=optional_datetime(data.get("opened_at"), "opened_at"),
            actor=g.actor,
        )
        return jsonify({"session": session.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open cash register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.post("/<int:session_id>/close")
@with_actor
def close_session_route(session_id: int):
    """
    Close a session with the counted drawer amount.

    Request body:
    {
        "actual_balance": 16000,
        "closed_by": "Alice",
        "notes": "All good"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        session = register_service.close_session(
            session_id,
            actual_balance=data.get("actual_balance"),
            closed_by=data.get("closed_by"),
            notes=data.get("notes"),
            actor=g.actor,
        )
        return jsonify({"session": session.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close cash register session")
        return jsonify({"error": "Internal server error"}), 500


@registers_bp.get("/active")
@with_actor
def active_session_route():
    """Open session with its expected balance and cash breakdown (null if closed)."""
    require_permission(g.actor, "cash_register:read")
    session = register_service.get_active_session()
    if session is None:
        return jsonify({"session": None, "summary": None}), 200
    summary = register_service.compute_cash_summary(session)
    return jsonify({"session": session.to_dict(), "summary": summary.to_dict()}), 200


@registers_bp.get("/sessions")
@with_actor
def list_sessions_route():
    require_permission(g.actor, "cash_register:read")
    status = request.args.get("status")
    limit = request.args.get("limit", default=50, type=int)
    sessions = register_service.list_sessions(status=status, limit=min(max(limit, 1), 500))
    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@registers_bp.get("/<int:session_id>/summary")
@with_actor
def session_summary_route(session_id: int):
    require_permission(g.actor, "cash_register:read")
    summary = register_service.get_session_summary(session_id)
    return jsonify({"summary": summary.to_dict()}), 200


@registers_bp.patch("/<int:session_id>")
@with_actor
def update_session_route(session_id: int):
    """
    Correct a session's opening time.

    Request body:
    {
        "opened_at": "2026-01-05T07:45:00Z"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        session = register_service.update_session_opened_at(
            session_id,
            optional_datetime(data.get("opened_at"), "opened_at"),
            actor=g.actor,
        )
        return jsonify({"session": session.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update cash register session")
        return jsonify({"error": "Internal server error"}), 500
