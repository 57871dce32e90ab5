# Overview: Append-only audit trail for inventory, balance and register events.

from __future__ import annotations

from typing import Optional

from ..extensions import db
from ..models import LedgerEvent
"""
Ledger event invariants

- Append-only; no updates or deletes of existing events.
- Written inside the same DB transaction as the change they record, so a
  rolled-back operation leaves no event behind.
- balance_delta is the signed change applied to (party_type, party_id)'s
  cached balance by this event; 0 when no balance moved.
"""


def append_ledger_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    party_type: str | None = None,
    party_id: int | None = None,
    balance_delta: int = 0,
    cash_register_session_id: int | None = None,
    actor_user_id: int | None = None,
    note: Optional[str] = None,
) -> LedgerEvent:
    ev = LedgerEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        party_type=party_type,
        party_id=party_id,
        balance_delta=balance_delta,
        cash_register_session_id=cash_register_session_id,
        actor_user_id=actor_user_id,
        note=note[:255] if note else None,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def get_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    party_type: str | None = None,
    party_id: int | None = None,
    limit: int = 200,
) -> list[LedgerEvent]:
    query = db.session.query(LedgerEvent)
    if entity_type:
        query = query.filter(LedgerEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(LedgerEvent.entity_id == entity_id)
    if party_type:
        query = query.filter(LedgerEvent.party_type == party_type)
    if party_id is not None:
        query = query.filter(LedgerEvent.party_id == party_id)
    return query.order_by(LedgerEvent.id.desc()).limit(limit).all()
