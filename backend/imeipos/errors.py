# Overview: Typed error taxonomy raised by the ledger, inventory and register services.

"""
Every error a caller can act on derives from LedgerError. The HTTP layer turns
them into 4xx responses using status_code; anything else is an internal error.

All of these are raised before any mutation is staged, or inside run_atomic
where the transaction is rolled back, so no partial state survives them.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for business-rule failures."""
    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """400-level input problem (negative amount, discount > subtotal, ...)."""
    code = "validation_error"


class PermissionDenied(LedgerError):
    """Actor lacks the capability required by the operation."""
    status_code = 403
    code = "permission_denied"


class EntityNotFound(LedgerError):
    status_code = 404
    code = "entity_not_found"

    def __init__(self, entity_type: str, entity_id):
        super().__init__(
            f"{entity_type.replace('_', ' ').capitalize()} {entity_id} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


# =============================================================================
# INVENTORY STATE
# =============================================================================

class ItemStateError(LedgerError):
    """An inventory item is not in the state the operation requires."""
    status_code = 409
    code = "item_state_error"

    def __init__(self, message: str, imei: str, details: dict | None = None):
        merged = {"imei": imei}
        merged.update(details or {})
        super().__init__(message, details=merged)
        self.imei = imei


class ItemNotAvailable(ItemStateError):
    code = "item_not_available"

    def __init__(self, imei: str, status: str | None = None):
        super().__init__(
            f"Item with IMEI {imei} is not available (status: {status})",
            imei,
            details={"status": status},
        )


class ItemSold(ItemStateError):
    code = "item_sold"

    def __init__(self, imei: str, message: str | None = None):
        super().__init__(message or f"Item {imei} has been sold", imei)


class DuplicateImei(LedgerError):
    status_code = 409
    code = "duplicate_imei"

    def __init__(self, imei: str, message: str | None = None):
        super().__init__(message or f"IMEI already exists: {imei}", details={"imei": imei})
        self.imei = imei


# =============================================================================
# LEDGER
# =============================================================================

class CustomerRequired(LedgerError):
    code = "customer_required"

    def __init__(self, message: str = "Customer is required for partial/credit sales"):
        super().__init__(message)


class InsufficientReversibleBalance(LedgerError):
    status_code = 409
    code = "insufficient_reversible_balance"


# =============================================================================
# CASH REGISTER
# =============================================================================

class CashRegisterError(LedgerError):
    status_code = 409
    code = "cash_register_error"


class SessionAlreadyOpen(CashRegisterError):
    code = "session_already_open"

    def __init__(self, session_number: str | None = None):
        message = "There is already an open session"
        if session_number:
            message = f"{message} ({session_number})"
        super().__init__(message, details={"session_number": session_number})


class NoOpenSession(CashRegisterError):
    code = "no_open_session"

    def __init__(self, message: str = "No open cash register session. Please open a session first."):
        super().__init__(message)


class SessionClosed(CashRegisterError):
    code = "session_closed"
