# Overview: Status and type vocabularies shared by models and services.

# =============================================================================
# INVENTORY ITEM STATUS
# =============================================================================

ITEM_AVAILABLE = "available"
ITEM_SOLD = "sold"

ITEM_STATUSES = (ITEM_AVAILABLE, ITEM_SOLD)


# =============================================================================
# SALE / PURCHASE PAYMENT TYPE (derived from paid vs total)
# =============================================================================

PAYMENT_TYPE_FULL = "full"
PAYMENT_TYPE_PARTIAL = "partial"
PAYMENT_TYPE_CREDIT = "credit"


# =============================================================================
# PAYMENTS
# =============================================================================

ENTITY_CUSTOMER = "customer"
ENTITY_SUPPLIER = "supplier"

PARTY_TYPES = (ENTITY_CUSTOMER, ENTITY_SUPPLIER)

TRANSACTION_PAYMENT = "payment"
TRANSACTION_REFUND = "refund"

TRANSACTION_TYPES = (TRANSACTION_PAYMENT, TRANSACTION_REFUND)

METHOD_CASH = "cash"


# =============================================================================
# CASH REGISTER SESSION STATUS
# =============================================================================

SESSION_OPEN = "open"
SESSION_CLOSED = "closed"


# =============================================================================
# DOCUMENT NUMBERING
# =============================================================================

DOC_SALE = "SALE"
DOC_PURCHASE_INVOICE = "PURCHASE_INVOICE"
DOC_CASH_SESSION = "CASH_SESSION"

DOC_PREFIXES = {
    DOC_SALE: "S",
    DOC_PURCHASE_INVOICE: "PI",
    DOC_CASH_SESSION: "CR",
}
