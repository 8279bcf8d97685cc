"""
Ledger errors

Every error carries a machine-readable kind and, where one exists, the
offending field, so the presentation layer can render a precise message.
They subclass ValueError so routers can keep catching ValueError.
"""
from typing import Optional


class LedgerError(ValueError):
    kind = "LedgerError"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind, "field": self.field}


class InvalidAmount(LedgerError):
    kind = "InvalidAmount"


class InvalidQuantity(LedgerError):
    kind = "InvalidQuantity"


class InvalidLineInput(LedgerError):
    kind = "InvalidLineInput"


class InvalidMovementKind(LedgerError):
    kind = "InvalidMovementKind"


class SameAccountTransfer(LedgerError):
    kind = "SameAccountTransfer"


class InsufficientFunds(LedgerError):
    kind = "InsufficientFunds"


class AccountNotFound(LedgerError):
    kind = "AccountNotFound"
    status_code = 404


class ItemNotFound(LedgerError):
    kind = "ItemNotFound"
    status_code = 404


class CustomerNotFound(LedgerError):
    kind = "CustomerNotFound"
    status_code = 404


class InvoiceNotFound(LedgerError):
    kind = "InvoiceNotFound"
    status_code = 404


class TransactionNotFound(LedgerError):
    kind = "TransactionNotFound"
    status_code = 404


class AccountInUse(LedgerError):
    kind = "AccountInUse"
    status_code = 409


class ImmutableRecord(LedgerError):
    kind = "ImmutableRecord"
    status_code = 409


class TransferAtomicityFailure(LedgerError):
    kind = "TransferAtomicityFailure"
    status_code = 500
