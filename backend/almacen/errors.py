# Overview: Exception taxonomy shared by services and routes.

"""
Ledger error taxonomy.

Services raise these; routes translate them with `status_code` and
`to_dict()`. A raised error inside a transaction always means the
transaction was rolled back and nothing was written.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for business-rule failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | list | None = None):
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (e.g., duplicate product code)."""

    status_code = 409


class Unauthenticated(LedgerError):
    """Operation attempted without a signed-in user."""

    status_code = 401


class NotFoundError(LedgerError):
    status_code = 404


class ProductNotFound(NotFoundError):
    pass


class ClientNotFound(NotFoundError):
    pass


class SupplierNotFound(NotFoundError):
    pass


class OrderNotFound(NotFoundError):
    pass


class AdjustmentNotFound(NotFoundError):
    pass


class CashSessionNotFound(NotFoundError):
    pass


class InsufficientStock(LedgerError):
    """
    Requested quantity exceeds stock on hand.

    details: [{"product_id", "code", "requested", "available"}, ...]
    """

    status_code = 409


class AlreadyResolved(LedgerError):
    """The document already left its pending/open state; nothing was changed."""

    status_code = 409

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["warning"] = "No changes were applied"
        return body


class CashSessionError(LedgerError):
    status_code = 409
