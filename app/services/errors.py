from __future__ import annotations


class PurchaseError(Exception):
    """Base class for errors raised by purchase-order actions."""


class PermissionDenied(PurchaseError):
    pass


class ValidationFailed(PurchaseError):
    pass


class InvalidTransition(PurchaseError):
    pass


class OrderNotFound(PurchaseError):
    pass


class StorageError(PurchaseError):
    pass
