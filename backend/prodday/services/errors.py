"""
Production-day error taxonomy.

Every condition here is expected and user-facing: routes roll back and
return it verbatim, nothing retries it. ``code`` is the stable name clients
switch on; ``status_code`` is the HTTP status the routes use.
"""


class ProductionDayError(Exception):
    """Base class for recoverable production-day conditions."""
    code = "ProductionDayError"
    status_code = 400

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


class DayClosed(ProductionDayError):
    """Mutation attempted on a finalized day."""
    code = "DayClosed"
    status_code = 409


class AlreadyChecked(ProductionDayError):
    """Mutation attempted on a conferred entry."""
    code = "AlreadyChecked"
    status_code = 409


class BelowMinimum(ProductionDayError):
    """Quantity would fall under 1."""
    code = "BelowMinimum"
    status_code = 400


class InvalidQuantity(ProductionDayError):
    code = "InvalidQuantity"
    status_code = 400


class CannotFinalizeFutureDate(ProductionDayError):
    code = "CannotFinalizeFutureDate"
    status_code = 409


class AlreadyFinalized(ProductionDayError):
    code = "AlreadyFinalized"
    status_code = 409


class UncheckedEntries(ProductionDayError):
    """Finalize refused because some entries are not conferred yet."""
    code = "UncheckedEntries"
    status_code = 409


class SnapshotNotFound(ProductionDayError):
    """Reopen requested for a day that was never finalized."""
    code = "NotFound"
    status_code = 404


class AlreadyOpen(ProductionDayError):
    code = "AlreadyOpen"
    status_code = 409


class CorruptSnapshot(ProductionDayError):
    """Stored payload cannot be rebuilt into ledger rows."""
    code = "CorruptSnapshot"
    status_code = 422


class EntryNotFound(ProductionDayError):
    code = "EntryNotFound"
    status_code = 404


class ProductNotFound(ProductionDayError):
    code = "ProductNotFound"
    status_code = 404
