"""Error taxonomy shared by every manager and the web shell."""


class AppError(Exception):
    status_code = 400
    message = "Request failed"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self):
        return {"error": self.message}


class ValidationError(AppError):
    message = "Fill in the required fields"


class DuplicateItemError(ValidationError):
    message = "Item already added"


class ConfirmationRequired(ValidationError):
    message = "This action must be confirmed"


class EntitlementError(AppError):
    status_code = 403
    message = "Feature available on the PRO plan"


class AuthError(AppError):
    status_code = 401
    message = "Not signed in"


class NotFoundError(AppError):
    status_code = 404
    message = "Not found"


class TaxIdNotFound(NotFoundError):
    message = "Tax ID not found"


class BackendError(AppError):
    """A data store or registry call failed. `detail` is logged, never shown."""
    status_code = 502
    message = "Could not reach the data store, try again later"

    def __init__(self, message=None, detail=None):
        super().__init__(message)
        self.detail = detail


class NotConfiguredError(BackendError):
    status_code = 503
    message = "Data store is not configured"


class PartialAdjustmentError(BackendError):
    def __init__(self, updated, total, detail=None):
        super().__init__(
            f"Price adjustment stopped after {updated} of {total} items", detail=detail)
        self.updated = updated
        self.total = total

    def to_dict(self):
        return {"error": self.message, "updated": self.updated, "total": self.total}
