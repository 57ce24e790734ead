"""
Application error hierarchy.

Each error carries the HTTP status and machine-readable code the API returns.
Row-level import problems are NOT raised through here; they are collected on
the import batch (see adloop.pipeline.validator.RowValidationError).
"""


class AppError(Exception):
    """Base class for errors that map to an API response."""
    status_code = 500
    code = 'INTERNAL_ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self):
        error = {'code': self.code, 'message': self.message}
        if self.details is not None:
            error['details'] = self.details
        return error


class ValidationError(AppError):
    """Bad input or a failed precondition (e.g. iterating without winners)."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class NotFoundError(AppError):
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, resource, details=None):
        self.resource = resource
        super().__init__(f"{resource} not found", details)


class BatchStateError(AppError):
    """Illegal import batch transition (terminal batches are frozen)."""
    status_code = 409
    code = 'BATCH_STATE_ERROR'


class GeneratorError(AppError):
    """The external content generator failed or is unavailable."""
    status_code = 503
    code = 'AI_SERVICE_ERROR'
