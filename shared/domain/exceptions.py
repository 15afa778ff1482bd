"""
Domain Errors

Every failure the engine reports to its callers is a DomainError carrying a
stable machine-readable code and the HTTP status the API layer answers with.
Bounded contexts subclass these in their own ``exceptions`` modules.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all reportable engine failures"""

    code = 'DOMAIN_ERROR'
    status_code = 400
    retryable = False
    default_message = 'Request could not be processed'

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {
            'code': self.code,
            'message': self.message,
            'retryable': self.retryable,
        }
        if self.details:
            payload['details'] = {key: str(value) for key, value in self.details.items()}
        return payload


class ValidationFailed(DomainError):
    code = 'VALIDATION_FAILED'
    status_code = 400


class NotFound(DomainError):
    code = 'NOT_FOUND'
    status_code = 404
    default_message = 'Resource not found'


class Forbidden(DomainError):
    code = 'FORBIDDEN'
    status_code = 403
    default_message = 'You do not have permission to access this resource'


class Conflict(DomainError):
    code = 'CONFLICT'
    status_code = 409


class TransactionRequired(DomainError):
    """A ledger or store mutation was attempted outside an atomic block"""

    code = 'TRANSACTION_REQUIRED'
    status_code = 500
    default_message = 'Mutation must run inside a unit of work'


class TransactionFailed(DomainError):
    """The database aborted the unit of work (lock timeout, deadlock, ...)"""

    code = 'TRANSACTION_FAILED'
    status_code = 503
    retryable = True
    default_message = 'Transaction failed, please retry'
