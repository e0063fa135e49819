from typing import Any


class DomainError(Exception):
    """Base for failures the API reports to the caller as a structured notification."""

    code = "error"
    status_code = 400

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message, **self.extra}


class InvalidInput(DomainError):
    code = "invalid_input"
    status_code = 400


class SelfProposal(DomainError):
    code = "self_proposal"
    status_code = 400


class QuotaExhausted(DomainError):
    code = "no_quota"
    status_code = 402


class DuplicateProposal(DomainError):
    code = "already_exists"
    status_code = 409


class AlreadyResolved(DomainError):
    code = "already_resolved"
    status_code = 409


class NotFound(DomainError):
    code = "not_found"
    status_code = 404


class NotAuthorized(DomainError):
    code = "not_authorized"
    status_code = 403


class TransientIO(DomainError):
    code = "transient_io"
    status_code = 503
