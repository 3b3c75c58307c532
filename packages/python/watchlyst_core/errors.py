class DomainError(Exception):
    code: str = "domain_error"
    status: int = 400
    retryable: bool = False

    def __init__(self, message: str = "", *, code: str | None = None, status: int | None = None):
        super().__init__(message or self.__class__.__name__)
        if code: self.code = code
        if status: self.status = status

class NotFound(DomainError):
    code = "not_found"
    status = 404

class Conflict(DomainError):
    code = "conflict"
    status = 409

class Forbidden(DomainError):
    code = "forbidden"
    status = 403

class InvalidGesture(DomainError):
    """Gesture is not in the weight table; the interaction was not recorded."""
    code = "invalid_gesture"
    status = 422

class UpstreamPersistenceFailure(DomainError):
    """The store rejected a read or write. Safe to redeliver."""
    code = "upstream_persistence_failure"
    status = 503
    retryable = True

class CatalogUnavailable(UpstreamPersistenceFailure):
    code = "catalog_unavailable"
