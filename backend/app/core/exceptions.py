class AppError(Exception):
    """Base class for all application exceptions."""

    category = "error"

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ClientInputError(AppError):
    """Raised when the roster or a caller-supplied payload is missing required data."""

    category = "client_input"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class ValidationError(AppError):
    """Raised when a compiled request has a referential gap no repair policy can close."""

    category = "validation"

    def __init__(self, empty_category: str, message: str | None = None, details: dict = None):
        self.empty_category = empty_category
        merged = {"category": empty_category, **(details or {})}
        super().__init__(
            message or f"Scheduling request has no valid {empty_category}",
            status_code=422,
            details=merged,
        )


class SolverInfrastructureError(AppError):
    """Raised when the scheduling engine cannot be reached (timeout, refused, DNS)."""

    category = "solver_infrastructure"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=503, details=details)


class SolverInfeasibilityError(AppError):
    """Raised when the scheduling engine reports that no feasible timetable exists."""

    category = "solver_infeasible"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)


class SolverError(AppError):
    """Raised for any other non-2xx engine response."""

    category = "solver"

    def __init__(self, message: str, status_code: int | None = None, details: dict = None):
        merged = dict(details or {})
        if status_code is not None:
            merged.setdefault("engine_status", status_code)
        super().__init__(message, status_code=502, details=merged)


class PersistenceError(AppError):
    """Raised when a timetable record cannot be written or activated."""

    category = "persistence"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""

    category = "not_found"

    def __init__(self, resource_type: str, resource_id: str, message: str | None = None):
        super().__init__(
            message or f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""

    category = "configuration"

    def __init__(self, message: str):
        super().__init__(message, status_code=500)
