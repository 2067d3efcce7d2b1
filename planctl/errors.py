"""Error types raised by planctl operations."""


class PlanctlError(Exception):
    """Base class for all planctl errors."""
    pass


class ConfigurationError(PlanctlError):
    """Bad startup options, such as an unsupported output format."""
    pass


class ValidationError(PlanctlError):
    """The requested operation cannot run against the given plan."""
    pass


class PreconditionError(ValidationError):
    """Something the operation depends on is missing."""
    pass


class WorkspaceError(PlanctlError):
    """The run directory or one of its files could not be written."""
    pass


class AutomationFailure(PlanctlError):
    """The automation engine invocation failed."""

    def __init__(self, message: str, status: str = None, rc: int = None):
        super().__init__(message)
        self.status = status
        self.rc = rc


class PKIError(PlanctlError):
    """Certificate authority or certificate generation failed."""
    pass
