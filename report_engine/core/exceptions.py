"""Exception types raised inside the report engine."""


class ReportEngineError(Exception):
    """Base class for report engine errors."""


class GeneratorLoadError(ReportEngineError):
    """The configured content generator could not be imported or used."""


class DeliveryError(ReportEngineError):
    """A report could not be handed to the delivery channel."""


class ReportTimeoutError(ReportEngineError):
    """A collaborator call did not finish within its time budget."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation} timed out after {timeout_seconds:g}s")
