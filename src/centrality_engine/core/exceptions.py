"""
Custom exceptions for the Centrality Engine.

Exception Hierarchy:
    CentralityEngineError (Base)
    ├── ConfigError
    │   ├── ConfigNotFoundError
    │   └── InvalidConfigurationError
    ├── DataLoadError
    │   └── InvalidFormatError
    └── AnalysisError
        ├── DataInsufficientError
        ├── EmptyGraphError
        ├── GraphConstructionError
        ├── StateTransitionError
        └── ComputationError
            ├── ComputationTimeoutError
            └── ComputationCancelledError
"""

from typing import Optional, List, Tuple


class CentralityEngineError(Exception):
    """Base exception for all Centrality Engine errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\nDetails: {self.details}"
        return self.message


# =============================================================================
# Config Errors
# =============================================================================

class ConfigError(CentralityEngineError):
    """Configuration related errors."""
    pass


class ConfigNotFoundError(ConfigError):
    """Config file not found."""

    def __init__(self, path: str):
        super().__init__(
            f"Configuration file not found: {path}",
            "Please provide a valid config file path or use default configuration."
        )
        self.path = path


class InvalidConfigurationError(ConfigError):
    """Configuration values are missing, malformed or out of range."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        error_list = "\n  - ".join(errors)
        super().__init__(
            f"Configuration validation failed with {len(errors)} error(s)",
            f"Errors:\n  - {error_list}"
        )


# =============================================================================
# Data Load Errors
# =============================================================================

class DataLoadError(CentralityEngineError):
    """Data loading related errors."""
    pass


class InvalidFormatError(DataLoadError):
    """Data file has invalid format."""

    def __init__(self, filepath: str, expected_format: str, actual_issue: str):
        self.filepath = filepath
        self.expected_format = expected_format
        self.actual_issue = actual_issue
        super().__init__(
            f"Invalid data format in {filepath}",
            f"Expected: {expected_format}\nIssue: {actual_issue}"
        )


# =============================================================================
# Analysis Errors
# =============================================================================

class AnalysisError(CentralityEngineError):
    """Analysis related errors."""
    pass


class DataInsufficientError(AnalysisError):
    """Not enough observations to compute a relationship."""

    def __init__(
        self,
        required: int,
        actual: int,
        subject: str = "analysis",
        reason: Optional[str] = None,
    ):
        self.required = required
        self.actual = actual
        self.subject = subject
        self.reason = reason
        details = f"Required: {required} observations, Actual: {actual} observations"
        if reason:
            details = f"{details} ({reason})"
        super().__init__(f"Insufficient data for {subject}", details)


class EmptyGraphError(AnalysisError):
    """Graph would have no nodes."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot build an empty graph: {reason}")


class GraphConstructionError(AnalysisError):
    """A graph invariant was violated during construction."""

    def __init__(self, reason: str, node_count: Optional[int] = None):
        self.reason = reason
        self.node_count = node_count
        details = f"Node count: {node_count}" if node_count else None
        super().__init__(
            f"Failed to construct graph: {reason}",
            details
        )


class StateTransitionError(AnalysisError):
    """Illegal analysis state transition."""

    def __init__(self, current: str, attempted: str):
        self.current = current
        self.attempted = attempted
        super().__init__(f"Illegal state transition: {current} -> {attempted}")


class ComputationError(AnalysisError):
    """Computation failed."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(
            f"Computation failed during {operation}",
            reason
        )


class ComputationTimeoutError(ComputationError):
    """Computation did not finish within the caller's timeout."""

    def __init__(self, timeout: float, key: Optional[str] = None):
        self.timeout = timeout
        self.key = key
        reason = f"no result after {timeout:.2f}s"
        if key:
            reason = f"{reason} (snapshot {key[:12]})"
        super().__init__("analysis", reason)


class ComputationCancelledError(ComputationError):
    """Computation was cancelled before it finished."""

    def __init__(self, operation: str = "analysis"):
        super().__init__(operation, "cancelled")


# =============================================================================
# Utility Functions
# =============================================================================

def format_exception_chain(exc: BaseException) -> str:
    """Format exception with cause chain for logging."""
    messages = [str(exc)]
    current = exc.__cause__
    while current:
        messages.append(f"  Caused by: {current}")
        current = current.__cause__
    return "\n".join(messages)


def describe_pair(pair: Tuple[str, str]) -> str:
    """Render an instrument pair for log and error messages."""
    return f"{pair[0]}~{pair[1]}"
