"""
Error types raised by the vehicle search pipeline

Conflicting constraints and expired sessions are not errors: they are
reported on the composed query (has_conflicts / warnings) and on the search
outcome (session_expired).
"""


class VehicleSearchError(Exception):
    """Base class for all vehicle search errors"""


class ValidationError(VehicleSearchError, ValueError):
    """Malformed caller input (empty query, max_results out of range, missing argument)"""


class NLUError(VehicleSearchError):
    """The NLU provider could not understand the input"""


class GuardrailRejection(VehicleSearchError):
    """The guardrail validator rejected a query before it reached the pipeline"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class BackendError(VehicleSearchError):
    """Transport failure inside a retrieval backend or the vehicle store"""


class BackendTimeoutError(BackendError):
    """A retrieval backend exceeded its time budget"""


class BackendUnavailableError(BackendError):
    """A retrieval backend stayed unreachable after the retry"""
