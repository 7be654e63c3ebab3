"""Failure taxonomy for the estimation workflow.

Each error carries the HTTP status and a stable code so the app can render
every failure through one exception handler.
"""


class EstimationError(Exception):
    status_code = 500
    code = "estimation_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidInput(EstimationError):
    status_code = 400
    code = "invalid_input"


class OracleError(EstimationError):
    """The property oracle could not be reached or answered with an error."""
    status_code = 502
    code = "oracle_error"


class OracleTimeout(OracleError):
    """Neither a property result nor a handoff signal arrived in time."""
    status_code = 504
    code = "oracle_timeout"


class OracleMalformedOutput(OracleError):
    """The oracle answered, but not with a structure we can read."""
    code = "oracle_malformed_output"


class NoComparablesFound(EstimationError):
    status_code = 404
    code = "no_comparables_found"
