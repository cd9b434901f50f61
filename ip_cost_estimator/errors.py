"""Error taxonomy for the cost estimator."""


class EstimatorError(Exception):
    """Base class for all estimator errors."""


class ValidationError(EstimatorError):
    """Malformed calculation input. Raised before any calculation begins."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid calculation input")


class DataGapError(EstimatorError):
    """A fee, rate or grant row could not be turned into a usable record."""


class CollaboratorUnavailableError(EstimatorError):
    """An external store or the narrative service is unreachable or timed out."""
