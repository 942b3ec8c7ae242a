"""Error taxonomy shared by the engine, the provider client and the routers.

A broken challenge rule is *not* an error: it is reported through
``CheckInResult`` and drives the enrollment to ``failed``.  Everything in this
module is a true error and never changes enrollment state.
"""

from typing import Any, Optional


class ChallengeError(Exception):
    status_code = 400

    def __init__(self, message: str, *, status_code: Optional[int] = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class InvalidRequestError(ChallengeError):
    status_code = 400


class InvalidRuleError(ChallengeError):
    """Rule parameters do not fit the declared rule type."""

    status_code = 422


class NotFoundError(ChallengeError):
    status_code = 404


class ConflictError(ChallengeError):
    status_code = 400


class ChallengeFailedError(ChallengeError):
    """Check-in against an enrollment that already failed."""

    status_code = 400


class TooEarlyError(ChallengeError):
    """The requested day is still inside the settlement lag."""

    status_code = 400


class ProviderError(ChallengeError):
    status_code = 502
