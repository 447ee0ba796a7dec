"""Exception types raised while building, sending and verifying probes.

Every failure a probe task can hit is a subclass of ProbeError so the
orchestrator can carry it verbatim on the result channel:

- ConstructionError: building the request failed (digest or payload I/O)
- TransportError: the request could not be sent or the response read
- VerificationError: status, header or body did not match the contract
- ProbeCancelled: the task never ran because a sibling already failed
"""

from typing import Any, Optional


class ProbeError(Exception):
    """Base class for failures of a single probe task."""

    pass


class ConstructionError(ProbeError):
    """Raised when a request description cannot be built."""

    pass


class TransportError(ProbeError):
    """Raised when the network exchange itself fails."""

    def __init__(self, message: str, method: str = "", path: str = ""):
        super().__init__(message)
        self.method = method
        self.path = path


class VerificationError(ProbeError):
    """Raised when a response does not match what the protocol requires.

    Attributes:
        check: Which check failed ("status", "header" or "body").
        expected: The value the contract requires.
        actual: The value the server returned.
    """

    def __init__(
        self,
        check: str,
        message: str,
        expected: Any = None,
        actual: Any = None,
    ):
        super().__init__(message)
        self.check = check
        self.expected = expected
        self.actual = actual


class ProbeCancelled(ProbeError):
    """Raised in place of running a task once cancellation was requested."""

    def __init__(self, index: Optional[int] = None):
        super().__init__(f"Probe {index} cancelled after an earlier failure")
        self.index = index


class FixtureError(Exception):
    """Raised when the fixture registry's write-once discipline is broken."""

    pass


class CatalogueError(Exception):
    """Raised when test cases cannot be ordered by their declared fixtures."""

    pass
