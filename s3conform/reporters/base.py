"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from s3conform.models import CaseResult, RunResult


class Reporter(ABC):
    """Abstract base class for conformance run reporters."""

    @abstractmethod
    def on_run_start(self, endpoint_url: str, total_cases: int) -> None:
        """Called before the first case runs."""
        pass

    @abstractmethod
    def on_case_start(self, position: int, total: int, case_name: str) -> None:
        """Called when a test case starts."""
        pass

    @abstractmethod
    def on_case_complete(self, position: int, total: int, result: "CaseResult") -> None:
        """Called when a test case completes."""
        pass

    @abstractmethod
    def on_run_complete(self, result: "RunResult") -> None:
        """Called when the run is complete, skipped cases included."""
        pass
