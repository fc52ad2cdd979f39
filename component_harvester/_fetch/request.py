"""Work item describing "fetch this component"."""

from typing import Optional

from component_harvester.logging_config import logger

from .result import FetchOutcome, FetchResult
from .spec import Spec, parse_spec


class Request:
    """
    A work item owning one Spec, a target URL and a single outcome slot.

    The outcome is set exactly once, through ``complete``, ``mark_skip`` or
    ``fail``. The Spec may be resolved (namespace/revision filled in) at most
    once and never after an outcome exists.
    """

    def __init__(self, spec: Spec, url: Optional[str] = None) -> None:
        self._spec = spec
        self.url = url or spec.to_url()
        self._resolved = False
        self._outcome: Optional[FetchOutcome] = None

    @classmethod
    def from_coordinate(cls, coordinate: str) -> "Request":
        """
        Create a request from a coordinate string.

        Raises:
            MalformedSpecError: If the coordinate cannot be parsed
        """
        return cls(parse_spec(coordinate))

    @property
    def spec(self) -> Spec:
        return self._spec

    @property
    def resolved(self) -> bool:
        return self._resolved

    @property
    def outcome(self) -> Optional[FetchOutcome]:
        return self._outcome

    @property
    def is_complete(self) -> bool:
        return self._outcome is not None

    @property
    def fetch_result(self) -> Optional[FetchResult]:
        return self._outcome.fetch_result if self._outcome else None

    @property
    def skip_reason(self) -> Optional[str]:
        return self._outcome.skip_reason if self._outcome else None

    def resolve_spec(self, namespace: Optional[str] = None, revision: Optional[str] = None) -> Spec:
        """
        Record the concrete namespace/revision chosen during resolution.

        Also rewrites ``url`` to the resolved coordinate.

        Raises:
            RuntimeError: If the spec was already resolved or an outcome exists
        """
        if self._outcome is not None:
            raise RuntimeError(f"Cannot resolve {self.url}: request already completed")
        if self._resolved:
            raise RuntimeError(f"Spec for {self.url} was already resolved")
        self._spec = self._spec.with_resolution(namespace=namespace, revision=revision)
        self._resolved = True
        self.url = self._spec.to_url()
        return self._spec

    def _set_outcome(self, outcome: FetchOutcome) -> FetchOutcome:
        if self._outcome is not None:
            raise RuntimeError(f"Request {self.url} already completed with status '{self._outcome.status}'")
        self._outcome = outcome
        return outcome

    def complete(self, fetch_result: FetchResult) -> FetchOutcome:
        """Take ownership of a fetch result."""
        return self._set_outcome(FetchOutcome.success_result(fetch_result))

    def mark_skip(self, reason: str) -> FetchOutcome:
        """End the request with a terminal, non-retryable skip."""
        logger.info(f"Skipping {self.url}: {reason}", extra={"coordinate": self.url})
        return self._set_outcome(FetchOutcome.skip_result(reason))

    def fail(self, error: BaseException) -> FetchOutcome:
        """End the request with a retryable failure."""
        return self._set_outcome(FetchOutcome.failure_result(error))

    def __repr__(self) -> str:
        status = self._outcome.status if self._outcome else "pending"
        return f"Request({self.url!r}, {status})"
