"""FetchResult and FetchOutcome dataclasses for fetch output."""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

from .spec import Spec
from .temp import CleanupHandle

OutcomeStatus = Literal["success", "skip", "failure"]


@dataclass
class FetchResult:
    """
    Structured output of a successful fetch.

    ``location`` points at extracted artifact contents. The directory stays
    on disk until ``cleanup()`` is called by whoever consumes the result.

    Attributes:
        url: Resolved coordinate of the fetched component
        location: Filesystem path to the extracted contents
        registry_data: Matched index entries plus the resolved download URL
        release_date: Index timestamp as RFC 1123 text, if recorded
        declared_licenses: License field from the index, if recorded
        hashes: Digest of the downloaded artifact per algorithm
        cased_spec: Spec with the provider's authoritative casing
    """

    url: str
    location: str
    registry_data: Dict[str, Any]
    release_date: Optional[str]
    declared_licenses: Optional[str]
    hashes: Dict[str, str]
    cased_spec: Spec
    _cleanup: Optional[CleanupHandle] = field(default=None, repr=False, compare=False)

    @property
    def document(self) -> Dict[str, Any]:
        """The document forwarded to downstream analysis."""
        document: Dict[str, Any] = {
            "location": self.location,
            "registryData": self.registry_data,
            "hashes": dict(self.hashes),
        }
        if self.release_date:
            document["releaseDate"] = self.release_date
        if self.declared_licenses:
            document["declaredLicenses"] = self.declared_licenses
        return document

    def to_dict(self) -> Dict[str, Any]:
        """Document plus the cased spec coordinate, for serialization."""
        return {**self.document, "casedSpec": self.cased_spec.to_url()}

    def adopt_cleanup(self, handle: CleanupHandle) -> "FetchResult":
        """Attach the handle releasing this result's temp resources."""
        if self._cleanup is not None:
            raise ValueError("FetchResult already owns a cleanup handle")
        self._cleanup = handle
        return self

    @property
    def cleaned_up(self) -> bool:
        return self._cleanup is not None and self._cleanup.released

    def cleanup(self) -> None:
        """Release temp resources. Idempotent."""
        if self._cleanup is not None:
            self._cleanup.cleanup()


@dataclass
class FetchOutcome:
    """
    Terminal state of a request: exactly one of result, skip reason, error.

    Attributes:
        status: "success", "skip" or "failure"
        fetch_result: Set on success
        skip_reason: Set on skip; names the missing identity component
        error: Set on failure; the retryable error that ended the fetch
    """

    status: OutcomeStatus
    fetch_result: Optional[FetchResult] = None
    skip_reason: Optional[str] = None
    error: Optional[BaseException] = None

    def __post_init__(self) -> None:
        """Validate outcome state."""
        populated = [
            name
            for name, value in (
                ("fetch_result", self.fetch_result),
                ("skip_reason", self.skip_reason),
                ("error", self.error),
            )
            if value
        ]
        expected = {"success": "fetch_result", "skip": "skip_reason", "failure": "error"}.get(self.status)
        if expected is None:
            raise ValueError(f"Unknown outcome status: {self.status}")
        if populated != [expected]:
            raise ValueError(f"A {self.status} outcome must carry only {expected}, got {populated or 'nothing'}")

    @property
    def is_success(self) -> bool:
        return self.status == "success"

    @property
    def is_skip(self) -> bool:
        return self.status == "skip"

    @property
    def is_failure(self) -> bool:
        return self.status == "failure"

    @property
    def retryable(self) -> bool:
        """Only failures are retried; skips are final."""
        return self.is_failure

    @classmethod
    def success_result(cls, fetch_result: FetchResult) -> "FetchOutcome":
        """Create a successful outcome."""
        return cls(status="success", fetch_result=fetch_result)

    @classmethod
    def skip_result(cls, reason: str) -> "FetchOutcome":
        """Create a terminal, non-retryable skip outcome."""
        return cls(status="skip", skip_reason=reason)

    @classmethod
    def failure_result(cls, error: BaseException) -> "FetchOutcome":
        """Create a retryable failure outcome."""
        return cls(status="failure", error=error)
