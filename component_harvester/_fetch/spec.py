"""Canonical component identity (Spec) and its coordinate string form.

Coordinate layout::

    {type}/{provider}/{namespace|-}/{name}/{revision|-}

where ``revision`` is ``{version|_}-{buildVersion|_}``. Either half of the
revision may be ``_`` (or empty) to mean "resolve automatically".

Examples:
    conda/conda-forge/linux-aarch64/numpy/1.13.0-py36
    conda/conda-forge/-/numpy/-py36
    condasrc/conda-forge/-/numpy/_-_
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional, Union

from packageurl import PackageURL

from component_harvester.exceptions import MalformedSpecError

ABSENT = "-"
WILDCARD = "_"
REVISION_SEPARATOR = "-"

# Spec types that map onto the conda purl type
_CONDA_PURL_TYPES = {"conda": "conda", "condasrc": "conda"}


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if value in ("", ABSENT):
        return None
    return value


def _concrete(value: Optional[str]) -> Optional[str]:
    """Return value unless it is absent or the wildcard."""
    if not value or value == WILDCARD:
        return None
    return value


@dataclass(frozen=True)
class Spec:
    """
    Parsed, canonical identity of a component coordinate.

    Instances are immutable. Resolution (filling in a concrete architecture,
    version or build) produces a new Spec via ``with_resolution`` and is
    tracked by the owning Request so it can happen only once.

    Attributes:
        type: Artifact kind (e.g. "conda" for binaries, "condasrc" for sources)
        provider: Registry or channel (e.g. "conda-forge")
        namespace: Optional dimension such as target architecture
        name: Component name
        revision: "{version}-{build}" with wildcard halves, or None
    """

    type: str
    provider: str
    namespace: Optional[str]
    name: str
    revision: Optional[str] = None

    def __post_init__(self) -> None:
        for field_name in ("type", "provider", "name"):
            value = getattr(self, field_name)
            if not value or not value.strip() or value.strip() == ABSENT:
                raise MalformedSpecError(f"Spec {field_name} is required")
            object.__setattr__(self, field_name, value.strip())
        object.__setattr__(self, "namespace", _normalize_optional(self.namespace))
        object.__setattr__(self, "revision", _normalize_optional(self.revision))
        for field_name in ("type", "provider", "namespace", "name", "revision"):
            value = getattr(self, field_name)
            if value is not None and "/" in value:
                raise MalformedSpecError(f"Spec {field_name} cannot contain '/': {value}")

    @classmethod
    def parse(cls, coordinate: str) -> "Spec":
        """Parse a coordinate string. See ``parse_spec``."""
        return parse_spec(coordinate)

    @property
    def version(self) -> Optional[str]:
        """Version half of the revision as written (may be the wildcard)."""
        if not self.revision:
            return None
        version = self.revision.split(REVISION_SEPARATOR, 1)[0]
        return version or None

    @property
    def build_version(self) -> Optional[str]:
        """Build half of the revision as written (may be the wildcard)."""
        if not self.revision or REVISION_SEPARATOR not in self.revision:
            return None
        build = self.revision.split(REVISION_SEPARATOR, 1)[1]
        return build or None

    @property
    def concrete_version(self) -> Optional[str]:
        return _concrete(self.version)

    @property
    def concrete_build_version(self) -> Optional[str]:
        return _concrete(self.build_version)

    def to_url(self) -> str:
        """Render the canonical coordinate string; ``parse_spec`` inverts it."""
        return "/".join(
            [
                self.type,
                self.provider,
                self.namespace or ABSENT,
                self.name,
                self.revision or ABSENT,
            ]
        )

    def with_resolution(self, namespace: Optional[str] = None, revision: Optional[str] = None) -> "Spec":
        """Return a copy with namespace and/or revision filled in."""
        changes: Dict[str, Optional[str]] = {}
        if namespace is not None:
            changes["namespace"] = namespace
        if revision is not None:
            changes["revision"] = revision
        return replace(self, **changes)

    def to_purl(self) -> PackageURL:
        """
        Convert to a Package URL.

        Only conda kinds are mapped; the provider becomes the ``channel``
        qualifier and the architecture the ``subdir`` qualifier.

        Raises:
            MalformedSpecError: If the spec type has no purl mapping
        """
        purl_type = _CONDA_PURL_TYPES.get(self.type)
        if purl_type is None:
            raise MalformedSpecError(f"No package URL mapping for spec type '{self.type}'")

        qualifiers = {"channel": self.provider}
        if self.namespace:
            qualifiers["subdir"] = self.namespace
        if self.concrete_build_version:
            qualifiers["build"] = self.concrete_build_version
        if self.type == "condasrc":
            qualifiers["type"] = "source"
        return PackageURL(
            type=purl_type,
            name=self.name,
            version=self.concrete_version,
            qualifiers=qualifiers,
        )

    @classmethod
    def from_purl(cls, purl: Union[str, PackageURL]) -> "Spec":
        """
        Build a Spec from a conda Package URL.

        ``pkg:conda/numpy@1.13.0?channel=conda-forge&subdir=linux-64&build=py36_0``
        becomes ``conda/conda-forge/linux-64/numpy/1.13.0-py36_0``.

        Raises:
            MalformedSpecError: If the purl is invalid, not conda, or has no channel
        """
        if isinstance(purl, str):
            try:
                purl = PackageURL.from_string(purl)
            except ValueError as e:
                raise MalformedSpecError(f"Invalid package URL '{purl}': {e}") from e

        if purl.type != "conda":
            raise MalformedSpecError(f"Unsupported package URL type '{purl.type}', expected 'conda'")

        qualifiers = purl.qualifiers or {}
        channel = qualifiers.get("channel")
        if not channel:
            raise MalformedSpecError(f"Package URL {purl.to_string()} has no channel qualifier")

        spec_type = "condasrc" if qualifiers.get("type") == "source" else "conda"
        version = purl.version or WILDCARD
        build = qualifiers.get("build") or WILDCARD
        revision = None if version == WILDCARD and build == WILDCARD else f"{version}-{build}"
        return cls(
            type=spec_type,
            provider=channel,
            namespace=qualifiers.get("subdir"),
            name=purl.name,
            revision=revision,
        )

    def __str__(self) -> str:
        return self.to_url()


def parse_spec(coordinate: str) -> Spec:
    """
    Parse a coordinate string into a Spec.

    The revision segment is optional; a trailing slash is tolerated.

    Args:
        coordinate: e.g. "conda/conda-forge/-/numpy/1.13.0-py36"

    Returns:
        Parsed Spec

    Raises:
        MalformedSpecError: If the coordinate does not have 4 or 5 segments
            or a required segment is empty
    """
    if not isinstance(coordinate, str) or not coordinate.strip():
        raise MalformedSpecError("Coordinate is empty")

    segments = coordinate.strip().strip("/").split("/")
    if len(segments) not in (4, 5):
        raise MalformedSpecError(
            f"Malformed coordinate '{coordinate}': expected type/provider/namespace/name[/revision]"
        )

    spec_type, provider, namespace, name = segments[:4]
    revision = segments[4] if len(segments) == 5 else None
    try:
        return Spec(type=spec_type, provider=provider, namespace=namespace, name=name, revision=revision)
    except MalformedSpecError as e:
        raise MalformedSpecError(f"Malformed coordinate '{coordinate}': {e}") from e
