"""Selection of repodata entries matching a requested version and build."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .spec import WILDCARD

# Repodata tables, in the order their entries are considered
REPODATA_TABLES = ("packages", "packages.conda")


@dataclass(frozen=True)
class RepoEntry:
    """One package file listed in a repodata document."""

    package_file: str
    package_data: Mapping[str, Any]

    @property
    def name(self) -> Optional[str]:
        return self.package_data.get("name")

    @property
    def version(self) -> Optional[str]:
        return self.package_data.get("version")

    @property
    def build(self) -> str:
        return self.package_data.get("build") or ""

    def to_dict(self) -> Dict[str, Any]:
        return {"packageFile": self.package_file, "packageData": dict(self.package_data)}


def iter_repo_entries(repo_data: Mapping[str, Any]) -> Iterator[RepoEntry]:
    """Yield entries from the ``packages`` table, then ``packages.conda``."""
    for table in REPODATA_TABLES:
        for package_file, package_data in (repo_data.get(table) or {}).items():
            yield RepoEntry(package_file, package_data)


def _is_wildcard(value: Optional[str]) -> bool:
    return not value or value == WILDCARD


def match_packages(
    entries: Iterable[RepoEntry],
    name: str,
    version: Optional[str] = None,
    build_version: Optional[str] = None,
) -> List[RepoEntry]:
    """
    Select and order the entries matching a name, version and build.

    Filtering:
    - name must equal the entry name exactly
    - version is ignored when absent or "_", otherwise must be equal
    - build_version is ignored when absent or "_", otherwise must be a
      prefix of the entry build ("py3" matches "py36" and "py38")

    Ordering is by build string, descending; entries with equal builds keep
    their input order. An empty list is a valid answer.

    Args:
        entries: Candidate entries, e.g. from ``iter_repo_entries``
        name: Exact component name
        version: Optional version filter
        build_version: Optional build prefix filter

    Returns:
        All matching entries, best first
    """

    def matches(entry: RepoEntry) -> bool:
        if entry.name != name:
            return False
        if not _is_wildcard(version) and entry.version != version:
            return False
        if not _is_wildcard(build_version) and not entry.build.startswith(build_version):
            return False
        return True

    # sorted() is stable, including with reverse=True
    return sorted((e for e in entries if matches(e)), key=lambda e: e.build, reverse=True)
