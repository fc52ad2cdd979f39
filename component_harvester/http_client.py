"""HTTP client utilities with a consistent, identifiable user agent."""

from typing import Optional

import aiohttp


def _get_package_version() -> str:
    """Get the package version for User-Agent header."""
    try:
        from importlib.metadata import version

        return version("component-harvester")
    except Exception:
        try:
            from pathlib import Path

            import tomllib

            pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
            if pyproject_path.exists():
                with open(pyproject_path, "rb") as f:
                    pyproject_data = tomllib.load(f)
                return pyproject_data.get("project", {}).get("version", "unknown")
        except Exception:
            return "unknown"
    return "unknown"


USER_AGENT = f"component-harvester/{_get_package_version()} (+https://github.com/component-harvester)"

# Seconds allowed for a single transfer. Channel indexes are tens of MB.
DEFAULT_HTTP_TIMEOUT = 600


def get_default_headers(accept: Optional[str] = None) -> dict:
    """
    Get default HTTP headers with user agent.

    Args:
        accept: Optional Accept header value (e.g., "application/json")

    Returns:
        Dictionary of HTTP headers
    """
    headers = {"User-Agent": USER_AGENT}
    if accept:
        headers["Accept"] = accept
    return headers


def create_session(timeout: float = DEFAULT_HTTP_TIMEOUT) -> aiohttp.ClientSession:
    """Create an aiohttp session carrying the default headers.

    Must be called from inside a running event loop.
    """
    return aiohttp.ClientSession(
        headers=get_default_headers(),
        timeout=aiohttp.ClientTimeout(total=timeout),
    )
