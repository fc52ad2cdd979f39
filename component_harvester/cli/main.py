"""Command line interface for component-harvester.

Examples:
    harvest fetch conda/conda-forge/linux-64/numpy/1.26.4-_
    harvest fetch 'pkg:conda/numpy@1.26.4?channel=conda-forge&subdir=noarch' --json --keep
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click

from .. import __version__
from .._fetch import Request
from ..config import DEFAULT_CONCURRENCY, DEFAULT_REQUEST_TIMEOUT, HarvesterConfig, load_config
from ..console import console, print_final_failure, print_outcomes_table, print_summary_table
from ..exceptions import ConfigurationError, MalformedSpecError
from ..fetch import fetch_components, parse_component
from ..logging_config import logger, set_log_level
from ..telemetry import initialize_sentry

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def build_config(
    cache_dir: Optional[str],
    temp_dir: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
) -> HarvesterConfig:
    """
    Merge CLI options over environment configuration.

    Raises:
        ConfigurationError: If the merged configuration is invalid
    """
    config = load_config()
    if cache_dir:
        config.cache_dir = Path(cache_dir)
    if temp_dir:
        config.temp_dir = Path(temp_dir)
    if concurrency is not None:
        config.concurrency = concurrency
    if timeout is not None:
        config.request_timeout = timeout
    config.validate()
    return config


def _parse_requests(components: Tuple[str, ...]) -> List[Request]:
    return [Request(parse_component(component)) for component in components]


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, prog_name="component-harvester")
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
def cli(log_level: str) -> None:
    """Harvest release metadata and artifacts for open-source components."""
    set_log_level(log_level)
    initialize_sentry()


@cli.command()
@click.argument("components", nargs=-1, required=True)
@click.option("--cache-dir", envvar="HARVESTER_CACHE_DIR", help="Directory for cached index documents.")
@click.option("--temp-dir", envvar="HARVESTER_TEMP_DIR", help="Root for temporary files and directories.")
@click.option(
    "--concurrency",
    type=int,
    default=None,
    help=f"Number of concurrent fetches (default: {DEFAULT_CONCURRENCY}).",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help=f"Seconds allowed per component, 0 to disable (default: {DEFAULT_REQUEST_TIMEOUT}).",
)
@click.option("--json", "as_json", is_flag=True, help="Print result documents as JSON.")
@click.option("--keep/--no-keep", default=False, help="Keep extracted contents instead of cleaning up.")
def fetch(
    components: Tuple[str, ...],
    cache_dir: Optional[str],
    temp_dir: Optional[str],
    concurrency: Optional[int],
    timeout: Optional[float],
    as_json: bool,
    keep: bool,
) -> None:
    """Fetch COMPONENTS given as coordinates or conda package URLs.

    A coordinate looks like conda/conda-forge/linux-64/numpy/1.26.4-py312h8753938_0;
    use "-" for an absent architecture and "_" for a version or build to resolve.
    """
    try:
        config = build_config(cache_dir, temp_dir, concurrency, timeout)
        requests = _parse_requests(components)
    except (ConfigurationError, MalformedSpecError) as e:
        logger.error(str(e))
        print_final_failure(str(e))
        sys.exit(2)

    outcomes = asyncio.run(fetch_components(requests, config))

    try:
        if as_json:
            documents = [
                {
                    "coordinate": request.url,
                    "status": outcome.status,
                    "result": outcome.fetch_result.to_dict() if outcome.fetch_result else None,
                    "skipReason": outcome.skip_reason,
                    "error": str(outcome.error) if outcome.error else None,
                }
                for request, outcome in zip(requests, outcomes)
            ]
            click.echo(json.dumps(documents, indent=2, default=str))
        else:
            print_outcomes_table(requests)
            print_summary_table(
                "Summary",
                [
                    ("Fetched", sum(1 for o in outcomes if o.is_success)),
                    ("Skipped", sum(1 for o in outcomes if o.is_skip)),
                    ("Failed", sum(1 for o in outcomes if o.is_failure)),
                ],
            )
    finally:
        if not keep:
            for outcome in outcomes:
                if outcome.fetch_result is not None:
                    outcome.fetch_result.cleanup()
        elif not as_json:
            console.print("[info]Extracted contents kept on disk[/info]")

    if any(outcome.is_failure for outcome in outcomes):
        sys.exit(1)


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
