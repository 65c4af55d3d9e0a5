"""
recexplorer – unified CLI entrypoint (Click group)

Subcommands:
- search: fetch, filter, page and group recordings from one source
- meetings-debug: list enumerated users or per-user meeting counts
- delete: review and trash selected recordings with progress reporting
- identity: show which account the meetings fan-out runs against
"""

import json
import logging
import sys
from contextlib import nullcontext
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from typing import Any

import rich_click as click
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from recexplorer import __version__
from recexplorer.aggregator import SOURCE_CHOICES, Aggregator, SearchRequest, SearchResult
from recexplorer.analytics import fetch_meeting_analytics
from recexplorer.bulk_delete import BulkDeleteOrchestrator, DeleteProgress, zoom_removers
from recexplorer.config import Config
from recexplorer.exceptions import MissingConfigurationError, RecExplorerError
from recexplorer.logger import setup_logging
from recexplorer.output import OutputFormatter
from recexplorer.selection import AUTO_DELETE_CHOICES, RecordBrowser, toggle_group_selection
from recexplorer.sources import MEETINGS_VIEWS
from recexplorer.zoom_client import ZoomClient

click.rich_click.TEXT_MARKUP = "rich"
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True

console = Console()
logger = logging.getLogger(__name__)


def _autoload_dotenv() -> None:
    """Load a local .env file unless RECEXPLORER_NO_DOTENV is set.

    Does not override existing environment variables.
    """
    import os

    if os.getenv("RECEXPLORER_NO_DOTENV"):
        return
    from dotenv import find_dotenv, load_dotenv

    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


@click.group(help="recexplorer – search and bulk-trash Zoom phone, meeting and contact center recordings")
@click.version_option(version=__version__)
def cli() -> None:
    """Top-level Click group."""
    _autoload_dotenv()


def _validate_date(ctx: click.Context, param: click.Parameter, value: str | None) -> str | None:
    if value is None:
        return None
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise click.BadParameter(f"Date must be YYYY-MM-DD, got: {value}")
    return value


def _utc_today() -> date:
    return datetime.now(UTC).date()


def _calc_range(range_opt: str) -> tuple[str, str]:
    today = _utc_today()
    if range_opt == "today":
        f = t = today
    elif range_opt == "yesterday":
        f = t = today - timedelta(days=1)
    elif range_opt == "last-7-days":
        f, t = today - timedelta(days=6), today
    elif range_opt == "last-30-days":
        f, t = today - timedelta(days=29), today
    else:
        raise click.BadParameter(f"Invalid range: {range_opt}")
    return f.isoformat(), t.isoformat()


def _resolve_window(
    from_date: str | None, to_date: str | None, range_opt: str | None
) -> tuple[str, str]:
    if range_opt and (from_date or to_date):
        raise click.UsageError("--range cannot be used with --from-date or --to-date")
    if range_opt:
        return _calc_range(range_opt)
    if bool(from_date) != bool(to_date):
        raise click.UsageError("Both --from-date and --to-date must be provided together")
    if not from_date or not to_date:
        today = _utc_today().isoformat()
        return today, today
    return from_date, to_date


def _window_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--range",
        "range_opt",
        type=click.Choice(["today", "yesterday", "last-7-days", "last-30-days"]),
        help="Quick date range shortcut (mutually exclusive with --from-date/--to-date)",
    )(func)
    func = click.option("--to-date", callback=_validate_date, help="End date (YYYY-MM-DD)")(func)
    func = click.option("--from-date", callback=_validate_date, help="Start date (YYYY-MM-DD)")(
        func
    )
    return func


def _search_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by `search` and `delete` (the delete command re-runs the search)."""
    decorators = [
        click.option(
            "--source",
            type=click.Choice(list(SOURCE_CHOICES)),
            default="phone",
            show_default=True,
            help="Recording system to search (combined = phone + meetings, newest first)",
        ),
        click.option("--query", "-q", default="", help="Free-text filter across parties, owner, topic, host"),
        click.option("--owner-email", default="", help="Meetings: owner email contains"),
        click.option("--topic", default="", help="Meetings: topic contains"),
        click.option(
            "--auto-delete",
            type=click.Choice(list(AUTO_DELETE_CHOICES)),
            default="all",
            show_default=True,
            help="Meetings: filter on Zoom's auto-delete flag",
        ),
        click.option("--page-size", type=int, default=100, show_default=True, help="Rows per page"),
        click.option("--page", "page_number", type=int, default=1, show_default=True, help="Page number (1-based)"),
        click.option("--demo", is_flag=True, help="Use synthetic records; no network calls"),
        click.option("--strict", is_flag=True, help="Fail if any per-user fetch fails"),
        click.option("--json", "-j", "json_mode", is_flag=True, help="JSON output mode"),
        click.option("--verbose", "-v", is_flag=True, help="Verbose output"),
        click.option("--debug", "-d", is_flag=True, help="Debug output (re-raise errors)"),
        click.option("--config", type=click.Path(exists=True), help="Path to config file"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return _window_options(func)


def _load_config(config: str | None) -> Config:
    return Config(env_file=config) if config else Config()


def _build_client(cfg: Config) -> ZoomClient:
    cfg.validate()
    return ZoomClient(
        cfg.zoom_account_id,
        str(cfg.zoom_client_id),
        str(cfg.zoom_client_secret),
        base_url=cfg.zoom_api_base_url,
        token_url=cfg.zoom_oauth_token_url,
        expiry_margin=cfg.token_expiry_margin,
    )


def _build_aggregator(cfg: Config, demo: bool, strict: bool) -> Aggregator:
    client = None if demo else _build_client(cfg)
    return Aggregator(client, cfg, demo_mode=demo, strict=strict)


def _report_error(
    e: Exception, command: str, json_mode: bool, formatter: OutputFormatter, reraise: bool
) -> None:
    logger.debug("Exception in %s command:", command, exc_info=True)
    if isinstance(e, RecExplorerError):
        error = e.to_dict()
        human = f"{e.code}: {e.message}"
    else:
        error = {"code": "UNEXPECTED_ERROR", "message": str(e), "details": ""}
        human = f"Unexpected error: {e}"
    if json_mode:
        print(json.dumps({"status": "error", "command": command, "error": error}, indent=2))
    else:
        formatter.output_error(human)
        if isinstance(e, RecExplorerError) and e.details:
            formatter.output_info(e.details)
    if reraise:
        raise e
    sys.exit(1)


def _browse(
    result: SearchResult, auto_delete: str, page_size: int, page_number: int
) -> RecordBrowser:
    browser = RecordBrowser(page_size=page_size)
    browser.load(result.recordings)
    browser.set_auto_delete(auto_delete)  # type: ignore[arg-type]
    browser.go_to_page(page_number - 1)
    return browser


@cli.command(name="search", help="Search recordings for a date range and show one page")
@_search_options
@click.option("--group-by-owner", is_flag=True, help="Group the page by owner display name")
@click.option("--collapse", multiple=True, help="Owner group to collapse (repeatable)")
@click.option("--analytics", is_flag=True, help="Meetings: fetch plays/downloads for the page")
def search(
    from_date: str | None,
    to_date: str | None,
    range_opt: str | None,
    source: str,
    query: str,
    owner_email: str,
    topic: str,
    auto_delete: str,
    page_size: int,
    page_number: int,
    demo: bool,
    strict: bool,
    json_mode: bool,
    verbose: bool,
    debug: bool,
    config: str | None,
    group_by_owner: bool,
    collapse: tuple[str, ...],
    analytics: bool,
) -> None:
    log_level = "DEBUG" if debug else ("INFO" if verbose else "WARNING")
    setup_logging(level=log_level, verbose=debug)
    formatter = OutputFormatter("json" if json_mode else "human", console=console)
    start, end = _resolve_window(from_date, to_date, range_opt)

    try:
        cfg = _load_config(config)
        aggregator = _build_aggregator(cfg, demo, strict)
        request = SearchRequest(
            from_date=start,
            to_date=end,
            source=source,  # type: ignore[arg-type]
            query=query,
            owner_email=owner_email,
            topic=topic,
        )
        spinner = (
            console.status("Fetching recordings...", spinner="dots")
            if not json_mode
            else nullcontext()
        )
        with spinner:
            result = aggregator.search(request)

        browser = _browse(result, auto_delete, page_size, page_number)
        browser.collapse.collapse_all(collapse)
        page = browser.page()

        stats = None
        if analytics and aggregator.client is not None and source in ("meetings", "combined"):
            stats = fetch_meeting_analytics(
                aggregator.client,
                page.records,
                result.from_date,
                result.to_date,
                concurrency=cfg.analytics_concurrency,
            )

        formatter.output_page(
            result,
            page,
            browser.selection,
            groups=browser.groups() if group_by_owner else None,
            analytics=stats,
        )
        if result.all_failed:
            sys.exit(1)
    except Exception as e:
        _report_error(e, "search", json_mode, formatter, debug)


@cli.command(name="meetings-debug", help="Show enumerated users or per-user meeting counts")
@_window_options
@click.option(
    "--view",
    type=click.Choice([v for v in MEETINGS_VIEWS if v != "records"]),
    default="users",
    show_default=True,
)
@click.option("--json", "-j", "json_mode", is_flag=True, help="JSON output mode")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--debug", "-d", is_flag=True, help="Debug output (re-raise errors)")
@click.option("--config", type=click.Path(exists=True), help="Path to config file")
def meetings_debug(
    from_date: str | None,
    to_date: str | None,
    range_opt: str | None,
    view: str,
    json_mode: bool,
    verbose: bool,
    debug: bool,
    config: str | None,
) -> None:
    log_level = "DEBUG" if debug else ("INFO" if verbose else "WARNING")
    setup_logging(level=log_level, verbose=debug)
    formatter = OutputFormatter("json" if json_mode else "human", console=console)
    start, end = _resolve_window(from_date, to_date, range_opt)

    try:
        cfg = _load_config(config)
        aggregator = _build_aggregator(cfg, demo=False, strict=False)
        formatter.output_debug_view(aggregator.meetings_debug(start, end, view))  # type: ignore[arg-type]
    except Exception as e:
        _report_error(e, "meetings-debug", json_mode, formatter, debug)


@cli.command(name="delete", help="Review and delete (trash) selected recordings")
@_search_options
@click.option("--key", "keys", multiple=True, help="Selection key to toggle (repeatable)")
@click.option("--all-on-page", is_flag=True, help="Select every record on the page")
@click.option("--owner", "owners", multiple=True, help="Toggle selection of an owner group on the page")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
def delete(
    from_date: str | None,
    to_date: str | None,
    range_opt: str | None,
    source: str,
    query: str,
    owner_email: str,
    topic: str,
    auto_delete: str,
    page_size: int,
    page_number: int,
    demo: bool,
    strict: bool,
    json_mode: bool,
    verbose: bool,
    debug: bool,
    config: str | None,
    keys: tuple[str, ...],
    all_on_page: bool,
    owners: tuple[str, ...],
    yes: bool,
) -> None:
    log_level = "DEBUG" if debug else ("INFO" if verbose else "WARNING")
    setup_logging(level=log_level, verbose=debug)
    formatter = OutputFormatter("json" if json_mode else "human", console=console)
    start, end = _resolve_window(from_date, to_date, range_opt)

    if json_mode and not yes:
        raise click.UsageError("--json requires --yes (no interactive confirmation)")

    try:
        cfg = _load_config(config)
        aggregator = _build_aggregator(cfg, demo, strict)
        request = SearchRequest(
            from_date=start,
            to_date=end,
            source=source,  # type: ignore[arg-type]
            query=query,
            owner_email=owner_email,
            topic=topic,
        )
        state = {"result": aggregator.search(request)}
        browser = _browse(state["result"], auto_delete, page_size, page_number)

        if all_on_page:
            browser.select_all_on_page(True)
        for group in browser.groups():
            if group.name in owners:
                toggle_group_selection(group, browser.selection)
        for key in keys:
            browser.selection.toggle(key)

        def _refresh() -> None:
            state["result"] = aggregator.search(request)
            browser.load(state["result"].recordings)

        def _drop_local(removed: list[Any]) -> None:
            state["result"] = state["result"].without(removed)
            browser.replace_records(state["result"].recordings)

        removers = zoom_removers(aggregator.client) if aggregator.client is not None else {}
        orchestrator = BulkDeleteOrchestrator(
            removers,
            browser.selection,
            demo_mode=demo,
            refresh=_refresh,
            on_demo_removed=_drop_local,
            demo_delay=0.04 if demo and not json_mode else 0.0,
        )

        pending = orchestrator.open(browser.selected_records())
        if not pending:
            formatter.output_info("No recordings selected; nothing to delete")
            return

        formatter.output_delete_review(pending)
        if not yes and not click.confirm(f"Delete {len(pending)} recording(s)?", default=False):
            orchestrator.cancel()
            formatter.output_info("Delete cancelled")
            return

        if json_mode:
            summary = orchestrator.confirm()
        else:
            with Progress(
                TextColumn("[bold]Deleting[/bold]"),
                BarColumn(),
                MofNCompleteColumn(),
                console=console,
            ) as progress:
                task_id = progress.add_task("delete", total=len(pending))

                def _on_progress(p: DeleteProgress) -> None:
                    progress.update(task_id, completed=p.done, total=p.total)

                orchestrator.on_progress = _on_progress
                summary = orchestrator.confirm()

        formatter.output_delete_summary(summary)
        if summary.failed:
            sys.exit(1)
    except Exception as e:
        _report_error(e, "delete", json_mode, formatter, debug)


@cli.command(name="identity", help="Show the account identity used for meeting recordings")
@click.option("--json", "-j", "json_mode", is_flag=True, help="JSON output mode")
@click.option("--config", type=click.Path(exists=True), help="Path to config file")
def identity(json_mode: bool, config: str | None) -> None:
    formatter = OutputFormatter("json" if json_mode else "human", console=console)
    try:
        cfg = _load_config(config)
        if not cfg.zoom_account_id:
            raise MissingConfigurationError(
                "No Zoom account identifier configured",
                details="Set ZOOM_ACCOUNT_ID to query account-scoped recordings",
            )
        payload = {
            "user_id": f"account:{cfg.zoom_account_id}",
            "source": "account_recordings",
            "meetings_fetch": "per-user fan-out",
        }
        if json_mode:
            formatter.output_json(payload)
        else:
            console.print(f"[bold]Identity:[/bold] {payload['user_id']}")
            console.print(f"[bold]Meetings fetch:[/bold] {payload['meetings_fetch']}")
    except Exception as e:
        _report_error(e, "identity", json_mode, formatter, False)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
