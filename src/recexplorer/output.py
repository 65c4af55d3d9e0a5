"""
Output formatters for the search, debug and delete commands (JSON or human-readable)
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from recexplorer.models import UnifiedRecording, record_key
from recexplorer.selection import OwnerGroup, PageView, SelectionState

if TYPE_CHECKING:
    from recexplorer.aggregator import SearchResult
    from recexplorer.analytics import MeetingAnalytics
    from recexplorer.bulk_delete import DeleteSummary


def _format_duration(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _format_size(size: int) -> str:
    return f"{size / 1024 / 1024:.1f} MB" if size else ""


class OutputFormatter:
    """Format output in different modes"""

    def __init__(self, mode: str = "human", console: Console | None = None):
        """
        Initialize formatter

        Args:
            mode: Output mode (human, json)
        """
        self.mode = mode.lower()
        self.console = console or Console()
        self.silent = False

    def set_silent(self, silent: bool) -> None:
        self.silent = silent

    def output_json(self, data: Any) -> None:
        print(json.dumps(data, indent=2, default=str))

    def output_error(self, message: str) -> None:
        if self.silent:
            return
        if self.mode == "json":
            self.output_json({"error": message})
        else:
            self.console.print(f"[bold red]Error:[/bold red] {message}")

    def output_success(self, message: str) -> None:
        if self.silent:
            return
        if self.mode == "json":
            self.output_json({"status": "success", "message": message})
        else:
            self.console.print(f"[bold green]✓[/bold green] {message}")

    def output_info(self, message: str) -> None:
        if self.silent:
            return
        if self.mode == "json":
            self.output_json({"status": "info", "message": message})
        else:
            self.console.print(message)

    def output_page(
        self,
        result: SearchResult,
        page: PageView,
        selection: SelectionState,
        *,
        groups: Sequence[OwnerGroup] | None = None,
        analytics: Mapping[str, MeetingAnalytics] | None = None,
    ) -> None:
        """Output one page of recordings plus the status line"""
        if self.mode == "json":
            payload = result.to_dict()
            payload["recordings"] = [r.to_dict() for r in page.records]
            payload["page"] = {
                "index": page.page_index,
                "total_pages": page.total_pages,
                "page_size": page.page_size,
                "total_filtered": page.total_filtered,
            }
            if groups is not None:
                payload["groups"] = [
                    {
                        "owner": g.name,
                        "count": g.count,
                        "fully_selected": g.fully_selected,
                        "keys": list(g.keys),
                    }
                    for g in groups
                ]
            if analytics:
                payload["analytics"] = {
                    mid: {
                        "plays": a.plays,
                        "downloads": a.downloads,
                        "last_access_date": a.last_access_date,
                    }
                    for mid, a in analytics.items()
                }
            self.output_json(payload)
            return

        if not page.records:
            self.console.print("[yellow]No recordings found[/yellow]")
        elif groups is not None:
            for group in groups:
                marker = "[x]" if group.fully_selected else "[ ]"
                self.console.print(
                    f"\n[bold]{escape(marker)} {escape(group.name)}[/bold] ({group.count})"
                )
                if not group.collapsed:
                    self._print_table(list(group.records), selection, analytics)
        else:
            self._print_table(list(page.records), selection, analytics)
        self.output_status(result, page)

    def _print_table(
        self,
        records: list[UnifiedRecording],
        selection: SelectionState,
        analytics: Mapping[str, MeetingAnalytics] | None,
    ) -> None:
        table = Table(title="Zoom Recordings")
        table.add_column("", style="bold")
        table.add_column("Date", style="blue")
        table.add_column("Source", style="cyan")
        table.add_column("Caller / Topic", style="green")
        table.add_column("Callee / Host", style="green")
        table.add_column("Owner", style="magenta")
        table.add_column("Duration", style="magenta")
        table.add_column("Size", style="yellow")
        table.add_column("Key", style="dim")
        if analytics:
            table.add_column("Plays/Downloads", style="white")

        for record in records:
            key = record_key(record)
            row = [
                "x" if key in selection else "",
                record.date_time,
                record.source,
                record.caller_name or record.caller_number,
                record.callee_name or record.callee_number,
                record.owner_display_name,
                _format_duration(record.duration),
                _format_size(record.meeting.total_size) if record.meeting else "",
                key,
            ]
            if analytics:
                stats = analytics.get(record.meeting.uuid) if record.meeting else None
                row.append(f"{stats.plays}/{stats.downloads}" if stats else "")
            table.add_row(*row)
        self.console.print(table)

    def output_status(self, result: SearchResult, page: PageView) -> None:
        """Filtered vs server counts, truncation warning and per-unit errors"""
        self.console.print(
            f"Page {page.page_index + 1}/{page.total_pages} · "
            f"{page.total_filtered} shown after filters · "
            f"{result.server_total} from server"
            + (" · [magenta]demo data[/magenta]" if result.demo else "")
        )
        if result.terminated_early:
            self.console.print(
                "[yellow]Page limit reached: results may be incomplete. "
                "Narrow the date range or raise the page limit.[/yellow]"
            )
        if result.errors:
            self.console.print(
                f"[yellow]{len(result.errors)} user fetch(es) failed "
                f"({result.users_succeeded}/{result.users_total} succeeded):[/yellow]"
            )
            for error in result.errors:
                status = f"HTTP {error.status} " if error.status else ""
                label = error.subject_label or error.subject_id
                self.console.print(f"  • {label}: {status}{error.message}")

    def output_debug_view(self, view: Any) -> None:
        """Output a meetings debug variant (users or per-user counts)"""
        data = view.to_dict()
        if self.mode == "json":
            self.output_json(data)
            return

        table = Table(title=f"Meetings debug: {data['debug']}")
        table.add_column("User ID", style="cyan")
        table.add_column("Email", style="green")
        if data["debug"] == "users":
            table.add_column("Status", style="blue")
            for user in data["users"]:
                table.add_row(str(user["id"] or ""), str(user["email"] or ""), str(user["status"] or ""))
        else:
            table.add_column("Meetings", style="magenta")
            for row in data["users"]:
                table.add_row(row["user_id"], row["email"], str(row["meetings"]))
        self.console.print(table)
        if data.get("terminated_early"):
            self.console.print("[yellow]Page limit reached: counts may be incomplete.[/yellow]")
        for error in data.get("_errors", []):
            self.console.print(
                f"[red]✗[/red] {error['subject_label'] or error['subject_id']}: "
                f"{error['message']}"
            )

    def output_delete_review(self, records: Sequence[UnifiedRecording]) -> None:
        """List the records captured for deletion"""
        if self.mode == "json" or self.silent:
            return
        table = Table(title=f"Review: {len(records)} recording(s) to delete")
        table.add_column("Date", style="blue")
        table.add_column("Source", style="cyan")
        table.add_column("Caller / Topic", style="green")
        table.add_column("Owner", style="magenta")
        table.add_column("Key", style="dim")
        for record in records:
            table.add_row(
                record.date_time,
                record.source,
                record.caller_name or record.caller_number,
                record.owner_display_name,
                record_key(record),
            )
        self.console.print(table)

    def output_delete_summary(self, summary: DeleteSummary) -> None:
        if self.mode == "json":
            payload = summary.to_dict()
            payload["status"] = (
                "success"
                if summary.failed == 0
                else ("partial_success" if summary.succeeded > 0 else "error")
            )
            payload["message"] = summary.message
            self.output_json(payload)
            return
        if summary.failed:
            self.console.print(f"[yellow]{summary.message}[/yellow]")
            for failure in summary.failures:
                self.console.print(f"  • {failure.key}: {failure.message}")
        else:
            self.output_success(summary.message)
