"""
Mim - Logging and console output

Components log through standard `logging` under the "mim" namespace.
Passes usually run detached, so the durable sink is a file inside the
knowledge directory; the console handler and the rich renderers below are
for interactive CLI use.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..core.types import PendingReview

LOG_FORMAT = "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s"

console = Console(stderr=True)


def get_logger(component: str) -> logging.Logger:
    """Logger for one component, e.g. get_logger("dispatcher") -> "mim.dispatcher"."""
    return logging.getLogger(f"mim.{component}")


def configure_logging(
    log_file: Optional[Path] = None,
    debug: bool = False,
    to_console: bool = False,
) -> logging.Logger:
    """
    Attach handlers to the "mim" root logger. Safe to call more than once;
    previously attached Mim handlers are replaced.
    """
    root = logging.getLogger("mim")
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    for handler in list(root.handlers):
        if getattr(handler, "_mim_handler", False):
            root.removeHandler(handler)
            handler.close()

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError:
            file_handler = None  # read-only checkout: keep going without a log file
        if file_handler is not None:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            file_handler._mim_handler = True
            root.addHandler(file_handler)

    if to_console:
        rich_handler = RichHandler(console=console, show_path=False, markup=False)
        rich_handler._mim_handler = True
        root.addHandler(rich_handler)

    return root


# ─── Rich Renderers ──────────────────────────────────────────────────────────

def print_pass_report(report: Dict[str, Any], out: Optional[Console] = None):
    out = out or Console()
    status = report.get("status", "unknown")
    if status == "skipped":
        out.print(f"[dim]Pass skipped: {report.get('reason', '')}[/dim]")
        return

    table = Table(title="Mim - Verification Pass", border_style="blue")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Status", status)
    table.add_row("Commit", str(report.get("commit", ""))[:12])
    for key in (
        "entries_found", "entries_throttled", "entries_dispatched",
        "entries_skipped_pending", "verified_ok", "auto_fixed",
        "reviews_created", "failed",
    ):
        table.add_row(key.replace("_", " ").capitalize(), str(report.get(key, 0)))
    recheck = report.get("recheck", {})
    if recheck:
        table.add_row(
            "Reviews rechecked",
            f"{recheck.get('checked', 0)} ({recheck.get('removed', 0)} removed)",
        )
    cost = report.get("cost", {})
    if cost:
        table.add_row("Delegate cost", f"${cost.get('total_cost_usd', 0):.4f}")
        top = cost.get("costliest") or []
        if top:
            table.add_row("Costliest", escape(f"{top[0]['subject']} (${top[0]['cost_usd']:.4f})"))
    table.add_row("Duration", f"{report.get('duration_s', 0):.1f}s")
    out.print(table)


def print_review_list(reviews: List[PendingReview], out: Optional[Console] = None):
    out = out or Console()
    if not reviews:
        out.print("[dim]No pending reviews.[/dim]")
        return
    for review in reviews:
        lines = [escape(review.question)]
        if review.context:
            lines.append(f"[dim]{escape(review.context)}[/dim]")
        for i, option in enumerate(review.options, 1):
            lines.append(f"  [{i}] {escape(option)}")
        if review.is_answered:
            lines.append(f"[green]Answer: {escape(review.answer)}[/green]")
        border = "green" if review.is_answered else "yellow"
        out.print(Panel(
            "\n".join(lines),
            title=f"[bold]{escape(review.id)}[/bold] ({review.type.value}) {escape(review.subject)}",
            subtitle=escape(review.knowledge_file),
            border_style=border,
            padding=(0, 1),
        ))


def print_status(status: Dict[str, Any], out: Optional[Console] = None):
    out = out or Console()
    table = Table(title="Mim - Status", border_style="blue")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Pending reviews", str(status.get("pending_reviews", 0)))
    table.add_row("Answered reviews", str(status.get("answered_reviews", 0)))
    for name, count in status.get("manifest", {}).items():
        table.add_row(f"Manifest: {name}", str(count))
    lock = status.get("lock")
    table.add_row("Pass running", f"yes (PID {lock['pid']})" if lock else "no")
    out.print(table)
