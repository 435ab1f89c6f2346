"""Rich-based display for downcue-sim.

This module provides visual output for the simulator using Rich library.
It's decoupled from the simulation logic - it just renders data.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from downcue.models import Job, JobSnapshot, Request


@dataclass
class DownloadRow:
    """An active download for display."""

    job_id: str
    label: str
    priority: int = 0
    bytes_written: int = 0
    total_bytes: int | None = None
    started_at: float = field(default_factory=time.time)

    @property
    def fraction(self) -> float | None:
        """Fraction done (0.0 to 1.0), None if the size is unknown."""
        if not self.total_bytes:
            return None
        return min(1.0, self.bytes_written / self.total_bytes)


@dataclass
class EventRecord:
    """A recent event for display."""

    timestamp: datetime
    event_type: str
    job_id: str
    label: str | None = None
    details: str = ""


@dataclass
class SimulationState:
    """Current state of the simulation for display.

    This is the data contract between the runner and display.
    Engine listeners update it from worker threads; the display renders it
    from the main thread, so mutations go through the methods below.
    """

    # Queue stats
    submitted: int = 0
    rejected: int = 0
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    bytes_transferred: int = 0

    # Timing
    start_time: float = 0.0
    elapsed: float = 0.0

    # Active downloads (job id -> row)
    downloads: dict[str, DownloadRow] = field(default_factory=dict)

    # Recent events (most recent first)
    events: list[EventRecord] = field(default_factory=list)
    max_events: int = 10

    # Config display
    target_count: int = 0
    processor_count: int = 0
    size_kb: int = 0
    latency_ms: int = 0
    error_rate: float = 0.0
    cancel_rate: float = 0.0
    buffer_size: int = 0
    notification_size: int = 0

    # Scenario info
    scenario_name: str = "single_queue"

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    @property
    def finished(self) -> int:
        """Jobs that reached a terminal state."""
        return self.completed + self.failed + self.cancelled

    @property
    def throughput(self) -> float:
        """Downloads completed per second."""
        if self.elapsed > 0:
            return self.completed / self.elapsed
        return 0.0

    @property
    def bandwidth(self) -> float:
        """Bytes written per second across all downloads."""
        if self.elapsed > 0:
            return self.bytes_transferred / self.elapsed
        return 0.0

    @property
    def progress(self) -> float:
        """Fraction complete (0.0 to 1.0)."""
        if self.submitted > 0:
            return self.finished / self.submitted
        return 0.0

    def add_event(self, event_type: str, job_id: str, label: str | None = None, details: str = "") -> None:
        """Add an event to the display log."""
        with self._lock:
            self.events.insert(0, EventRecord(
                timestamp=datetime.now(),
                event_type=event_type,
                job_id=job_id,
                label=label,
                details=details,
            ))
            # Trim to max
            if len(self.events) > self.max_events:
                self.events = self.events[:self.max_events]

    # --- Updates from engine events ---

    def record_submission(self, request: Request, job: Job | None) -> None:
        label = request.title or request.target_file_name
        with self._lock:
            if job is None:
                self.rejected += 1
                self.add_event("rejected", request.id or "-", label)
            else:
                self.submitted += 1

    def record_scheduled(self, job: Job) -> None:
        self.add_event("queued", job.id, _label(job), f"priority {job.request.priority}")

    def record_started(self, job: Job) -> None:
        with self._lock:
            self.downloads[job.id] = DownloadRow(
                job_id=job.id,
                label=_label(job),
                priority=job.request.priority,
            )
        self.add_event("started", job.id, _label(job))

    def record_progress(self, job: Job, bytes_written: int, total_bytes: int | None) -> None:
        with self._lock:
            row = self.downloads.get(job.id)
            if row:
                row.bytes_written = bytes_written
                row.total_bytes = total_bytes

    def record_completed(self, job: JobSnapshot) -> None:
        with self._lock:
            self.downloads.pop(job.id, None)
            if job.failed:
                self.failed += 1
                self.add_event("failed", job.id, _label(job), str(job.error))
            elif job.succeeded:
                self.completed += 1
                self.bytes_transferred += job.bytes_written
                self.add_event("completed", job.id, _label(job), f"{job.duration}ms")

    def record_cancelled(self, job: JobSnapshot) -> None:
        with self._lock:
            self.downloads.pop(job.id, None)
            self.cancelled += 1
            self.add_event("cancelled", job.id, _label(job), job.cancel_reason or "")

    def rows(self) -> list[DownloadRow]:
        """Active downloads, oldest first."""
        with self._lock:
            return sorted(self.downloads.values(), key=lambda row: row.started_at)

    def recent_events(self, limit: int = 5) -> list[EventRecord]:
        with self._lock:
            return list(self.events[:limit])


def _label(job: Job | JobSnapshot) -> str:
    return job.request.title or job.request.target_file_name


def format_bytes(count: float) -> str:
    """Human readable byte count."""
    for unit in ("B", "KiB", "MiB"):
        if count < 1024:
            return f"{count:.0f}{unit}" if unit == "B" else f"{count:.1f}{unit}"
        count /= 1024
    return f"{count:.1f}GiB"


class SimulatorDisplay:
    """Rich-based TUI display for the simulator.

    Layout:
    - Queue stats panel
    - Active downloads with progress bars
    - Recent events log
    - Config footer
    """

    def __init__(self, state: SimulationState, console: Console | None = None):
        self.state = state
        self.console = console or Console()
        self._live: Live | None = None

    def __enter__(self) -> SimulatorDisplay:
        self._live = Live(
            self._build_layout(),
            console=self.console,
            refresh_per_second=10,
            screen=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args) -> None:
        if self._live:
            self._live.__exit__(*args)
            self._live = None

    def refresh(self) -> None:
        """Update the display with current state."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Panel:
        """Build the main display layout."""
        s = self.state

        layout = Layout()
        layout.split_column(
            Layout(name="queue", size=4),
            Layout(name="downloads", size=3 + max(1, s.processor_count)),
            Layout(name="events", size=7),
            Layout(name="controls", size=3),
        )
        layout["queue"].update(self._build_queue_section())
        layout["downloads"].update(self._build_downloads_section())
        layout["events"].update(self._build_events_section())
        layout["controls"].update(self._build_controls_section())

        return Panel(
            layout,
            title="[bold cyan]downcue-sim[/bold cyan]",
            border_style="cyan",
        )

    def _build_queue_section(self) -> Panel:
        """Build queue stats panel."""
        s = self.state

        stats = Table.grid(expand=True, padding=(0, 2))
        for _ in range(5):
            stats.add_column(justify="left")

        stats.add_row(
            f"[dim]Waiting:[/dim] [bold]{s.waiting:,}[/bold]",
            f"[dim]Active:[/dim] [bold yellow]{s.active}[/bold yellow]",
            f"[dim]Completed:[/dim] [bold green]{s.completed:,}[/bold green]",
            f"[dim]Failed:[/dim] [bold red]{s.failed}[/bold red]",
            f"[dim]Cancelled:[/dim] [bold magenta]{s.cancelled}[/bold magenta]",
        )

        stats2 = Table.grid(expand=True, padding=(0, 2))
        for _ in range(4):
            stats2.add_column(justify="left")

        pct = s.progress * 100
        stats2.add_row(
            f"[dim]Slots:[/dim] {self._progress_bar(s.active / s.processor_count if s.processor_count else 0, 8)} "
            f"{s.active}/{s.processor_count}",
            f"[dim]Progress:[/dim] [bold]{pct:.0f}%[/bold]",
            f"[dim]Throughput:[/dim] [bold]{s.throughput:.1f}/s[/bold]",
            f"[dim]Bandwidth:[/dim] [bold]{format_bytes(s.bandwidth)}/s[/bold]",
        )

        content = Table.grid(expand=True)
        content.add_row(stats)
        content.add_row(stats2)

        return Panel(content, title="[bold]Queue[/bold]", border_style="blue")

    def _build_downloads_section(self) -> Panel:
        """Build active downloads panel with progress bars."""
        table = Table(box=None, expand=True, padding=(0, 1), show_header=False)
        table.add_column("ID", width=10, style="dim")
        table.add_column("File", ratio=1)
        table.add_column("Priority", width=4, justify="right")
        table.add_column("Progress", width=22)
        table.add_column("Bytes", width=20, justify="right")

        rows = self.state.rows()
        for row in rows:
            fraction = row.fraction
            if fraction is None:
                bar = "[dim]size unknown[/dim]"
                size = format_bytes(row.bytes_written)
            else:
                bar = f"{self._progress_bar(fraction, 14)} {fraction * 100:3.0f}%"
                size = f"{format_bytes(row.bytes_written)}/{format_bytes(row.total_bytes)}"
            table.add_row(row.job_id[:8], f"[bold]{row.label}[/bold]", str(row.priority), bar, size)

        if not rows:
            table.add_row("", "[dim]No active downloads[/dim]", "", "", "")

        return Panel(table, title="[bold]Downloads[/bold]", border_style="blue")

    def _build_events_section(self) -> Panel:
        """Build recent events panel."""
        table = Table(box=None, expand=True, padding=(0, 1), show_header=False)
        table.add_column("Time", width=10, style="dim")
        table.add_column("Event", width=10)
        table.add_column("ID", width=10)
        table.add_column("File", width=18)
        table.add_column("Details")

        event_styles = {
            "completed": "green",
            "failed": "red",
            "started": "yellow",
            "cancelled": "magenta",
            "rejected": "red",
            "queued": "dim",
        }

        events = self.state.recent_events()
        for event in events:
            style = event_styles.get(event.event_type, "white")
            table.add_row(
                event.timestamp.strftime("%H:%M:%S"),
                f"[{style}]{event.event_type}[/{style}]",
                event.job_id[:8] if event.job_id else "",
                event.label or "",
                event.details[:40] if event.details else "",
            )

        if not events:
            table.add_row("[dim]No events yet[/dim]", "", "", "", "")

        return Panel(table, title="[bold]Recent Events[/bold]", border_style="blue")

    def _build_controls_section(self) -> Panel:
        """Build controls/config footer."""
        s = self.state

        text = Text()
        text.append("Scenario: ", style="dim")
        text.append(s.scenario_name, style="bold")
        text.append("  Size: ", style="dim")
        text.append(f"{s.size_kb}KiB", style="bold")
        text.append("  Chunk: ", style="dim")
        text.append(f"{s.buffer_size}B/{s.latency_ms}ms", style="bold")
        text.append("  Error: ", style="dim")
        text.append(f"{s.error_rate*100:.0f}%", style="bold red" if s.error_rate > 0 else "bold")
        if s.cancel_rate > 0:
            text.append("  Cancel: ", style="dim")
            text.append(f"{s.cancel_rate*100:.0f}%", style="bold magenta")
        text.append("  Target: ", style="dim")
        text.append(f"{s.target_count:,}", style="bold")
        text.append("    Ctrl+C to stop", style="dim")

        return Panel(text, title="[bold]Config[/bold]", border_style="dim")

    @staticmethod
    def _progress_bar(pct: float, width: int = 10) -> str:
        """Create a mini progress bar."""
        pct = min(1.0, max(0.0, pct))
        filled = int(pct * width)
        empty = width - filled

        if pct >= 0.9:
            color = "green"
        elif pct >= 0.4:
            color = "yellow"
        else:
            color = "cyan"

        return f"[{color}]{'█' * filled}{'░' * empty}[/{color}]"


def print_simple_stats(state: SimulationState) -> None:
    """Print a one-line status without the TUI."""
    s = state
    pct = s.progress * 100

    print(
        f"\r[{s.finished}/{s.submitted}] "
        f"W:{s.waiting} A:{s.active} ✓:{s.completed} ✗:{s.failed} ⊘:{s.cancelled} "
        f"({pct:.0f}%) {s.throughput:.1f}/s {format_bytes(s.bandwidth)}/s",
        end="",
        flush=True,
    )
