#!/usr/bin/env python3
"""
downcue-sim: Interactive simulator for testing downcue.

Usage:
    downcue-sim --count 50 --size 512 --concurrent 3
    downcue-sim --scenario flaky --count 30 --error-rate 0.3
    downcue-sim --url https://example.com/a.zip --url https://example.com/b.zip -o downloads
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.table import Table

from downcue_sim.display import SimulationState, SimulatorDisplay, format_bytes, print_simple_stats
from downcue_sim.runner import SimConfig, SimulationRunner


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the simulator."""
    downcue_logger = logging.getLogger("downcue")
    if verbose:
        downcue_logger.setLevel(logging.DEBUG)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(threadName)s: %(message)s"))
        downcue_logger.addHandler(handler)
    else:
        # Silence library logs - simulator handles its own display
        downcue_logger.setLevel(logging.CRITICAL)


def run_with_display(config: SimConfig, use_tui: bool = True, verbose: bool = False) -> SimulationState:
    """Run simulation with visual display.

    Args:
        config: Simulation configuration
        use_tui: Use Rich TUI display (default True)
        verbose: Print event log instead of status updates (implies no-tui)
    """
    state = SimulationState()

    # Verbose mode: print each event as it happens
    if verbose:
        original_add_event = state.add_event

        def logging_add_event(event_type: str, job_id: str, label: str | None = None, details: str = "") -> None:
            ts = datetime.now().strftime("%H:%M:%S.%f")[:-3]
            symbols = {
                "completed": "✓",
                "failed": "✗",
                "started": "▶",
                "queued": "+",
                "cancelled": "⊘",
                "rejected": "!",
            }
            symbol = symbols.get(event_type, "·")
            print(f"{ts} {symbol} {event_type:<10} {label or '':<24} {job_id:<14} {details}")

            # Also add to state for final stats
            original_add_event(event_type, job_id, label, details)

        state.add_event = logging_add_event  # type: ignore

        runner = SimulationRunner(config, state)
        print("\n🚀 downcue-sim [verbose]")
        print(f"   Scenario: {config.scenario}, Count: {config.count}, Slots: {config.max_concurrent}")
        print(f"   Size: {config.size_kb}KiB, Latency: {config.latency_ms}ms/chunk, Error: {config.error_rate * 100:.0f}%")
        print()
        print(f"{'TIME':<12} {'':1} {'EVENT':<10} {'FILE':<24} {'JOB_ID':<14} DETAILS")
        print("-" * 80)
        _run(runner)
        print("-" * 80)

    elif use_tui:
        display = SimulatorDisplay(state)
        runner = SimulationRunner(config, state, on_tick=display.refresh)
        with display:
            _run(runner)

    else:
        print("\n🚀 downcue-sim")
        print(f"   Count: {config.count}, Size: {config.size_kb}KiB, Slots: {config.max_concurrent}")
        print()

        last_print = [0.0]

        def print_throttled() -> None:
            now = time.time()
            if now - last_print[0] >= 0.5:
                print_simple_stats(state)
                last_print[0] = now

        runner = SimulationRunner(config, state, on_tick=print_throttled)
        _run(runner)
        print_simple_stats(state)
        print()  # Newline after progress

    print_final_summary(state)
    if config.keep_files and runner.output_dir:
        print(f"Files kept in {runner.output_dir}")
    return state


def _run(runner: SimulationRunner) -> None:
    try:
        runner.run()
    except KeyboardInterrupt:
        runner.stop()
        print("\nInterrupted.")
    finally:
        runner.cleanup()


def print_final_summary(state: SimulationState) -> None:
    """Print final summary after simulation."""
    console = Console()
    console.print()

    table = Table(title="Simulation Results", show_header=False, border_style="green")
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Submitted", str(state.submitted))
    table.add_row("Rejected", f"[red]{state.rejected}[/red]" if state.rejected else "0")
    table.add_row("Completed", f"[green]{state.completed}[/green]")
    table.add_row("Failed", f"[red]{state.failed}[/red]" if state.failed else "0")
    table.add_row("Cancelled", f"[magenta]{state.cancelled}[/magenta]" if state.cancelled else "0")
    table.add_row("Transferred", format_bytes(state.bytes_transferred))
    table.add_row("Duration", f"{state.elapsed:.2f}s")
    table.add_row("Throughput", f"{state.throughput:.2f}/s")
    table.add_row("Bandwidth", f"{format_bytes(state.bandwidth)}/s")

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="downcue-sim",
        description="downcue simulator - test download workloads interactively",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  downcue-sim --count 50 --size 512
  downcue-sim --count 200 --size 64 --latency 1 --concurrent 8
  downcue-sim --scenario priority --count 30 --concurrent 2
  downcue-sim --scenario flaky --count 30 --error-rate 0.3 --cancel-rate 0.2
  downcue-sim --url https://example.com/file.iso -o downloads
  downcue-sim --list-scenarios
        """,
    )

    # Scenario options
    parser.add_argument(
        "--scenario",
        type=str,
        default="single_queue",
        help="Scenario to run (default: single_queue)",
    )
    parser.add_argument(
        "--list-scenarios",
        action="store_true",
        help="List available scenarios and exit",
    )
    parser.add_argument(
        "--url",
        action="append",
        default=[],
        dest="urls",
        help="URL to download; repeatable, implies --scenario urls",
    )

    parser.add_argument(
        "--count", "-n",
        type=int,
        default=20,
        help="Number of downloads to submit (default: 20)",
    )
    parser.add_argument(
        "--size", "-S",
        type=int,
        default=256,
        help="Size of each simulated download in KiB (default: 256)",
    )
    parser.add_argument(
        "--latency", "-l",
        type=int,
        default=5,
        help="Delay per chunk read in ms (default: 5)",
    )
    parser.add_argument(
        "--jitter", "-j",
        type=float,
        default=0.2,
        help="Latency variance as fraction, e.g. 0.2 = ±20%% (default: 0.2)",
    )
    parser.add_argument(
        "--error-rate", "-e",
        type=float,
        default=0.0,
        help="Fraction of downloads that fail, 0.0-1.0 (default: 0.0)",
    )
    parser.add_argument(
        "--cancel-rate",
        type=float,
        default=0.0,
        help="Fraction of downloads cancelled while running, 0.0-1.0 (flaky scenario)",
    )
    parser.add_argument(
        "--duration", "-d",
        type=float,
        default=None,
        help="Maximum duration in seconds (default: run until complete)",
    )
    parser.add_argument(
        "--concurrent", "-c",
        type=int,
        default=3,
        help="Max concurrent downloads (default: 3)",
    )
    parser.add_argument(
        "--buffer-size",
        type=int,
        default=4096,
        help="Bytes per chunk (default: 4096)",
    )
    parser.add_argument(
        "--notification-size",
        type=int,
        default=16384,
        help="Bytes between progress events (default: 16384)",
    )
    parser.add_argument(
        "--submit-rate", "-s",
        type=float,
        default=None,
        help="Submit rate (downloads/second), None = batch (default: batch)",
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Directory for downloaded files (default: temporary, removed afterwards)",
    )
    parser.add_argument(
        "--keep",
        action="store_true",
        help="Keep the temporary output directory",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="HTTP timeout in seconds for --url downloads (default: 30)",
    )
    parser.add_argument(
        "--tui",
        action="store_true",
        help="Use full TUI display",
    )
    parser.add_argument(
        "--no-tui",
        action="store_true",
        help="Disable TUI, use simple text output",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print event log instead of status updates (no-tui)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible behavior (default: random)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle --list-scenarios
    if args.list_scenarios:
        from downcue_sim.scenarios import list_scenarios
        print("\nAvailable scenarios:\n")
        for info in list_scenarios():
            print(f"  {info.name:<15} {info.description}")
        print()
        sys.exit(0)

    # Configure logging early
    configure_logging(verbose=args.verbose)

    # Set random seed for reproducibility
    if args.seed is not None:
        import random
        random.seed(args.seed)
        if args.verbose:
            print(f"Random seed: {args.seed}")

    scenario = "urls" if args.urls else args.scenario

    try:
        config = SimConfig(
            count=args.count,
            size_kb=args.size,
            latency_ms=args.latency,
            latency_jitter=args.jitter,
            error_rate=args.error_rate,
            cancel_rate=args.cancel_rate,
            duration=args.duration,
            max_concurrent=args.concurrent,
            buffer_size=args.buffer_size,
            notification_size=args.notification_size,
            submit_rate=args.submit_rate,
            output_dir=args.output,
            keep_files=args.keep,
            scenario=scenario,
            urls=args.urls,
            http_timeout=args.timeout,
        )
        run_with_display(config, use_tui=args.tui or not args.no_tui, verbose=args.verbose)
    except ValueError as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
