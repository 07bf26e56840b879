"""
Autonomous Job Search Runner
Runs the search → draft → send → inbox → schedule → propose cycle for configured users.
"""

import argparse
import logging
import signal
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

# Add parent directory to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import Config
from core.cycle_report import CycleReport, PhaseStatus
from workflow.cycle_runner import CycleRunner

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

console = Console()

STATUS_STYLES = {
    PhaseStatus.COMPLETED: "green",
    PhaseStatus.PARTIAL: "yellow",
    PhaseStatus.FAILED: "red",
    PhaseStatus.SKIPPED: "dim",
    PhaseStatus.CANCELLED: "magenta",
}


class AutonomousRunner:
    """Repeats cycles on a fixed interval until interrupted."""

    def __init__(self, config_path: Optional[str] = None, users: Optional[List[str]] = None):
        """Initialize the autonomous runner.

        Args:
            config_path: Path to configuration file (defaults to ../config.yaml)
            users: User ids to run; the configured list when omitted
        """
        if config_path is None:
            config_path = str(project_root / "config.yaml")
        self.config = Config(config_path)
        self.console = Console()

        orchestrator_config = self.config.get_orchestrator_config()
        self.users = users or orchestrator_config["users"]
        self.interval_hours = orchestrator_config["cycle_interval_hours"]

        self.runner = CycleRunner(self.config)
        self.stats = {"cycle_count": 0, "failures": 0, "start_time": datetime.now()}

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        self.console.print("\n[yellow]⚠[/yellow] Shutdown requested, finishing current phase...")
        self.runner.cancel()

    def run_once(self) -> Dict[str, bool]:
        """Run one cycle for every user and print the reports."""
        if not self.users:
            self.console.print("[yellow]⚠[/yellow] No users configured (orchestrator.users)")
            return {}

        results = {}
        for user_id in self.users:
            if self.runner.cancel_event.is_set():
                break
            report = self.runner.run_cycle_with_report(user_id)
            self._print_report(report)
            results[user_id] = report.made_progress
            self.stats["failures"] += len(report.failures)

        self.stats["cycle_count"] += 1
        return results

    def run(self):
        """Loop until cancelled."""
        self.console.print(f"\n[green]🚀[/green] Starting autonomous operation for {', '.join(self.users)}")
        self.console.print(f"[dim]Cycle every {self.interval_hours}h. Press Ctrl+C to stop[/dim]\n")

        while not self.runner.cancel_event.is_set():
            self.run_once()
            next_run = datetime.now() + timedelta(hours=self.interval_hours)
            self.console.print(f"[dim]Next cycle at {next_run.strftime('%I:%M %p')}[/dim]")

            # Sleep in shorter intervals to check for stop signal
            while datetime.now() < next_run and not self.runner.cancel_event.is_set():
                time.sleep(1)

        self._print_summary()

    def _print_report(self, report: CycleReport):
        table = Table(title=f"Cycle {report.cycle_id} · {report.user_id}", box=box.ROUNDED)
        table.add_column("Phase", style="cyan")
        table.add_column("Status")
        table.add_column("In", justify="right")
        table.add_column("Out", justify="right")
        table.add_column("Failures", justify="right")
        table.add_column("Note", style="dim")

        for phase in report.phases:
            style = STATUS_STYLES.get(phase.status, "white")
            table.add_row(
                phase.phase.value,
                f"[{style}]{phase.status.value}[/{style}]",
                str(phase.items_in),
                str(phase.items_out),
                str(len(phase.failures)),
                phase.note,
            )
        self.console.print(table)

        for failure in report.failures:
            target = f" ({failure.item_id})" if failure.item_id else ""
            self.console.print(
                f"  [red]✗[/red] {failure.phase.value}{target}: {failure.error_kind}: {failure.message}"
            )
        if report.error:
            self.console.print(f"[red]Cycle error:[/red] {report.error}")

    def _print_summary(self):
        runtime = datetime.now() - self.stats["start_time"]
        summary = (
            f"Cycles: {self.stats['cycle_count']}\n"
            f"Failures recorded: {self.stats['failures']}\n"
            f"Runtime: {runtime.seconds // 3600}h {(runtime.seconds // 60) % 60}m"
        )
        self.console.print(
            Panel(summary, title="[bold]Session Complete[/bold]", border_style="green")
        )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Autonomous Job Search Agent")
    parser.add_argument("--config", default=None, help="Path to config file")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--users", nargs="+", help="User ids to run (overrides config)")
    parser.add_argument("--interval", type=float, help="Hours between cycles")

    args = parser.parse_args()

    try:
        runner = AutonomousRunner(args.config, args.users)
        if args.interval:
            runner.interval_hours = args.interval

        if args.once:
            results = runner.run_once()
            sys.exit(0 if all(results.values()) else 1)

        runner.run()

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
