"""
Review pending instruction proposals.

Lists pending changes in a table and approves or rejects them, either from
flags or interactively.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich import box

# Add parent directory to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import Config
from governance.instruction_governance import InstructionGovernance
from models import ProposedInstructionChange
from workflow.cycle_runner import create_store
from utils.audit_logger import AuditLogger

logging.basicConfig(level=logging.WARNING, format="%(levelname)s - %(message)s")

console = Console()


def show_pending(changes):
    table = Table(title="Pending instruction changes", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("User")
    table.add_column("Agent")
    table.add_column("By")
    table.add_column("Proposed")
    table.add_column("Reason", style="dim")

    for change in changes:
        table.add_row(
            change.id,
            change.user_id,
            change.agent_type.value,
            change.proposed_by,
            change.created_at.strftime("%Y-%m-%d %H:%M"),
            change.reason,
        )
    console.print(table)


def show_change(change: ProposedInstructionChange):
    console.print(Panel(change.current_instructions, title="Current", border_style="red"))
    console.print(Panel(change.proposed_instructions, title="Proposed", border_style="green"))
    if change.metrics:
        metrics = ", ".join(f"{k}={v}" for k, v in change.metrics.items())
        console.print(f"[dim]Metrics: {metrics}[/dim]")


def review_interactively(governance: InstructionGovernance, changes):
    for change in changes:
        console.print(f"\n[bold]{change.agent_type.value}[/bold] change [cyan]{change.id}[/cyan]")
        show_change(change)

        action = Prompt.ask("Approve, reject or skip?", choices=["a", "r", "s"], default="s")
        if action == "a":
            feedback = Prompt.ask("Feedback (optional)", default="")
            ok = governance.approve(change.id, feedback or None)
            report(ok, "Approved", change.id)
        elif action == "r":
            feedback = Prompt.ask("Reason for rejection")
            ok = governance.reject(change.id, feedback)
            report(ok, "Rejected", change.id)


def report(ok: bool, verb: str, change_id: str):
    if ok:
        console.print(f"[green]✓[/green] {verb} {change_id}")
    else:
        console.print(f"[red]✗[/red] {change_id} is not pending (or feedback missing)")


def main():
    parser = argparse.ArgumentParser(description="Review pending instruction proposals")
    parser.add_argument("--config", default=str(project_root / "config.yaml"), help="Path to config file")
    parser.add_argument("--user", help="Only show proposals for this user")
    parser.add_argument("--approve", metavar="CHANGE_ID", help="Approve a change")
    parser.add_argument("--reject", metavar="CHANGE_ID", help="Reject a change")
    parser.add_argument("--feedback", default=None, help="Review feedback")
    parser.add_argument("--list", action="store_true", help="List pending changes and exit")

    args = parser.parse_args()

    config = Config(args.config)
    store = create_store(config.get_storage_config())
    governance = InstructionGovernance(store, AuditLogger(config.get_audit_config()))

    if args.approve:
        report(governance.approve(args.approve, args.feedback), "Approved", args.approve)
        return
    if args.reject:
        if not args.feedback:
            console.print("[red]--feedback is required when rejecting[/red]")
            sys.exit(2)
        report(governance.reject(args.reject, args.feedback), "Rejected", args.reject)
        return

    changes = governance.pending_changes(args.user)
    if not changes:
        console.print("[green]No pending proposals[/green]")
        return

    show_pending(changes)
    if not args.list:
        review_interactively(governance, changes)


if __name__ == "__main__":
    main()
