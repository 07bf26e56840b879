"""
Script to load a user profile for autonomous job search.

Reads a YAML file with the user, resume, job criteria and optional
instruction overrides, writes them to the configured store and seeds the
default agent instructions.
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import yaml
from rich.console import Console

# Add parent directory to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import Config
from governance.instruction_store import InstructionStore
from models import AgentType, JobCriteria, Resume, UserProfile
from storage.base import Repository
from workflow.cycle_runner import create_store

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

console = Console()


def load_profile(store: Repository, instruction_store: InstructionStore, data: Dict[str, Any]) -> UserProfile:
    """Write one profile document to the store.

    Existing criteria are deactivated; an existing profile is replaced.
    """
    user = data["user"]
    user_id = user["user_id"]

    resume = None
    if data.get("resume"):
        resume = Resume.from_dict({**data["resume"], "user_id": user_id})

    profile = UserProfile.from_dict(
        {**user, "resume_id": resume.id if resume else user.get("resume_id")}
    )

    with store.transaction() as tx:
        if resume:
            tx.add(resume)
        if tx.get_or_none(UserProfile, user_id):
            tx.update(profile)
        else:
            tx.add(profile)

        if data.get("criteria"):
            for old in tx.find(JobCriteria, user_id=user_id, is_active=True):
                tx.update(dataclasses.replace(old, is_active=False))
            tx.add(JobCriteria.from_dict({**data["criteria"], "user_id": user_id}))

    for agent_type, text in (data.get("instructions") or {}).items():
        instruction_store.create(user_id, AgentType(agent_type), text)
    instruction_store.seed_defaults(user_id)
    return profile


def main():
    parser = argparse.ArgumentParser(description="Load a user profile into the agent store")
    parser.add_argument("profile", help="Path to a profile YAML file")
    parser.add_argument("--config", default=str(project_root / "config.yaml"), help="Path to config file")
    args = parser.parse_args()

    with open(args.profile, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if "user" not in data or "user_id" not in data["user"]:
        console.print("[red]Profile must contain user.user_id[/red]")
        sys.exit(2)

    config = Config(args.config)
    store = create_store(config.get_storage_config())
    profile = load_profile(store, InstructionStore(store), data)

    console.print(f"[green]✓[/green] Profile saved for [bold]{profile.user_id}[/bold] ({profile.email})")
    if profile.auto_send_applications:
        console.print("[yellow]⚠[/yellow] Auto-send is enabled: applications will be emailed without review")


if __name__ == "__main__":
    main()
