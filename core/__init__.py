"""
Core components: configuration, errors, cadence policy and cycle reporting.

Submodules that depend on ``models`` (decision_engine, cycle_report) are
imported directly by their users, since ``models`` itself imports
``core.errors``.
"""

from .config import Config

__all__ = ["Config"]
