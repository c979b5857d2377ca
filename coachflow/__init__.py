"""
Coachflow - agentic tool orchestration for coaching workflows

This package provides:
- A model gateway over OpenAI-compatible chat completion backends
- A tool coordinator with parallel execution and blocking enforcement
- A conversation loop, result assembler and retry supervisor
- Weekly analytics and program designer agents
- A command-line driver
"""

from .core import Agent, Failed, Skipped, Success, RunOutcome
from .agents.weekly_analytics import WeeklyAnalyticsAgent, WeeklyAnalyticsContext
from .agents.program_designer import ProgramDesignerAgent, ProgramDesignerContext

__all__ = [
    "Agent",
    "Success",
    "Skipped",
    "Failed",
    "RunOutcome",
    "WeeklyAnalyticsAgent",
    "WeeklyAnalyticsContext",
    "ProgramDesignerAgent",
    "ProgramDesignerContext",
]

__version__ = "0.1.0"
