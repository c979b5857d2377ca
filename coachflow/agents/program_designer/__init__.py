"""
Program designer agent.
"""

from .context import ProgramDesignerContext
from .agent import ProgramDesignerAgent, ProgramDesignerAssembler
from .helpers import parse_program_duration, check_training_frequency

__all__ = [
    "ProgramDesignerContext",
    "ProgramDesignerAgent",
    "ProgramDesignerAssembler",
    "parse_program_duration",
    "check_training_frequency",
]
