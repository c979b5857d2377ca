"""
Run context for program design.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProgramDesignerContext:
    user_id: str
    coach_id: str
    program_id: str
    session_id: str
    todo_list: dict = field(default_factory=dict)
    conversation_context: str = ""

    def __post_init__(self):
        for name in ("user_id", "coach_id", "program_id"):
            if not getattr(self, name):
                raise ValueError(f"{name} is required")

    def todo(self, name: str) -> Any:
        """Value of one todo-list item; items may be {"value": x} or bare."""
        item = self.todo_list.get(name)
        if isinstance(item, dict):
            return item.get("value")
        return item

    @classmethod
    def from_dict(cls, data: dict) -> "ProgramDesignerContext":
        return cls(
            user_id=data["user_id"],
            coach_id=data["coach_id"],
            program_id=data["program_id"],
            session_id=data.get("session_id", ""),
            todo_list=data.get("todo_list") or {},
            conversation_context=data.get("conversation_context", ""),
        )
