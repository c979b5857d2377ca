"""
Persistent record store interface and its HTTP client.

Only tools talk to the record store. Dates cross the wire as ISO strings.
"""

from datetime import date
from typing import Optional, Protocol

from .http import JsonHttpClient


class RecordStore(Protocol):
    def query_workout_summaries(self, user_id: str, start: date, end: date) -> list[dict]: ...

    def query_conversation_summaries(
        self, user_id: str, coach_ids: list[str], start: date, end: date
    ) -> list[dict]: ...

    def query_memories(self, user_id: str, limit: int = 20) -> list[dict]: ...

    def get_coach_config(self, user_id: str, coach_id: str) -> Optional[dict]: ...

    def get_user_profile(self, user_id: str) -> Optional[dict]: ...

    def save_weekly_analytics(self, record: dict) -> None: ...

    def save_program(self, program: dict) -> None: ...


class HttpRecordStore(JsonHttpClient):
    """RecordStore backed by a JSON REST service."""

    service_name = "record_store"

    def query_workout_summaries(self, user_id: str, start: date, end: date) -> list[dict]:
        data = self._request(
            "GET",
            f"users/{user_id}/workout-summaries",
            params={"from": start.isoformat(), "to": end.isoformat()},
        )
        return (data or {}).get("items", [])

    def query_conversation_summaries(
        self, user_id: str, coach_ids: list[str], start: date, end: date
    ) -> list[dict]:
        if not coach_ids:
            return []
        data = self._request(
            "GET",
            f"users/{user_id}/conversation-summaries",
            params={
                "coach_ids": ",".join(coach_ids),
                "from": start.isoformat(),
                "to": end.isoformat(),
            },
        )
        return (data or {}).get("items", [])

    def query_memories(self, user_id: str, limit: int = 20) -> list[dict]:
        data = self._request("GET", f"users/{user_id}/memories", params={"limit": limit})
        return (data or {}).get("items", [])

    def get_coach_config(self, user_id: str, coach_id: str) -> Optional[dict]:
        return self._request("GET", f"users/{user_id}/coaches/{coach_id}", allow_404=True)

    def get_user_profile(self, user_id: str) -> Optional[dict]:
        return self._request("GET", f"users/{user_id}/profile", allow_404=True)

    def save_weekly_analytics(self, record: dict) -> None:
        self._request(
            "PUT",
            f"users/{record['user_id']}/weekly-analytics/{record['week_id']}",
            payload=record,
        )

    def save_program(self, program: dict) -> None:
        self._request(
            "PUT",
            f"users/{program['user_id']}/programs/{program['program_id']}",
            payload=program,
        )
