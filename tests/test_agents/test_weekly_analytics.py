"""Tests for the weekly analytics agent, tools and helpers."""

from datetime import date

import pytest

from coachflow.agents.weekly_analytics import (
    WeeklyAnalyticsAgent,
    WeeklyAnalyticsContext,
    assess_weekly_data,
    week_id_for,
)
from coachflow.agents.weekly_analytics.blocking import enforce_validation_blocking
from coachflow.agents.weekly_analytics.helpers import analytics_metrics, normalize_analytics
from coachflow.agents.weekly_analytics.tools import (
    ANALYTICS_KEY,
    FETCH_KEY,
    VALIDATION_KEY,
    WeeklyAnalyticsTools,
    final_analytics,
)
from coachflow.core import ResultStore, Skipped, Success, ToolContext
from coachflow.core.types import ResultStatus

from conftest import FakeCompletion, FakeObjectStore, FakeRecordStore, final_turn, scripted_gateway, tool_turn

WEEK_START = date(2026, 10, 5)


def _workout(day: str, name: str = "Lower body") -> dict:
    return {
        "date": day,
        "workout_id": f"w_{day}",
        "workout_name": name,
        "discipline": "strength",
        "summary": f"{name} session",
        "coach_ids": ["coach_1"],
    }


def _records(workout_days=("2026-10-05", "2026-10-07", "2026-10-09"), **kwargs) -> FakeRecordStore:
    history = [_workout(f"2026-09-{d:02d}") for d in (8, 12, 16, 20, 24)]
    return FakeRecordStore(
        workouts=[_workout(d) for d in workout_days] + history,
        conversations=[{"created_at": "2026-10-01", "narrative": "Talked about deload."}] * 2,
        memories=[{"memory_type": "goal", "content": "Squat 180kg"}] * 3,
        **kwargs,
    )


def _analytics_document(week_id: str = "2026-W41") -> dict:
    return {
        "structured_analytics": {
            "metadata": {
                "week_id": week_id,
                "date_range_start": "2026-10-05",
                "date_range_end": "2026-10-11",
                "analysis_confidence": "high",
                "data_completeness": 0.9,
            },
            "volume_breakdown": {},
            "weekly_progression": {},
            "performance_markers": {},
            "training_intelligence": {},
            "coaching_synthesis": {},
            "actionable_insights": [],
        },
        "human_summary": "Strong week with three lower body sessions.",
    }


@pytest.fixture
def context() -> WeeklyAnalyticsContext:
    return WeeklyAnalyticsContext.from_dict({"user_id": "user_1", "week_start": "2026-10-05"})


class TestContext:
    """Tests for WeeklyAnalyticsContext."""

    def test_from_dict_defaults(self, context):
        """week_end defaults to six days after week_start; week_id is derived."""
        assert context.week_end == date(2026, 10, 11)
        assert context.week_id == "2026-W41"
        assert context.timezone == "UTC"

    def test_end_before_start(self):
        with pytest.raises(ValueError):
            WeeklyAnalyticsContext(user_id="u", week_start=date(2026, 10, 5), week_end=date(2026, 10, 1))


class TestHelpers:
    """Tests for pure weekly analytics helpers."""

    def test_week_id_for(self):
        assert week_id_for(date(2026, 10, 5)) == "2026-W41"
        assert week_id_for(date(2027, 1, 1)) == "2026-W53"

    def test_assess_complete_week(self):
        """Plenty of data: generate without normalization."""
        result = assess_weekly_data(workout_count=4, historical_count=8, coaching_count=2, memory_count=3)
        assert result["should_generate"] is True
        assert result["completeness"] == 1.0
        assert result["should_normalize"] is False
        assert result["blocking_flags"] == []

    def test_assess_insufficient_workouts(self):
        """Fewer than two workouts blocks generation."""
        result = assess_weekly_data(workout_count=1, historical_count=0, coaching_count=0, memory_count=0)
        assert result["should_generate"] is False
        assert result["blocking_flags"] == ["insufficient_workouts"]
        assert result["reason"] == "Insufficient workouts: 1 found, minimum 2 required"
        assert "minimal_workouts" in result["validation_flags"]
        assert result["should_normalize"] is True

    def test_assess_partial_week(self):
        """Three workouts, some history: partial completeness."""
        result = assess_weekly_data(workout_count=3, historical_count=5, coaching_count=1, memory_count=0)
        assert result["completeness"] == pytest.approx(0.35 + 0.14 + 0.075)
        assert "no_memories" in result["validation_flags"]

    def test_analytics_metrics_defaults(self):
        metrics = analytics_metrics({"structured_analytics": None, "human_summary": ""})
        assert metrics == {
            "analysis_confidence": "medium",
            "data_completeness": 0.8,
            "has_dual_output": False,
            "human_summary_length": 0,
        }

    def test_normalize_fixes_boundaries(self):
        """Wrong week id and out-of-week dates are corrected."""
        document = _analytics_document(week_id="2026-W40")
        document["structured_analytics"]["metadata"]["date_range_end"] = "2026-10-20"

        result = normalize_analytics(document, "2026-W41", date(2026, 10, 5), date(2026, 10, 11))

        metadata = result["normalized_data"]["structured_analytics"]["metadata"]
        assert metadata["week_id"] == "2026-W41"
        assert metadata["date_range_end"] == "2026-10-11"
        assert result["is_valid"] is True
        assert result["issues_found"] == 2

    def test_normalize_missing_summary_is_invalid(self):
        """An uncorrectable issue leaves the result invalid."""
        document = _analytics_document()
        document["human_summary"] = ""
        result = normalize_analytics(document, "2026-W41", date(2026, 10, 5), date(2026, 10, 11))
        assert result["is_valid"] is False


class TestTools:
    """Tests for individual tool handlers."""

    def test_fetch_collects_windows(self, context):
        """fetch returns current week, history and coaching context."""
        store = ResultStore()
        tools = WeeklyAnalyticsTools(_records(), FakeObjectStore(), FakeCompletion())
        data = tools.fetch_weekly_data({}, ToolContext("r", context, store))

        assert data["workouts"]["count"] == 3
        assert data["historical"]["count"] == 5
        assert data["coaching"]["count"] == 2
        assert data["memories"]["count"] == 3
        assert data["coach_ids"] == ["coach_1"]

    def test_validate_requires_fetch(self, context):
        """validate raises a lookup error naming the missing step."""
        tools = WeeklyAnalyticsTools(_records(), FakeObjectStore(), FakeCompletion())
        with pytest.raises(LookupError, match="not found in stored results"):
            tools.validate_weekly_data({}, ToolContext("r", context, ResultStore()))

    def test_validate_after_failed_fetch(self, context):
        """A stored fetch error reads as missing data, not as a result."""
        store = ResultStore()
        store.put(FETCH_KEY, "fetch_weekly_data", "c1", ResultStatus.ERROR, {"error": "boom"})
        tools = WeeklyAnalyticsTools(_records(), FakeObjectStore(), FakeCompletion())
        with pytest.raises(LookupError, match="not found in stored results"):
            tools.validate_weekly_data({}, ToolContext("r", context, store))

    def test_final_analytics_ignores_failed_generation(self, context):
        store = ResultStore()
        store.put(ANALYTICS_KEY, "generate_weekly_analytics", "c1", ResultStatus.ERROR, {"error": "boom"})
        assert final_analytics(ToolContext("r", context, store)) is None


class TestBlocking:
    """Tests for the validation gate."""

    def test_blocks_generate_and_save(self):
        store = ResultStore()
        store.put(
            VALIDATION_KEY,
            "validate_weekly_data",
            "c1",
            ResultStatus.SUCCESS,
            {"should_generate": False, "reason": "Insufficient workouts", "blocking_flags": ["insufficient_workouts"]},
        )
        for tool_name in ("generate_weekly_analytics", "save_analytics_to_database"):
            decision = enforce_validation_blocking(tool_name, {}, store)
            assert decision is not None
            assert decision.blocking_flags == ("insufficient_workouts",)
        assert enforce_validation_blocking("fetch_weekly_data", {}, store) is None

    def test_no_block_without_validation(self):
        assert enforce_validation_blocking("save_analytics_to_database", {}, ResultStore()) is None


def _full_workflow():
    return [
        tool_turn(("fetch_weekly_data", {})),
        tool_turn(("validate_weekly_data", {})),
        tool_turn(("generate_weekly_analytics", {})),
        tool_turn(("save_analytics_to_database", {})),
        final_turn("Saved analytics for 2026-W41."),
    ]


class TestWeeklyAnalyticsAgent:
    """End-to-end runs over the scripted backend."""

    def test_full_workflow_succeeds(self, context):
        """The happy path saves analytics and returns Success."""
        records = _records()
        objects = FakeObjectStore()
        agent = WeeklyAnalyticsAgent(
            context,
            scripted_gateway(_full_workflow()),
            records=records,
            objects=objects,
            completion=FakeCompletion(lambda prompt: _analytics_document()),
        )

        outcome = agent.run()

        assert isinstance(outcome, Success)
        assert outcome.payload["week_id"] == "2026-W41"
        assert outcome.payload["s3_location"] == "weekly-analytics/1.json"
        assert outcome.payload["analytics_data"]["human_summary"].startswith("Strong week")
        assert outcome.metadata["workout_count"] == 3
        assert outcome.metadata["normalization_applied"] is False
        assert outcome.metadata["record_saved"] is True
        assert records.saved_analytics[0]["week_id"] == "2026-W41"

    def test_record_save_failure_still_succeeds(self, context):
        """The object store copy stands when the record save fails."""
        agent = WeeklyAnalyticsAgent(
            context,
            scripted_gateway(_full_workflow()),
            records=_records(fail_saves=True),
            objects=FakeObjectStore(),
            completion=FakeCompletion(lambda prompt: _analytics_document()),
        )
        outcome = agent.run()

        assert isinstance(outcome, Success)
        assert outcome.metadata["record_saved"] is False

    def test_insufficient_workouts_is_skipped(self, context):
        """The gate blocks generation; the model cannot get around it."""
        completion = FakeCompletion(lambda prompt: _analytics_document())
        agent = WeeklyAnalyticsAgent(
            context,
            scripted_gateway(
                [
                    tool_turn(("fetch_weekly_data", {})),
                    tool_turn(("validate_weekly_data", {})),
                    tool_turn(("generate_weekly_analytics", {}), ("save_analytics_to_database", {})),
                    final_turn("Not enough workouts this week."),
                ]
            ),
            records=_records(workout_days=("2026-10-06",)),
            objects=FakeObjectStore(),
            completion=completion,
        )

        outcome = agent.run()

        assert isinstance(outcome, Skipped)
        assert outcome.reason == "Insufficient workouts: 1 found, minimum 2 required"
        assert outcome.blocking_flags == ("insufficient_workouts",)
        assert completion.prompts == []
        assert len(agent.attempts) == 1
