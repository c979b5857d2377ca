"""
Weekly analytics tools.

fetch -> validate (gate) -> generate -> normalize (optional) -> save (commit).
Tools read earlier results from the result store rather than having the
model echo large documents back through tool input.
"""

import json
import logging
from datetime import timedelta

from ...collaborators import CompletionClient, ObjectStore, RecordStore
from ...core import Tool, ToolContext
from ...exceptions import CollaboratorError
from . import prompts
from .context import WeeklyAnalyticsContext
from .helpers import analytics_metrics, assess_weekly_data, normalize_analytics

logger = logging.getLogger(__name__)

FETCH_KEY = "weekly_data"
VALIDATION_KEY = "validation"
ANALYTICS_KEY = "analytics"
NORMALIZATION_KEY = "normalization"
SAVE_KEY = "save"

HISTORY_DAYS = 28
COACHING_DAYS = 14

EMPTY_SCHEMA = {"type": "object", "properties": {}}


def _require(context: ToolContext, key: str, producer: str) -> dict:
    value = context.get_result(key)
    if value is None:
        raise LookupError(
            f"{key.replace('_', ' ').capitalize()} not found in stored results. "
            f"Call {producer} successfully first."
        )
    return value


class WeeklyAnalyticsTools:
    """Tool handlers bound to their collaborators."""

    def __init__(self, records: RecordStore, objects: ObjectStore, completion: CompletionClient):
        self.records = records
        self.objects = objects
        self.completion = completion

    def fetch_weekly_data(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: WeeklyAnalyticsContext = context.data
        history_end = ctx.week_start - timedelta(days=1)
        history_start = history_end - timedelta(days=HISTORY_DAYS)
        coaching_start = ctx.week_start - timedelta(days=COACHING_DAYS)

        workouts = self.records.query_workout_summaries(ctx.user_id, ctx.week_start, ctx.week_end)
        coach_ids = sorted({cid for w in workouts for cid in (w.get("coach_ids") or [])})
        historical = self.records.query_workout_summaries(ctx.user_id, history_start, history_end)
        coaching = self.records.query_conversation_summaries(
            ctx.user_id, coach_ids, coaching_start, ctx.week_end
        )
        memories = self.records.query_memories(ctx.user_id)

        logger.info(
            f"[{context.run_id}] Weekly data fetched: workouts={len(workouts)} "
            f"historical={len(historical)} coaching={len(coaching)} memories={len(memories)}"
        )
        return {
            "user_id": ctx.user_id,
            "week_range": {
                "week_start": ctx.week_start.isoformat(),
                "week_end": ctx.week_end.isoformat(),
            },
            "workouts": {"summaries": workouts, "count": len(workouts)},
            "historical": {"summaries": historical, "count": len(historical)},
            "coaching": {"summaries": coaching, "count": len(coaching)},
            "memories": {"items": memories, "count": len(memories)},
            "coach_ids": coach_ids,
        }

    def validate_weekly_data(self, tool_input: dict, context: ToolContext) -> dict:
        data = _require(context, FETCH_KEY, "fetch_weekly_data")
        return assess_weekly_data(
            workout_count=data["workouts"]["count"],
            historical_count=data["historical"]["count"],
            coaching_count=data["coaching"]["count"],
            memory_count=data["memories"]["count"],
        )

    def generate_weekly_analytics(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: WeeklyAnalyticsContext = context.data
        data = _require(context, FETCH_KEY, "fetch_weekly_data")
        prompt = prompts.build_analytics_prompt(ctx, data)
        generated = self.completion.generate_json(prompt)

        analytics = {
            "structured_analytics": generated.get("structured_analytics"),
            "human_summary": generated.get("human_summary") or "",
        }
        metrics = analytics_metrics(analytics)
        logger.info(
            f"[{context.run_id}] Analytics generated: dual_output={metrics['has_dual_output']} "
            f"confidence={metrics['analysis_confidence']}"
        )
        return {**analytics, **metrics}

    def normalize_analytics_data(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: WeeklyAnalyticsContext = context.data
        analytics = _require(context, ANALYTICS_KEY, "generate_weekly_analytics")
        result = normalize_analytics(analytics, ctx.week_id, ctx.week_start, ctx.week_end)
        result.pop("issues")
        return result

    def save_analytics_to_database(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: WeeklyAnalyticsContext = context.data
        data = _require(context, FETCH_KEY, "fetch_weekly_data")
        analytics = final_analytics(context)
        if analytics is None:
            raise LookupError(
                "Analytics not found in stored results. Call generate_weekly_analytics first."
            )
        normalization_applied = context.get_result(NORMALIZATION_KEY) is not None
        metadata = build_save_metadata(ctx, data, analytics, normalization_applied)

        s3_location = self.objects.put_json(
            "weekly-analytics",
            analytics,
            {"user_id": ctx.user_id, "week_id": ctx.week_id, **metadata},
        )

        record = {
            "user_id": ctx.user_id,
            "week_id": ctx.week_id,
            "week_start": ctx.week_start.isoformat(),
            "week_end": ctx.week_end.isoformat(),
            "analytics_data": analytics,
            "s3_location": s3_location,
            "metadata": metadata,
        }
        record_saved = True
        try:
            self.records.save_weekly_analytics(record)
        except CollaboratorError as e:
            # The object store copy stands; the record is best effort.
            logger.warning(f"[{context.run_id}] Failed to save analytics record: {e}")
            record_saved = False

        return {
            "success": True,
            "week_id": ctx.week_id,
            "s3_location": s3_location,
            "record_saved": record_saved,
        }

    def tools(self) -> list[Tool]:
        return [
            Tool(
                name="fetch_weekly_data",
                description=(
                    "Fetch this week's workout summaries, 4 weeks of workout history, "
                    "2 weeks of coaching conversation summaries and the user's memories. "
                    "ALWAYS CALL THIS FIRST."
                ),
                input_schema=EMPTY_SCHEMA,
                handler=self.fetch_weekly_data,
                key_fn=lambda _: FETCH_KEY,
            ),
            Tool(
                name="validate_weekly_data",
                description=(
                    "Validate the fetched data. Returns should_generate, should_normalize, "
                    "confidence and blocking_flags. CALL THIS SECOND. If should_generate is "
                    "false, stop and explain why."
                ),
                input_schema=EMPTY_SCHEMA,
                handler=self.validate_weekly_data,
                key_fn=lambda _: VALIDATION_KEY,
            ),
            Tool(
                name="generate_weekly_analytics",
                description=(
                    "Generate structured analytics and a human-readable summary for the "
                    "week. Only after validation passes."
                ),
                input_schema=EMPTY_SCHEMA,
                handler=self.generate_weekly_analytics,
                key_fn=lambda _: ANALYTICS_KEY,
            ),
            Tool(
                name="normalize_analytics_data",
                description=(
                    "Fix schema issues and date boundaries in the generated analytics. "
                    "Call only if validation returned should_normalize or the analytics "
                    "look malformed."
                ),
                input_schema=EMPTY_SCHEMA,
                handler=self.normalize_analytics_data,
                key_fn=lambda _: NORMALIZATION_KEY,
            ),
            Tool(
                name="save_analytics_to_database",
                description=(
                    "Persist the final analytics. FINAL STEP; do not call if validation "
                    "reported blocking flags."
                ),
                input_schema=EMPTY_SCHEMA,
                handler=self.save_analytics_to_database,
                key_fn=lambda _: SAVE_KEY,
            ),
        ]


def final_analytics(context: ToolContext) -> dict | None:
    """Normalized analytics when normalization succeeded, else the generated ones."""
    normalization = context.get_result(NORMALIZATION_KEY)
    if normalization and normalization.get("is_valid"):
        return normalization["normalized_data"]
    generated = context.get_result(ANALYTICS_KEY)
    if generated is None:
        return None
    return {
        "structured_analytics": generated.get("structured_analytics"),
        "human_summary": generated.get("human_summary", ""),
    }


def build_save_metadata(
    ctx: WeeklyAnalyticsContext,
    data: dict,
    analytics: dict,
    normalization_applied: bool,
) -> dict:
    metrics = analytics_metrics(analytics)
    profile = ctx.user_profile or {}
    return {
        "workout_count": data["workouts"]["count"],
        "conversation_count": data["coaching"]["count"],
        "memory_count": data["memories"]["count"],
        "historical_summary_count": data["historical"]["count"],
        "analytics_length": len(json.dumps(analytics, default=str)),
        "has_athlete_profile": bool((profile.get("athlete_profile") or {}).get("summary")),
        "normalization_applied": normalization_applied,
        **metrics,
    }
