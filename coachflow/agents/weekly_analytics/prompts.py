"""Prompt builders for weekly analytics."""

from .context import WeeklyAnalyticsContext

WORKFLOW_STEPS = [
    "fetch_weekly_data",
    "validate_weekly_data",
    "generate_weekly_analytics",
    "normalize_analytics_data (only if validation recommends it)",
    "save_analytics_to_database",
]

SYSTEM_PROMPT = """You are the weekly analytics agent for a strength and conditioning coaching platform.

You run without a human in the loop. Nobody will answer questions, so never ask any.

WORKFLOW
1. fetch_weekly_data - gather the week's data.
2. validate_weekly_data - decide whether analytics can be generated.
   If should_generate is false, STOP: do not generate or save. Reply with the reason.
3. generate_weekly_analytics - produce structured analytics and a human summary.
4. normalize_analytics_data - only if validation returned should_normalize: true
   or the generated analytics look malformed.
5. save_analytics_to_database - persist the result. This is the final step.

Tools read earlier results automatically; you never need to pass data between them.
When finished, reply with one short sentence describing what was saved."""


def build_system_prompt(ctx: WeeklyAnalyticsContext) -> str:
    return (
        f"{SYSTEM_PROMPT}\n\n"
        "## CURRENT ANALYTICS SESSION\n"
        f"- User ID: {ctx.user_id}\n"
        f"- Week ID: {ctx.week_id}\n"
        f"- Week Range: {ctx.week_start.isoformat()} to {ctx.week_end.isoformat()}\n"
        f"- Timezone: {ctx.timezone}"
    )


def build_initial_instruction(ctx: WeeklyAnalyticsContext) -> str:
    return f"Generate weekly analytics for user {ctx.user_id} for week {ctx.week_id}."


def _athlete_profile(ctx: WeeklyAnalyticsContext, data: dict) -> str:
    parts = []
    summary = ((ctx.user_profile or {}).get("athlete_profile") or {}).get("summary")
    if summary:
        parts.append(f"ATHLETE PROFILE:\n{summary}")
    memories = data["memories"]["items"]
    if memories:
        parts.append(
            "DETAILED CONTEXT:\n"
            + "\n".join(
                f"{str(m.get('memory_type', 'note')).upper()}: {m.get('content', '')}"
                for m in memories
            )
        )
    return "\n\n".join(parts) or "No specific athlete profile available."


def _workout_lines(summaries: list[dict], with_ids: bool) -> str:
    lines = []
    for s in summaries:
        head = f"{s.get('date', '?')} - {s.get('workout_name') or 'Workout'} ({s.get('discipline') or 'unknown'})"
        if with_ids and s.get("workout_id"):
            head += f" [workout_id: {s['workout_id']}]"
        lines.append(f"{head}\n{s.get('summary', '')}")
    return "\n\n".join(lines)


def build_analytics_prompt(ctx: WeeklyAnalyticsContext, data: dict) -> str:
    """Prompt for the single-shot analytics generation call."""
    directive = ((ctx.user_profile or {}).get("critical_training_directive") or {})
    directive_section = ""
    if directive.get("enabled") and directive.get("content"):
        directive_section = f"CRITICAL TRAINING DIRECTIVE - ABSOLUTE PRIORITY:\n\n{directive['content']}\n\n---\n\n"

    coaching = "\n\n".join(
        f"Conversation summary ({c.get('created_at', '?')}):\n{c.get('narrative', '')}"
        for c in data["coaching"]["summaries"]
    )

    return f"""{directive_section}You are an elite strength and conditioning analyst.

ATHLETE CONTEXT:
{_athlete_profile(ctx, data)}

COACHING CONVERSATION SUMMARIES:
{coaching or "No recent coaching conversation summaries available."}

THIS WEEK'S WORKOUTS ({ctx.week_start.isoformat()} to {ctx.week_end.isoformat()}):
{_workout_lines(data["workouts"]["summaries"], with_ids=True)}

PREVIOUS WEEKS (for trending):
{_workout_lines(data["historical"]["summaries"], with_ids=False) or "No historical data available."}

Return ONLY a JSON object with two fields:
- "structured_analytics": an object with sections metadata, volume_breakdown,
  weekly_progression, performance_markers, training_intelligence,
  coaching_synthesis and actionable_insights. metadata must include week_id
  "{ctx.week_id}", date_range_start, date_range_end, analysis_confidence
  (low|medium|high) and data_completeness (0-1).
- "human_summary": a short conversational summary for the athlete."""
