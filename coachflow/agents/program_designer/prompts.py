"""Prompt builders for program design."""

import json

from .context import ProgramDesignerContext

WORKFLOW_STEPS = [
    "load_program_requirements",
    "generate_phase_structure",
    "generate_phase_workouts (once per phase, all phases in one turn)",
    "validate_program_structure",
    "prune_excess_workouts (only if validation returned should_prune)",
    "normalize_program_data (only if validation returned should_normalize)",
    "generate_program_summary",
    "save_program_to_database",
]

SYSTEM_PROMPT = """You are the program designer agent for a strength and conditioning coaching platform.

You run without a human in the loop. Nobody will answer questions, so never ask any.
The requirements have already been collected; work with what you are given.

WORKFLOW
1. load_program_requirements - load requirements and context.
2. generate_phase_structure - break the program into phases.
3. generate_phase_workouts - call once per phase_id. Request ALL phases in the
   same turn; they run in parallel.
4. validate_program_structure - check the assembled program.
   If is_valid is false, STOP: do not save. Reply with the issues.
5. prune_excess_workouts - only if validation returned should_prune: true.
6. normalize_program_data - only if validation returned should_normalize: true.
7. generate_program_summary - summarize the final program.
8. save_program_to_database - persist the program. This is the final step.

Tools read earlier results automatically; only generate_phase_workouts needs
an argument (the phase_id).
When finished, reply with one short sentence describing the saved program."""


def build_system_prompt(ctx: ProgramDesignerContext) -> str:
    return (
        f"{SYSTEM_PROMPT}\n\n"
        "## CURRENT PROGRAM SESSION\n"
        f"- User ID: {ctx.user_id}\n"
        f"- Coach ID: {ctx.coach_id}\n"
        f"- Program ID: {ctx.program_id}\n"
        f"- Session ID: {ctx.session_id or 'n/a'}"
    )


def build_initial_instruction(ctx: ProgramDesignerContext) -> str:
    lines = [f"Design training program {ctx.program_id} for user {ctx.user_id}."]
    requirements = [
        f"- {name.replace('_', ' ')}: {ctx.todo(name)}"
        for name in ctx.todo_list
        if ctx.todo(name) not in (None, "")
    ]
    if requirements:
        lines.append("Collected requirements:\n" + "\n".join(requirements))
    if ctx.conversation_context:
        lines.append(f"Conversation context:\n{ctx.conversation_context}")
    return "\n\n".join(lines)


def _coach_section(requirements: dict) -> str:
    coach = requirements.get("coach_config") or {}
    name = coach.get("coach_name") or coach.get("name") or "Coach"
    style = coach.get("coaching_style") or coach.get("personality") or ""
    return f"{name}{f' ({style})' if style else ''}"


def _requirements_section(requirements: dict) -> str:
    return "\n".join(
        [
            f"- Goals: {', '.join(requirements['training_goals']) or 'general fitness'}",
            f"- Duration: {requirements['duration_days']} days",
            f"- Training frequency: {requirements['training_frequency']} sessions per week",
            f"- Equipment: {', '.join(requirements['equipment']) or 'not specified'}",
            f"- Experience level: {requirements.get('experience_level') or 'not specified'}",
            f"- Injuries / limitations: {requirements.get('injury_considerations') or 'none reported'}",
            f"- Session duration: {requirements.get('session_duration') or 'not specified'}",
        ]
    )


def build_phase_structure_prompt(ctx: ProgramDesignerContext, requirements: dict) -> str:
    history = requirements.get("semantic_context") or "No relevant history available."
    return f"""You are {_coach_section(requirements)}, designing a periodized training program.

REQUIREMENTS:
{_requirements_section(requirements)}

RELEVANT HISTORY:
{history}

CONVERSATION CONTEXT:
{ctx.conversation_context or "None."}

Split the {requirements['duration_days']}-day program into 2-5 phases. Phases must be
contiguous: the first starts on day 1, each starts the day after the previous
ends, and the last ends on day {requirements['duration_days']}.

Return ONLY a JSON object:
{{"program_name": str, "description": str,
  "phases": [{{"phase_id": str, "name": str, "description": str,
              "start_day": int, "end_day": int, "focus_areas": [str]}}]}}"""


def build_phase_workouts_prompt(ctx: ProgramDesignerContext, requirements: dict, phase: dict) -> str:
    per_week = requirements["training_frequency"]
    return f"""You are {_coach_section(requirements)}, writing workouts for one program phase.

REQUIREMENTS:
{_requirements_section(requirements)}

PHASE:
- {phase['name']} (days {phase['start_day']}-{phase['end_day']})
- {phase.get('description', '')}
- Focus: {', '.join(phase.get('focus_areas') or []) or 'general'}

Schedule about {per_week} training days per 7 days. Only use day numbers between
{phase['start_day']} and {phase['end_day']}; rest days get no workout.

Return ONLY a JSON object:
{{"workouts": [{{"day_number": int, "name": str, "type": str, "description": str,
                "estimated_duration": int, "prescribed_exercises": [str]}}]}}"""


def build_pruning_prompt(
    ctx: ProgramDesignerContext, templates: list[dict], training_days: list[int], target: int
) -> str:
    by_day: dict[int, list[str]] = {}
    for t in templates:
        by_day.setdefault(t["day_number"], []).append(f"{t.get('name')} ({t.get('type')})")
    schedule = "\n".join(f"Day {day}: {', '.join(by_day[day])}" for day in training_days)
    return f"""This program trains on {len(training_days)} days but should train on {target}.
Choose exactly {len(training_days) - target} whole days to remove, keeping the
program balanced and preserving key sessions.

SCHEDULE:
{schedule}

Return ONLY a JSON object: {{"days_to_remove": [int], "reasoning": str}}"""


def build_summary_prompt(ctx: ProgramDesignerContext, program: dict, templates: list[dict]) -> str:
    phases = "\n".join(
        f"- {p['name']}: days {p['start_day']}-{p['end_day']} ({', '.join(p.get('focus_areas') or [])})"
        for p in program.get("phases") or []
    )
    return f"""Summarize this training program in 3-4 sentences for the athlete.

PROGRAM: {program.get('name')} ({program.get('total_days')} days,
{program.get('training_frequency')} sessions per week, {len(templates)} workouts)
GOALS: {json.dumps(program.get('training_goals') or [])}
PHASES:
{phases}

Reply with the summary text only."""
