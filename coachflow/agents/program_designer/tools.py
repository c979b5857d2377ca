"""
Program design tools.

requirements -> phase structure -> phase workouts (one call per phase, run in
parallel) -> validate (gate) -> prune / normalize (optional) -> summary ->
save (commit).

Phase workouts live in the result store under ``phase_workouts:<phase_id>``
and are the single source of truth for workout templates: pruning and
normalization rewrite those entries, and save reads them back.
"""

import logging
from typing import Optional

from ...collaborators import CompletionClient, ObjectStore, RecordStore, SemanticSearch
from ...core import Tool, ToolContext, ToolOutput
from ...exceptions import CollaboratorError
from . import prompts
from .context import ProgramDesignerContext
from .helpers import (
    check_training_frequency,
    ensure_program_dates,
    normalize_program,
    parse_program_duration,
    parse_training_frequency,
    program_metrics,
    split_list,
    validate_program,
    validate_program_duration,
)

logger = logging.getLogger(__name__)

REQUIREMENTS_KEY = "requirements"
PHASE_STRUCTURE_KEY = "phase_structure"
PHASE_WORKOUTS_PREFIX = "phase_workouts:"
VALIDATION_KEY = "validation"
PRUNING_KEY = "pruning"
NORMALIZATION_KEY = "normalization"
SUMMARY_KEY = "summary"
SAVE_KEY = "save"

SEARCH_TOP_K = 8
SEARCH_MIN_SCORE = 0.7

EMPTY_SCHEMA = {"type": "object", "properties": {}}


def phase_workouts_key(phase_id: str) -> str:
    return f"{PHASE_WORKOUTS_PREFIX}{phase_id}"


def _require(context: ToolContext, key: str, producer: str) -> dict:
    value = context.get_result(key)
    if value is None:
        raise LookupError(
            f"{key.replace('_', ' ').capitalize()} not found in stored results. "
            f"Call {producer} successfully first."
        )
    return value


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def coerce_phases(raw_phases, total_days: int) -> list[dict]:
    """Phase dicts with ids, integer day bounds and durations filled in."""
    phases = []
    for i, raw in enumerate(raw_phases or []):
        if not isinstance(raw, dict):
            continue
        start_day = _as_int(raw.get("start_day"), 1)
        end_day = _as_int(raw.get("end_day"), total_days)
        phases.append(
            {
                "phase_id": str(raw.get("phase_id") or f"phase_{i + 1}"),
                "name": raw.get("name") or f"Phase {i + 1}",
                "description": raw.get("description", ""),
                "start_day": start_day,
                "end_day": end_day,
                "duration_days": end_day - start_day + 1,
                "focus_areas": list(raw.get("focus_areas") or []),
            }
        )
    return phases


def stored_templates(context: ToolContext) -> list[dict]:
    """All stored workout templates, in phase order."""
    structure = context.get_result(PHASE_STRUCTURE_KEY) or {}
    stored = context.results_with_prefix(PHASE_WORKOUTS_PREFIX)
    ordered_keys = [phase_workouts_key(p["phase_id"]) for p in structure.get("phases", [])]
    ordered_keys += [k for k in stored if k not in ordered_keys]

    templates = []
    for key in ordered_keys:
        value = stored.get(key)
        if value:
            templates.extend(value.get("workout_templates") or [])
    return templates


def final_program(context: ToolContext) -> Optional[dict]:
    """Normalized program when normalization succeeded, else the validated one."""
    normalization = context.get_result(NORMALIZATION_KEY)
    if normalization and normalization.get("is_valid"):
        return normalization["normalized_program"]
    validation = context.get_result(VALIDATION_KEY)
    if validation is None:
        return None
    return validation.get("program")


class ProgramDesignerTools:
    """Tool handlers bound to their collaborators."""

    def __init__(
        self,
        records: RecordStore,
        objects: ObjectStore,
        search: SemanticSearch,
        completion: CompletionClient,
    ):
        self.records = records
        self.objects = objects
        self.search = search
        self.completion = completion

    def load_program_requirements(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: ProgramDesignerContext = context.data

        coach_config = self.records.get_coach_config(ctx.user_id, ctx.coach_id)
        if coach_config is None:
            raise LookupError(f"Coach config not found for coach {ctx.coach_id}")
        profile = self.records.get_user_profile(ctx.user_id) or {}

        raw_duration = ctx.todo("program_duration")
        duration_days = parse_program_duration(raw_duration)
        validate_program_duration(duration_days, raw_duration)
        frequency = parse_training_frequency(ctx.todo("training_frequency"))
        goals = split_list(ctx.todo("training_goals"))
        equipment = split_list(ctx.todo("equipment_access"))

        query = f"Program for: {', '.join(goals) or 'general fitness'}"
        try:
            matches = self.search.query(
                ctx.user_id, query, top_k=SEARCH_TOP_K, min_score=SEARCH_MIN_SCORE
            )
        except CollaboratorError as e:
            logger.warning(f"[{context.run_id}] Semantic context unavailable: {e}")
            matches = []
        semantic_context = "\n\n".join(m.get("content", "") for m in matches if m.get("content"))

        logger.info(
            f"[{context.run_id}] Requirements loaded: duration={duration_days} days "
            f"frequency={frequency}/week goals={goals} context_matches={len(matches)}"
        )
        return {
            "coach_config": coach_config,
            "user_profile": profile,
            "training_goals": goals,
            "equipment": equipment,
            "experience_level": ctx.todo("experience_level") or "intermediate",
            "injury_considerations": ctx.todo("injury_considerations") or "",
            "session_duration": ctx.todo("session_duration") or "",
            "start_date": ctx.todo("start_date") or "",
            "duration_days": duration_days,
            "training_frequency": frequency,
            "semantic_context": semantic_context,
        }

    def generate_phase_structure(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: ProgramDesignerContext = context.data
        requirements = _require(context, REQUIREMENTS_KEY, "load_program_requirements")
        generated = self.completion.generate_json(
            prompts.build_phase_structure_prompt(ctx, requirements)
        )
        total_days = requirements["duration_days"]
        phases = coerce_phases(generated.get("phases"), total_days)
        if not phases:
            raise ValueError("Phase structure generation returned no phases")

        logger.info(f"[{context.run_id}] Phase structure generated: {len(phases)} phases")
        return {
            "program_name": generated.get("program_name") or "",
            "description": generated.get("description") or "",
            "total_days": total_days,
            "phases": phases,
            "phase_count": len(phases),
        }

    def generate_phase_workouts(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: ProgramDesignerContext = context.data
        phase_id = tool_input.get("phase_id")
        if not phase_id:
            raise ValueError("phase_id is required")

        requirements = context.get_result(REQUIREMENTS_KEY)
        if requirements is None:
            raise LookupError(
                "Program requirements not loaded. Call load_program_requirements successfully first."
            )
        missing = [f for f in ("duration_days", "training_frequency") if f not in requirements]
        if missing:
            raise LookupError(f"Program requirements missing fields: {', '.join(missing)}")

        structure = _require(context, PHASE_STRUCTURE_KEY, "generate_phase_structure")
        phase = next((p for p in structure["phases"] if p["phase_id"] == phase_id), None)
        if phase is None:
            raise LookupError(f"Phase '{phase_id}' not found in stored phase structure")

        generated = self.completion.generate_json(
            prompts.build_phase_workouts_prompt(ctx, requirements, phase)
        )

        templates = []
        dropped = 0
        for i, raw in enumerate(generated.get("workouts") or []):
            if not isinstance(raw, dict):
                continue
            day_number = _as_int(raw.get("day_number"), 0)
            if not phase["start_day"] <= day_number <= phase["end_day"]:
                dropped += 1
                continue
            templates.append(
                {
                    **raw,
                    "template_id": raw.get("template_id") or f"{phase_id}_day{day_number}_{i + 1}",
                    "day_number": day_number,
                    "phase_id": phase_id,
                    "name": raw.get("name") or f"Day {day_number} Workout",
                    "type": raw.get("type") or "strength",
                    "estimated_duration": _as_int(raw.get("estimated_duration"), 60),
                }
            )
        if dropped:
            logger.warning(
                f"[{context.run_id}] Dropped {dropped} templates outside phase {phase_id} "
                f"(days {phase['start_day']}-{phase['end_day']})"
            )

        return {
            "phase_id": phase_id,
            "phase_name": phase["name"],
            "workout_templates": templates,
            "template_count": len(templates),
        }

    def validate_program_structure(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: ProgramDesignerContext = context.data
        requirements = _require(context, REQUIREMENTS_KEY, "load_program_requirements")
        structure = _require(context, PHASE_STRUCTURE_KEY, "generate_phase_structure")
        templates = stored_templates(context)

        program = ensure_program_dates(
            {
                "program_id": ctx.program_id,
                "user_id": ctx.user_id,
                "coach_ids": [ctx.coach_id],
                "name": (
                    tool_input.get("program_name")
                    or structure.get("program_name")
                    or f"{structure['total_days']}-Day Training Program"
                ),
                "description": tool_input.get("description") or structure.get("description", ""),
                "total_days": structure["total_days"],
                "start_date": requirements.get("start_date") or "",
                "phases": structure["phases"],
                "training_goals": requirements["training_goals"],
                "equipment_constraints": requirements["equipment"],
                "training_frequency": requirements["training_frequency"],
            }
        )
        result = validate_program(program, templates)
        compliance = check_training_frequency(
            templates, structure["total_days"], requirements["training_frequency"]
        )

        logger.info(
            f"[{context.run_id}] Program validated: is_valid={result['is_valid']} "
            f"confidence={result['confidence']} should_prune={compliance['should_prune']} "
            f"issues={result['validation_issues']}"
        )
        return {
            **result,
            **compliance,
            "metrics": program_metrics(templates),
            "program": program,
        }

    def prune_excess_workouts(self, tool_input: dict, context: ToolContext) -> ToolOutput:
        ctx: ProgramDesignerContext = context.data
        validation = _require(context, VALIDATION_KEY, "validate_program_structure")
        templates = stored_templates(context)
        metadata = validation.get("pruning_metadata")

        if not validation.get("should_prune") or not metadata:
            return ToolOutput(
                {
                    "pruned": False,
                    "removed_days": [],
                    "removed_count": 0,
                    "kept_count": len(templates),
                    "reasoning": "Training frequency is within tolerance.",
                }
            )

        target = _as_int(tool_input.get("target_training_days"), metadata["target_training_days"])
        training_days = sorted({t["day_number"] for t in templates})
        excess = len(training_days) - target

        choice = self.completion.generate_json(
            prompts.build_pruning_prompt(ctx, templates, training_days, target)
        )
        requested = [_as_int(d, -1) for d in choice.get("days_to_remove") or []]
        remove = []
        for day in requested:
            if day in training_days and day not in remove:
                remove.append(day)
        remove = remove[:max(excess, 0)]
        if len(remove) < excess:
            logger.warning(
                f"[{context.run_id}] Pruning removed {len(remove)} days, "
                f"{excess} were needed to reach {target}"
            )

        updates = {}
        for key, value in context.results_with_prefix(PHASE_WORKOUTS_PREFIX).items():
            current = value.get("workout_templates") or []
            kept = [t for t in current if t.get("day_number") not in remove]
            if len(kept) != len(current):
                updates[key] = {**value, "workout_templates": kept, "template_count": len(kept)}

        kept_count = sum(1 for t in templates if t["day_number"] not in remove)
        logger.info(
            f"[{context.run_id}] Pruned days {remove}: removed={len(templates) - kept_count} kept={kept_count}"
        )
        return ToolOutput(
            {
                "pruned": bool(remove),
                "removed_days": sorted(remove),
                "removed_count": len(templates) - kept_count,
                "kept_count": kept_count,
                "reasoning": choice.get("reasoning", ""),
            },
            store_updates=updates,
        )

    def normalize_program_data(self, tool_input: dict, context: ToolContext) -> ToolOutput:
        validation = _require(context, VALIDATION_KEY, "validate_program_structure")
        templates = stored_templates(context)
        result = normalize_program(validation["program"], templates)

        updates = {}
        structure = context.get_result(PHASE_STRUCTURE_KEY)
        if structure is not None:
            updates[PHASE_STRUCTURE_KEY] = {**structure, "phases": result["normalized_program"]["phases"]}
        by_phase: dict[str, list] = {}
        for template in result.pop("normalized_templates"):
            by_phase.setdefault(template.get("phase_id"), []).append(template)
        for key, value in context.results_with_prefix(PHASE_WORKOUTS_PREFIX).items():
            fixed = by_phase.get(value.get("phase_id"))
            if fixed is not None:
                updates[key] = {**value, "workout_templates": fixed, "template_count": len(fixed)}

        logger.info(
            f"[{context.run_id}] Program normalized: issues={result['issues_found']} "
            f"corrected={result['corrections_made']}"
        )
        return ToolOutput(result, store_updates=updates)

    def generate_program_summary(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: ProgramDesignerContext = context.data
        program = final_program(context)
        if program is None:
            raise LookupError(
                "Program not found in stored results. Call validate_program_structure successfully first."
            )
        text = self.completion.generate_text(
            prompts.build_summary_prompt(ctx, program, stored_templates(context))
        )
        return {"summary": text.strip()}

    def save_program_to_database(self, tool_input: dict, context: ToolContext) -> dict:
        ctx: ProgramDesignerContext = context.data
        program = final_program(context)
        if program is None:
            raise LookupError(
                "Program not found in stored results. Call validate_program_structure successfully first."
            )
        templates = stored_templates(context)
        if not templates:
            raise LookupError(
                "No workout templates found in stored phase results. "
                "Call generate_phase_workouts for each phase first."
            )
        summary = (context.get_result(SUMMARY_KEY) or {}).get("summary", "")
        metrics = program_metrics(templates)

        program = {
            **program,
            "user_id": program.get("user_id") or ctx.user_id,
            "program_id": program.get("program_id") or ctx.program_id,
            "coach_ids": program.get("coach_ids") or [ctx.coach_id],
        }

        s3_key = self.objects.put_json(
            "programs",
            {"program": program, "workout_templates": templates},
            {"user_id": ctx.user_id, "program_id": ctx.program_id, "session_id": ctx.session_id},
        )
        self.records.save_program(
            {
                **program,
                "summary": summary,
                "s3_detail_key": s3_key,
                "total_workouts": metrics["total_workout_templates"],
                "unique_training_days": metrics["unique_training_days"],
                "status": "active",
            }
        )

        search_record_id = None
        try:
            search_record_id = self.search.upsert(
                ctx.user_id,
                f"program_summary_{ctx.program_id}",
                summary or program.get("name", ""),
                {
                    "record_type": "program_summary",
                    "program_id": ctx.program_id,
                    "coach_id": ctx.coach_id,
                    "total_days": program.get("total_days"),
                },
            )
        except CollaboratorError as e:
            logger.warning(f"[{context.run_id}] Failed to index program summary: {e}")

        logger.info(
            f"[{context.run_id}] Program saved: program_id={ctx.program_id} s3_key={s3_key} "
            f"templates={len(templates)}"
        )
        return {
            "success": True,
            "program_id": ctx.program_id,
            "s3_key": s3_key,
            "search_record_id": search_record_id,
            "total_workouts": metrics["total_workout_templates"],
        }

    def tools(self) -> list[Tool]:
        return [
            Tool(
                name="load_program_requirements",
                description=(
                    "Load the coach config, user profile, relevant history and the parsed "
                    "program requirements (duration, frequency, goals, equipment). "
                    "ALWAYS CALL THIS FIRST."
                ),
                input_schema=EMPTY_SCHEMA,
                handler=self.load_program_requirements,
                key_fn=lambda _: REQUIREMENTS_KEY,
            ),
            Tool(
                name="generate_phase_structure",
                description="Break the program into training phases. Returns phase ids and day ranges.",
                input_schema=EMPTY_SCHEMA,
                handler=self.generate_phase_structure,
                key_fn=lambda _: PHASE_STRUCTURE_KEY,
            ),
            Tool(
                name="generate_phase_workouts",
                description=(
                    "Generate the workout templates for ONE phase. Call once per phase; "
                    "call it for all phases in the same turn so they run in parallel."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "phase_id": {
                            "type": "string",
                            "description": "phase_id from generate_phase_structure",
                        }
                    },
                    "required": ["phase_id"],
                },
                handler=self.generate_phase_workouts,
                key_fn=lambda i: phase_workouts_key(i["phase_id"]) if i.get("phase_id") else None,
                parallelizable=True,
            ),
            Tool(
                name="validate_program_structure",
                description=(
                    "Validate the assembled program. Returns is_valid, validation_issues, "
                    "should_normalize and should_prune. If is_valid is false, stop and explain why."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "program_name": {"type": "string"},
                        "description": {"type": "string"},
                    },
                },
                handler=self.validate_program_structure,
                key_fn=lambda _: VALIDATION_KEY,
            ),
            Tool(
                name="prune_excess_workouts",
                description=(
                    "Remove whole training days when validation returned should_prune: true."
                ),
                input_schema={
                    "type": "object",
                    "properties": {"target_training_days": {"type": "integer"}},
                },
                handler=self.prune_excess_workouts,
                key_fn=lambda _: PRUNING_KEY,
            ),
            Tool(
                name="normalize_program_data",
                description="Repair phase boundaries and template fields. Call when should_normalize is true.",
                input_schema=EMPTY_SCHEMA,
                handler=self.normalize_program_data,
                key_fn=lambda _: NORMALIZATION_KEY,
            ),
            Tool(
                name="generate_program_summary",
                description="Write a short natural-language summary of the final program.",
                input_schema=EMPTY_SCHEMA,
                handler=self.generate_program_summary,
                key_fn=lambda _: SUMMARY_KEY,
            ),
            Tool(
                name="save_program_to_database",
                description="Persist the program and its workout templates. FINAL STEP.",
                input_schema=EMPTY_SCHEMA,
                handler=self.save_program_to_database,
                key_fn=lambda _: SAVE_KEY,
            ),
        ]
