"""Build the rubric-driven evaluation prompt sent alongside the video.

Pure functions of the rubric document and the video context: nothing here
touches the network or the database.
"""

import json
from typing import Any, Dict, List, Optional

PROMPT_VERSION = "3.0.0"


def _dimension_section(dim: Dict[str, Any], index: int) -> List[str]:
    lines = [f"### {index + 1}. {dim['slug'].upper()} ({dim.get('name', dim['slug'])})"]
    if dim.get("description"):
        lines.append(dim["description"])
    for lvl in sorted(dim.get("levels") or [], key=lambda lv: lv.get("level", 0)):
        lines.append("")
        lines.append(f"**Level {lvl.get('level')}: {lvl.get('label', '')}**")
        if lvl.get("pattern"):
            lines.append(f"*Pattern: {lvl['pattern']}*")
        evidence = lvl.get("evidence") or []
        if evidence:
            lines.append("Evidence may include:")
            lines += [f"  - {e}" for e in evidence]
    return lines


def _red_flag_section(red_flags: List[Dict[str, Any]]) -> List[str]:
    if not red_flags:
        return []
    lines = ["## RED FLAGS",
             "These are binary indicators (present/not present). Report ANY that are observed, "
             "regardless of dimension scores.",
             ""]
    lines += [f"- **{f.get('name', f['slug'])}** (`{f['slug']}`): {f.get('description', '')}" for f in red_flags]
    return lines


def _video_context_section(video_duration_minutes, task_description, expected_outcomes) -> List[str]:
    if not (video_duration_minutes or task_description or expected_outcomes):
        return []
    lines = ["## VIDEO CONTEXT"]
    if video_duration_minutes:
        lines.append(f"- Video Duration: {video_duration_minutes} minutes")
    if task_description:
        lines.append(f"- Task Description: {task_description}")
    if expected_outcomes:
        lines.append("- Expected Outcomes:")
        lines += [f"  - {o}" for o in expected_outcomes]
    return lines


def output_schema(rubric: Dict[str, Any]) -> Dict[str, Any]:
    """The JSON document the model must return, with placeholder values."""
    dimension_template = {
        "score": "<number 1-4, or null if insufficient evidence>",
        "confidence": "high | medium | low",
        "rationale": "<why this score was given, with specific evidence>",
        "observable_behaviors": ["<specific behavior observed>"],
        "timestamps": ["MM:SS"],
        "trainable_gap": "<boolean: true if this skill can be improved through training>",
        "green_flags": ["<positive signal>"],
        "red_flags": ["<concern>"],
    }
    return {
        "evaluation_version": PROMPT_VERSION,
        "role_family_slug": rubric["roleFamily"]["slug"],
        "overall_score": "<number, one decimal place: average of the non-null dimension scores>",
        "dimension_scores": {d["slug"]: dict(dimension_template) for d in rubric["dimensions"]},
        "detected_red_flags": ["<red flag slug from the list above>"],
        "overall_summary": "<evidence-based narrative summary of the candidate's performance>",
        "evaluation_confidence": "high | medium | low",
        "insufficient_evidence_notes": "<explanation if any dimension could not be evaluated, or null>",
    }


def build_evaluation_prompt(rubric: Dict[str, Any],
                            video_duration_minutes: Optional[float] = None,
                            task_description: Optional[str] = None,
                            expected_outcomes: Optional[List[str]] = None) -> str:
    role_name = rubric["roleFamily"].get("name") or rubric["roleFamily"]["slug"]
    dimensions = rubric["dimensions"]

    lines = [f"You are an objective, evidence-based evaluator assessing a candidate's recorded work session "
             f"for a **{role_name}** role. Your evaluation must be fair, consistent, and grounded exclusively "
             f"in observable behaviors.",
             "",
             "## CRITICAL RULES",
             "- Cite specific timestamps (MM:SS or H:MM:SS) for EVERY behavior you score.",
             "- Only evaluate behaviors that are DIRECTLY OBSERVABLE in the recording.",
             "- If a dimension cannot be evaluated due to insufficient evidence, set its score to null "
             "and its confidence to \"low\".",
             "- Score each dimension independently of the others.",
             "- Make no assumptions about seniority, background, or demographics.",
             "",
             f"## {len(dimensions)}-DIMENSION RUBRIC ({role_name})"]
    for i, dim in enumerate(dimensions):
        lines.append("")
        lines += _dimension_section(dim, i)

    red_flags = _red_flag_section(rubric.get("redFlags") or [])
    if red_flags:
        lines += ["", "---", ""] + red_flags

    context = _video_context_section(video_duration_minutes, task_description, expected_outcomes)
    if context:
        lines += ["", "---", ""] + context

    lines += ["",
              "## OUTPUT REQUIREMENTS",
              "Respond with ONLY a valid JSON object matching this exact schema. "
              "No additional text, markdown formatting, or explanation outside the JSON.",
              "",
              json.dumps(output_schema(rubric), ensure_ascii=False, indent=2)]
    return "\n".join(lines)
