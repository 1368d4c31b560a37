"""Turn raw model text into a validated EvaluationResult.

Failures are reported with the taxonomy in ``errors``: EmptyResponse when
there is nothing to parse, MalformedResponse when the text is not JSON, and
SchemaViolation naming the offending field. Timestamp markers are cleaned
rather than rejected: anything that is not ``MM:SS`` or ``H:MM:SS`` is dropped.
"""

import json
import math
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..errors import EmptyResponse, MalformedResponse, SchemaViolation

TIMESTAMP_RE = re.compile(r"^(\d{1,2}:)?\d{1,2}:\d{2}$")
CONFIDENCE_TIERS = ("high", "medium", "low")
EXCERPT_CHARS = 200


def clean_json_response(text: Optional[str]) -> str:
    """Strip an optional markdown code fence around the JSON body."""
    if text is None:
        return ""
    cleaned = text.strip()
    if cleaned[:7].lower() == "```json":
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def sanitize_timestamps(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [v.strip() for v in values if isinstance(v, str) and TIMESTAMP_RE.match(v.strip())]


def _normalize_confidence(value: Any) -> str:
    if isinstance(value, str) and value.lower() in CONFIDENCE_TIERS:
        return value.lower()
    return "medium"


def _string_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [str(v) for v in values if v is not None]


class DimensionResult(BaseModel):
    dimension: str
    score: Optional[float] = None
    confidence: str = "medium"
    rationale: str = ""
    observable_behaviors: List[str] = Field(default_factory=list)
    timestamps: List[str] = Field(default_factory=list)
    trainable_gap: bool = False
    green_flags: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)

    @field_validator("confidence", mode="before")
    @classmethod
    def validate_confidence(cls, v: Any) -> str:
        return _normalize_confidence(v)

    @field_validator("timestamps", mode="before")
    @classmethod
    def validate_timestamps(cls, v: Any) -> List[str]:
        return sanitize_timestamps(v)


class RedFlagFinding(BaseModel):
    slug: str
    evidence: str = ""
    timestamps: List[str] = Field(default_factory=list)

    @field_validator("timestamps", mode="before")
    @classmethod
    def validate_timestamps(cls, v: Any) -> List[str]:
        return sanitize_timestamps(v)


class HighlightItem(BaseModel):
    """A top strength or growth area called out by the model."""

    dimension: str = ""
    score: Optional[float] = None
    description: str = ""


class EvaluationResult(BaseModel):
    evaluation_version: Optional[str] = None
    role_family_slug: Optional[str] = None
    overall_score: float
    dimension_scores: List[DimensionResult] = Field(default_factory=list)
    detected_red_flags: List[RedFlagFinding] = Field(default_factory=list)
    top_strengths: List[HighlightItem] = Field(default_factory=list)
    growth_areas: List[HighlightItem] = Field(default_factory=list)
    overall_summary: str = ""
    evaluation_confidence: str = "medium"
    insufficient_evidence_notes: Optional[str] = None
    # the decoded model document, kept verbatim for the audit column
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    @field_validator("evaluation_confidence", mode="before")
    @classmethod
    def validate_confidence(cls, v: Any) -> str:
        return _normalize_confidence(v)

    @property
    def scores(self) -> Dict[str, Optional[float]]:
        """Dimension id -> score, with None for dimensions left unscored."""
        return {d.dimension: d.score for d in self.dimension_scores}

    @property
    def scored_dimensions(self) -> List[DimensionResult]:
        return [d for d in self.dimension_scores if d.score is not None]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _reject_constant(name: str):
    # NaN and Infinity are not JSON
    raise ValueError(f"Non-standard JSON constant {name}")


def _parse_dimension(dimension: str, data: Any) -> DimensionResult:
    if not isinstance(data, dict):
        raise SchemaViolation(f"dimension_scores.{dimension}",
                              f"Invalid dimension_scores.{dimension} in response: expected an object")
    score = data.get("score")
    if score is not None and not _is_number(score):
        raise SchemaViolation(f"dimension_scores.{dimension}.score",
                              f"Invalid dimension_scores.{dimension}.score in response: "
                              f"expected a number or null, got {score!r}")

    raw_behaviors = data.get("observable_behaviors")
    timestamps = data.get("timestamps")
    if isinstance(raw_behaviors, list) and raw_behaviors and isinstance(raw_behaviors[0], dict):
        # {timestamp, behavior} pairs carry their own markers
        behaviors = [str(b.get("behavior", "")) for b in raw_behaviors if isinstance(b, dict)]
        timestamps = [b.get("timestamp") for b in raw_behaviors if isinstance(b, dict)]
    elif isinstance(raw_behaviors, str):
        behaviors = [raw_behaviors] if raw_behaviors else []
    else:
        behaviors = _string_list(raw_behaviors)

    return DimensionResult(
        dimension=dimension,
        score=float(score) if score is not None else None,
        confidence=data.get("confidence"),
        rationale=str(data.get("rationale") or ""),
        observable_behaviors=behaviors,
        timestamps=timestamps,
        trainable_gap=data.get("trainable_gap") is True,
        green_flags=_string_list(data.get("green_flags") or data.get("greenFlags")),
        red_flags=_string_list(data.get("red_flags") or data.get("redFlags")),
    )


def _parse_red_flags(values: Any) -> List[RedFlagFinding]:
    out = []
    for rf in values if isinstance(values, list) else []:
        if isinstance(rf, str) and rf:
            out.append(RedFlagFinding(slug=rf))
        elif isinstance(rf, dict) and rf.get("slug"):
            out.append(RedFlagFinding(slug=str(rf["slug"]), evidence=str(rf.get("evidence") or ""),
                                      timestamps=rf.get("timestamps")))
    return out


def _parse_highlights(values: Any) -> List[HighlightItem]:
    out = []
    for item in values if isinstance(values, list) else []:
        if not isinstance(item, dict):
            continue
        score = item.get("score")
        out.append(HighlightItem(dimension=str(item.get("dimension") or ""),
                                 score=float(score) if _is_number(score) else None,
                                 description=str(item.get("description") or "")))
    return out


def parse_evaluation_response(text: Optional[str]) -> EvaluationResult:
    cleaned = clean_json_response(text)
    if not cleaned:
        raise EmptyResponse("No response text from model")

    try:
        parsed = json.loads(cleaned, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        excerpt = cleaned[:EXCERPT_CHARS]
        raise MalformedResponse(f"Model response is not valid JSON ({e.msg} at line {e.lineno} "
                                f"column {e.colno}): {excerpt!r}") from e
    except ValueError as e:
        raise MalformedResponse(f"Model response is not valid JSON ({e}): {cleaned[:EXCERPT_CHARS]!r}") from e

    if not isinstance(parsed, dict):
        raise SchemaViolation("overall_score", "Model response must be a JSON object with overall_score "
                                               "and dimension_scores")
    if "overall_score" not in parsed or not _is_number(parsed["overall_score"]):
        raise SchemaViolation("overall_score")
    if not isinstance(parsed.get("dimension_scores"), dict):
        raise SchemaViolation("dimension_scores")

    dimensions = [_parse_dimension(str(name), data) for name, data in parsed["dimension_scores"].items()]
    summary = parsed.get("overall_summary")
    notes = parsed.get("insufficient_evidence_notes")

    return EvaluationResult(
        evaluation_version=parsed.get("evaluation_version"),
        role_family_slug=parsed.get("role_family_slug"),
        overall_score=float(parsed["overall_score"]),
        dimension_scores=dimensions,
        detected_red_flags=_parse_red_flags(parsed.get("detected_red_flags")),
        top_strengths=_parse_highlights(parsed.get("top_strengths")),
        growth_areas=_parse_highlights(parsed.get("growth_areas")),
        overall_summary=summary if isinstance(summary, str) else "",
        evaluation_confidence=parsed.get("evaluation_confidence"),
        insufficient_evidence_notes=notes if isinstance(notes, str) else None,
        raw=parsed,
    )
