"""tolerant pydantic models for reviewer payloads

every field validator runs in ``before`` mode and coerces its own input to a
valid value or the field default, so one bad field never rejects the record.
"""

import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator

from quorum.models.findings import Severity, Confidence
from quorum.models.taxonomy import canonical_category


SUMMARY_LIMIT = 1000
STRING_LIMIT = 2000
LIST_ITEM_LIMIT = 500


def coerce_string(value: Any, default: str, limit: int = STRING_LIMIT) -> str:
    if not isinstance(value, str):
        return default
    return value.strip()[:limit]


def coerce_string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    items = []
    for item in value:
        if not isinstance(item, str):
            continue
        text = item.strip()[:LIST_ITEM_LIMIT]
        if text:
            items.append(text)
    return items


def coerce_score(value: Any, default: int = 50) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return max(0, min(100, int(round(value))))


def coerce_lines(value: Any) -> List[int]:
    if not isinstance(value, list):
        return []
    lines = []
    for item in value:
        if isinstance(item, bool):
            continue
        if isinstance(item, int) and item > 0:
            lines.append(item)
        elif isinstance(item, float) and item.is_integer() and item > 0:
            lines.append(int(item))
    return lines


def coerce_confidence(value: Any, default: Confidence = Confidence.MEDIUM) -> Confidence:
    parsed = Confidence.parse(value)
    if parsed is not None:
        return parsed
    if isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value):
        return Confidence.from_scalar(float(value))
    return default


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class VulnerabilityPayload(_Payload):
    name: str = "Unknown Vulnerability"
    description: str = "No description provided"
    severity: Severity = Severity.MEDIUM
    category: str = "other"
    affected_lines: List[int] = Field(default_factory=list, validation_alias=AliasChoices("affectedLines", "affected_lines", "lines"))
    code_snippet: str = Field("", validation_alias=AliasChoices("codeSnippet", "code_snippet"))
    recommendation: str = "Manual review recommended"
    impact: str = "Impact assessment needed"
    confidence: Confidence = Confidence.MEDIUM

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v: Any) -> str:
        return coerce_string(v, "Unknown Vulnerability") or "Unknown Vulnerability"

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return coerce_string(v, "No description provided") or "No description provided"

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v: Any) -> Severity:
        return Severity.parse(v, Severity.MEDIUM)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v: Any) -> str:
        return canonical_category(coerce_string(v, "other"))

    @field_validator("affected_lines", mode="before")
    @classmethod
    def _lines(cls, v: Any) -> List[int]:
        return coerce_lines(v)

    @field_validator("code_snippet", mode="before")
    @classmethod
    def _snippet(cls, v: Any) -> str:
        return coerce_string(v, "")

    @field_validator("recommendation", mode="before")
    @classmethod
    def _recommendation(cls, v: Any) -> str:
        return coerce_string(v, "Manual review recommended") or "Manual review recommended"

    @field_validator("impact", mode="before")
    @classmethod
    def _impact(cls, v: Any) -> str:
        return coerce_string(v, "Impact assessment needed") or "Impact assessment needed"

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v: Any) -> Confidence:
        return coerce_confidence(v)


class GasOptimizationPayload(_Payload):
    description: str = "Gas optimization suggestion"
    affected_lines: List[int] = Field(default_factory=list, validation_alias=AliasChoices("affectedLines", "affected_lines", "lines"))
    potential_savings: str = Field("Unknown savings", validation_alias=AliasChoices("potentialSavings", "potential_savings"))
    implementation: str = "Implementation details needed"

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return coerce_string(v, "Gas optimization suggestion") or "Gas optimization suggestion"

    @field_validator("affected_lines", mode="before")
    @classmethod
    def _lines(cls, v: Any) -> List[int]:
        return coerce_lines(v)

    @field_validator("potential_savings", mode="before")
    @classmethod
    def _savings(cls, v: Any) -> str:
        return coerce_string(v, "Unknown savings") or "Unknown savings"

    @field_validator("implementation", mode="before")
    @classmethod
    def _implementation(cls, v: Any) -> str:
        return coerce_string(v, "Implementation details needed") or "Implementation details needed"


class CodeQualityPayload(_Payload):
    score: int = 50
    issues: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, v: Any) -> int:
        return coerce_score(v)

    @field_validator("issues", "strengths", mode="before")
    @classmethod
    def _lists(cls, v: Any) -> List[str]:
        return coerce_string_list(v)


def _objects(value: Any) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class AnalysisPayload(_Payload):
    """top-level reviewer record"""
    overall_score: int = Field(50, validation_alias=AliasChoices("overallScore", "overall_score", "score"))
    risk_level: Severity = Field(Severity.MEDIUM, validation_alias=AliasChoices("riskLevel", "risk_level"))
    summary: str = "Analysis completed"
    vulnerabilities: List[VulnerabilityPayload] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    gas_optimizations: List[GasOptimizationPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("gasOptimizations", "gas_optimizations")
    )
    code_quality: Optional[CodeQualityPayload] = Field(None, validation_alias=AliasChoices("codeQuality", "code_quality"))
    issues: List[str] = Field(default_factory=list)
    risks: List[str] = Field(default_factory=list)

    @field_validator("overall_score", mode="before")
    @classmethod
    def _score(cls, v: Any) -> int:
        return coerce_score(v)

    @field_validator("risk_level", mode="before")
    @classmethod
    def _risk(cls, v: Any) -> Severity:
        return Severity.parse(v, Severity.MEDIUM)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        return coerce_string(v, "Analysis completed", SUMMARY_LIMIT)

    @field_validator("vulnerabilities", "gas_optimizations", mode="before")
    @classmethod
    def _object_lists(cls, v: Any) -> List[dict]:
        return _objects(v)

    @field_validator("recommendations", "issues", "risks", mode="before")
    @classmethod
    def _string_lists(cls, v: Any) -> List[str]:
        return coerce_string_list(v)

    @field_validator("code_quality", mode="before")
    @classmethod
    def _code_quality(cls, v: Any) -> Optional[dict]:
        return v if isinstance(v, dict) else None
