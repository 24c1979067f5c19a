"""force arbitrary reviewer output into the canonical analysis record. never raises."""
import logging
from typing import Any, Union

from pydantic import ValidationError

from quorum.models.findings import (
    AgentType,
    CodeQuality,
    Finding,
    GasOptimization,
    NormalizedAnalysis,
    Severity,
)
from quorum.models.schema import AnalysisPayload, VulnerabilityPayload
from quorum.utils.json_sanitizer import safe_json_loads

logger = logging.getLogger(__name__)

FALLBACK_RECOMMENDATION = "Manual review recommended due to service issues"
FALLBACK_CODE_QUALITY = CodeQuality(score=50, issues=("Service unavailable",), strengths=())
# replies are bounded by max_tokens; anything far larger is not a usable analysis
MAX_RESPONSE_CHARS = 200_000


def _agent_name(agent_type: Union[AgentType, str]) -> str:
    return agent_type.value if isinstance(agent_type, AgentType) else str(agent_type)


def default_analysis(agent_type: Union[AgentType, str]) -> NormalizedAnalysis:
    """neutral analysis used when a reviewer's output is unusable"""
    name = _agent_name(agent_type)
    return NormalizedAnalysis(
        agent_type=name,
        overall_score=50,
        risk_level=Severity.MEDIUM,
        summary=f"{name} analysis completed with fallback response",
        vulnerabilities=(),
        recommendations=(FALLBACK_RECOMMENDATION,),
        gas_optimizations=(),
        code_quality=FALLBACK_CODE_QUALITY,
        is_fallback=True,
    )


def _to_finding(vuln: VulnerabilityPayload, source: str) -> Finding:
    return Finding(
        name=vuln.name,
        description=vuln.description,
        category=vuln.category,
        severity=vuln.severity,
        confidence=vuln.confidence,
        affected_lines=tuple(vuln.affected_lines),
        code_snippet=vuln.code_snippet,
        recommendation=vuln.recommendation,
        impact=vuln.impact,
        detected_by=frozenset({source}),
    )


def _from_payload(payload: AnalysisPayload, source: str) -> NormalizedAnalysis:
    quality = payload.code_quality
    return NormalizedAnalysis(
        agent_type=source,
        overall_score=payload.overall_score,
        risk_level=payload.risk_level,
        summary=payload.summary,
        vulnerabilities=tuple(_to_finding(v, source) for v in payload.vulnerabilities),
        recommendations=tuple(payload.recommendations),
        gas_optimizations=tuple(
            GasOptimization(
                description=g.description,
                affected_lines=tuple(g.affected_lines),
                potential_savings=g.potential_savings,
                implementation=g.implementation,
            )
            for g in payload.gas_optimizations
        ),
        code_quality=(
            CodeQuality(score=quality.score, issues=tuple(quality.issues), strengths=tuple(quality.strengths))
            if quality is not None
            else None
        ),
        issues=tuple(payload.issues),
        risks=tuple(payload.risks),
    )


def normalize(raw_response: Any, agent_type: Union[AgentType, str]) -> NormalizedAnalysis:
    """raw text or already-parsed dict -> NormalizedAnalysis"""
    source = _agent_name(agent_type)
    try:
        if isinstance(raw_response, dict):
            data = raw_response
        elif isinstance(raw_response, str) and raw_response.strip():
            if len(raw_response) > MAX_RESPONSE_CHARS:
                raise ValueError(f"response of {len(raw_response)} chars exceeds {MAX_RESPONSE_CHARS}")
            data = safe_json_loads(raw_response)
        else:
            raise ValueError(f"unusable response type {type(raw_response).__name__}")

        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        payload = AnalysisPayload.model_validate(data)
        return _from_payload(payload, source)
    except (ValueError, TypeError, RecursionError, ValidationError) as e:
        logger.warning(f"[{source}] response normalization failed, using fallback: {e}", extra={"agent": source})
        return default_analysis(source)
