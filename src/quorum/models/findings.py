from enum import Enum
from dataclasses import dataclass, field, replace
from typing import List, Optional, Dict, Any, Tuple, FrozenSet, Union, Iterable
from datetime import datetime, UTC
import math


STATIC_SOURCE = "static"


class Severity(Enum):
    """severity classification (also used for risk levels)"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: Any, default: Optional["Severity"] = None) -> Optional["Severity"]:
        """case-insensitive lookup, returns default for anything unrecognized"""
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return default


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

RiskLevel = Severity


class Confidence(Enum):
    """reviewer confidence"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def score(self) -> float:
        return _CONFIDENCE_SCORE[self]

    @classmethod
    def parse(cls, value: Any, default: Optional["Confidence"] = None) -> Optional["Confidence"]:
        if isinstance(value, Confidence):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return default

    @classmethod
    def from_scalar(cls, value: float) -> "Confidence":
        if value >= 0.8:
            return cls.HIGH
        if value >= 0.5:
            return cls.MEDIUM
        return cls.LOW


_CONFIDENCE_SCORE = {
    Confidence.HIGH: 0.9,
    Confidence.MEDIUM: 0.6,
    Confidence.LOW: 0.3,
}


def confidence_score(value: Any) -> float:
    """map an enum label or [0,1] scalar onto [0,1]"""
    if isinstance(value, Confidence):
        return value.score
    if isinstance(value, bool):
        return 0.5
    if isinstance(value, (int, float)):
        if math.isnan(value):
            return 0.5
        return max(0.0, min(1.0, float(value)))
    parsed = Confidence.parse(value)
    if parsed is not None:
        return parsed.score
    return 0.5


class AgentType(Enum):
    """specialized reviewer roles"""
    SECURITY = "security"
    QUALITY = "quality"
    ECONOMICS = "economics"
    DEFI = "defi"
    CROSS_CHAIN = "crossChain"
    MEV = "mev"
    GAS_OPTIMIZATION = "gasOptimization"
    GOVERNANCE = "governance"

    @classmethod
    def parse(cls, value: Any) -> Optional["AgentType"]:
        """accepts camelCase, snake_case and kebab-case spellings"""
        if isinstance(value, AgentType):
            return value
        if not isinstance(value, str):
            return None
        wanted = value.strip().replace("_", "").replace("-", "").lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


class AuditStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    BYTECODE_ONLY = "bytecode-only"


class AnalysisMode(Enum):
    """comprehensive = fast inline per-agent timeout, deep = full pipeline timeout per agent"""
    COMPREHENSIVE = "comprehensive"
    DEEP = "deep"

    @classmethod
    def parse(cls, value: Any) -> "AnalysisMode":
        if isinstance(value, AnalysisMode):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value.strip().lower():
                    return member
        raise ValueError(f"Unknown analysis mode: {value!r}")


def _ordered_lines(lines: Iterable[Any]) -> Tuple[int, ...]:
    return tuple(sorted({int(line) for line in lines}))


ConfidenceValue = Union[Confidence, float]


@dataclass(frozen=True)
class Finding:
    """single reported issue, merged across sources by key"""
    name: str
    description: str
    category: str
    severity: Severity
    confidence: ConfidenceValue = Confidence.MEDIUM
    affected_lines: Tuple[int, ...] = ()
    code_snippet: str = ""
    recommendation: str = ""
    impact: str = ""
    detected_by: FrozenSet[str] = frozenset()
    category_weight: float = 0.5
    consensus: Optional[float] = None
    adjusted_confidence: Optional[float] = None
    final_confidence: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "affected_lines", _ordered_lines(self.affected_lines))
        object.__setattr__(self, "detected_by", frozenset(self.detected_by))

    @property
    def key(self) -> Tuple[str, str, Tuple[int, ...]]:
        return (self.category, self.name, self.affected_lines)

    @property
    def confidence_score(self) -> float:
        return confidence_score(self.confidence)

    @property
    def consensus_level(self) -> Optional[str]:
        if self.consensus is None:
            return None
        if self.consensus >= 0.8:
            return "Strong"
        if self.consensus >= 0.6:
            return "Moderate"
        if self.consensus >= 0.4:
            return "Weak"
        return "Low"

    @property
    def is_static(self) -> bool:
        return STATIC_SOURCE in self.detected_by

    def merge(self, other: "Finding") -> "Finding":
        """union sources, keep the strongest severity, confidence and weight"""
        if other.key != self.key:
            raise ValueError(f"Cannot merge findings with different keys: {self.key} vs {other.key}")
        severity = other.severity if other.severity.rank > self.severity.rank else self.severity
        confidence = other.confidence if other.confidence_score > self.confidence_score else self.confidence
        return replace(
            self,
            severity=severity,
            confidence=confidence,
            detected_by=self.detected_by | other.detected_by,
            category_weight=max(self.category_weight, other.category_weight),
            code_snippet=self.code_snippet or other.code_snippet,
            recommendation=self.recommendation or other.recommendation,
            impact=self.impact or other.impact,
        )

    def scored(
        self,
        consensus: float,
        final_confidence: float,
        adjusted_confidence: Optional[float] = None,
    ) -> "Finding":
        return replace(
            self,
            consensus=consensus,
            adjusted_confidence=adjusted_confidence,
            final_confidence=final_confidence,
        )

    def sort_key(self) -> Tuple[int, int, str, str]:
        first_line = self.affected_lines[0] if self.affected_lines else 0
        return (-self.severity.rank, first_line, self.category, self.name)

    def to_dict(self) -> Dict[str, Any]:
        confidence = self.confidence.value if isinstance(self.confidence, Confidence) else self.confidence
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "severity": self.severity.value,
            "confidence": confidence,
            "affectedLines": list(self.affected_lines),
            "codeSnippet": self.code_snippet,
            "recommendation": self.recommendation,
            "impact": self.impact,
            "detectedBy": sorted(self.detected_by),
            "categoryWeight": self.category_weight,
            "consensus": self.consensus,
            "consensusLevel": self.consensus_level,
            "adjustedConfidence": self.adjusted_confidence,
            "finalConfidence": self.final_confidence,
        }

    def __repr__(self) -> str:
        return f"Finding([{self.severity.value.upper()}] {self.category}:{self.name} lines={list(self.affected_lines)})"


@dataclass(frozen=True)
class GasOptimization:
    description: str
    affected_lines: Tuple[int, ...] = ()
    potential_savings: str = "Unknown savings"
    implementation: str = "Implementation details needed"

    def __post_init__(self) -> None:
        object.__setattr__(self, "affected_lines", _ordered_lines(self.affected_lines))

    @property
    def key(self) -> Tuple[str, Tuple[int, ...]]:
        return (self.description, self.affected_lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "affectedLines": list(self.affected_lines),
            "potentialSavings": self.potential_savings,
            "implementation": self.implementation,
        }


@dataclass(frozen=True)
class CodeQuality:
    score: int = 50
    issues: Tuple[str, ...] = ()
    strengths: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "issues": list(self.issues),
            "strengths": list(self.strengths),
        }


@dataclass(frozen=True)
class NormalizedAnalysis:
    """one reviewer's output forced into the canonical schema"""
    agent_type: str
    overall_score: int = 50
    risk_level: Severity = Severity.MEDIUM
    summary: str = ""
    vulnerabilities: Tuple[Finding, ...] = ()
    recommendations: Tuple[str, ...] = ()
    gas_optimizations: Tuple[GasOptimization, ...] = ()
    code_quality: Optional[CodeQuality] = None
    issues: Tuple[str, ...] = ()
    risks: Tuple[str, ...] = ()
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agentType": self.agent_type,
            "overallScore": self.overall_score,
            "riskLevel": self.risk_level.value,
            "summary": self.summary,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "recommendations": list(self.recommendations),
            "gasOptimizations": [g.to_dict() for g in self.gas_optimizations],
            "codeQuality": self.code_quality.to_dict() if self.code_quality else None,
            "issues": list(self.issues),
            "risks": list(self.risks),
            "isFallback": self.is_fallback,
        }


@dataclass(frozen=True)
class AgentResult:
    """outcome of one reviewer invocation"""
    agent_type: AgentType
    success: bool
    analysis: Optional[NormalizedAnalysis] = None
    error: Optional[str] = None
    execution_time_ms: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    fallback: Optional[NormalizedAnalysis] = None

    def __post_init__(self) -> None:
        if self.success and (self.analysis is None or self.error is not None):
            raise ValueError("successful AgentResult needs an analysis and no error")
        if not self.success and (self.error is None or self.analysis is not None):
            raise ValueError("failed AgentResult needs an error and no analysis")

    @classmethod
    def ok(cls, agent_type: AgentType, analysis: NormalizedAnalysis, execution_time_ms: int = 0) -> "AgentResult":
        return cls(agent_type=agent_type, success=True, analysis=analysis, execution_time_ms=execution_time_ms)

    @classmethod
    def failed(
        cls,
        agent_type: AgentType,
        error: str,
        fallback: Optional[NormalizedAnalysis] = None,
        execution_time_ms: int = 0,
    ) -> "AgentResult":
        return cls(
            agent_type=agent_type,
            success=False,
            error=error,
            fallback=fallback,
            execution_time_ms=execution_time_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agentType": self.agent_type.value,
            "success": self.success,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "error": self.error,
            "executionTimeMs": self.execution_time_ms,
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        state = "ok" if self.success else f"failed: {self.error}"
        return f"AgentResult({self.agent_type.value}, {state}, {self.execution_time_ms}ms)"


def severity_counts(findings: Iterable[Finding]) -> Dict[str, int]:
    counts = {s.value: 0 for s in sorted(Severity, key=lambda s: -s.rank)}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    return sorted(findings, key=lambda f: f.sort_key())
