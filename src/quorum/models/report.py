from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, Optional, Tuple
import json

from quorum.models.findings import (
    AuditStatus,
    CodeQuality,
    Finding,
    GasOptimization,
    Severity,
    severity_counts,
)
from quorum.models.scoring import ScoringPolicy, DEFAULT_POLICY, RISK_RECOMMENDATIONS


FULL_ANALYSIS = "full-analysis"
BYTECODE_ANALYSIS = "bytecode-only"


@dataclass(frozen=True)
class AuditReport:
    """final audit artifact

    ``overall_score`` and ``risk_level`` are derived from ``vulnerabilities``
    (and ``status`` for the bytecode-only and failed paths) every time they are
    read, so the score can never drift from the finding list.
    """
    audit_id: str
    status: AuditStatus
    contract_info: Dict[str, Any] = field(default_factory=dict)
    vulnerabilities: Tuple[Finding, ...] = ()
    confidence_score: float = 0.0
    recommendations: Tuple[str, ...] = ()
    gas_optimizations: Tuple[GasOptimization, ...] = ()
    code_quality: CodeQuality = field(default_factory=CodeQuality)
    agent_contributions: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    summary: str = ""
    execution_time_ms: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    report_type: str = FULL_ANALYSIS
    static_findings_count: int = 0
    agents_used: Tuple[str, ...] = ()
    failed_agents: Tuple[str, ...] = ()
    confidence_metrics: Dict[str, Any] = field(default_factory=dict)
    score_distribution: Dict[str, Any] = field(default_factory=dict)
    characteristics: Dict[str, Any] = field(default_factory=dict)
    consensus_score: Optional[int] = None
    dropped_findings: int = 0
    bytecode_analysis: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    policy: ScoringPolicy = field(default=DEFAULT_POLICY, compare=False, repr=False)

    @property
    def overall_score(self) -> Optional[int]:
        if self.status is AuditStatus.FAILED:
            return None
        if self.status is AuditStatus.BYTECODE_ONLY:
            return self.policy.bytecode_default_score
        return self.policy.deduction_score(self.vulnerabilities)

    @property
    def risk_level(self) -> Optional[Severity]:
        if self.status is AuditStatus.FAILED:
            return None
        if self.status is AuditStatus.BYTECODE_ONLY:
            return Severity.MEDIUM
        return self.policy.report_risk(self.vulnerabilities)[1]

    @property
    def severity_counts(self) -> Dict[str, int]:
        return severity_counts(self.vulnerabilities)

    @property
    def risk_assessment(self) -> Optional[Dict[str, Any]]:
        level = self.risk_level
        if level is None:
            return None
        return {
            "level": level.value,
            "criticalIssues": self.severity_counts[Severity.CRITICAL.value],
            "recommendation": RISK_RECOMMENDATIONS[level],
        }

    def to_dict(self) -> Dict[str, Any]:
        risk = self.risk_level
        data = {
            "auditId": self.audit_id,
            "status": self.status.value,
            "type": self.report_type,
            "contractInfo": self.contract_info,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "overallScore": self.overall_score,
            "riskLevel": risk.value if risk else None,
            "severityCounts": self.severity_counts,
            "summary": self.summary,
            "recommendations": list(self.recommendations),
            "gasOptimizations": [g.to_dict() for g in self.gas_optimizations],
            "codeQuality": self.code_quality.to_dict(),
            "agentContributions": self.agent_contributions,
            "timestamp": self.timestamp.isoformat(),
            "executionTime": self.execution_time_ms,
            "staticFindings": self.static_findings_count,
            "agentsUsed": list(self.agents_used),
            "failedAgents": list(self.failed_agents),
            "confidenceScore": self.confidence_score,
            "confidenceMetrics": self.confidence_metrics,
            "scoreDistribution": self.score_distribution,
            "riskAssessment": self.risk_assessment,
            "characteristics": self.characteristics,
            "consensusScore": self.consensus_score,
            "droppedFindings": self.dropped_findings,
        }
        if self.bytecode_analysis is not None:
            data["bytecodeAnalysis"] = self.bytecode_analysis
        if self.error is not None:
            data["error"] = self.error
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        risk = self.risk_level.value if self.risk_level else "n/a"
        return f"AuditReport({self.audit_id}, {self.status.value}, score={self.overall_score}, risk={risk})"
