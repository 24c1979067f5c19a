"""
consensus aggregation over reviewer analyses and static findings

findings are merged by identity key, weighted by how many sources agree
(consensus), the reviewer's stated confidence and a per-(source, category)
weight, then filtered by a confidence floor. the reviewer scores are combined
into a weighted average minus confidence-scaled severity penalties.
"""

import logging
import statistics
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from quorum.errors import NoSuccessfulAnalysisError
from quorum.models.contract import ContractCharacteristics
from quorum.models.findings import (
    STATIC_SOURCE,
    AgentResult,
    CodeQuality,
    Finding,
    GasOptimization,
    Severity,
    sort_findings,
)
from quorum.models.scoring import DEFAULT_POLICY, ScoringPolicy, confidence_level

logger = logging.getLogger(__name__)

FALLBACK_RECOMMENDATION = "Manual review recommended due to service issues"


@dataclass(frozen=True)
class ScoreDistribution:
    mean: float = 0.0
    variance: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    range: float = 0.0

    @classmethod
    def from_scores(cls, scores: Sequence[float]) -> "ScoreDistribution":
        if not scores:
            return cls()
        mean = statistics.fmean(scores)
        variance = statistics.pvariance(scores, mu=mean)
        return cls(
            mean=round(mean, 2),
            variance=round(variance, 2),
            std_dev=round(variance ** 0.5, 2),
            min=min(scores),
            max=max(scores),
            range=max(scores) - min(scores),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "variance": self.variance,
            "standardDeviation": self.std_dev,
            "min": self.min,
            "max": self.max,
            "range": self.range,
        }


@dataclass(frozen=True)
class ConfidenceMetrics:
    agent_agreement: float = 1.0
    vulnerability_confidence: float = 1.0
    coverage: float = 0.0
    overall: float = 0.0
    level: str = "Very Low"

    def to_dict(self) -> Dict[str, object]:
        return {
            "agentAgreement": self.agent_agreement,
            "vulnerabilityConfidence": self.vulnerability_confidence,
            "coverage": self.coverage,
            "overall": self.overall,
            "level": self.level,
        }


@dataclass(frozen=True)
class AggregatedAnalysis:
    vulnerabilities: Tuple[Finding, ...]
    scored_findings: Tuple[Finding, ...]
    dropped_count: int
    overall_score: int
    risk_level: Severity
    confidence_metrics: ConfidenceMetrics
    score_distribution: ScoreDistribution
    summary: str
    recommendations: Tuple[str, ...] = ()
    gas_optimizations: Tuple[GasOptimization, ...] = ()
    code_quality: CodeQuality = field(default_factory=CodeQuality)
    agents_used: Tuple[str, ...] = ()
    failed_agents: Tuple[str, ...] = ()
    characteristics: ContractCharacteristics = field(default_factory=ContractCharacteristics)
    total_sources: int = 1

    @property
    def confidence_score(self) -> float:
        return self.confidence_metrics.overall


class ConsensusAggregator:
    """pure function of its inputs: ordering of agent_results does not change the output"""

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def aggregate(
        self,
        agent_results: Sequence[AgentResult],
        static_findings: Iterable[Finding] = (),
        characteristics: Optional[ContractCharacteristics] = None,
    ) -> AggregatedAnalysis:
        successful = sorted((r for r in agent_results if r.success), key=lambda r: r.agent_type.value)
        failed = sorted(r.agent_type.value for r in agent_results if not r.success)
        if not successful:
            raise NoSuccessfulAnalysisError(
                f"All {len(agent_results)} agent analyses failed ({', '.join(failed) or 'none dispatched'})"
            )

        total_sources = self.policy.total_possible_sources or (len(agent_results) + 1)
        merged = self._merge(successful, static_findings)
        scored = sort_findings(self._score(f, total_sources) for f in merged.values())
        kept = [f for f in scored if f.final_confidence >= self.policy.confidence_floor]
        dropped = len(scored) - len(kept)
        if dropped:
            logger.info(f"[Consensus] dropped {dropped} findings below confidence floor {self.policy.confidence_floor}")

        agent_scores = [r.analysis.overall_score for r in successful]
        score = self._weighted_score(successful, kept)
        risk = self.policy.risk_level(score, any(f.severity is Severity.CRITICAL for f in kept))
        metrics = self._confidence_metrics(agent_scores, kept, len(successful))

        aggregated = AggregatedAnalysis(
            vulnerabilities=tuple(kept),
            scored_findings=tuple(scored),
            dropped_count=dropped,
            overall_score=score,
            risk_level=risk,
            confidence_metrics=metrics,
            score_distribution=ScoreDistribution.from_scores(agent_scores),
            summary=self._summary(successful, kept),
            recommendations=self._recommendations(successful, bool(failed)),
            gas_optimizations=self._gas_optimizations(successful),
            code_quality=self._code_quality(successful),
            agents_used=tuple(r.agent_type.value for r in successful),
            failed_agents=tuple(failed),
            characteristics=characteristics or ContractCharacteristics(),
            total_sources=total_sources,
        )
        logger.info(
            f"[Consensus] {len(successful)} agents, {len(kept)} findings, score {score}, risk {risk.value}",
            extra={"agents_used": list(aggregated.agents_used), "failed_agents": failed},
        )
        return aggregated

    def _merge(self, successful: Sequence[AgentResult], static_findings: Iterable[Finding]) -> Dict[tuple, Finding]:
        merged: Dict[tuple, Finding] = {}

        def _add(finding: Finding) -> None:
            existing = merged.get(finding.key)
            merged[finding.key] = existing.merge(finding) if existing else finding

        for result in successful:
            source = result.agent_type.value
            for finding in result.analysis.vulnerabilities:
                _add(replace(
                    finding,
                    detected_by=finding.detected_by | {source},
                    category_weight=self.policy.category_weight(source, finding.category),
                ))
        for finding in sorted(static_findings, key=lambda f: f.sort_key()):
            _add(replace(
                finding,
                detected_by=finding.detected_by | {STATIC_SOURCE},
                category_weight=self.policy.category_weight(STATIC_SOURCE, finding.category),
            ))
        return merged

    def _score(self, finding: Finding, total_sources: int) -> Finding:
        consensus = min(1.0, len(finding.detected_by) / total_sources)
        base = finding.confidence_score
        adjusted = base
        if consensus > self.policy.consensus_threshold:
            adjusted = min(1.0, base * self.policy.consensus_boost)
        # the floor and penalties work on the unboosted confidence
        final = min(1.0, base * finding.category_weight * consensus)
        return finding.scored(round(consensus, 4), round(final, 4), round(adjusted, 4))

    def _weighted_score(self, successful: Sequence[AgentResult], findings: Sequence[Finding]) -> int:
        total_weight = 0.0
        weighted = 0.0
        for result in successful:
            weight = self.policy.agent_weight(result.agent_type.value)
            weighted += result.analysis.overall_score * weight
            total_weight += weight
        base = weighted / total_weight if total_weight > 0 else self.policy.default_agent_score
        penalty = sum(self.policy.penalty(f) for f in findings)
        return max(0, min(100, round(base - penalty)))

    def _confidence_metrics(self, scores: Sequence[int], findings: Sequence[Finding], used: int) -> ConfidenceMetrics:
        if len(scores) < 2:
            agreement = 1.0
        else:
            agreement = max(0.0, 1 - statistics.pstdev(scores) / 50)
        if findings:
            vuln_confidence = statistics.fmean(f.final_confidence for f in findings)
        else:
            vuln_confidence = 1.0
        coverage = min(1.0, used / self.policy.coverage_agent_count)
        overall = (agreement + vuln_confidence + coverage) / 3
        return ConfidenceMetrics(
            agent_agreement=round(agreement, 4),
            vulnerability_confidence=round(vuln_confidence, 4),
            coverage=round(coverage, 4),
            overall=round(overall, 4),
            level=confidence_level(overall),
        )

    def _recommendations(self, successful: Sequence[AgentResult], any_failed: bool) -> Tuple[str, ...]:
        ranked: List[Tuple[int, int, str]] = []
        for order, result in enumerate(successful):
            priority = self.policy.recommendation_priority(result.agent_type.value)
            for text in result.analysis.recommendations:
                ranked.append((-priority, order, text))
        ranked.sort(key=lambda item: (item[0], item[1]))

        seen = set()
        recommendations = []
        for _, _, text in ranked:
            norm = text.strip().lower()
            if not norm or norm in seen:
                continue
            seen.add(norm)
            recommendations.append(text.strip())
        if any_failed and FALLBACK_RECOMMENDATION.lower() not in seen:
            recommendations.append(FALLBACK_RECOMMENDATION)
        return tuple(recommendations)

    def _gas_optimizations(self, successful: Sequence[AgentResult]) -> Tuple[GasOptimization, ...]:
        unique: Dict[tuple, GasOptimization] = {}
        for result in successful:
            for opt in result.analysis.gas_optimizations:
                unique.setdefault(opt.key, opt)
        return tuple(unique.values())

    def _code_quality(self, successful: Sequence[AgentResult]) -> CodeQuality:
        reports = [r.analysis.code_quality for r in successful if r.analysis.code_quality is not None]
        if not reports:
            return CodeQuality(score=self.policy.default_code_quality)
        issues = list(dict.fromkeys(i for q in reports for i in q.issues))
        strengths = list(dict.fromkeys(s for q in reports for s in q.strengths))
        return CodeQuality(
            score=round(statistics.fmean(q.score for q in reports)),
            issues=tuple(issues),
            strengths=tuple(strengths),
        )

    def _summary(self, successful: Sequence[AgentResult], findings: Sequence[Finding]) -> str:
        critical = sum(1 for f in findings if f.severity is Severity.CRITICAL)
        high = sum(1 for f in findings if f.severity is Severity.HIGH)
        summary = f"Multi-agent analysis completed with {len(successful)} specialized AI agents. "
        if not findings:
            summary += "No significant vulnerabilities detected across all analysis dimensions."
        else:
            summary += f"Identified {len(findings)} potential issues"
            if critical:
                summary += f" including {critical} critical vulnerabilities"
            if high:
                summary += f" and {high} high-severity issues"
            summary += "."
        insights = " ".join(
            f"{r.agent_type.value}: {r.analysis.summary}" for r in successful if r.analysis.summary
        )
        if insights:
            summary += f" Agent insights: {insights}"
        return summary
