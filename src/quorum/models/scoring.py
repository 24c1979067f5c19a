"""scoring constants and the canonical score/risk helpers"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Iterable, Tuple, Optional

from quorum.models.findings import Severity, Finding, AgentType, STATIC_SOURCE


# per-reviewer trust in each finding category, "default" for anything else
CATEGORY_WEIGHTS = MappingProxyType({
    AgentType.SECURITY.value: {
        "reentrancy": 0.9,
        "access-control": 0.9,
        "arithmetic": 0.8,
        "unchecked-calls": 0.8,
        "gas-limit": 0.7,
        "timestamp-dependence": 0.7,
        "tx-origin": 0.8,
        "default": 0.8,
    },
    AgentType.QUALITY.value: {
        "gas-optimization": 0.9,
        "best-practices": 0.8,
        "code-structure": 0.7,
        "default": 0.6,
    },
    AgentType.ECONOMICS.value: {
        "tokenomics": 0.9,
        "incentive-design": 0.8,
        "economic-attack": 0.7,
        "governance": 0.6,
        "default": 0.5,
    },
    AgentType.DEFI.value: {
        "amm": 0.9,
        "lending": 0.9,
        "yield-farming": 0.8,
        "governance": 0.7,
        "liquidity": 0.8,
        "oracle": 0.7,
        "default": 0.7,
    },
    AgentType.CROSS_CHAIN.value: {
        "bridge-security": 0.9,
        "state-sync": 0.8,
        "cross-chain-reentrancy": 0.8,
        "consensus": 0.7,
        "default": 0.6,
    },
    AgentType.MEV.value: {
        "frontrunning": 0.9,
        "sandwich-attack": 0.9,
        "flashloan": 0.8,
        "arbitrage": 0.7,
        "liquidation": 0.7,
        "default": 0.6,
    },
    STATIC_SOURCE: {
        "default": 0.8,
    },
})

AGENT_SCORE_WEIGHTS = MappingProxyType({
    AgentType.SECURITY.value: 0.35,
    AgentType.DEFI.value: 0.25,
    AgentType.QUALITY.value: 0.15,
    AgentType.ECONOMICS.value: 0.10,
    AgentType.CROSS_CHAIN.value: 0.08,
    AgentType.MEV.value: 0.07,
})

RECOMMENDATION_PRIORITY = MappingProxyType({
    AgentType.SECURITY.value: 5,
    AgentType.DEFI.value: 4,
    AgentType.QUALITY.value: 3,
    AgentType.ECONOMICS.value: 2,
    AgentType.CROSS_CHAIN.value: 2,
    AgentType.MEV.value: 2,
})

# aggregator penalty, multiplied by each finding's final confidence
SEVERITY_PENALTIES = MappingProxyType({
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
})

# report deduction, flat per finding
SEVERITY_DEDUCTIONS = MappingProxyType({
    Severity.CRITICAL: 40,
    Severity.HIGH: 25,
    Severity.MEDIUM: 15,
    Severity.LOW: 5,
})

RISK_RECOMMENDATIONS = MappingProxyType({
    Severity.CRITICAL: "Immediate security review required before deployment",
    Severity.HIGH: "Comprehensive security audit recommended",
    Severity.MEDIUM: "Address identified issues before production",
    Severity.LOW: "Monitor and maintain security best practices",
})


@dataclass(frozen=True)
class ScoringPolicy:
    """tunable scoring constants"""
    confidence_floor: float = 0.4
    consensus_threshold: float = 0.6
    consensus_boost: float = 1.2
    risk_thresholds: Tuple[int, int, int] = (80, 60, 40)
    bytecode_default_score: int = 60
    default_agent_score: int = 50
    default_code_quality: int = 70
    default_agent_weight: float = 0.10
    default_category_weight: float = 0.5
    default_penalty: int = 5
    default_deduction: int = 10
    default_recommendation_priority: int = 1
    # source count used for coverage in confidence metrics
    coverage_agent_count: int = 6
    # None means dispatched agents plus the static scanner
    total_possible_sources: Optional[int] = None
    category_weights: Mapping[str, Mapping[str, float]] = field(default_factory=lambda: CATEGORY_WEIGHTS, compare=False)
    agent_weights: Mapping[str, float] = field(default_factory=lambda: AGENT_SCORE_WEIGHTS, compare=False)
    penalties: Mapping[Severity, int] = field(default_factory=lambda: SEVERITY_PENALTIES, compare=False)
    deductions: Mapping[Severity, int] = field(default_factory=lambda: SEVERITY_DEDUCTIONS, compare=False)

    def __post_init__(self) -> None:
        low, medium, high = self.risk_thresholds
        if not (100 >= low >= medium >= high >= 0):
            raise ValueError(f"risk thresholds must be descending within [0, 100]: {self.risk_thresholds}")
        if not 0.0 <= self.confidence_floor <= 1.0:
            raise ValueError(f"confidence floor must be in [0, 1]: {self.confidence_floor}")

    @classmethod
    def from_config(cls, cfg=None) -> "ScoringPolicy":
        if cfg is None:
            from quorum.config import config as cfg
        return cls(
            confidence_floor=cfg.CONFIDENCE_FLOOR,
            consensus_threshold=cfg.CONSENSUS_THRESHOLD,
            consensus_boost=cfg.CONSENSUS_BOOST,
            risk_thresholds=(cfg.RISK_THRESHOLD_LOW, cfg.RISK_THRESHOLD_MEDIUM, cfg.RISK_THRESHOLD_HIGH),
            bytecode_default_score=cfg.BYTECODE_DEFAULT_SCORE,
        )

    def category_weight(self, source: str, category: str) -> float:
        weights = self.category_weights.get(source)
        if not weights:
            return self.default_category_weight
        return weights.get(category) or weights.get("default") or self.default_category_weight

    def agent_weight(self, agent_type: str) -> float:
        return self.agent_weights.get(agent_type, self.default_agent_weight)

    def recommendation_priority(self, agent_type: str) -> int:
        return RECOMMENDATION_PRIORITY.get(agent_type, self.default_recommendation_priority)

    def risk_level(self, score: float, has_critical: bool = False) -> Severity:
        """critical findings override the score thresholds"""
        if has_critical:
            return Severity.CRITICAL
        low, medium, high = self.risk_thresholds
        if score >= low:
            return Severity.LOW
        if score >= medium:
            return Severity.MEDIUM
        if score >= high:
            return Severity.HIGH
        return Severity.CRITICAL

    def penalty(self, finding: Finding) -> float:
        base = self.penalties.get(finding.severity, self.default_penalty)
        return base * (finding.final_confidence if finding.final_confidence is not None else finding.confidence_score)

    def deduction_score(self, findings: Iterable[Finding]) -> int:
        """100 minus flat per-severity deductions, floored at 0"""
        total = sum(self.deductions.get(f.severity, self.default_deduction) for f in findings)
        return max(0, 100 - total)

    def report_risk(self, findings: Iterable[Finding]) -> Tuple[int, Severity]:
        findings = list(findings)
        score = self.deduction_score(findings)
        has_critical = any(f.severity is Severity.CRITICAL for f in findings)
        return score, self.risk_level(score, has_critical)


def confidence_level(value: float) -> str:
    if value >= 0.8:
        return "Very High"
    if value >= 0.6:
        return "High"
    if value >= 0.4:
        return "Medium"
    if value >= 0.2:
        return "Low"
    return "Very Low"


DEFAULT_POLICY = ScoringPolicy()
