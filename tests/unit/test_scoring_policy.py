"""tests for scoring policy: weights, risk bands, deductions"""

import pytest

from quorum.config import QuorumConfig
from quorum.models.findings import Confidence, Finding, Severity
from quorum.models.scoring import DEFAULT_POLICY, ScoringPolicy, confidence_level


def finding(severity, name="issue", final_confidence=None):
    return Finding(
        name=name,
        description="",
        category="other",
        severity=severity,
        confidence=Confidence.HIGH,
        final_confidence=final_confidence,
    )


class TestCategoryWeights:

    def test_known_category(self):
        assert DEFAULT_POLICY.category_weight("security", "reentrancy") == 0.9
        assert DEFAULT_POLICY.category_weight("quality", "gas-optimization") == 0.9

    def test_falls_back_to_source_default(self):
        assert DEFAULT_POLICY.category_weight("security", "made-up") == 0.8
        assert DEFAULT_POLICY.category_weight("mev", "reentrancy") == 0.6

    def test_static_source(self):
        assert DEFAULT_POLICY.category_weight("static", "tx-origin") == 0.8

    def test_unknown_source_uses_policy_default(self):
        assert DEFAULT_POLICY.category_weight("governance", "reentrancy") == 0.5

    def test_agent_weights(self):
        assert DEFAULT_POLICY.agent_weight("security") == 0.35
        assert DEFAULT_POLICY.agent_weight("gasOptimization") == 0.10


class TestRiskLevel:

    @pytest.mark.parametrize("score,expected", [
        (100, Severity.LOW),
        (80, Severity.LOW),
        (79, Severity.MEDIUM),
        (60, Severity.MEDIUM),
        (59, Severity.HIGH),
        (40, Severity.HIGH),
        (39, Severity.CRITICAL),
        (0, Severity.CRITICAL),
    ])
    def test_thresholds(self, score, expected):
        assert DEFAULT_POLICY.risk_level(score) == expected

    def test_critical_finding_overrides_score(self):
        assert DEFAULT_POLICY.risk_level(95, has_critical=True) == Severity.CRITICAL

    def test_custom_thresholds(self):
        policy = ScoringPolicy(risk_thresholds=(90, 70, 50))
        assert policy.risk_level(85) == Severity.MEDIUM

    def test_invalid_thresholds_rejected(self):
        with pytest.raises(ValueError):
            ScoringPolicy(risk_thresholds=(40, 60, 80))

    def test_invalid_floor_rejected(self):
        with pytest.raises(ValueError):
            ScoringPolicy(confidence_floor=1.5)


class TestDeductions:

    def test_no_findings_is_perfect(self):
        assert DEFAULT_POLICY.deduction_score([]) == 100

    def test_flat_deductions(self):
        findings = [finding(Severity.HIGH, "a"), finding(Severity.MEDIUM, "b"), finding(Severity.LOW, "c")]
        assert DEFAULT_POLICY.deduction_score(findings) == 100 - 25 - 15 - 5

    def test_floored_at_zero(self):
        findings = [finding(Severity.CRITICAL, str(i)) for i in range(4)]
        assert DEFAULT_POLICY.deduction_score(findings) == 0

    def test_report_risk_with_critical(self):
        score, risk = DEFAULT_POLICY.report_risk([finding(Severity.CRITICAL)])
        assert score == 60
        assert risk == Severity.CRITICAL

    def test_penalty_scales_with_final_confidence(self):
        assert DEFAULT_POLICY.penalty(finding(Severity.HIGH, final_confidence=0.5)) == pytest.approx(7.5)
        # without a final confidence the stated confidence is used
        assert DEFAULT_POLICY.penalty(finding(Severity.CRITICAL)) == pytest.approx(22.5)


class TestFromConfig:

    def test_reads_thresholds(self, monkeypatch):
        monkeypatch.setenv("CONFIDENCE_FLOOR", "0.3")
        monkeypatch.setenv("RISK_THRESHOLD_LOW", "90")
        policy = ScoringPolicy.from_config(QuorumConfig())
        assert policy.confidence_floor == 0.3
        assert policy.risk_thresholds == (90, 60, 40)


@pytest.mark.parametrize("value,label", [
    (0.85, "Very High"),
    (0.65, "High"),
    (0.45, "Medium"),
    (0.25, "Low"),
    (0.05, "Very Low"),
])
def test_confidence_level(value, label):
    assert confidence_level(value) == label
