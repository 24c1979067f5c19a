"""tests for reviewer response normalization"""

import json
import unittest

from quorum.agent.normalizer import FALLBACK_RECOMMENDATION, MAX_RESPONSE_CHARS, default_analysis, normalize
from quorum.models.findings import AgentType, Confidence, Severity


FULL_RESPONSE = {
    "overallScore": 72.6,
    "riskLevel": "high",
    "summary": "  Withdraw is reentrant  ",
    "vulnerabilities": [
        {
            "name": "Reentrancy",
            "description": "State written after external call",
            "severity": "Critical",
            "category": "Reentrancy",
            "affectedLines": [15, 13, "x", -2, 14.0],
            "codeSnippet": "msg.sender.call{value: amount}(\"\")",
            "recommendation": "Use a reentrancy guard",
            "impact": "Funds drained",
            "confidence": 0.92,
        },
        "not an object",
    ],
    "recommendations": ["Add a guard", 7, ""],
    "gasOptimizations": [{"description": "Cache array length", "affectedLines": [20]}],
    "codeQuality": {"score": 64, "issues": ["Missing events"], "strengths": ["Clear names"]},
    "extraField": "ignored",
}


class TestNormalize(unittest.TestCase):

    def test_full_response_from_dict(self):
        analysis = normalize(FULL_RESPONSE, AgentType.SECURITY)
        self.assertFalse(analysis.is_fallback)
        self.assertEqual(analysis.agent_type, "security")
        self.assertEqual(analysis.overall_score, 73)
        self.assertEqual(analysis.risk_level, Severity.HIGH)
        self.assertEqual(analysis.summary, "Withdraw is reentrant")
        self.assertEqual(len(analysis.vulnerabilities), 1)

        finding = analysis.vulnerabilities[0]
        self.assertEqual(finding.category, "reentrancy")
        self.assertEqual(finding.severity, Severity.CRITICAL)
        self.assertEqual(finding.confidence, Confidence.HIGH)
        self.assertEqual(finding.affected_lines, (13, 14, 15))
        self.assertEqual(finding.detected_by, frozenset({"security"}))

        self.assertEqual(analysis.recommendations, ("Add a guard",))
        self.assertEqual(analysis.gas_optimizations[0].affected_lines, (20,))
        self.assertEqual(analysis.gas_optimizations[0].potential_savings, "Unknown savings")
        self.assertEqual(analysis.code_quality.score, 64)
        self.assertEqual(analysis.code_quality.issues, ("Missing events",))

    def test_text_with_prose_and_fence(self):
        text = "Here you go:\n```json\n" + json.dumps(FULL_RESPONSE) + "\n```"
        analysis = normalize(text, "defi")
        self.assertEqual(analysis.agent_type, "defi")
        self.assertEqual(analysis.vulnerabilities[0].detected_by, frozenset({"defi"}))

    def test_missing_fields_get_defaults(self):
        analysis = normalize('{"vulnerabilities": [{}]}', AgentType.QUALITY)
        self.assertEqual(analysis.overall_score, 50)
        self.assertEqual(analysis.risk_level, Severity.MEDIUM)
        self.assertEqual(analysis.summary, "Analysis completed")
        self.assertIsNone(analysis.code_quality)
        finding = analysis.vulnerabilities[0]
        self.assertEqual(finding.name, "Unknown Vulnerability")
        self.assertEqual(finding.description, "No description provided")
        self.assertEqual(finding.category, "other")
        self.assertEqual(finding.recommendation, "Manual review recommended")
        self.assertEqual(finding.confidence, Confidence.MEDIUM)

    def test_bad_field_types_are_coerced(self):
        analysis = normalize({
            "overallScore": "ninety",
            "riskLevel": 4,
            "summary": ["not", "a", "string"],
            "vulnerabilities": {"name": "not a list"},
            "codeQuality": "good",
        }, AgentType.MEV)
        self.assertFalse(analysis.is_fallback)
        self.assertEqual(analysis.overall_score, 50)
        self.assertEqual(analysis.risk_level, Severity.MEDIUM)
        self.assertEqual(analysis.summary, "Analysis completed")
        self.assertEqual(analysis.vulnerabilities, ())
        self.assertIsNone(analysis.code_quality)

    def test_scores_are_clamped(self):
        self.assertEqual(normalize({"overallScore": 250}, "security").overall_score, 100)
        self.assertEqual(normalize({"overallScore": -3}, "security").overall_score, 0)

    def test_camel_case_category_becomes_kebab(self):
        analysis = normalize({"vulnerabilities": [{"category": "sandwichAttack"}]}, "mev")
        self.assertEqual(analysis.vulnerabilities[0].category, "sandwich-attack")

    def test_unparseable_text_falls_back(self):
        analysis = normalize("I could not analyze this contract.", AgentType.ECONOMICS)
        self.assertTrue(analysis.is_fallback)
        self.assertEqual(analysis.agent_type, "economics")

    def test_non_object_json_falls_back(self):
        self.assertTrue(normalize("[1, 2, 3]", "security").is_fallback)

    def test_empty_and_none_fall_back(self):
        self.assertTrue(normalize("", "security").is_fallback)
        self.assertTrue(normalize(None, "security").is_fallback)

    def test_deeply_nested_reply_falls_back(self):
        depth = 5000
        raw = '{"vulnerabilities": ' + "[" * depth + "]" * depth + "}"
        analysis = normalize(raw, AgentType.SECURITY)
        self.assertTrue(analysis.is_fallback)
        self.assertEqual(analysis.agent_type, "security")

    def test_oversized_reply_falls_back(self):
        raw = "{" * (MAX_RESPONSE_CHARS + 1)
        self.assertTrue(normalize(raw, "quality").is_fallback)


class TestDefaultAnalysis(unittest.TestCase):

    def test_fallback_shape(self):
        analysis = default_analysis(AgentType.CROSS_CHAIN)
        self.assertEqual(analysis.agent_type, "crossChain")
        self.assertEqual(analysis.overall_score, 50)
        self.assertEqual(analysis.risk_level, Severity.MEDIUM)
        self.assertEqual(analysis.summary, "crossChain analysis completed with fallback response")
        self.assertEqual(analysis.recommendations, (FALLBACK_RECOMMENDATION,))
        self.assertEqual(analysis.code_quality.issues, ("Service unavailable",))
        self.assertEqual(analysis.vulnerabilities, ())
        self.assertTrue(analysis.is_fallback)


if __name__ == "__main__":
    unittest.main()
