"""output formatters for audit reports: text, json"""

from enum import Enum
from typing import Protocol

from quorum.models.report import AuditReport


class OutputFormat(Enum):
    """supported output formats"""
    TEXT = "text"
    JSON = "json"


class OutputFormatter(Protocol):
    def format(self, report: AuditReport) -> str:
        ...


class TextFormatter:
    """human-readable text output (default terminal format)"""

    def format(self, report: AuditReport) -> str:
        lines = []

        lines.append("=" * 80)
        if report.status.value == "failed":
            lines.append("AUDIT FAILED")
        elif report.status.value == "bytecode-only":
            lines.append("AUDIT COMPLETED (BYTECODE ONLY)")
        else:
            lines.append("AUDIT COMPLETED")
        lines.append("=" * 80)

        lines.append(f"Contract: {report.contract_info.get('name', 'Unknown')}")
        lines.append(f"Audit ID: {report.audit_id}")
        lines.append(f"Timestamp: {report.timestamp.isoformat()}")

        if report.error:
            lines.append(f"\nError: {report.error}")
            lines.append("=" * 80)
            return "\n".join(lines)

        risk = report.risk_level
        lines.append(f"\nOverall Score: {report.overall_score}/100")
        lines.append(f"Risk Level: {risk.value if risk else 'n/a'}")
        lines.append(f"Confidence: {report.confidence_score:.2f}")
        counts = report.severity_counts
        lines.append("Severity Counts: " + ", ".join(f"{name} {count}" for name, count in counts.items()))
        if report.agents_used:
            lines.append(f"Agents: {', '.join(report.agents_used)}")
        if report.failed_agents:
            lines.append(f"Failed Agents: {', '.join(report.failed_agents)}")

        if report.summary:
            lines.append(f"\n{report.summary}")

        if report.vulnerabilities:
            lines.append("\nVULNERABILITIES:")
            for i, finding in enumerate(report.vulnerabilities, 1):
                lines.append(f"\n{i}. [{finding.severity.value.upper()}] {finding.name}")
                lines.append(f"   Category: {finding.category}")
                if finding.affected_lines:
                    lines.append(f"   Lines: {', '.join(str(n) for n in finding.affected_lines)}")
                lines.append(f"   Detected By: {', '.join(sorted(finding.detected_by))}")
                if finding.final_confidence is not None:
                    lines.append(f"   Confidence: {finding.final_confidence:.2f}")
                lines.append(f"   Description: {finding.description}")
                if finding.recommendation:
                    lines.append(f"   Recommendation: {finding.recommendation}")

        if report.recommendations:
            lines.append("\nRECOMMENDATIONS:")
            for rec in report.recommendations:
                lines.append(f"  - {rec}")

        if report.bytecode_analysis and report.bytecode_analysis.get("warnings"):
            lines.append("\nBYTECODE WARNINGS:")
            for warning in report.bytecode_analysis["warnings"]:
                lines.append(f"  - {warning}")

        lines.append(f"\n{'─' * 80}")
        lines.append(f"Total Time: {report.execution_time_ms / 1000:.1f}s")
        lines.append("=" * 80)

        return "\n".join(lines)


class JSONFormatter:
    """json output for programmatic consumption"""

    def format(self, report: AuditReport) -> str:
        return report.to_json()


def get_formatter(format_type: OutputFormat) -> OutputFormatter:
    formatters = {
        OutputFormat.TEXT: TextFormatter(),
        OutputFormat.JSON: JSONFormatter(),
    }
    return formatters[format_type]
