"""
audit engine: validation -> structural analysis -> reviewer selection -> dispatch
-> consensus -> final report, for source text or an on-chain address.

every audit, failed ones included, is written to the audit log. the final
score and risk level are derived by AuditReport from the final finding list.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from quorum.agent.fetcher import ContractFetcher, EtherscanFetcher, FetchedContract
from quorum.agent.orchestrator import AgentOrchestrator
from quorum.agent.selection import extract_characteristics, select_agents
from quorum.cal.bytecode_scanner import BYTECODE_RECOMMENDATIONS, BYTECODE_SUMMARY, scan_bytecode
from quorum.cal.structural_analyzer import StructuralAnalyzer
from quorum.config import config
from quorum.consensus.aggregator import AggregatedAnalysis, ConsensusAggregator
from quorum.errors import InvalidInputError
from quorum.models.contract import ContractPayload
from quorum.models.findings import AnalysisMode, AuditStatus, Finding, Severity, sort_findings
from quorum.models.report import BYTECODE_ANALYSIS, FULL_ANALYSIS, AuditReport
from quorum.models.scoring import ScoringPolicy
from quorum.utils.audit_log import AuditLog, create_audit_log
from quorum.utils.caching import NullCache, TTLCache, content_hash
from quorum.utils.correlation import auditcontext
from quorum.utils.llm_backend import LLMBackend
from quorum.utils.metrics_logger import log_metric
from quorum.utils.validation import require_valid_address, require_valid_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditOptions:
    """per-audit caller options"""
    agents: Optional[Tuple[str, ...]] = None
    analysis_mode: str = AnalysisMode.COMPREHENSIVE.value
    chain: Optional[str] = None
    contract_address: Optional[str] = None
    use_cache: bool = True


def agent_contributions(agents_used: Iterable[str], findings: Iterable[Finding]) -> Dict[str, Dict[str, Any]]:
    """per successful agent: how many final findings it detected, by severity"""
    findings = list(findings)
    contributions = {}
    for agent in agents_used:
        detected = [f for f in findings if agent in f.detected_by]
        severities = {s.value: 0 for s in sorted(Severity, key=lambda s: -s.rank)}
        for finding in detected:
            severities[finding.severity.value] += 1
        contributions[agent] = {"count": len(detected), "severities": severities}
    return contributions


def merge_static_findings(aggregated: AggregatedAnalysis, static_findings: Iterable[Finding]) -> List[Finding]:
    """static findings are always reported: re-add any the confidence floor removed"""
    final = {f.key: f for f in aggregated.vulnerabilities}
    scored = {f.key: f for f in aggregated.scored_findings}
    for finding in static_findings:
        if finding.key not in final:
            final[finding.key] = scored.get(finding.key, finding)
    return sort_findings(final.values())


class AuditEngine:
    """top-level audit entry point. collaborators are injected so tests can swap any of them."""

    def __init__(
        self,
        backend: LLMBackend,
        audit_log: Optional[AuditLog] = None,
        cache=None,
        fetcher: Optional[ContractFetcher] = None,
        policy: Optional[ScoringPolicy] = None,
        orchestrator: Optional[AgentOrchestrator] = None,
        max_contract_size: Optional[int] = None,
        max_agents: Optional[int] = None,
    ):
        self.backend = backend
        self.audit_log = audit_log if audit_log is not None else create_audit_log()
        if cache is None:
            cache = (
                TTLCache(maxsize=config.RESPONSE_CACHE_SIZE, ttl_seconds=config.RESPONSE_CACHE_TTL)
                if config.ENABLE_RESPONSE_CACHE
                else NullCache()
            )
        self.cache = cache
        self._fetcher = fetcher
        self.policy = policy or ScoringPolicy.from_config(config)
        self.orchestrator = orchestrator or AgentOrchestrator(backend)
        self.analyzer = StructuralAnalyzer()
        self.aggregator = ConsensusAggregator(self.policy)
        self.max_contract_size = max_contract_size if max_contract_size is not None else config.MAX_CONTRACT_SIZE_BYTES
        self.max_agents = max_agents if max_agents is not None else config.MAX_CONCURRENT_AGENTS

    @property
    def fetcher(self) -> ContractFetcher:
        if self._fetcher is None:
            self._fetcher = EtherscanFetcher()
        return self._fetcher

    async def aclose(self) -> None:
        await self.backend.aclose()

    async def audit_from_source(self, source: str, options: Optional[AuditOptions] = None) -> AuditReport:
        options = options or AuditOptions()
        with auditcontext() as audit_id:
            start = time.monotonic()
            logger.info(f"Starting audit {audit_id}")
            try:
                report = await self._audit_source(audit_id, source, options, start)
            except Exception as e:
                self._record_failure(audit_id, e, start)
                raise
            self._record(report)
            return report

    async def audit_from_address(
        self,
        address: str,
        chain: str = "ethereum",
        options: Optional[AuditOptions] = None,
    ) -> AuditReport:
        options = options or AuditOptions()
        with auditcontext() as audit_id:
            start = time.monotonic()
            logger.info(f"Starting audit {audit_id} for {address} on {chain}")
            contract_info: Dict[str, Any] = {"address": address, "chain": chain}
            try:
                require_valid_address(address, chain)
                fetched = await asyncio.to_thread(self.fetcher.fetch_contract, address.strip(), chain)
                contract_info = fetched.contract_info()
                if fetched.has_source:
                    source_options = AuditOptions(
                        agents=options.agents,
                        analysis_mode=options.analysis_mode,
                        chain=fetched.chain,
                        contract_address=fetched.address,
                        use_cache=options.use_cache,
                    )
                    report = await self._audit_source(
                        audit_id, fetched.source_text, source_options, start, extra_info=contract_info
                    )
                else:
                    report = self._audit_bytecode(audit_id, fetched, start)
            except Exception as e:
                self._record_failure(audit_id, e, start, contract_info)
                raise
            self._record(report)
            return report

    async def _audit_source(
        self,
        audit_id: str,
        source: str,
        options: AuditOptions,
        start: float,
        extra_info: Optional[Dict[str, Any]] = None,
    ) -> AuditReport:
        require_valid_source(source, self.max_contract_size)
        try:
            mode = AnalysisMode.parse(options.analysis_mode)
        except ValueError as e:
            raise InvalidInputError(str(e)) from e

        analysis = self.analyzer.parse(source)
        characteristics = extract_characteristics(analysis.facts, source)
        agents = select_agents(characteristics, options.agents, cap=self.max_agents)
        if not agents:
            raise InvalidInputError("No supported agent types requested")

        payload = ContractPayload.from_analysis(
            source,
            analysis,
            characteristics,
            chain=options.chain,
            address=options.contract_address,
        )
        cache_key = content_hash(source, [a.value for a in agents], mode.value)
        cached = self.cache.get(cache_key) if options.use_cache else None
        if cached is not None:
            agent_results, aggregated = cached
            logger.info(f"Response cache hit for {payload.name} ({len(agent_results)} agents)")
        else:
            agent_results = await self.orchestrator.dispatch(agents, payload, mode)
            aggregated = self.aggregator.aggregate(agent_results, analysis.static_findings, characteristics)
            # partial results are not cached so a retry can recover failed agents
            if options.use_cache and not aggregated.failed_agents:
                self.cache.put(cache_key, (tuple(agent_results), aggregated))

        vulnerabilities = merge_static_findings(aggregated, analysis.static_findings)
        contract_info = analysis.contract_info()
        if extra_info:
            contract_info.update(extra_info)

        report = AuditReport(
            audit_id=audit_id,
            status=AuditStatus.COMPLETED,
            contract_info=contract_info,
            vulnerabilities=tuple(vulnerabilities),
            confidence_score=aggregated.confidence_score,
            recommendations=aggregated.recommendations,
            gas_optimizations=aggregated.gas_optimizations,
            code_quality=aggregated.code_quality,
            agent_contributions=agent_contributions(aggregated.agents_used, vulnerabilities),
            summary=aggregated.summary,
            execution_time_ms=self._elapsed_ms(start),
            report_type=FULL_ANALYSIS,
            static_findings_count=len(analysis.static_findings),
            agents_used=aggregated.agents_used,
            failed_agents=aggregated.failed_agents,
            confidence_metrics=aggregated.confidence_metrics.to_dict(),
            score_distribution=aggregated.score_distribution.to_dict(),
            characteristics=characteristics.to_dict(),
            consensus_score=aggregated.overall_score,
            dropped_findings=aggregated.dropped_count,
            policy=self.policy,
        )
        logger.info(
            f"Audit {audit_id} completed: {len(vulnerabilities)} findings, score {report.overall_score}, "
            f"risk {report.risk_level.value}",
            extra={"agents_used": list(report.agents_used), "failed_agents": list(report.failed_agents)},
        )
        log_metric("auditor", "audit_completed", {
            "audit_id": audit_id,
            "contract": payload.name,
            "agents": [a.value for a in agents],
            "failed_agents": list(aggregated.failed_agents),
            "findings": len(vulnerabilities),
            "static_findings": len(analysis.static_findings),
            "dropped_findings": aggregated.dropped_count,
            "overall_score": report.overall_score,
            "cache_hit": cached is not None,
            "execution_time_ms": report.execution_time_ms,
        })
        return report

    def _audit_bytecode(self, audit_id: str, fetched: FetchedContract, start: float) -> AuditReport:
        logger.info(f"No verified source for {fetched.address}, performing bytecode analysis")
        bytecode = scan_bytecode(fetched.bytecode)
        report = AuditReport(
            audit_id=audit_id,
            status=AuditStatus.BYTECODE_ONLY,
            contract_info=fetched.contract_info(),
            summary=BYTECODE_SUMMARY,
            recommendations=BYTECODE_RECOMMENDATIONS,
            execution_time_ms=self._elapsed_ms(start),
            report_type=BYTECODE_ANALYSIS,
            bytecode_analysis=bytecode.to_dict(),
            policy=self.policy,
        )
        log_metric("auditor", "bytecode_audit_completed", {
            "audit_id": audit_id,
            "size": bytecode.size,
            "warnings": len(bytecode.warnings),
        })
        return report

    def _record(self, report: AuditReport) -> None:
        # audit log failures never fail the audit
        try:
            self.audit_log.record(report)
        except Exception as e:
            logger.error(f"Failed to record audit {report.audit_id}: {e}", exc_info=True)

    def _record_failure(
        self,
        audit_id: str,
        error: Exception,
        start: float,
        contract_info: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.error(f"Audit {audit_id} failed: {type(error).__name__}: {error}")
        report = AuditReport(
            audit_id=audit_id,
            status=AuditStatus.FAILED,
            contract_info=dict(contract_info or {}),
            summary=f"Audit failed: {error}",
            execution_time_ms=self._elapsed_ms(start),
            error=str(error) or type(error).__name__,
            policy=self.policy,
        )
        self._record(report)
        log_metric("auditor", "audit_failed", {"audit_id": audit_id, "error_type": type(error).__name__})

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
