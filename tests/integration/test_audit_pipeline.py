"""integration tests for the full audit pipeline with scripted reviewers"""

import asyncio
import json

import pytest

from quorum.agent.fetcher import ContractFetcher, FetchedContract
from quorum.agent.orchestrator import AgentOrchestrator
from quorum.auditor import AuditEngine, AuditOptions
from quorum.cal.bytecode_scanner import BYTECODE_RECOMMENDATIONS
from quorum.consensus.aggregator import FALLBACK_RECOMMENDATION
from quorum.errors import InvalidInputError, NoSuccessfulAnalysisError, PersistenceError
from quorum.models.findings import AgentType, AnalysisMode, AuditStatus, Severity
from quorum.utils.audit_log import AuditLog, InMemoryAuditLog
from quorum.utils.caching import TTLCache

ADDRESS = "0x" + "ab" * 20

REENTRANCY_RESPONSE = json.dumps({
    "overallScore": 45,
    "riskLevel": "High",
    "summary": "withdraw sends ether before updating balances",
    "vulnerabilities": [{
        "name": "Reentrancy in withdraw",
        "description": "External call precedes the balance write",
        "severity": "High",
        "category": "reentrancy",
        "affectedLines": [13],
        "confidence": "High",
    }],
    "recommendations": ["Use a reentrancy guard"],
})


class ReversedOrchestrator(AgentOrchestrator):
    async def dispatch(self, agent_types, payload, mode=AnalysisMode.COMPREHENSIVE):
        results = await super().dispatch(agent_types, payload, mode)
        return list(reversed(results))


class FakeFetcher(ContractFetcher):
    def __init__(self, source_text=None, bytecode="0x6080"):
        self.source_text = source_text
        self.bytecode = bytecode
        self.calls = []

    def fetch_contract(self, address, chain):
        self.calls.append((address, chain))
        return FetchedContract(
            address=address,
            chain="ethereum",
            chain_id=1,
            bytecode=self.bytecode,
            source_text=self.source_text,
            balance="1.5",
            tx_count=7,
        )


class BrokenAuditLog(AuditLog):
    def __init__(self, error=None):
        self.error = error or PersistenceError("disk full")

    def record(self, report):
        raise self.error

    def get(self, audit_id):
        return None


def run(coro):
    return asyncio.run(coro)


def comparable(report):
    data = report.to_dict()
    for key in ("auditId", "timestamp", "executionTime"):
        data.pop(key)
    return data


class TestScenarios:

    def test_benign_contract_scores_low_risk(self, scripted_backend, audit_log, null_cache, benign_source):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        report = run(engine.audit_from_source(benign_source))

        assert report.status == AuditStatus.COMPLETED
        assert report.static_findings_count == 0
        assert report.vulnerabilities == ()
        assert report.overall_score >= 85
        assert report.risk_level == Severity.LOW
        assert report.contract_info["name"] == "Greeter"
        assert sorted(scripted_backend.calls, key=lambda a: a.value) == [AgentType.QUALITY, AgentType.SECURITY]
        assert audit_log.get(report.audit_id)["status"] == "completed"

    def test_static_reentrancy_always_reported(self, scripted_backend, audit_log, null_cache, reentrant_source):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        report = run(engine.audit_from_source(reentrant_source))

        reentrancy = [f for f in report.vulnerabilities if f.category == "reentrancy"]
        assert len(reentrancy) == 1
        assert reentrancy[0].severity == Severity.HIGH
        assert reentrancy[0].affected_lines == (13,)
        assert reentrancy[0].detected_by == frozenset({"static"})
        # floor-dropped static findings are re-added with their scores
        assert reentrancy[0].final_confidence is not None
        assert report.static_findings_count == 3
        assert len(report.vulnerabilities) == 3
        # one High and two Medium findings
        assert report.overall_score == 45
        assert report.risk_level == Severity.HIGH
        assert "mev" in report.agents_used

    def test_caller_agent_override(self, scripted_backend, audit_log, null_cache, reentrant_source):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        report = run(engine.audit_from_source(reentrant_source, AuditOptions(agents=("security",))))

        assert scripted_backend.calls == [AgentType.SECURITY]
        assert report.agents_used == ("security",)
        assert list(report.agent_contributions) == ["security"]

    def test_all_agents_failing_is_recorded(self, failing_backend, audit_log, null_cache, benign_source):
        engine = AuditEngine(failing_backend, audit_log=audit_log, cache=null_cache)
        with pytest.raises(NoSuccessfulAnalysisError):
            run(engine.audit_from_source(benign_source))

        records = audit_log.all()
        assert len(records) == 1
        assert records[0]["status"] == "failed"
        assert "All 2 agent analyses failed" in records[0]["error"]
        assert failing_backend.calls == 2


class TestConsensusThroughPipeline:

    def scripted(self, make_backend):
        return make_backend(responses={
            AgentType.SECURITY: REENTRANCY_RESPONSE,
            AgentType.MEV: REENTRANCY_RESPONSE,
        })

    def test_agreeing_reviewers_merge_into_one_finding(self, make_backend, audit_log, null_cache, reentrant_source):
        engine = AuditEngine(self.scripted(make_backend), audit_log=audit_log, cache=null_cache)
        report = run(engine.audit_from_source(reentrant_source))

        agreed = [f for f in report.vulnerabilities if f.name == "Reentrancy in withdraw"]
        assert len(agreed) == 1
        assert agreed[0].detected_by == frozenset({"security", "mev"})
        assert agreed[0].consensus == 0.5
        assert agreed[0].final_confidence == 0.405
        assert report.agent_contributions["security"]["count"] == 1
        assert report.agent_contributions["quality"]["count"] == 0
        assert report.recommendations[0] == "Use a reentrancy guard"

    def test_result_order_does_not_change_report(self, make_backend, reentrant_source, null_cache):
        forward_backend = self.scripted(make_backend)
        backward_backend = self.scripted(make_backend)
        forward = AuditEngine(forward_backend, audit_log=InMemoryAuditLog(), cache=null_cache)
        backward = AuditEngine(
            backward_backend,
            audit_log=InMemoryAuditLog(),
            cache=null_cache,
            orchestrator=ReversedOrchestrator(backward_backend),
        )
        first = run(forward.audit_from_source(reentrant_source))
        second = run(backward.audit_from_source(reentrant_source))
        assert comparable(first) == comparable(second)

    def test_failed_reviewer_is_isolated(self, make_backend, audit_log, null_cache, reentrant_source):
        backend = make_backend(responses={AgentType.MEV: ConnectionError("socket closed")})
        engine = AuditEngine(backend, audit_log=audit_log, cache=null_cache)
        report = run(engine.audit_from_source(reentrant_source))

        assert report.status == AuditStatus.COMPLETED
        assert report.failed_agents == ("mev",)
        assert report.agents_used == ("quality", "security")
        assert FALLBACK_RECOMMENDATION in report.recommendations
        assert audit_log.get(report.audit_id)["failedAgents"] == ["mev"]


class TestCache:

    def test_second_audit_hits_cache(self, make_backend, audit_log, benign_source):
        backend = make_backend()
        engine = AuditEngine(backend, audit_log=audit_log, cache=TTLCache(maxsize=4, ttl_seconds=60))
        first = run(engine.audit_from_source(benign_source))
        second = run(engine.audit_from_source(benign_source))

        assert len(backend.calls) == 2
        assert first.audit_id != second.audit_id
        assert second.vulnerabilities == first.vulnerabilities
        assert second.summary == first.summary
        assert len(audit_log) == 2

    def test_cache_bypass(self, make_backend, audit_log, benign_source):
        backend = make_backend()
        engine = AuditEngine(backend, audit_log=audit_log, cache=TTLCache())
        options = AuditOptions(use_cache=False)
        run(engine.audit_from_source(benign_source, options))
        run(engine.audit_from_source(benign_source, options))
        assert len(backend.calls) == 4

    def test_mode_is_part_of_key(self, make_backend, audit_log, benign_source):
        backend = make_backend()
        engine = AuditEngine(backend, audit_log=audit_log, cache=TTLCache())
        run(engine.audit_from_source(benign_source))
        run(engine.audit_from_source(benign_source, AuditOptions(analysis_mode="deep")))
        assert len(backend.calls) == 4

    def test_partial_failures_are_not_cached(self, make_backend, audit_log, reentrant_source):
        backend = make_backend(responses={AgentType.MEV: ConnectionError("socket closed")})
        engine = AuditEngine(backend, audit_log=audit_log, cache=TTLCache())
        run(engine.audit_from_source(reentrant_source))
        run(engine.audit_from_source(reentrant_source))
        assert len(backend.calls) == 6


class TestAddressAudits:

    def test_verified_source_runs_full_pipeline(self, scripted_backend, audit_log, null_cache, reentrant_source):
        fetcher = FakeFetcher(source_text=reentrant_source)
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache, fetcher=fetcher)
        report = run(engine.audit_from_address(ADDRESS, "mainnet"))

        assert fetcher.calls == [(ADDRESS, "mainnet")]
        assert report.status == AuditStatus.COMPLETED
        assert report.contract_info["name"] == "EtherStore"
        assert report.contract_info["address"] == ADDRESS
        assert report.contract_info["chainId"] == 1
        assert report.contract_info["transactionCount"] == 7
        assert any(f.category == "reentrancy" for f in report.vulnerabilities)

    def test_unverified_contract_gets_bytecode_report(self, scripted_backend, audit_log, null_cache):
        fetcher = FakeFetcher(bytecode="0x34f457ff")
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache, fetcher=fetcher)
        report = run(engine.audit_from_address(ADDRESS))

        assert scripted_backend.calls == []
        assert report.status == AuditStatus.BYTECODE_ONLY
        assert report.overall_score == 60
        assert report.risk_level == Severity.MEDIUM
        assert report.recommendations == BYTECODE_RECOMMENDATIONS
        data = report.to_dict()
        assert data["type"] == "bytecode-only"
        assert data["bytecodeAnalysis"]["patterns"]["hasSelfdestruct"] is True
        assert len(data["bytecodeAnalysis"]["warnings"]) == 2
        assert audit_log.get(report.audit_id)["status"] == "bytecode-only"

    def test_invalid_address_is_rejected_and_recorded(self, scripted_backend, audit_log, null_cache):
        fetcher = FakeFetcher()
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache, fetcher=fetcher)
        with pytest.raises(InvalidInputError):
            run(engine.audit_from_address("0x1234"))

        assert fetcher.calls == []
        record = audit_log.all()[0]
        assert record["status"] == "failed"
        assert record["contractInfo"] == {"address": "0x1234", "chain": "ethereum"}


class TestInputAndPersistenceErrors:

    def test_empty_source(self, scripted_backend, audit_log, null_cache):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        with pytest.raises(InvalidInputError, match="non-empty string"):
            run(engine.audit_from_source("   "))
        assert audit_log.all()[0]["status"] == "failed"
        assert scripted_backend.calls == []

    def test_oversized_source(self, scripted_backend, audit_log, null_cache, benign_source):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache, max_contract_size=64)
        with pytest.raises(InvalidInputError, match="exceeds maximum limit of 64 bytes"):
            run(engine.audit_from_source(benign_source))

    def test_unknown_mode(self, scripted_backend, audit_log, null_cache, benign_source):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        with pytest.raises(InvalidInputError, match="Unknown analysis mode"):
            run(engine.audit_from_source(benign_source, AuditOptions(analysis_mode="turbo")))

    def test_unknown_agents_only(self, scripted_backend, audit_log, null_cache, benign_source):
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        with pytest.raises(InvalidInputError, match="No supported agent types"):
            run(engine.audit_from_source(benign_source, AuditOptions(agents=("oracle",))))

    def test_broken_audit_log_does_not_fail_audit(self, scripted_backend, null_cache, benign_source):
        engine = AuditEngine(scripted_backend, audit_log=BrokenAuditLog(), cache=null_cache)
        report = run(engine.audit_from_source(benign_source))
        assert report.status == AuditStatus.COMPLETED

    def test_unexpected_audit_log_error_does_not_fail_audit(self, scripted_backend, null_cache, benign_source):
        audit_log = BrokenAuditLog(RuntimeError("log service down"))
        engine = AuditEngine(scripted_backend, audit_log=audit_log, cache=null_cache)
        report = run(engine.audit_from_source(benign_source))
        assert report.status == AuditStatus.COMPLETED
        assert report.overall_score == 100

    def test_audit_log_error_keeps_original_failure(self, failing_backend, null_cache, benign_source):
        audit_log = BrokenAuditLog(RuntimeError("log service down"))
        engine = AuditEngine(failing_backend, audit_log=audit_log, cache=null_cache)
        with pytest.raises(NoSuccessfulAnalysisError):
            run(engine.audit_from_source(benign_source))
