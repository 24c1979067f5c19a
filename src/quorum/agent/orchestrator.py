"""parallel reviewer dispatch with per-task and per-batch timeouts"""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from quorum.agent.normalizer import default_analysis, normalize
from quorum.agent.prompts import build_prompt, system_prompt
from quorum.errors import AgentTaskError
from quorum.models.contract import ContractPayload
from quorum.models.findings import AgentResult, AgentType, AnalysisMode
from quorum.utils.llm_backend import LLMBackend

logger = logging.getLogger(__name__)


class AgentOrchestrator:
    """fan one task per reviewer out on the event loop, fan results back in dispatch order"""

    def __init__(
        self,
        backend: LLMBackend,
        task_timeout: Optional[float] = None,
        batch_timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        from quorum.config import config

        self.backend = backend
        self.task_timeout = task_timeout if task_timeout is not None else config.AGENT_TASK_TIMEOUT
        self.batch_timeout = batch_timeout if batch_timeout is not None else config.ANALYSIS_TIMEOUT
        self.max_tokens = max_tokens if max_tokens is not None else config.LLM_MAX_TOKENS
        self.temperature = temperature if temperature is not None else config.LLM_TEMPERATURE

    def timeout_for(self, mode: AnalysisMode) -> float:
        """inline mode gets the short per-task timeout, deep mode the whole pipeline budget"""
        if mode is AnalysisMode.DEEP:
            return self.batch_timeout
        return self.task_timeout

    async def dispatch(
        self,
        agent_types: Sequence[AgentType],
        payload: ContractPayload,
        mode: AnalysisMode = AnalysisMode.COMPREHENSIVE,
    ) -> List[AgentResult]:
        if not agent_types:
            return []

        timeout = self.timeout_for(mode)
        logger.info(
            f"[Dispatch] {len(agent_types)} agents (mode={mode.value}, task timeout={timeout:.1f}s, "
            f"batch timeout={self.batch_timeout:.1f}s)"
        )
        tasks = [
            asyncio.create_task(self._run_agent(agent, payload, mode, timeout), name=f"agent-{agent.value}")
            for agent in agent_types
        ]
        done, pending = await asyncio.wait(tasks, timeout=self.batch_timeout)

        if pending:
            logger.warning(
                f"[Dispatch] batch timeout after {self.batch_timeout:.1f}s, cancelling {len(pending)} pending agents"
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        results = []
        for agent, task in zip(agent_types, tasks):
            if task in done and not task.cancelled() and task.exception() is None:
                results.append(task.result())
                continue
            reason = "Analysis batch timed out" if task not in done else f"Agent task crashed: {task.exception()}"
            results.append(AgentResult.failed(agent, reason, fallback=default_analysis(agent)))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"[Dispatch] {succeeded}/{len(results)} agents succeeded")
        return results

    async def _run_agent(
        self,
        agent: AgentType,
        payload: ContractPayload,
        mode: AnalysisMode,
        timeout: float,
    ) -> AgentResult:
        start = time.monotonic()
        logger.info(f"[{agent.value}] starting analysis...", extra={"agent": agent.value})
        prompt = build_prompt(agent, payload, mode)
        try:
            try:
                response = await asyncio.wait_for(
                    self.backend.generate(
                        prompt,
                        system_prompt=system_prompt(agent),
                        max_tokens=self.max_tokens,
                        temperature=self.temperature,
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise AgentTaskError(agent.value, f"Analysis timed out after {timeout:.1f}s") from e
            except Exception as e:
                raise AgentTaskError(agent.value, str(e) or type(e).__name__) from e
        except AgentTaskError as e:
            elapsed = int((time.monotonic() - start) * 1000)
            logger.warning(f"[{agent.value}] analysis failed: {e.reason}", extra={"agent": agent.value})
            return AgentResult.failed(agent, e.reason, fallback=default_analysis(agent), execution_time_ms=elapsed)

        analysis = normalize(response.text, agent)
        elapsed = int((time.monotonic() - start) * 1000)
        logger.info(
            f"[{agent.value}] completed in {elapsed}ms: {len(analysis.vulnerabilities)} findings, "
            f"score {analysis.overall_score}",
            extra={"agent": agent.value, "execution_time_ms": elapsed},
        )
        return AgentResult.ok(agent, analysis, execution_time_ms=elapsed)
