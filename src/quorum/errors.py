"""exception taxonomy for the audit engine"""


class QuorumError(Exception):
    """base class for every error raised by the audit engine"""


class InvalidInputError(QuorumError):
    """malformed, oversized or non-contract input. surfaced to the caller, never retried."""


class ParseError(QuorumError):
    """source text cannot be tokenized at all (empty or not a string)"""


class AgentTaskError(QuorumError):
    """one reviewer failed or timed out. recovered inside the dispatch task."""

    def __init__(self, agent_type: str, message: str):
        super().__init__(f"{agent_type}: {message}")
        self.agent_type = agent_type
        self.reason = message


class NoSuccessfulAnalysisError(QuorumError):
    """every dispatched reviewer failed"""


class PersistenceError(QuorumError):
    """audit log storage failure. always caught and logged by the engine."""


__all__ = [
    "QuorumError",
    "InvalidInputError",
    "ParseError",
    "AgentTaskError",
    "NoSuccessfulAnalysisError",
    "PersistenceError",
]
