"""contract characteristics and reviewer selection"""
import logging
from typing import Iterable, List, Optional

from quorum.models.contract import ContractCharacteristics, StructuralFacts
from quorum.models.findings import AgentType

logger = logging.getLogger(__name__)

DEFI_KEYWORDS = (
    "swap", "pool", "liquidity", "stake", "yield", "farm", "vault",
    "lending", "borrow", "collateral", "token", "erc20", "ierc20",
)
CROSS_CHAIN_KEYWORDS = (
    "bridge", "relay", "crosschain", "multichain", "portal",
    "layerzero", "chainlink", "axelar", "wormhole",
)
MEV_KEYWORDS = (
    "flashloan", "arbitrage", "frontrun", "sandwich", "mev",
    "auction", "priority", "mempool", "bundle",
)
GOVERNANCE_KEYWORDS = ("vote", "proposal", "governance", "delegate", "quorum")
UPGRADE_KEYWORDS = ("proxy", "upgrade", "implementation", "beacon")
ORACLE_KEYWORDS = ("oracle", "chainlink", "price", "feed", "aggregator")

BASE_AGENTS = (AgentType.SECURITY, AgentType.QUALITY)
DEFAULT_AGENT_CAP = 6


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def extract_characteristics(facts: StructuralFacts, source: str) -> ContractCharacteristics:
    text = source.lower()
    function_names = [f.name.lower() for f in facts.functions]
    is_defi = _contains_any(text, DEFI_KEYWORDS) or any(
        _contains_any(name, DEFI_KEYWORDS) for name in function_names
    )
    has_mev_risk = _contains_any(text, MEV_KEYWORDS) or any(
        f.is_payable and f.is_external for f in facts.functions
    )
    return ContractCharacteristics(
        is_defi=is_defi,
        is_cross_chain=_contains_any(text, CROSS_CHAIN_KEYWORDS),
        has_mev_risk=has_mev_risk,
        has_governance=_contains_any(text, GOVERNANCE_KEYWORDS),
        is_upgradeable=_contains_any(text, UPGRADE_KEYWORDS),
        has_oracles=_contains_any(text, ORACLE_KEYWORDS),
    )


def agent_priority(agent_type: AgentType, characteristics: ContractCharacteristics) -> int:
    priorities = {
        AgentType.SECURITY: 10,
        AgentType.DEFI: 8 if characteristics.is_defi else 3,
        AgentType.ECONOMICS: 7 if characteristics.is_defi else 2,
        AgentType.QUALITY: 6,
        AgentType.CROSS_CHAIN: 9 if characteristics.is_cross_chain else 1,
        AgentType.MEV: 8 if characteristics.has_mev_risk else 1,
    }
    return priorities.get(agent_type, 0)


def select_agents(
    characteristics: ContractCharacteristics,
    caller_override: Optional[Iterable[str]] = None,
    cap: int = DEFAULT_AGENT_CAP,
) -> List[AgentType]:
    """
    choose reviewers for a contract

    a caller override replaces the heuristic set entirely; unknown names are dropped.
    the result is deduplicated and, when over the cap, ordered by priority and truncated.
    """
    if caller_override is not None:
        candidates = []
        for name in caller_override:
            agent = AgentType.parse(name)
            if agent is None:
                logger.warning(f"Ignoring unknown agent type: {name!r}")
                continue
            candidates.append(agent)
    else:
        candidates = list(BASE_AGENTS)
        if characteristics.is_defi:
            candidates.extend([AgentType.DEFI, AgentType.ECONOMICS])
        if characteristics.is_cross_chain:
            candidates.append(AgentType.CROSS_CHAIN)
        if characteristics.has_mev_risk:
            candidates.append(AgentType.MEV)

    selected = list(dict.fromkeys(candidates))
    if len(selected) > cap:
        # stable sort keeps request order among equal priorities
        selected = sorted(selected, key=lambda a: -agent_priority(a, characteristics))[:cap]

    logger.info(
        f"Selected {len(selected)} agents: {', '.join(a.value for a in selected)}",
        extra={"agents": [a.value for a in selected], "characteristics": characteristics.to_dict()},
    )
    return selected
