"""
Reviewer Prompt Templates

System prompts and analysis prompts for each specialized reviewer. Every reviewer
gets the same contract metadata block and source listing; the response format
block tells the model which JSON schema the normalizer expects back.
"""

from typing import Dict

from quorum.models.contract import ContractPayload
from quorum.models.findings import AgentType, AnalysisMode

SYSTEM_PROMPTS: Dict[AgentType, str] = {
    AgentType.SECURITY: (
        "You are an expert smart contract security auditor specializing in vulnerability "
        "detection and exploit prevention."
    ),
    AgentType.QUALITY: (
        "You are a smart contract code quality analyst specializing in gas optimization "
        "and best practices."
    ),
    AgentType.ECONOMICS: (
        "You are a DeFi economics expert specializing in tokenomics, incentive mechanisms, "
        "and economic attack vectors."
    ),
    AgentType.DEFI: (
        "You are a DeFi protocol security specialist with expertise in AMM, lending, "
        "yield farming, and governance vulnerabilities."
    ),
    AgentType.CROSS_CHAIN: (
        "You are a cross-chain bridge security expert specializing in multi-chain "
        "vulnerabilities and state synchronization attacks."
    ),
    AgentType.MEV: (
        "You are an MEV (Maximal Extractable Value) security analyst specializing in "
        "frontrunning, sandwich attacks, and flashloan exploits."
    ),
    AgentType.GAS_OPTIMIZATION: (
        "You are a Solidity gas optimization expert specializing in identifying inefficient "
        "patterns, storage optimization, and gas-saving techniques."
    ),
    AgentType.GOVERNANCE: (
        "You are a DAO governance security specialist focusing on voting mechanisms, "
        "proposal validation, and governance attack vectors."
    ),
}

CONTRACT_CONTEXT = """
Contract Information:
- Contract Name: {name}
- Functions Count: {functions}
- Modifiers Count: {modifiers}
- Code Complexity: {complexity}
- Analysis Mode: {mode}
- Characteristics: {characteristics}
{static_block}
Solidity Code to Analyze:
```solidity
{source}
```"""

STATIC_HINTS = """
Static scanner hits (pattern matches, not confirmed issues):
{hints}
"""

VULNERABILITY_FORMAT = """
IMPORTANT: Respond ONLY with valid JSON in the exact format specified below.

Required JSON Response Format:
{{
  "vulnerabilities": [
    {{
      "name": "{name_hint}",
      "description": "Detailed description",
      "severity": "Low|Medium|High|Critical",
      "category": "{categories}",
      "affectedLines": [1, 2, 3],
      "codeSnippet": "relevant code snippet",
      "recommendation": "How to fix this issue",
      "impact": "Potential impact description",
      "confidence": "Low|Medium|High"
    }}
  ],
  "overallScore": 85,
  "riskLevel": "Low|Medium|High|Critical",
  "summary": "{summary_hint}",
  "recommendations": ["Recommendation 1", "Recommendation 2"]
}}
"""

QUALITY_FORMAT = """
IMPORTANT: Respond ONLY with valid JSON in the exact format specified below.

Required JSON Response Format:
{
  "vulnerabilities": [],
  "overallScore": 85,
  "riskLevel": "Low|Medium|High|Critical",
  "summary": "Code quality assessment summary",
  "recommendations": ["Quality recommendation 1", "Quality recommendation 2"],
  "gasOptimizations": [
    {
      "description": "Gas optimization suggestion",
      "affectedLines": [1, 2],
      "potentialSavings": "Estimated gas savings",
      "implementation": "How to implement this optimization"
    }
  ],
  "codeQuality": {
    "score": 80,
    "issues": ["Code quality issue 1"],
    "strengths": ["Code strength 1"]
  }
}
"""

# agent -> (task line, vulnerability name hint, category list, summary hint)
REVIEW_FOCUS = {
    AgentType.SECURITY: (
        "Analyze the following Solidity code for security vulnerabilities.",
        "Vulnerability Name",
        "reentrancy|access-control|arithmetic|unchecked-calls|gas-limit|timestamp-dependence|tx-origin|other",
        "Brief overall security assessment",
    ),
    AgentType.ECONOMICS: (
        "Focus on tokenomics, incentive design and economic attack vectors.",
        "Economic Risk Name",
        "tokenomics|incentive-design|economic-attack|governance|other",
        "Economic design assessment",
    ),
    AgentType.DEFI: (
        "Focus on DeFi-specific vulnerabilities and risks.",
        "DeFi Vulnerability Name",
        "amm|lending|yield-farming|governance|liquidity|oracle|other",
        "DeFi security assessment",
    ),
    AgentType.CROSS_CHAIN: (
        "Focus on bridge security, message validation and state synchronization across chains.",
        "Cross-Chain Vulnerability Name",
        "bridge-security|state-sync|cross-chain-reentrancy|consensus|other",
        "Cross-chain security assessment",
    ),
    AgentType.MEV: (
        "Focus on transaction-ordering dependence and value extractable by searchers.",
        "MEV Exposure Name",
        "frontrunning|sandwich-attack|flashloan|arbitrage|liquidation|other",
        "MEV exposure assessment",
    ),
    AgentType.GOVERNANCE: (
        "Focus on voting, proposal execution and privileged role management.",
        "Governance Risk Name",
        "governance|access-control|timelock|other",
        "Governance security assessment",
    ),
}


def _static_block(payload: ContractPayload, limit: int = 20) -> str:
    if not payload.static_findings:
        return ""
    hints = [
        f"- line {', '.join(str(n) for n in f.affected_lines)}: {f.category} ({f.severity.value})"
        for f in payload.static_findings[:limit]
    ]
    return STATIC_HINTS.format(hints="\n".join(hints))


def build_context(payload: ContractPayload, mode: AnalysisMode) -> str:
    info = payload.contract_info
    flags = [name for name, value in payload.characteristics.to_dict().items() if value]
    return CONTRACT_CONTEXT.format(
        name=payload.name,
        functions=info.get("functions", 0),
        modifiers=info.get("modifiers", 0),
        complexity=info.get("complexity", "Unknown"),
        mode=mode.value,
        characteristics=", ".join(flags) or "none detected",
        static_block=_static_block(payload),
        source=payload.source,
    )


def build_prompt(agent_type: AgentType, payload: ContractPayload, mode: AnalysisMode) -> str:
    """agent-specific analysis prompt with contract metadata and source"""
    if agent_type in (AgentType.QUALITY, AgentType.GAS_OPTIMIZATION):
        task = (
            "Focus on code efficiency, best practices, and gas optimization."
            if agent_type == AgentType.QUALITY
            else "Identify inefficient patterns, storage layout waste and gas-saving rewrites."
        )
        return f"{SYSTEM_PROMPTS[agent_type]} {task}\n{QUALITY_FORMAT}{build_context(payload, mode)}"

    task, name_hint, categories, summary_hint = REVIEW_FOCUS[agent_type]
    response_format = VULNERABILITY_FORMAT.format(
        name_hint=name_hint,
        categories=categories,
        summary_hint=summary_hint,
    )
    return f"{SYSTEM_PROMPTS[agent_type]} {task}\n{response_format}{build_context(payload, mode)}"


def system_prompt(agent_type: AgentType) -> str:
    return SYSTEM_PROMPTS.get(agent_type, SYSTEM_PROMPTS[AgentType.SECURITY])
