from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple

from quorum.models.findings import Finding


@dataclass(frozen=True)
class Parameter:
    type: str
    name: str = ""
    indexed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "name": self.name}
        if self.indexed:
            data["indexed"] = True
        return data


@dataclass(frozen=True)
class ContractDecl:
    """declared contract, interface or library"""
    name: str
    kind: str
    inheritance: Tuple[str, ...] = ()
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "inheritance": list(self.inheritance), "line": self.line}


@dataclass(frozen=True)
class FunctionDecl:
    name: str
    visibility: str = "public"
    state_mutability: str = "nonpayable"
    modifiers: Tuple[str, ...] = ()
    parameters: Tuple[Parameter, ...] = ()
    return_parameters: Tuple[Parameter, ...] = ()
    contract: Optional[str] = None
    line: int = 0

    @property
    def is_payable(self) -> bool:
        return self.state_mutability == "payable"

    @property
    def is_external(self) -> bool:
        return self.visibility in ("external", "public")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "visibility": self.visibility,
            "stateMutability": self.state_mutability,
            "modifiers": list(self.modifiers),
            "parameters": [p.to_dict() for p in self.parameters],
            "returnParameters": [p.to_dict() for p in self.return_parameters],
            "isPayable": self.is_payable,
            "isExternal": self.is_external,
            "contract": self.contract,
            "line": self.line,
        }

    def __repr__(self) -> str:
        return f"{self.name}({len(self.parameters)} params) {self.visibility} {self.state_mutability}"


@dataclass(frozen=True)
class ModifierDecl:
    name: str
    parameters: Tuple[Parameter, ...] = ()
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "parameters": [p.to_dict() for p in self.parameters], "line": self.line}


@dataclass(frozen=True)
class EventDecl:
    name: str
    parameters: Tuple[Parameter, ...] = ()
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "parameters": [p.to_dict() for p in self.parameters], "line": self.line}


@dataclass(frozen=True)
class ImportDecl:
    path: str
    symbols: Tuple[str, ...] = ()
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "symbols": list(self.symbols), "line": self.line}


@dataclass(frozen=True)
class StateVariableDecl:
    name: str
    type: str
    visibility: str = "internal"
    is_constant: bool = False
    is_immutable: bool = False
    contract: Optional[str] = None
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "visibility": self.visibility,
            "isConstant": self.is_constant,
            "isImmutable": self.is_immutable,
            "contract": self.contract,
            "line": self.line,
        }


@dataclass(frozen=True)
class StructuralFacts:
    """declarations extracted from source text"""
    contracts: Tuple[ContractDecl, ...] = ()
    functions: Tuple[FunctionDecl, ...] = ()
    modifiers: Tuple[ModifierDecl, ...] = ()
    events: Tuple[EventDecl, ...] = ()
    imports: Tuple[ImportDecl, ...] = ()
    state_variables: Tuple[StateVariableDecl, ...] = ()

    @property
    def primary_contract(self) -> Optional[ContractDecl]:
        """last declared contract, falling back to the last declaration of any kind"""
        concrete = [c for c in self.contracts if c.kind == "contract"]
        if concrete:
            return concrete[-1]
        return self.contracts[-1] if self.contracts else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contracts": [c.to_dict() for c in self.contracts],
            "functions": [f.to_dict() for f in self.functions],
            "modifiers": [m.to_dict() for m in self.modifiers],
            "events": [e.to_dict() for e in self.events],
            "imports": [i.to_dict() for i in self.imports],
            "stateVariables": [v.to_dict() for v in self.state_variables],
        }


@dataclass(frozen=True)
class CodeMetrics:
    total_lines: int = 0
    code_lines: int = 0
    comment_lines: int = 0
    size_bytes: int = 0
    contract_count: int = 0
    function_count: int = 0
    modifier_count: int = 0
    event_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLines": self.total_lines,
            "codeLines": self.code_lines,
            "commentLines": self.comment_lines,
            "size": self.size_bytes,
            "contractCount": self.contract_count,
            "functionCount": self.function_count,
            "modifierCount": self.modifier_count,
            "eventCount": self.event_count,
        }


@dataclass(frozen=True)
class StructuralAnalysis:
    facts: StructuralFacts
    static_findings: Tuple[Finding, ...]
    complexity: int
    metrics: CodeMetrics

    @property
    def contract_name(self) -> str:
        primary = self.facts.primary_contract
        return primary.name if primary else "Unknown"

    def contract_info(self) -> Dict[str, Any]:
        return {
            "name": self.contract_name,
            "functions": self.metrics.function_count,
            "modifiers": self.metrics.modifier_count,
            "events": self.metrics.event_count,
            "complexity": self.complexity,
            "linesOfCode": self.metrics.code_lines,
            "totalLines": self.metrics.total_lines,
            "size": self.metrics.size_bytes,
        }


@dataclass(frozen=True)
class ContractCharacteristics:
    """heuristic flags used to choose reviewers"""
    is_defi: bool = False
    is_cross_chain: bool = False
    has_mev_risk: bool = False
    has_governance: bool = False
    is_upgradeable: bool = False
    has_oracles: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isDeFi": self.is_defi,
            "isCrossChain": self.is_cross_chain,
            "hasMEVRisk": self.has_mev_risk,
            "hasGovernance": self.has_governance,
            "isUpgradeable": self.is_upgradeable,
            "hasOracles": self.has_oracles,
        }

    def __repr__(self) -> str:
        flags = [name for name, value in self.to_dict().items() if value]
        return f"ContractCharacteristics({', '.join(flags) or 'none'})"


@dataclass(frozen=True)
class ContractPayload:
    """what each reviewer task receives"""
    source: str
    name: str = "Unknown"
    contract_info: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    characteristics: ContractCharacteristics = field(default_factory=ContractCharacteristics)
    static_findings: Tuple[Finding, ...] = ()
    chain: Optional[str] = None
    address: Optional[str] = None

    @classmethod
    def from_analysis(
        cls,
        source: str,
        analysis: StructuralAnalysis,
        characteristics: ContractCharacteristics,
        chain: Optional[str] = None,
        address: Optional[str] = None,
    ) -> "ContractPayload":
        return cls(
            source=source,
            name=analysis.contract_name,
            contract_info=analysis.contract_info(),
            characteristics=characteristics,
            static_findings=analysis.static_findings,
            chain=chain,
            address=address,
        )
