"""structural facts and signature-based static findings from solidity source text"""
import bisect
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from quorum.errors import ParseError
from quorum.models.contract import (
    CodeMetrics,
    ContractDecl,
    EventDecl,
    FunctionDecl,
    ImportDecl,
    ModifierDecl,
    Parameter,
    StateVariableDecl,
    StructuralAnalysis,
    StructuralFacts,
)
from quorum.models.findings import Confidence, Finding, Severity, STATIC_SOURCE
from quorum.models import taxonomy

logger = logging.getLogger(__name__)

# category -> signatures. the first matching signature on a line wins for that category.
VULNERABILITY_PATTERNS: Dict[str, List[re.Pattern]] = {
    taxonomy.REENTRANCY: [
        re.compile(r'\.call\s*\{[^}]*\bvalue\s*:'),
        re.compile(r'\.call\.value\s*\('),
        re.compile(r'\.send\s*\('),
    ],
    taxonomy.ARITHMETIC: [
        re.compile(r'\bunchecked\s*\{'),
        re.compile(r'[\w\])]\s*(?:\+|-|\*|/)=(?!=)'),
    ],
    taxonomy.ACCESS_CONTROL: [
        re.compile(r'require\s*\(\s*msg\.sender\s*==\s*\w+\s*\)'),
        re.compile(
            r'\bfunction\s+(?:set|mint|burn|pause|unpause|upgrade|initialize)\w*\s*\([^)]*\)'
            r'(?=[^{;]*\b(?:external|public)\b)(?![^{;]*\bonly\w*)'
        ),
    ],
    taxonomy.UNCHECKED_CALLS: [
        re.compile(r'^\s*[\w.\[\]()]+\.(?:call|delegatecall|staticcall)\s*[({]'),
        re.compile(r'^\s*[\w.\[\]()]+\.send\s*\('),
    ],
    taxonomy.TIMESTAMP_DEPENDENCE: [
        re.compile(r'\bblock\.timestamp\b'),
        re.compile(r'\bnow\b'),
        re.compile(r'\bblock\.number\b'),
    ],
    taxonomy.TX_ORIGIN: [
        re.compile(r'\btx\.origin\b'),
    ],
    taxonomy.DELEGATECALL: [
        re.compile(r'\.delegatecall\s*\('),
    ],
    taxonomy.SELFDESTRUCT: [
        re.compile(r'\bselfdestruct\s*\('),
        re.compile(r'\bsuicide\s*\('),
    ],
}

CATEGORY_SEVERITY = {
    taxonomy.REENTRANCY: Severity.HIGH,
    taxonomy.ARITHMETIC: Severity.MEDIUM,
    taxonomy.ACCESS_CONTROL: Severity.HIGH,
    taxonomy.UNCHECKED_CALLS: Severity.MEDIUM,
    taxonomy.TIMESTAMP_DEPENDENCE: Severity.LOW,
    taxonomy.TX_ORIGIN: Severity.HIGH,
    taxonomy.DELEGATECALL: Severity.MEDIUM,
    taxonomy.SELFDESTRUCT: Severity.HIGH,
}

CATEGORY_RECOMMENDATIONS = {
    taxonomy.REENTRANCY: "Apply checks-effects-interactions: update state before external calls, or add a reentrancy guard",
    taxonomy.ARITHMETIC: "Confirm overflow and underflow cannot occur (Solidity >=0.8 checked math, no unchecked blocks on user input)",
    taxonomy.ACCESS_CONTROL: "Restrict privileged functions with a vetted access-control modifier",
    taxonomy.UNCHECKED_CALLS: "Check the return value of low-level calls and revert on failure",
    taxonomy.TIMESTAMP_DEPENDENCE: "Avoid using block values for randomness or tight timing windows",
    taxonomy.TX_ORIGIN: "Use msg.sender instead of tx.origin for authorization",
    taxonomy.DELEGATECALL: "Only delegatecall into trusted, immutable implementations",
    taxonomy.SELFDESTRUCT: "Remove selfdestruct or guard it behind strict access control",
}

CATEGORY_IMPACT = {
    taxonomy.REENTRANCY: "Attacker may re-enter and drain funds before balances are updated",
    taxonomy.ARITHMETIC: "Incorrect balances or accounting through wrapped arithmetic",
    taxonomy.ACCESS_CONTROL: "Unauthorized callers may invoke privileged functionality",
    taxonomy.UNCHECKED_CALLS: "Silent call failures leave the contract in an inconsistent state",
    taxonomy.TIMESTAMP_DEPENDENCE: "Miners or validators can nudge block values",
    taxonomy.TX_ORIGIN: "Phishing contracts can act with the victim's authority",
    taxonomy.DELEGATECALL: "Callee code runs against this contract's storage",
    taxonomy.SELFDESTRUCT: "Contract code and funds can be removed permanently",
}

COMPLEXITY_PATTERNS = [
    re.compile(r'\bif\s*\('),
    re.compile(r'\belse\s+if\s*\('),
    re.compile(r'\bwhile\s*\('),
    re.compile(r'\bfor\s*\('),
    re.compile(r'&&'),
    re.compile(r'\|\|'),
    re.compile(r'\?'),
]

COMMENT_PATTERN = re.compile(r'/\*.*?\*/|//[^\n]*', re.DOTALL)
STRING_PATTERN = re.compile(r'"(?:[^"\\\n]|\\.)*"|\'(?:[^\'\\\n]|\\.)*\'')
NEWLINE_PATTERN = re.compile(r"\n")

CONTRACT_PATTERN = re.compile(r'\b(abstract\s+contract|contract|interface|library)\s+([A-Za-z_$][\w$]*)([^{]*)\{')
FUNCTION_PATTERN = re.compile(
    r'\b(?:function\s+([A-Za-z_$][\w$]*)|(constructor|fallback|receive))\s*\(([^)]*)\)([^{;]*)'
)
MODIFIER_PATTERN = re.compile(r'\bmodifier\s+([A-Za-z_$][\w$]*)\s*(?:\(([^)]*)\))?')
EVENT_PATTERN = re.compile(r'\bevent\s+([A-Za-z_$][\w$]*)\s*\(([^)]*)\)')
IMPORT_PATTERN = re.compile(
    r'\bimport\s+(?:(\{[^}]*\}|\*\s+as\s+[\w$]+)\s+from\s+)?["\']([^"\']+)["\'](?:\s+as\s+([\w$]+))?\s*;'
)
RETURNS_PATTERN = re.compile(r'\breturns\s*\(([^)]*)\)')
HEADER_TOKEN_PATTERN = re.compile(r'([A-Za-z_$][\w$]*)(\s*\([^)]*\))?')

VISIBILITIES = {"public", "external", "internal", "private"}
MUTABILITIES = {"pure", "view", "payable", "constant"}
HEADER_KEYWORDS = {"virtual", "override", "returns"}
DATA_LOCATIONS = {"memory", "storage", "calldata"}
STATEMENT_KEYWORDS = (
    "function", "event", "modifier", "using", "error", "struct", "enum", "constructor",
    "fallback", "receive", "emit", "return", "import", "pragma", "type",
)


def newline_offsets(text: str) -> List[int]:
    return [m.start() for m in NEWLINE_PATTERN.finditer(text)]


class StructuralAnalyzer:
    """regex-based structural parser plus line-oriented pattern scanner"""

    def parse(self, source: str) -> StructuralAnalysis:
        if not isinstance(source, str):
            raise ParseError(f"Contract source must be a string, got {type(source).__name__}")
        if not source.strip():
            raise ParseError("Contract source is empty")

        clean = self._strip_comments(source)
        try:
            facts = self.extract_facts(clean)
        except Exception as e:
            logger.warning(f"Structural extraction failed, continuing with pattern scan only: {e}", exc_info=True)
            facts = StructuralFacts()

        findings = self.scan_patterns(source)
        complexity = self.calculate_complexity(clean)
        metrics = self._code_metrics(source, facts)

        logger.debug(
            f"[structural] {len(facts.contracts)} contracts, {len(facts.functions)} functions, "
            f"{len(findings)} static findings, complexity {complexity}",
            extra={"static_findings": len(findings), "complexity": complexity},
        )
        return StructuralAnalysis(facts=facts, static_findings=findings, complexity=complexity, metrics=metrics)

    def _strip_comments(self, source: str) -> str:
        # keep newlines so offsets map to the same line numbers
        def _blank(match: re.Match) -> str:
            text = match.group(0)
            return "".join("\n" if ch == "\n" else " " for ch in text)

        pieces = []
        last = 0
        # skip comment markers inside string literals
        for match in re.finditer(f"{STRING_PATTERN.pattern}|{COMMENT_PATTERN.pattern}", source, re.DOTALL):
            pieces.append(source[last:match.start()])
            text = match.group(0)
            pieces.append(text if text[0] in "\"'" else _blank(match))
            last = match.end()
        pieces.append(source[last:])
        return "".join(pieces)

    def _mask_strings(self, source: str) -> str:
        return STRING_PATTERN.sub(lambda m: m.group(0)[0] + " " * (len(m.group(0)) - 2) + m.group(0)[-1], source)

    @staticmethod
    def _line_of(newlines: Sequence[int], offset: int) -> int:
        return bisect.bisect_left(newlines, offset) + 1

    def scan_patterns(self, source: str) -> Tuple[Finding, ...]:
        """one finding per (category, line). deterministic order: line, then table order."""
        lines = self._mask_strings(self._strip_comments(source)).split("\n")
        raw_lines = source.split("\n")
        findings = []
        for index, line in enumerate(lines):
            if not line.strip():
                continue
            for category, patterns in VULNERABILITY_PATTERNS.items():
                for pattern in patterns:
                    if pattern.search(line):
                        findings.append(self._static_finding(category, pattern, index + 1, raw_lines[index]))
                        break
        return tuple(findings)

    def _static_finding(self, category: str, pattern: re.Pattern, line_no: int, line: str) -> Finding:
        return Finding(
            name=f"Static Analysis: {category}",
            description=f"Pattern detected: {pattern.pattern}",
            category=category,
            severity=CATEGORY_SEVERITY.get(category, Severity.LOW),
            confidence=Confidence.HIGH,
            affected_lines=(line_no,),
            code_snippet=line.strip()[:500],
            recommendation=CATEGORY_RECOMMENDATIONS.get(category, "Manual review recommended"),
            impact=CATEGORY_IMPACT.get(category, "Impact assessment needed"),
            detected_by=frozenset({STATIC_SOURCE}),
            category_weight=0.8,
        )

    def calculate_complexity(self, source: str) -> int:
        complexity = 1
        masked = self._mask_strings(source)
        for pattern in COMPLEXITY_PATTERNS:
            complexity += len(pattern.findall(masked))
        return complexity

    def _code_metrics(self, source: str, facts: StructuralFacts) -> CodeMetrics:
        lines = source.split("\n")
        stripped = [line.strip() for line in lines]
        return CodeMetrics(
            total_lines=len(lines),
            code_lines=sum(1 for line in stripped if line),
            comment_lines=sum(1 for line in stripped if line.startswith(("//", "/*", "*"))),
            size_bytes=len(source.encode("utf-8")),
            contract_count=len(facts.contracts),
            function_count=len(facts.functions),
            modifier_count=len(facts.modifiers),
            event_count=len(facts.events),
        )

    def extract_facts(self, clean: str) -> StructuralFacts:
        newlines = newline_offsets(clean)
        contracts = self._extract_contracts(clean, newlines)
        return StructuralFacts(
            contracts=tuple(c for c, _ in contracts),
            functions=self._extract_functions(clean, contracts, newlines),
            modifiers=self._extract_modifiers(clean, newlines),
            events=self._extract_events(clean, newlines),
            imports=self._extract_imports(clean, newlines),
            state_variables=self._extract_state_variables(clean, newlines),
        )

    def _extract_contracts(self, clean: str, newlines: Sequence[int]) -> List[Tuple[ContractDecl, int]]:
        contracts = []
        for match in CONTRACT_PATTERN.finditer(self._mask_strings(clean)):
            kind = "contract" if "contract" in match.group(1) else match.group(1)
            inheritance = self._extract_inheritance(match.group(3))
            decl = ContractDecl(
                name=match.group(2),
                kind=kind,
                inheritance=inheritance,
                line=self._line_of(newlines, match.start()),
            )
            contracts.append((decl, match.start()))
        return contracts

    def _extract_inheritance(self, header: str) -> Tuple[str, ...]:
        match = re.search(r'\bis\s+(.+)$', header.strip(), re.DOTALL)
        if not match:
            return ()
        parents = []
        depth = 0
        current = []
        for ch in match.group(1):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            elif ch == "," and depth == 0:
                parents.append("".join(current))
                current = []
                continue
            if depth == 0 and ch != ")":
                current.append(ch)
        parents.append("".join(current))
        return tuple(p.strip() for p in parents if p.strip())

    def _owner(self, contracts: List[Tuple[ContractDecl, int]], offset: int) -> Optional[str]:
        owner = None
        for decl, start in contracts:
            if start < offset:
                owner = decl
        return owner.name if owner else None

    def _extract_functions(
        self,
        clean: str,
        contracts: List[Tuple[ContractDecl, int]],
        newlines: Sequence[int],
    ) -> Tuple[FunctionDecl, ...]:
        masked = self._mask_strings(clean)
        kinds = {decl.name: decl.kind for decl, _ in contracts}
        functions = []
        for match in FUNCTION_PATTERN.finditer(masked):
            name = match.group(1) or match.group(2)
            header = match.group(4)
            returns = ()
            returns_match = RETURNS_PATTERN.search(header)
            if returns_match:
                returns = self._parse_parameters(returns_match.group(1))
                header = header[:returns_match.start()] + header[returns_match.end():]

            visibility = None
            mutability = "nonpayable"
            modifiers = []
            for token, args in HEADER_TOKEN_PATTERN.findall(header):
                if token in VISIBILITIES:
                    visibility = token
                elif token in MUTABILITIES:
                    mutability = "view" if token == "constant" else token
                elif token in HEADER_KEYWORDS:
                    continue
                else:
                    modifiers.append(token)

            owner = self._owner(contracts, match.start())
            if visibility is None:
                if name in ("fallback", "receive") or kinds.get(owner) == "interface":
                    visibility = "external"
                else:
                    visibility = "public"

            functions.append(FunctionDecl(
                name=name,
                visibility=visibility,
                state_mutability=mutability,
                modifiers=tuple(modifiers),
                parameters=self._parse_parameters(match.group(3)),
                return_parameters=returns,
                contract=owner,
                line=self._line_of(newlines, match.start()),
            ))
        return tuple(functions)

    def _parse_parameters(self, text: str) -> Tuple[Parameter, ...]:
        params = []
        for raw in text.split(","):
            tokens = raw.split()
            if not tokens:
                continue
            indexed = "indexed" in tokens
            tokens = [t for t in tokens if t not in DATA_LOCATIONS and t != "indexed"]
            if len(tokens) >= 2 and tokens[-1] != "payable" and re.match(r'^[A-Za-z_$][\w$]*$', tokens[-1]):
                params.append(Parameter(type=" ".join(tokens[:-1]), name=tokens[-1], indexed=indexed))
            else:
                params.append(Parameter(type=" ".join(tokens), indexed=indexed))
        return tuple(params)

    def _extract_modifiers(self, clean: str, newlines: Sequence[int]) -> Tuple[ModifierDecl, ...]:
        return tuple(
            ModifierDecl(
                name=m.group(1),
                parameters=self._parse_parameters(m.group(2) or ""),
                line=self._line_of(newlines, m.start()),
            )
            for m in MODIFIER_PATTERN.finditer(self._mask_strings(clean))
        )

    def _extract_events(self, clean: str, newlines: Sequence[int]) -> Tuple[EventDecl, ...]:
        return tuple(
            EventDecl(
                name=m.group(1),
                parameters=self._parse_parameters(m.group(2)),
                line=self._line_of(newlines, m.start()),
            )
            for m in EVENT_PATTERN.finditer(self._mask_strings(clean))
        )

    def _extract_imports(self, clean: str, newlines: Sequence[int]) -> Tuple[ImportDecl, ...]:
        imports = []
        for m in IMPORT_PATTERN.finditer(clean):
            clause, path, alias = m.group(1), m.group(2), m.group(3)
            symbols: Tuple[str, ...] = ()
            if clause and clause.startswith("{"):
                symbols = tuple(
                    part.split(" as ")[0].strip()
                    for part in clause.strip("{}").split(",")
                    if part.strip()
                )
            elif clause:
                symbols = (clause.split()[-1],)
            elif alias:
                symbols = (alias,)
            imports.append(ImportDecl(path=path, symbols=symbols, line=self._line_of(newlines, m.start())))
        return tuple(imports)

    def _extract_state_variables(self, clean: str, newlines: Sequence[int]) -> Tuple[StateVariableDecl, ...]:
        """top-level declarations inside contract bodies (brace depth 1)"""
        masked = self._mask_strings(clean)
        variables = []
        stack: List[Optional[str]] = []
        buffer_start = 0
        for index, ch in enumerate(masked):
            if ch == "{":
                header = masked[buffer_start:index]
                contract_match = None
                if not stack:
                    contract_match = re.search(r'\b(?:contract|interface|library)\s+([A-Za-z_$][\w$]*)', header)
                stack.append(contract_match.group(1) if contract_match else None)
                buffer_start = index + 1
            elif ch == "}":
                if stack:
                    stack.pop()
                buffer_start = index + 1
            elif ch == ";":
                if len(stack) == 1 and stack[0] is not None:
                    statement = masked[buffer_start:index]
                    offset = buffer_start + len(statement) - len(statement.lstrip())
                    decl = self._parse_state_variable(statement, stack[0], self._line_of(newlines, offset))
                    if decl is not None:
                        variables.append(decl)
                buffer_start = index + 1
        return tuple(variables)

    def _parse_state_variable(self, statement: str, contract: str, line: int) -> Optional[StateVariableDecl]:
        text = " ".join(statement.split())
        if not text or re.split(r'[\s(]', text, 1)[0] in STATEMENT_KEYWORDS:
            return None
        declaration = text.split("=", 1)[0].strip()
        match = re.match(
            r'^(mapping\s*\(.*\)|[A-Za-z_$][\w$.]*(?:\s+payable)?(?:\s*\[[^\]]*\])*)\s+(.+)$',
            declaration,
        )
        if not match:
            return None
        var_type, rest = match.group(1), match.group(2).split()
        name = rest[-1] if rest else ""
        if not re.match(r'^[A-Za-z_$][\w$]*$', name) or name in VISIBILITIES:
            return None
        qualifiers = set(rest[:-1])
        visibility = next((q for q in rest[:-1] if q in VISIBILITIES), "internal")
        return StateVariableDecl(
            name=name,
            type=var_type,
            visibility=visibility,
            is_constant="constant" in qualifiers,
            is_immutable="immutable" in qualifiers,
            contract=contract,
            line=line,
        )
