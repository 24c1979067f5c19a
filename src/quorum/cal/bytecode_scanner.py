"""opcode presence scan for contracts without verified source"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Any, Tuple

from quorum.errors import InvalidInputError

logger = logging.getLogger(__name__)

# opcode -> pattern flag
WATCHED_OPCODES = {
    0xFF: "hasSelfdestruct",
    0xF4: "hasDelegatecall",
    0xF5: "hasCreate2",
    0x3C: "hasExtcodecopy",
    0x3B: "hasExtcodesize",
    0x31: "hasBalance",
    0x34: "hasCallvalue",
}

JUMP_OPCODES = {0x56, 0x57, 0x58}
CALL_OPCODES = {0xF1, 0xF2, 0xF4, 0xFA}

PUSH1, PUSH32 = 0x60, 0x7F

WARNINGS = {
    "hasSelfdestruct": "Contract contains selfdestruct functionality",
    "hasDelegatecall": "Contract uses delegatecall - potential proxy pattern",
    "hasCreate2": "Contract can deploy other contracts using CREATE2",
}

BYTECODE_SUMMARY = "Limited analysis performed on bytecode only. Source code verification recommended."

BYTECODE_RECOMMENDATIONS = (
    "Verify contract source code on block explorer",
    "Request source code from contract deployer",
    "Perform manual review of contract functionality",
)

HEX_PATTERN = re.compile(r'^[0-9a-fA-F]*$')


@dataclass(frozen=True)
class BytecodeAnalysis:
    size: int
    complexity: int
    patterns: Dict[str, bool] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "bytecode",
            "size": self.size,
            "complexity": self.complexity,
            "patterns": dict(self.patterns),
            "warnings": list(self.warnings),
        }


def decode_bytecode(bytecode: str) -> bytes:
    text = bytecode.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) % 2 or not HEX_PATTERN.match(text):
        raise InvalidInputError("Bytecode must be an even-length hex string")
    return bytes.fromhex(text)


def iter_opcodes(code: bytes):
    """yield executable opcodes, skipping PUSH immediates"""
    pc = 0
    while pc < len(code):
        op = code[pc]
        yield op
        if PUSH1 <= op <= PUSH32:
            pc += op - PUSH1 + 1
        pc += 1


def scan_bytecode(bytecode: str) -> BytecodeAnalysis:
    code = decode_bytecode(bytecode)
    patterns = {flag: False for flag in WATCHED_OPCODES.values()}
    jumps = 0
    calls = 0
    for op in iter_opcodes(code):
        flag = WATCHED_OPCODES.get(op)
        if flag:
            patterns[flag] = True
        if op in JUMP_OPCODES:
            jumps += 1
        if op in CALL_OPCODES:
            calls += 1

    size = len(code)
    complexity = min(100, int(size / 100 + jumps * 2 + calls * 3))
    warnings = tuple(text for flag, text in WARNINGS.items() if patterns[flag])
    logger.debug(
        f"[bytecode] {size} bytes, {jumps} jumps, {calls} calls, {len(warnings)} warnings",
        extra={"bytecode_size": size},
    )
    return BytecodeAnalysis(size=size, complexity=complexity, patterns=patterns, warnings=warnings)
