"""contract analysis layer"""
from .structural_analyzer import StructuralAnalyzer, VULNERABILITY_PATTERNS
from .bytecode_scanner import BytecodeAnalysis, scan_bytecode

__all__ = [
    "StructuralAnalyzer",
    "VULNERABILITY_PATTERNS",
    "BytecodeAnalysis",
    "scan_bytecode",
]
