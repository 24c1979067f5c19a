from .findings import (
    STATIC_SOURCE,
    AgentResult,
    AgentType,
    AnalysisMode,
    AuditStatus,
    CodeQuality,
    Confidence,
    Finding,
    GasOptimization,
    NormalizedAnalysis,
    RiskLevel,
    Severity,
)
from .contract import (
    ContractCharacteristics,
    ContractPayload,
    StructuralAnalysis,
    StructuralFacts,
)
from .scoring import ScoringPolicy
from .report import AuditReport

__all__ = [
    'STATIC_SOURCE',
    'AgentResult',
    'AgentType',
    'AnalysisMode',
    'AuditReport',
    'AuditStatus',
    'CodeQuality',
    'Confidence',
    'ContractCharacteristics',
    'ContractPayload',
    'Finding',
    'GasOptimization',
    'NormalizedAnalysis',
    'RiskLevel',
    'ScoringPolicy',
    'Severity',
    'StructuralAnalysis',
    'StructuralFacts',
]
