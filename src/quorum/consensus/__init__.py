"""consensus aggregation layer"""
from .aggregator import AggregatedAnalysis, ConfidenceMetrics, ConsensusAggregator, ScoreDistribution

__all__ = [
    "AggregatedAnalysis",
    "ConfidenceMetrics",
    "ConsensusAggregator",
    "ScoreDistribution",
]
