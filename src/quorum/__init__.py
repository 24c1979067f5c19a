"""quorum: multi-agent smart contract analysis with consensus aggregation"""

__version__ = "0.1.0"
