import os
import warnings
from pathlib import Path
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field


def safe_int(value: Optional[str], default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    if value is None:
        return default
    try:
        result = int(value)
        if min_val is not None and result < min_val:
            warnings.warn(
                f"Value {result} is below minimum {min_val}, using default {default}",
                RuntimeWarning,
                stacklevel=2
            )
            return default
        if max_val is not None and result > max_val:
            warnings.warn(
                f"Value {result} exceeds maximum {max_val}, using default {default}",
                RuntimeWarning,
                stacklevel=2
            )
            return default
        return result
    except (ValueError, TypeError):
        return default


def safe_float(value: Optional[str], default: float, min_val: Optional[float] = None, max_val: Optional[float] = None) -> float:
    if value is None:
        return default
    try:
        result = float(value)
        if min_val is not None and result < min_val:
            warnings.warn(
                f"Value {result} is below minimum {min_val}, using default {default}",
                RuntimeWarning,
                stacklevel=2
            )
            return default
        if max_val is not None and result > max_val:
            warnings.warn(
                f"Value {result} exceeds maximum {max_val}, using default {default}",
                RuntimeWarning,
                stacklevel=2
            )
            return default
        return result
    except (ValueError, TypeError):
        return default


def safe_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class QuorumConfig:
    PROJECT_ROOT: Path = field(default_factory=lambda: Path(
        os.getenv("QUORUM_ROOT")
        or Path(__file__).parent.parent.parent.absolute()
    ))

    @property
    def DATA_DIR(self) -> Path:
        return self.PROJECT_ROOT / "data"

    @property
    def LOGS_DIR(self) -> Path:
        return self.DATA_DIR / "logs"

    @property
    def AUDITS_DIR(self) -> Path:
        return self.LOGS_DIR / "audits"

    @property
    def AUDIT_LOG_DB_PATH(self) -> Path:
        return self.LOGS_DIR / "audits.db"

    @property
    def METRICS_PATH(self) -> Path:
        return self.LOGS_DIR / "feature_metrics.ndjson"

    # generation backend
    DEFAULT_BACKEND_TYPE: str = field(default_factory=lambda: os.getenv("BACKEND", "openrouter"))
    DEFAULT_MODEL: str = field(default_factory=lambda: os.getenv("MODEL", "x-ai/grok-4.1-fast"))
    OPENROUTER_API_KEY: Optional[str] = field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY"))
    LLM_API_BASE: str = field(default_factory=lambda: os.getenv("LLM_API_BASE", "https://api.openai.com"))
    LLM_API_KEY: Optional[str] = field(default_factory=lambda: os.getenv("LLM_API_KEY"))
    LLM_MAX_RETRIES: int = field(default_factory=lambda: safe_int(os.getenv("LLM_MAX_RETRIES"), default=2, min_val=0, max_val=10))
    LLM_REQUEST_TIMEOUT: float = field(default_factory=lambda: safe_float(os.getenv("LLM_REQUEST_TIMEOUT"), default=60.0, min_val=1.0, max_val=600.0))
    LLM_MAX_TOKENS: int = field(default_factory=lambda: safe_int(os.getenv("LLM_MAX_TOKENS"), default=4000, min_val=256, max_val=32000))
    LLM_TEMPERATURE: float = field(default_factory=lambda: safe_float(os.getenv("LLM_TEMPERATURE"), default=0.2, min_val=0.0, max_val=2.0))

    # agent dispatch
    MAX_CONCURRENT_AGENTS: int = field(default_factory=lambda: safe_int(os.getenv("MAX_CONCURRENT_AGENTS"), default=6, min_val=1, max_val=8))
    AGENT_TASK_TIMEOUT: float = field(default_factory=lambda: safe_float(os.getenv("AGENT_TASK_TIMEOUT"), default=5.0, min_val=0.01, max_val=600.0))
    ANALYSIS_TIMEOUT: float = field(default_factory=lambda: safe_float(os.getenv("ANALYSIS_TIMEOUT"), default=180.0, min_val=0.01, max_val=3600.0))
    DEFAULT_ANALYSIS_MODE: str = field(default_factory=lambda: os.getenv("ANALYSIS_MODE", "comprehensive"))

    # consensus and scoring
    CONFIDENCE_FLOOR: float = field(default_factory=lambda: safe_float(os.getenv("CONFIDENCE_FLOOR"), default=0.4, min_val=0.0, max_val=1.0))
    CONSENSUS_THRESHOLD: float = field(default_factory=lambda: safe_float(os.getenv("CONSENSUS_THRESHOLD"), default=0.6, min_val=0.0, max_val=1.0))
    CONSENSUS_BOOST: float = field(default_factory=lambda: safe_float(os.getenv("CONSENSUS_BOOST"), default=1.2, min_val=1.0, max_val=3.0))
    RISK_THRESHOLD_LOW: int = field(default_factory=lambda: safe_int(os.getenv("RISK_THRESHOLD_LOW"), default=80, min_val=0, max_val=100))
    RISK_THRESHOLD_MEDIUM: int = field(default_factory=lambda: safe_int(os.getenv("RISK_THRESHOLD_MEDIUM"), default=60, min_val=0, max_val=100))
    RISK_THRESHOLD_HIGH: int = field(default_factory=lambda: safe_int(os.getenv("RISK_THRESHOLD_HIGH"), default=40, min_val=0, max_val=100))
    BYTECODE_DEFAULT_SCORE: int = field(default_factory=lambda: safe_int(os.getenv("BYTECODE_DEFAULT_SCORE"), default=60, min_val=0, max_val=100))

    # input limits
    MAX_CONTRACT_SIZE_BYTES: int = field(default_factory=lambda: safe_int(os.getenv("MAX_CONTRACT_SIZE_BYTES"), default=1048576, min_val=1024, max_val=16 * 1048576))

    # response cache
    ENABLE_RESPONSE_CACHE: bool = field(default_factory=lambda: safe_bool(os.getenv("ENABLE_RESPONSE_CACHE"), True))
    RESPONSE_CACHE_TTL: int = field(default_factory=lambda: safe_int(os.getenv("RESPONSE_CACHE_TTL"), default=3600, min_val=1, max_val=7 * 86400))
    RESPONSE_CACHE_SIZE: int = field(default_factory=lambda: safe_int(os.getenv("RESPONSE_CACHE_SIZE"), default=256, min_val=1, max_val=100000))

    # observability and persistence
    AUDIT_LOG_BACKEND: str = field(default_factory=lambda: os.getenv("AUDIT_LOG_BACKEND", "sqlite"))
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    METRICS_ENABLED: bool = field(default_factory=lambda: safe_bool(os.getenv("METRICS_ENABLED"), False))

    SUPPORTED_BACKENDS: List[str] = field(default_factory=lambda: ["openrouter", "http"])
    ANALYSIS_MODES: List[str] = field(default_factory=lambda: ["comprehensive", "deep"])

    def __post_init__(self) -> None:
        self.DEFAULT_BACKEND_TYPE = (self.DEFAULT_BACKEND_TYPE or "openrouter").lower()
        if self.DEFAULT_BACKEND_TYPE not in self.SUPPORTED_BACKENDS:
            warnings.warn(
                f"[config] Invalid BACKEND='{self.DEFAULT_BACKEND_TYPE}', defaulting to 'openrouter'",
                RuntimeWarning,
                stacklevel=2,
            )
            self.DEFAULT_BACKEND_TYPE = "openrouter"
        self.DEFAULT_ANALYSIS_MODE = (self.DEFAULT_ANALYSIS_MODE or "comprehensive").lower()
        if self.DEFAULT_ANALYSIS_MODE not in self.ANALYSIS_MODES:
            warnings.warn(
                f"[config] Invalid ANALYSIS_MODE='{self.DEFAULT_ANALYSIS_MODE}', defaulting to 'comprehensive'",
                RuntimeWarning,
                stacklevel=2,
            )
            self.DEFAULT_ANALYSIS_MODE = "comprehensive"
        self.AUDIT_LOG_BACKEND = (self.AUDIT_LOG_BACKEND or "sqlite").lower()
        if self.AUDIT_LOG_BACKEND not in {"sqlite", "memory", "off"}:
            warnings.warn(
                f"[config] Invalid AUDIT_LOG_BACKEND='{self.AUDIT_LOG_BACKEND}', defaulting to 'sqlite'",
                RuntimeWarning,
                stacklevel=2,
            )
            self.AUDIT_LOG_BACKEND = "sqlite"
        if not (self.RISK_THRESHOLD_LOW >= self.RISK_THRESHOLD_MEDIUM >= self.RISK_THRESHOLD_HIGH):
            warnings.warn(
                "[config] Risk thresholds must satisfy LOW >= MEDIUM >= HIGH, restoring 80/60/40",
                RuntimeWarning,
                stacklevel=2,
            )
            self.RISK_THRESHOLD_LOW, self.RISK_THRESHOLD_MEDIUM, self.RISK_THRESHOLD_HIGH = 80, 60, 40

    @property
    def has_api_key(self) -> bool:
        if self.DEFAULT_BACKEND_TYPE == "openrouter":
            return bool(self.OPENROUTER_API_KEY)
        return bool(self.LLM_API_KEY)

    def validate(self) -> List[str]:
        """return a list of configuration problems (empty when usable)"""
        problems: List[str] = []
        if not self.has_api_key:
            key_name = "OPENROUTER_API_KEY" if self.DEFAULT_BACKEND_TYPE == "openrouter" else "LLM_API_KEY"
            problems.append(f"{key_name} environment variable not set")
        if self.AGENT_TASK_TIMEOUT > self.ANALYSIS_TIMEOUT:
            problems.append(
                f"AGENT_TASK_TIMEOUT ({self.AGENT_TASK_TIMEOUT}s) exceeds ANALYSIS_TIMEOUT ({self.ANALYSIS_TIMEOUT}s)"
            )
        return problems

    def summary(self) -> Dict[str, Any]:
        return {
            "backend": self.DEFAULT_BACKEND_TYPE,
            "model": self.DEFAULT_MODEL,
            "api_key_set": self.has_api_key,
            "max_concurrent_agents": self.MAX_CONCURRENT_AGENTS,
            "agent_task_timeout": self.AGENT_TASK_TIMEOUT,
            "analysis_timeout": self.ANALYSIS_TIMEOUT,
            "analysis_mode": self.DEFAULT_ANALYSIS_MODE,
            "confidence_floor": self.CONFIDENCE_FLOOR,
            "risk_thresholds": [self.RISK_THRESHOLD_LOW, self.RISK_THRESHOLD_MEDIUM, self.RISK_THRESHOLD_HIGH],
            "max_contract_size": self.MAX_CONTRACT_SIZE_BYTES,
            "response_cache": self.ENABLE_RESPONSE_CACHE,
            "audit_log": self.AUDIT_LOG_BACKEND,
        }


config = QuorumConfig()
