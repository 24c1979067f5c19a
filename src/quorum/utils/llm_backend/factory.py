"""llm backend factory"""

from typing import Optional

from quorum.config import config
from quorum.utils.llm_backend.base import LLMBackend
from quorum.utils.llm_backend.http_backend import HTTPBackend
from quorum.utils.llm_backend.openrouter import OpenRouterBackend


def create_backend(
    backend_type: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs
) -> LLMBackend:
    """create the configured generation backend. raises valueerror for unknown types or missing keys."""
    backend_type = (backend_type or config.DEFAULT_BACKEND_TYPE).lower()
    model = model or config.DEFAULT_MODEL

    if backend_type == "openrouter":
        return OpenRouterBackend(model=model, **kwargs)
    if backend_type == "http":
        return HTTPBackend(model=model, **kwargs)
    raise ValueError(f"Unknown backend type: {backend_type!r} (supported: {', '.join(config.SUPPORTED_BACKENDS)})")
