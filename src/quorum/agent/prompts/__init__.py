"""
Prompt Templates Module

Exports:
    From reviewer_prompts:
        - SYSTEM_PROMPTS: per-reviewer system prompt
        - build_prompt: agent-specific analysis prompt for a contract payload
        - system_prompt: lookup with security fallback
"""

from .reviewer_prompts import SYSTEM_PROMPTS, build_prompt, system_prompt

__all__ = [
    "SYSTEM_PROMPTS",
    "build_prompt",
    "system_prompt",
]
