"""AI module for Groq LLM integration.

OPTIONAL annotation layer: generates human-readable explanations and chat
answers. Nothing here is authoritative; if the LLM fails, callers use the
deterministic strings in `fallback`.
"""

from .groq_client import GroqClient, get_groq_client
from . import fallback, prompts

__all__ = ["GroqClient", "get_groq_client", "fallback", "prompts"]
