"""
Explanation Assistant: turns drug data into prose via the LLM.

Stateless. Every method returns text and never raises for LLM trouble:
UpstreamUnavailable is caught here and replaced by the deterministic
strings in ai.fallback.
"""
import logging
from typing import Optional

from ai import fallback, prompts
from ai.groq_client import GroqClient, get_groq_client
from app.core.config import settings
from app.core.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

# A transition waits on its explanation: one attempt, bounded by AI_TIMEOUT_SECONDS
TRANSITION_MAX_RETRIES = 0


class ExplanationService:
    def __init__(self, client: Optional[GroqClient] = None):
        self.client = client or get_groq_client()

    def _generate(self, messages: list[dict], purpose: str, max_retries: Optional[int] = None) -> Optional[str]:
        try:
            return self.client.complete(messages, max_retries=max_retries)
        except UpstreamUnavailable as e:
            logger.info(f"AI {purpose} unavailable, using fallback: {e.message}")
            return None

    def explain_transition(self, drug, target: str, role: str, events: list, alerts: list) -> str:
        """Text stored on the scan event of a status change."""
        action = f"Status updated to {target}"
        text = self._generate(prompts.build_explain_messages(drug, action, role, events, alerts), "transition",
                              max_retries=TRANSITION_MAX_RETRIES)
        return text or fallback.transition_fallback(target, role)

    def explain(self, drug, events: list, alerts: list, kind: str = "explain",
                action: Optional[str] = None, role: Optional[str] = None) -> str:
        """On-demand explanation ("explain") or authenticity assessment ("verify")."""
        if drug is None:
            return fallback.UNKNOWN_DRUG_EXPLANATION
        if kind == "verify":
            text = self._generate(prompts.build_verify_messages(drug, events, alerts), "verify")
            return text or fallback.verify_fallback(drug, len([a for a in alerts if not a.resolved]))
        messages = prompts.build_explain_messages(
            drug, action or f"Current status {drug.status}", role, events, alerts
        )
        return self._generate(messages, "explain") or fallback.explain_fallback(drug)

    def chat(self, message: str, history: list[dict], drug=None, events: Optional[list] = None,
             alerts: Optional[list] = None, alert=None) -> str:
        """Conversational answer. Only the last CHAT_HISTORY_LIMIT turns are sent."""
        history = history[-settings.CHAT_HISTORY_LIMIT:] if settings.CHAT_HISTORY_LIMIT else []
        messages = prompts.build_chat_messages(message, history, drug=drug, events=events, alerts=alerts, alert=alert)
        return self._generate(messages, "chat") or fallback.CHAT_FALLBACK


_explanation_service: Optional[ExplanationService] = None


def get_explanation_service() -> ExplanationService:
    global _explanation_service
    if _explanation_service is None:
        _explanation_service = ExplanationService()
    return _explanation_service
