"""
Groq API Client: thin wrapper for generating human-readable explanations.

================================================================================
LLM ROLE IS ANNOTATION ONLY
================================================================================

Text produced here is decorative. It is stored on scan events and shown to
users, but it never decides a status, an authenticity verdict or an alert.

THIS CLIENT DOES NOT:
- Touch the database
- Change drug status
- Decide authenticity

Every failure (missing key, timeout, rate limit, API error) surfaces as
UpstreamUnavailable so callers can substitute templated text. A slow or
missing LLM must never block a custody transition or a verification lookup.
================================================================================
"""

import logging
import time
from typing import Optional

from groq import Groq, APIError, APITimeoutError, RateLimitError

from app.core.config import settings
from app.core.exceptions import UpstreamUnavailable

# NEVER log API keys
logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a pharmaceutical supply chain verification AI. Provide clear, concise "
    "explanations about drug authenticity. Keep responses brief and professional."
)


class GroqClient:
    """
    Minimal wrapper for Groq chat completions.

    - Timeout: AI_TIMEOUT_SECONDS (short; explanations sit next to a status write)
    - Retries: AI_MAX_RETRIES, only for timeouts and rate limits
    - Returns the completion text, raises UpstreamUnavailable otherwise
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        api_key = settings.GROQ_API_KEY if api_key is None else api_key
        self.model = model or settings.AI_MODEL
        self.timeout = settings.AI_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_retries = settings.AI_MAX_RETRIES if max_retries is None else max_retries

        if not api_key:
            logger.warning(
                "GROQ_API_KEY not set. AI explanations are DISABLED; "
                "templated fallback text will be used."
            )
            self.client = None
        else:
            try:
                # SDK-level retries off: the loop below owns the retry policy
                self.client = Groq(api_key=api_key, timeout=self.timeout, max_retries=0)
                logger.info("Groq client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Groq client: {e}")
                self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def complete(self, messages: list[dict], max_tokens: Optional[int] = None,
                 max_retries: Optional[int] = None) -> str:
        """
        Run one chat completion.

        Args:
            messages: OpenAI-style [{"role": ..., "content": ...}] list
            max_tokens: Optional override of AI_MAX_TOKENS
            max_retries: Optional override of AI_MAX_RETRIES

        Raises:
            UpstreamUnavailable: on any failure, after bounded retries
        """
        if not self.is_available():
            raise UpstreamUnavailable("LLM client not configured")

        retries = self.max_retries if max_retries is None else max_retries
        for attempt in range(retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.3,
                    max_tokens=max_tokens or settings.AI_MAX_TOKENS,
                    stream=False,
                )
                if response.choices and response.choices[0].message.content:
                    content = response.choices[0].message.content.strip()
                    logger.debug(f"LLM response received: {len(content)} chars (attempt {attempt + 1})")
                    return content
                raise UpstreamUnavailable("LLM returned empty response")

            except APITimeoutError:
                if attempt < retries:
                    wait_time = 0.25 * (2 ** attempt)
                    logger.warning(f"Groq timeout, retry {attempt + 1}/{retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    raise UpstreamUnavailable("LLM request timed out")

            except RateLimitError:
                if attempt < retries:
                    wait_time = 0.5 * (2 ** attempt)
                    logger.warning(f"Groq rate limit, retry {attempt + 1}/{retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    raise UpstreamUnavailable("LLM rate limit exceeded")

            except APIError as e:
                logger.error(f"Groq API error (permanent): {e}")
                raise UpstreamUnavailable("LLM API error") from e

            except UpstreamUnavailable:
                raise

            except Exception as e:
                logger.error(f"Unexpected Groq client error: {type(e).__name__}: {e}")
                raise UpstreamUnavailable("LLM request failed") from e

        raise UpstreamUnavailable("LLM request failed")


_groq_client: Optional[GroqClient] = None


def get_groq_client() -> GroqClient:
    """Get or create the shared GroqClient instance."""
    global _groq_client
    if _groq_client is None:
        _groq_client = GroqClient()
    return _groq_client
