"""Narrative strategy insights using the Anthropic Claude API."""

import logging
import re
import time

import anthropic

from .config import NarrativeConfig
from .errors import CollaboratorUnavailableError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an IP strategy expert advising startups and SMEs on patent, design and trademark filings.

Provide exactly 3 concise, actionable insights about filing strategy based on the business context and the estimated costs you are given.

Format each insight as a separate line starting with its number (1., 2., 3.). No headings, no markdown, no preamble."""

# Leading "1." / "2)" / "-" / "*" markers on a returned line
LINE_MARKER = re.compile(r"^\s*(?:\d+\s*[.)]|[-*•])\s*")


class AnthropicNarrativeService:
    """Generates narrative insights with Claude. Implements complete(prompt) -> list[str]."""

    def __init__(self, config: NarrativeConfig):
        self.config = config
        # Retries are handled in _call_api so the wait between attempts stays bounded here
        self.client = anthropic.Anthropic(
            api_key=config.api_key,
            timeout=float(config.timeout_seconds),
            max_retries=0,
        )
        self.min_interval = 60.0 / config.rate_limit_per_minute
        self._last_request_time = 0.0

    def complete(self, prompt: str) -> list[str]:
        """Ask Claude for insights and return them as separate lines.

        Args:
            prompt: Business context and cost summary.

        Returns:
            Non-empty insight lines with numbering removed.

        Raises:
            CollaboratorUnavailableError: The API timed out, was unreachable
                or kept failing after retries.
        """
        response_text = self._call_api(prompt)
        return self._parse_lines(response_text)

    def _call_api(self, prompt: str) -> str:
        """Make the Anthropic API call with rate limiting and retries."""
        max_retries = max(1, self.config.max_retries)

        for attempt in range(1, max_retries + 1):
            self._rate_limit()
            try:
                response = self.client.messages.create(
                    model=self.config.model,
                    max_tokens=self.config.max_tokens,
                    system=SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                )
                return response.content[0].text

            except anthropic.RateLimitError:
                wait = min(2 ** attempt * 2, 10)
                logger.warning(f"Anthropic rate limited. Waiting {wait}s (attempt {attempt}/{max_retries})")
                if attempt < max_retries:
                    time.sleep(wait)

            except anthropic.APIStatusError as e:
                if e.status_code >= 500 and attempt < max_retries:
                    logger.warning(f"Anthropic server error {e.status_code} (attempt {attempt}/{max_retries})")
                    time.sleep(2 ** attempt)
                    continue
                raise CollaboratorUnavailableError(f"Anthropic API error {e.status_code}: {e}") from e

            except anthropic.APIConnectionError as e:
                # Includes APITimeoutError
                raise CollaboratorUnavailableError(f"Anthropic API unreachable: {e}") from e

        raise CollaboratorUnavailableError("Anthropic API call failed after all retries")

    def _parse_lines(self, response_text: str) -> list[str]:
        """Split the response into insight lines, dropping numbering and blanks."""
        lines = []
        for line in response_text.splitlines():
            cleaned = LINE_MARKER.sub("", line).strip()
            if cleaned:
                lines.append(cleaned)
        if not lines:
            logger.warning(f"Empty narrative response: {response_text[:200]!r}")
        return lines

    def _rate_limit(self):
        """Enforce rate limiting between API requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.min_interval:
            time.sleep(self.min_interval - elapsed)
        self._last_request_time = time.time()
