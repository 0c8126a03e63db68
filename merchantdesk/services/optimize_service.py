"""
LLM listing optimizer
Rewrites a product title and description for Google Merchant Center
"""
import json
import re
from typing import Dict, Optional

from anthropic import Anthropic
from openai import OpenAI

from merchantdesk.config import get_settings
from merchantdesk.utils.logger import log

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMUnavailableError(Exception):
    """No LLM provider is configured."""


class OptimizationError(Exception):
    """The provider answered, but not with a usable title/description."""


def build_prompt(title: str, description: str) -> str:
    return f"""Improve product title and description for Google Merchant Center.
Make it SEO friendly, clean and professional.

OLD TITLE: {title}
OLD DESCRIPTION: {description}

Return strictly JSON only as:
{{
  "title": "new title",
  "description": "new description"
}}
"""


def parse_optimized(text: str) -> Dict[str, str]:
    """Parse the model's JSON answer, tolerating a surrounding markdown fence."""
    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        log.error(f"Failed to parse LLM response: {text!r}")
        raise OptimizationError("LLM response was not valid JSON") from e

    if not isinstance(data, dict):
        raise OptimizationError("LLM response was not a JSON object")

    title = data.get("title")
    description = data.get("description")
    if not isinstance(title, str) or not isinstance(description, str) or not title.strip():
        raise OptimizationError("LLM response is missing title or description")

    return {"title": title.strip(), "description": description.strip()}


class OptimizeService:
    """
    Service for rewriting listings with OpenAI (default) or Claude
    """

    def __init__(self, client=None, provider: Optional[str] = None):
        settings = get_settings()
        self.settings = settings
        self.provider = (provider or settings.llm_provider or "openai").lower()
        self.client = client

        if self.client is None and settings.enable_llm_optimization:
            if self.provider == "anthropic" and settings.anthropic_api_key:
                self.client = Anthropic(api_key=settings.anthropic_api_key)
            elif self.provider == "openai" and settings.openai_api_key:
                self.client = OpenAI(api_key=settings.openai_api_key)

        self.enabled = self.client is not None
        if not self.enabled:
            log.info(f"LLM optimization disabled (no {self.provider} API key or feature disabled)")

    def _complete(self, prompt: str) -> str:
        if self.provider == "anthropic":
            response = self.client.messages.create(
                model=self.settings.llm_model,
                max_tokens=self.settings.llm_max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
            return response.content[0].text

        response = self.client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.choices[0].message.content or ""

    def optimize_title_description(self, title: str, description: str) -> Dict[str, str]:
        if not self.enabled:
            raise LLMUnavailableError("LLM optimization is not configured")

        try:
            text = self._complete(build_prompt(title, description))
        except Exception as e:
            log.error(f"LLM request failed: {e}")
            raise OptimizationError(f"LLM request failed: {e}") from e

        optimized = parse_optimized(text)
        log.info(f"Optimized listing via {self.provider}: {title[:60]!r} -> {optimized['title'][:60]!r}")
        return optimized
