"""
Narrative Service: free-text business analysis from a computed KPI bundle.

Supports Gemini (google-generativeai, default) and OpenAI. The call is
optional, single-shot and never raises into the KPI pipeline: every failure
maps to a sentinel string.
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import google.generativeai as genai
import openai

from bizmetrics.metrics.models import MetricBundle, Rankings, RetentionMetrics

logger = logging.getLogger(__name__)

NARRATIVE_NOT_CONFIGURED = "API Key not configured."
NARRATIVE_EMPTY = "No insights generated."
NARRATIVE_FAILED = "Could not generate insights at this time."
NARRATIVE_SENTINELS = frozenset({NARRATIVE_NOT_CONFIGURED, NARRATIVE_EMPTY, NARRATIVE_FAILED})

DEFAULT_TIMEOUT_SECONDS = 20.0

NarrativeRequest = Dict[str, Union[float, int, str]]


def _env_number(name: str, default, cast):
    """Numeric env setting; an unparsable value falls back to the default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}; using default {default}")
        return default


class LLMConfig:
    """Configuration for the narrative provider."""

    def __init__(self):
        # Provider can be "gemini" (default) or "openai"
        self.provider = os.getenv("LLM_PROVIDER", "gemini").lower()

        # Keys (LLM_API_KEY takes precedence to avoid host overrides)
        if self.provider == "gemini":
            self.api_key = os.getenv("LLM_API_KEY") or os.getenv("GEMINI_API_KEY")
        else:
            self.api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")

        self.model = os.getenv("LLM_MODEL", "gemini-2.0-flash" if self.provider == "gemini" else "gpt-4o-mini")
        self.api_base = os.getenv("OPENAI_API_BASE")
        # For google-generativeai, api_endpoint should be just the host (no scheme/path)
        self.gemini_api_base = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com")
        self.temperature = _env_number("LLM_TEMPERATURE", 0.3, float)
        self.max_tokens = _env_number("LLM_MAX_TOKENS", 400, int)
        self.available = bool(self.api_key)

        if not self.available:
            logger.warning("LLM not configured (missing API key); narratives disabled.")
            return

        if self.provider == "gemini":
            parsed = urlparse(self.gemini_api_base)
            api_endpoint = parsed.netloc or parsed.path or self.gemini_api_base
            genai.configure(api_key=self.api_key, client_options={"api_endpoint": api_endpoint})


def build_narrative_request(
    bundle: MetricBundle,
    retention: RetentionMetrics,
    rankings: Rankings,
) -> NarrativeRequest:
    """Flat metrics map sent to the provider."""
    top_service = rankings.top_services[0].entity.name if rankings.top_services else "N/A"
    return {
        "revenue": bundle["income"],
        "expenses": bundle["expense"],
        "profit": bundle["profit"],
        "profit_margin": bundle["profit_margin"],
        "growth_pct": bundle.growth("income"),
        "avg_ticket": bundle["avg_ticket"],
        "new_clients": int(bundle["new_clients"]),
        "inactive_clients": retention.inactive_clients,
        "retention_rate": retention.retention_rate,
        "total_appointments": int(bundle["appointments_total"]),
        "show_rate": bundle["show_rate"],
        "cancel_rate": bundle["cancel_rate"],
        "no_show_rate": bundle["no_show_rate"],
        "top_service": top_service,
        "staff_count": int(bundle["staff_count"]),
        "low_stock_count": int(bundle["low_stock_count"]),
    }


def _build_prompt(metrics: NarrativeRequest) -> str:
    return (
        "You are a business analyst for a barber shop / beauty salon. "
        "Analyze these metrics and provide a concise, 1-paragraph strategic insight "
        "for the owner to improve revenue. Use only the numbers given.\n\n"
        f"Metrics: {json.dumps(metrics, default=str)}"
    )


def _call_gemini(prompt: str, config: LLMConfig) -> str:
    model_name = config.model
    if not model_name.startswith("models/"):
        model_name = f"models/{model_name}"
    model = genai.GenerativeModel(model_name)
    gen_response = model.generate_content(
        prompt,
        generation_config={"temperature": config.temperature, "max_output_tokens": config.max_tokens},
    )
    text_out = ""
    if getattr(gen_response, "candidates", None):
        for part in gen_response.candidates[0].content.parts:
            if hasattr(part, "text"):
                text_out = part.text
                break
    if not text_out:
        text_out = getattr(gen_response, "text", "") or ""
    return text_out.strip()


def _call_openai(prompt: str, config: LLMConfig) -> str:
    client = openai.OpenAI(api_key=config.api_key, base_url=config.api_base or None)
    response = client.chat.completions.create(
        model=config.model,
        messages=[{"role": "user", "content": prompt}],
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
    return (response.choices[0].message.content or "").strip()


def generate_business_narrative(metrics: NarrativeRequest, config: Optional[LLMConfig] = None) -> str:
    """
    Sends the metrics map to the provider once.

    Returns:
        The narrative text, or one of the NARRATIVE_* sentinels
    """
    if config is None:
        try:
            config = LLMConfig()
        except Exception as e:
            logger.warning(f"Narrative provider setup failed: {e}")
            return NARRATIVE_FAILED
    if not config.available:
        return NARRATIVE_NOT_CONFIGURED

    prompt = _build_prompt(metrics)
    try:
        logger.info(f"Calling LLM provider={config.provider} model={config.model} for business narrative")
        if config.provider == "openai":
            text_out = _call_openai(prompt, config)
        else:
            text_out = _call_gemini(prompt, config)
    except Exception as e:
        logger.warning(f"Narrative generation failed: {e}")
        return NARRATIVE_FAILED

    return text_out or NARRATIVE_EMPTY


async def request_narrative(
    metrics: NarrativeRequest,
    config: Optional[LLMConfig] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """
    Runs the blocking provider call in a worker thread, bounded by `timeout`.
    Cancellation propagates to the caller; a timeout yields NARRATIVE_FAILED.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(generate_business_narrative, metrics, config),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(f"Narrative generation timed out after {timeout}s")
        return NARRATIVE_FAILED


def is_narrative_failure(text: str) -> bool:
    return text in NARRATIVE_SENTINELS


def split_narrative(text: str) -> List[str]:
    """Non-empty lines of the narrative, for display."""
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def narrative_to_dict(text: str) -> Dict[str, Any]:
    return {"text": text, "lines": split_narrative(text), "failed": is_narrative_failure(text)}
