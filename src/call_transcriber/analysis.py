"""Optional sales-call summary generated from the transcript."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from .errors import AnalysisError
from .settings import AnalysisSettings, OpenAISettings

logger = logging.getLogger(__name__)

ELLIPSIS = "…"

SYSTEM_PROMPT = (
    "Return concise, sales-ready analysis as plain text. "
    "Do not include JSON. Follow the requested headings exactly."
)

PROMPT_TEMPLATE = """You are a sales call analyst. Summarize the call and extract key insights for a sales team in a compact, readable block. Keep it under {limit} characters. Use exactly this format and plain text only:

Summary: <2-4 sentence recap>
Customer Sentiment: <Negative|Neutral|Positive>
Agent Sentiment: <Negative|Neutral|Positive>
Key Topics: <comma-separated>
Objections: <short list>
Next Steps: <bulleted or comma-separated>
Outcome: <No Decision|Follow-up Needed|Qualified|Unqualified|Closed Won|Closed Lost>
Notes: <optional short notes>

Transcript:
\"\"\"{transcript}\"\"\""""


def truncate_analysis(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` code points, ending with an ellipsis.

    Counts Python code points, not grapheme clusters.
    """

    if max_chars <= 0 or len(text) <= max_chars:
        return text
    keep = max(0, max_chars - 10)
    return text[:keep] + ELLIPSIS


def build_prompt(transcript: str, *, max_input_chars: int, output_limit: int) -> str:
    return PROMPT_TEMPLATE.format(limit=output_limit, transcript=(transcript or "")[:max_input_chars])


class CallAnalyzer:
    """Thin wrapper around AsyncOpenAI chat completions for call summaries."""

    def __init__(
        self,
        analysis_cfg: AnalysisSettings,
        openai_cfg: Optional[OpenAISettings] = None,
        *,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._cfg = analysis_cfg
        self._openai_cfg = openai_cfg
        self._client: Optional[AsyncOpenAI] = client
        self._owns_client = client is None

    @property
    def enabled(self) -> bool:
        return self._cfg.enabled

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            openai_cfg = self._openai_cfg
            if openai_cfg is None or not openai_cfg.api_key:
                raise AnalysisError("OPENAI_API_KEY is required for call analysis")
            self._client = AsyncOpenAI(
                api_key=openai_cfg.api_key,
                base_url=openai_cfg.base_url,
                organization=openai_cfg.organization,
            )
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def analyze(self, transcript: str) -> Optional[str]:
        cfg = self._cfg
        params: Dict[str, Any] = {
            "model": cfg.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": build_prompt(
                        transcript,
                        max_input_chars=cfg.max_input_chars,
                        output_limit=cfg.max_output_chars,
                    ),
                },
            ],
            "temperature": cfg.temperature,
            "max_tokens": cfg.max_tokens,
            "timeout": cfg.timeout,
        }
        client = self._ensure_client()
        try:
            resp = await client.chat.completions.create(**params)
        except openai.APIStatusError as exc:
            raise AnalysisError(exc.message, provider="OpenAI", status_code=exc.status_code, body=exc.body) from exc
        except openai.OpenAIError as exc:
            raise AnalysisError(f"analysis request failed: {exc!r}", provider="OpenAI") from exc

        content = ""
        for choice in getattr(resp, "choices", None) or []:
            message = getattr(choice, "message", None)
            value = getattr(message, "content", None) if message else None
            if isinstance(value, str) and value.strip():
                content = value.strip()
                break
        if not content:
            logger.warning("analysis.empty", extra={"model": cfg.model})
            return None
        logger.info("analysis.complete", extra={"model": cfg.model, "chars": len(content)})
        return truncate_analysis(content, cfg.max_output_chars)


__all__ = ["CallAnalyzer", "truncate_analysis", "build_prompt", "ELLIPSIS"]
