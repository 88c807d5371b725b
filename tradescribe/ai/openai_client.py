"""
OpenAI-compatible client implementing the extraction, embedding and
answer capabilities over aiohttp.

Every call is bounded by a timeout. Transport errors, non-200 statuses and
unparseable bodies come back as Failure values; nothing is raised.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from tradescribe.ai.capabilities import Failure, Ok, Result
from tradescribe.utils.config import Settings, get_settings
from tradescribe.utils.logger import get_logger, sanitize_log_data

logger = get_logger(__name__)

EXTRACTION_SYSTEM_PROMPT = (
    "You are an assistant that extracts structured trade journal data. "
    'Return JSON with shape {"action":"create|update","target_trade_id":string|null,'
    '"trade":{trade_id?,ticker,trade_type,size,entry_price,exit_price,pnl_pct,pnl_usd,'
    'duration_minutes,rr_ratio,sentiment,status,opened_at,closed_at,raw_summary},'
    '"reasoning":string}. Use null for missing fields.'
)

EXTRACTION_INSTRUCTIONS = (
    "Analyse the note, decide whether to create a new trade or update an existing open trade. "
    "If the user supplied forcedTargetId use it for the update. "
    "Always populate missing numeric fields with null. Use minutes for duration_minutes."
)

ANSWER_SYSTEM_PROMPT = (
    "You are a trading journal analyst. Use the provided trade context to answer the query. "
    "If unsure, summarise relevant trades without fabricating data."
)


class OpenAIClient:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._base_url = self._settings.openai_base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None
        logger.info("ai_client_initialized", **sanitize_log_data({
            "base_url": self._base_url,
            "openai_api_key": self._settings.openai_api_key,
            "chat_model": self._settings.openai_chat_model,
        }))

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={
                    "Authorization": f"Bearer {self._settings.openai_api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _post_json(self, endpoint: str, payload: Dict[str, Any],
                         timeout_seconds: float) -> Result[Dict[str, Any]]:
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        try:
            session = await self._get_session()
            request = session.post(
                url, json=payload, timeout=aiohttp.ClientTimeout(total=timeout_seconds)
            )
            async with request as response:
                if response.status != 200:
                    body = await response.text()
                    logger.warning("ai_request_failed", endpoint=endpoint,
                                   status=response.status, body=body[:200])
                    return Failure.of(f"{endpoint} returned HTTP {response.status}", response.status)
                data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning("ai_request_timeout", endpoint=endpoint, timeout=timeout_seconds)
            return Failure.of(f"{endpoint} timed out after {timeout_seconds}s")
        except (aiohttp.ClientError, ValueError) as e:
            logger.warning("ai_request_error", endpoint=endpoint, error=str(e))
            return Failure.of(f"{endpoint} failed: {e}")
        if not isinstance(data, dict):
            return Failure.of(f"{endpoint} returned a non-object body")
        return Ok(data)

    # ─── ExtractionCapability ──────────────────────────────────

    def build_extraction_payload(self, note: str, forced_target_id: Optional[str],
                                 open_trade_context: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        user_payload = {
            "note": note,
            "forcedTargetId": forced_target_id,
            "openTrades": list(open_trade_context),
            "instructions": EXTRACTION_INSTRUCTIONS,
        }
        return {
            "model": self._settings.openai_chat_model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(user_payload, default=str)},
            ],
        }

    async def extract(self, note: str, forced_target_id: Optional[str],
                      open_trade_context: Sequence[Dict[str, Any]]) -> Result[Dict[str, Any]]:
        payload = self.build_extraction_payload(note, forced_target_id, open_trade_context)
        logger.debug("ai_extract_request", model=payload["model"], open_trades=len(open_trade_context))
        result = await self._post_json(
            "chat/completions", payload, self._settings.extraction_timeout_seconds
        )
        if isinstance(result, Failure):
            return result
        return parse_completion_json(result.value)

    # ─── EmbeddingCapability ───────────────────────────────────

    async def embed(self, text: str) -> Result[List[float]]:
        payload = {"model": self._settings.openai_embedding_model, "input": text}
        result = await self._post_json(
            "embeddings", payload, self._settings.embedding_timeout_seconds
        )
        if isinstance(result, Failure):
            return result
        return parse_embedding(result.value)

    # ─── AnswerCapability ──────────────────────────────────────

    def build_answer_payload(self, query: str, context: Sequence[str]) -> Dict[str, Any]:
        return {
            "model": self._settings.openai_chat_model,
            "temperature": 0.2,
            "messages": [
                {"role": "system", "content": ANSWER_SYSTEM_PROMPT},
                {"role": "user", "content": f"Query: {query}\nTrades:\n" + "\n---\n".join(context)},
            ],
        }

    async def answer(self, query: str, context: Sequence[str]) -> Result[str]:
        payload = self.build_answer_payload(query, context)
        logger.debug("ai_answer_request", model=payload["model"], context_trades=len(context))
        result = await self._post_json(
            "chat/completions", payload, self._settings.answer_timeout_seconds
        )
        if isinstance(result, Failure):
            return result
        return parse_completion_text(result.value)


def parse_completion_json(data: Dict[str, Any]) -> Result[Dict[str, Any]]:
    """choices[0].message.content → JSON object."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return Failure.of("completion response has no message content")
    try:
        parsed = json.loads(content or "{}")
    except (TypeError, ValueError):
        return Failure.of("completion content is not valid JSON")
    if not isinstance(parsed, dict):
        return Failure.of("completion content is not a JSON object")
    return Ok(parsed)


def parse_completion_text(data: Dict[str, Any]) -> Result[str]:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return Failure.of("completion response has no message content")
    if not isinstance(content, str) or not content.strip():
        return Failure.of("completion content is empty")
    return Ok(content.strip())


def parse_embedding(data: Dict[str, Any]) -> Result[List[float]]:
    try:
        vector = data["data"][0]["embedding"]
    except (KeyError, IndexError, TypeError):
        return Failure.of("embedding response has no vector")
    if not isinstance(vector, list) or not vector:
        return Failure.of("embedding vector is empty")
    try:
        return Ok([float(v) for v in vector])
    except (TypeError, ValueError):
        return Failure.of("embedding vector is not numeric")


def create_ai_client(settings: Optional[Settings] = None) -> Optional[OpenAIClient]:
    """None when no API key is configured; callers then use heuristics only."""
    settings = settings or get_settings()
    if not settings.ai_enabled:
        logger.warning("ai_disabled", reason="openai_api_key not set, using heuristics")
        return None
    return OpenAIClient(settings)
