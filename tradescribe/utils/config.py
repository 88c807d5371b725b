from __future__ import annotations

import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_SEED_FILE = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data", "sample_trades.json"
)

DEFAULT_TICKER_EXCLUSIONS = [
    "LONG", "SHORT", "CALL", "PUT", "CALLS", "PUTS", "OPEN", "CLOSE", "CLOSED",
    "ENTRY", "EXIT", "STOP", "LOSS", "GAIN", "TARGET", "PNL", "USD", "SHARES",
    "TRADE", "NOTE",
]


class Settings(BaseSettings):
    openai_api_key: str = Field(default="", description="API key for the completion/embedding service")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI-compatible API base URL")
    openai_chat_model: str = Field(default="gpt-4o-mini", description="Model used for note extraction and search answers")
    openai_embedding_model: str = Field(default="text-embedding-3-large", description="Model used for embeddings")

    extraction_timeout_seconds: float = Field(default=20.0, description="Upper bound for one extraction call")
    embedding_timeout_seconds: float = Field(default=10.0, description="Upper bound for one embedding call")
    answer_timeout_seconds: float = Field(default=20.0, description="Upper bound for one search answer call")

    open_trade_context_limit: int = Field(default=12, description="Open trades passed to the extractor")
    search_default_limit: int = Field(default=15, description="Default number of search results")
    list_default_limit: int = Field(default=200, description="Default number of listed trades")
    analytics_default_limit: int = Field(default=500, description="Trades considered by the analytics route")
    answer_context_limit: int = Field(default=8, description="Top search hits given to the model as answer context")
    summary_max_chars: int = Field(default=280, description="Raw summary length kept by the heuristic extractor")

    ticker_exclusions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TICKER_EXCLUSIONS),
        description="Upper-case words never treated as tickers by the heuristic extractor",
    )

    seed_file: str = Field(default=DEFAULT_SEED_FILE, description="JSON file loaded into the trade store")

    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/tradescribe.log", description="Log file path")
    log_json: bool = Field(default=True, description="Render log lines as JSON (console format otherwise)")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
