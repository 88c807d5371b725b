from tradescribe.ai.capabilities import (
    AnswerCapability,
    EmbeddingCapability,
    ExtractionCapability,
    Failure,
    Ok,
    Result,
    VectorIndex,
)
from tradescribe.ai.openai_client import OpenAIClient, create_ai_client

__all__ = [
    "Ok", "Failure", "Result",
    "AnswerCapability", "ExtractionCapability", "EmbeddingCapability", "VectorIndex",
    "OpenAIClient", "create_ai_client",
]
