"""LLM adapter module."""

from .client import DEFAULT_MODELS, PydanticAIProvider, build_model
from .response_models import AnalysisResponse

__all__ = [
    "AnalysisResponse",
    "DEFAULT_MODELS",
    "PydanticAIProvider",
    "build_model",
]
