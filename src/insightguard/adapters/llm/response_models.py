"""Structured output models for the analysis agent."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class AnalysisResponse(BaseModel):
    """Answer to a business question, as returned by the model."""

    summary: str = Field(
        description="Concise answer to the question, grounded in the provided data",
        min_length=1,
    )
    confidence: Literal["high", "medium", "low"] = Field(
        description="How well the data supports the answer",
    )
    reasoning: str | None = Field(
        default=None,
        description="Which counts or distributions the answer relies on",
    )
