"""Unit tests for PydanticAIProvider."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic_ai.models.test import TestModel as StubModel

from insightguard.adapters.llm.client import (
    DEFAULT_INSTRUCTIONS,
    DEFAULT_MODELS,
    PydanticAIProvider,
    build_model,
)
from insightguard.adapters.llm.response_models import AnalysisResponse
from insightguard.core.domain_types import LLMAnalysisResult
from insightguard.core.exceptions import LLMError

SYSTEM = "You answer questions about members."


class TestPydanticAIProvider:
    """Tests for PydanticAIProvider."""

    @pytest.fixture
    def provider(self) -> PydanticAIProvider:
        """Return a provider backed by the pydantic-ai test model."""
        return PydanticAIProvider(name="anthropic", model=StubModel())

    @pytest.fixture
    def mock_agent(self, provider: PydanticAIProvider) -> MagicMock:
        """Install a mock agent for the test system prompt."""
        agent = MagicMock()
        agent.run = AsyncMock(
            return_value=MagicMock(
                output=AnalysisResponse(
                    summary="Southeast has the most members.",
                    confidence="medium",
                    reasoning="Region distribution.",
                )
            )
        )
        provider._agents[SYSTEM] = agent
        return agent

    def test_get_name(self, provider: PydanticAIProvider) -> None:
        """Test the configured name is reported."""
        assert provider.get_name() == "anthropic"

    @pytest.mark.asyncio
    async def test_analyze_maps_structured_output(
        self,
        provider: PydanticAIProvider,
        mock_agent: MagicMock,
    ) -> None:
        """Test the structured output becomes an LLMAnalysisResult."""
        result = await provider.analyze("Which region leads?", "LOCATION DATA ...", SYSTEM)

        assert result == LLMAnalysisResult(
            summary="Southeast has the most members.",
            confidence="medium",
            reasoning="Region distribution.",
        )

    @pytest.mark.asyncio
    async def test_prompt_contains_question_and_context(
        self,
        provider: PydanticAIProvider,
        mock_agent: MagicMock,
    ) -> None:
        """Test the user prompt carries both sections."""
        await provider.analyze("Which region leads?", "LOCATION DATA (3 records)", SYSTEM)

        prompt = mock_agent.run.call_args.args[0]
        assert prompt.startswith("QUESTION:\nWhich region leads?")
        assert "DATA CONTEXT:\nLOCATION DATA (3 records)" in prompt

    @pytest.mark.asyncio
    async def test_failure_wrapped_in_llm_error(
        self,
        provider: PydanticAIProvider,
        mock_agent: MagicMock,
    ) -> None:
        """Test provider exceptions surface as retryable LLMError."""
        mock_agent.run.side_effect = RuntimeError("overloaded")

        with pytest.raises(LLMError) as exc_info:
            await provider.analyze("Which region leads?", "context", SYSTEM)

        assert "overloaded" in str(exc_info.value)
        assert exc_info.value.retryable is True

    def test_agent_cached_per_system_prompt(self, provider: PydanticAIProvider) -> None:
        """Test agents are reused for the same instructions."""
        first = provider._agent_for(SYSTEM)
        again = provider._agent_for(SYSTEM)
        other = provider._agent_for("Different instructions.")

        assert first is again
        assert first is not other

    def test_default_instructions(self, provider: PydanticAIProvider) -> None:
        """Test a missing system prompt falls back to the default."""
        provider._agent_for(None)

        assert DEFAULT_INSTRUCTIONS in provider._agents

    @pytest.mark.asyncio
    async def test_end_to_end_with_test_model(self, provider: PydanticAIProvider) -> None:
        """Test a full agent run produces a well-formed result."""
        result = await provider.analyze("Which region leads?", "context", SYSTEM)

        assert isinstance(result, LLMAnalysisResult)
        assert result.summary
        assert result.confidence in {"high", "medium", "low"}


class TestBuildModel:
    """Tests for build_model."""

    def test_unknown_provider(self) -> None:
        """Test unknown provider names are refused."""
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            build_model("carrier-pigeon")

    def test_default_models_cover_providers(self) -> None:
        """Test every supported provider has a default model."""
        assert set(DEFAULT_MODELS) == {"anthropic", "gemini", "bedrock"}

    def test_anthropic_model(self) -> None:
        """Test the anthropic provider builds an AnthropicModel."""
        pytest.importorskip("anthropic")
        from pydantic_ai.models.anthropic import AnthropicModel

        model = build_model("anthropic", api_key="test-key")

        assert isinstance(model, AnthropicModel)
        assert model.model_name == DEFAULT_MODELS["anthropic"]
