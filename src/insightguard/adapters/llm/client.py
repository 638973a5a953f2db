"""pydantic-ai implementation of LLMProvider."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic_ai import Agent

from insightguard.core.domain_types import LLMAnalysisResult
from insightguard.core.exceptions import LLMError

from .response_models import AnalysisResponse

if TYPE_CHECKING:
    from pydantic_ai.models import Model

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-sonnet-4-20250514",
    "gemini": "gemini-2.0-flash",
    "bedrock": "anthropic.claude-3-5-sonnet-20240620-v1:0",
}

DEFAULT_INSTRUCTIONS = "You are a careful business analyst."


def build_model(provider: str, model: str | None = None, api_key: str = "") -> Model:
    """Build a pydantic-ai model for a provider name.

    Args:
        provider: One of "anthropic", "gemini" or "bedrock".
        model: Model name. Uses the provider default if not provided.
        api_key: API key for key-based providers. Bedrock uses AWS credentials.

    Returns:
        A pydantic-ai Model instance.

    Raises:
        ValueError: If the provider is unknown.
    """
    name = model or DEFAULT_MODELS.get(provider, "")

    if provider == "anthropic":
        from pydantic_ai.models.anthropic import AnthropicModel
        from pydantic_ai.providers.anthropic import AnthropicProvider

        return AnthropicModel(name, provider=AnthropicProvider(api_key=api_key or None))

    if provider == "gemini":
        from pydantic_ai.models.google import GoogleModel
        from pydantic_ai.providers.google import GoogleProvider

        return GoogleModel(name, provider=GoogleProvider(api_key=api_key or None))

    if provider == "bedrock":
        from pydantic_ai.models.bedrock import BedrockConverseModel

        return BedrockConverseModel(name)

    raise ValueError(f"Unknown LLM provider: {provider}")


class PydanticAIProvider:
    """Model provider backed by a pydantic-ai Agent with structured output.

    One Agent is kept per distinct system prompt, so per-call system
    prompts do not rebuild the agent on every request.

    Attributes:
        name: Provider name reported on each Insight.
    """

    def __init__(
        self,
        name: str,
        model: Model | str,
        max_retries: int = 2,
    ) -> None:
        """Initialize the provider.

        Args:
            name: Provider name, e.g. "anthropic".
            model: pydantic-ai Model instance or model string.
            max_retries: Retries on structured-output validation failure.
        """
        self.name = name
        self._model = model
        self._max_retries = max_retries
        self._agents: dict[str, Agent[None, AnalysisResponse]] = {}

    def get_name(self) -> str:
        """Return the provider name."""
        return self.name

    def _agent_for(self, system_prompt: str | None) -> Agent[None, AnalysisResponse]:
        instructions = system_prompt or DEFAULT_INSTRUCTIONS
        agent = self._agents.get(instructions)
        if agent is None:
            agent = Agent(
                self._model,
                output_type=AnalysisResponse,
                system_prompt=instructions,
                retries=self._max_retries,
            )
            self._agents[instructions] = agent
        return agent

    async def analyze(
        self,
        question: str,
        context: str,
        system_prompt: str | None = None,
    ) -> LLMAnalysisResult:
        """Answer a question against the supplied context.

        Args:
            question: Sanitized question.
            context: Redacted data summary.
            system_prompt: Optional system instructions.

        Returns:
            LLMAnalysisResult built from the validated structured output.

        Raises:
            LLMError: If the model call fails after retries.
        """
        prompt = f"QUESTION:\n{question}\n\nDATA CONTEXT:\n{context}"

        try:
            result = await self._agent_for(system_prompt).run(prompt)
        except Exception as e:
            raise LLMError(f"Analysis failed: {e}", retryable=True) from e

        output = result.output
        return LLMAnalysisResult(
            summary=output.summary,
            confidence=output.confidence,
            reasoning=output.reasoning,
        )
