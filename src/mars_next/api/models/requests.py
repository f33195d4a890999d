"""
Pydantic request models -- the API contract for round submission.

Field names are snake_case; camelCase aliases are accepted for clients that
send {"projectId": ..., "systemPrompt": ...}.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...orchestration.models import AgentConfig, ExecutionContext

MAX_PROMPT_LENGTH = 100_000
MAX_CONTEXT_LENGTH = 500_000
MAX_AGENTS = 20


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentConfigPayload(CamelModel):
    """One agent in the round."""

    id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    model: str = Field(..., min_length=1, max_length=128)
    provider: str | None = Field(None, description="anthropic | openai | google (default: from model)")
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, ge=1, le=200_000)
    system_prompt: str | None = Field(None, max_length=MAX_PROMPT_LENGTH)

    def to_config(self) -> AgentConfig:
        return AgentConfig(
            id=self.id,
            name=self.name,
            model=self.model,
            provider=self.provider.lower() if self.provider else None,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            system_prompt=self.system_prompt,
        )


class ContextPayload(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=128)
    project_id: str | None = Field(None, max_length=128)
    context_id: str | None = Field(None, max_length=128)
    thread_id: str | None = Field(None, max_length=128)
    context_text: str | None = Field(None, max_length=MAX_CONTEXT_LENGTH)

    def to_context(self) -> ExecutionContext:
        return ExecutionContext(
            user_id=self.user_id,
            project_id=self.project_id,
            context_id=self.context_id,
            thread_id=self.thread_id,
            context_text=self.context_text,
        )


class RoundRequest(CamelModel):
    """Submit one prompt to a set of agents."""

    prompt: str = Field(..., description="The user message every agent answers")
    agents: list[AgentConfigPayload] = Field(default_factory=list, max_length=MAX_AGENTS)
    context: ContextPayload
