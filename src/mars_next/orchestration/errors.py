"""
Round error taxonomy.

  NoAgentsAvailable     empty roster; not a failure, the round maps it to RoundStatus.NO_AGENTS
  SynthesisError        the synthesis call failed; terminal for the round
  AllAgentsFailedError  nothing succeeded, so there is nothing to synthesize
  AgentFailureError     an agent failed under the "abort" partial-failure policy

Per-agent inference failures are NOT exceptions at the round level: the
invoker turns them into error-tagged AgentResponses.
"""

from ..llm.errors import ApiErrorInfo

GENERIC_PROCESSING_ERROR = (
    "Sorry, something went wrong while processing your request. Please try again."
)


class RoundError(Exception):
    """Base class for errors that end a round without a synthesized reply."""

    user_message = GENERIC_PROCESSING_ERROR


class NoAgentsAvailable(RoundError):
    def __init__(self):
        super().__init__("No agents available for this round")


class SynthesisError(RoundError):
    def __init__(self, message: str, info: ApiErrorInfo | None = None, agent_count: int = 0):
        super().__init__(message)
        self.info = info
        self.agent_count = agent_count


class AllAgentsFailedError(RoundError):
    user_message = "All agents encountered errors. Please try again later or with different parameters."

    def __init__(self, agent_ids: list[str]):
        super().__init__(f"All {len(agent_ids)} agent(s) failed: {', '.join(agent_ids)}")
        self.agent_ids = agent_ids


class AgentFailureError(RoundError):
    def __init__(self, agent_ids: list[str]):
        super().__init__(f"Agent(s) failed and the round was aborted: {', '.join(agent_ids)}")
        self.agent_ids = agent_ids
