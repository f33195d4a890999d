"""
Multi-agent orchestration.

  - AgentInvoker: concurrent fan-out of one prompt to every agent
  - Synthesizer: one extra call that merges the responses
  - MultiAgentRound: invoker -> partial-failure policy -> synthesizer

Both the invoker and the synthesizer take an InferenceProvider and a
BestEffortRecorder in their constructors.
"""
from .agent_invoker import AgentInvoker
from .errors import (
    AgentFailureError,
    AllAgentsFailedError,
    GENERIC_PROCESSING_ERROR,
    NoAgentsAvailable,
    RoundError,
    SynthesisError,
)
from .models import (
    AgentConfig,
    AgentResponse,
    ExecutionContext,
    FallbackInfo,
    NO_AGENTS_MESSAGE,
    RoundResult,
    RoundStatus,
    SynthesisResult,
)
from .multi_agent_round import PARTIAL_FAILURE_POLICIES, MultiAgentRound, RoundConfig
from .synthesizer import Synthesizer
