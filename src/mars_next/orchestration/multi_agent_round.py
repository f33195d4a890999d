"""
MultiAgentRound -- one prompt in, one synthesized reply out.

    agents --> AgentInvoker (fan-out, concurrent) --> barrier
           --> partial-failure policy
           --> Synthesizer (fan-in, one call)
           --> RoundResult

Usage records are written by the invoker and synthesizer as each call
resolves. A round that fails in synthesis leaves its agent records in place.
"""

import logging
import time
from dataclasses import dataclass

from ..security.validators import validate_in_choices
from .agent_invoker import AgentInvoker
from .errors import AgentFailureError, AllAgentsFailedError, NoAgentsAvailable
from .models import AgentConfig, ExecutionContext, RoundResult, RoundStatus
from .synthesizer import Synthesizer

logger = logging.getLogger(__name__)

SYNTHESIZE_SUCCESSFUL = "synthesize_successful"
INCLUDE_FAILURES = "include_failures"
ABORT = "abort"
PARTIAL_FAILURE_POLICIES = (SYNTHESIZE_SUCCESSFUL, INCLUDE_FAILURES, ABORT)


@dataclass
class RoundConfig:
    """
    partial_failure_policy decides what happens when some agents fail:

      synthesize_successful  synthesize over the successful responses only
      include_failures       synthesize over everything, failures annotated
      abort                  raise AgentFailureError, no synthesis call
    """

    partial_failure_policy: str = SYNTHESIZE_SUCCESSFUL

    def __post_init__(self):
        validate_in_choices(self.partial_failure_policy, PARTIAL_FAILURE_POLICIES, "partial_failure_policy")


class MultiAgentRound:
    """
    Usage:
        round_ = MultiAgentRound(invoker, synthesizer, RoundConfig())
        result = await round_.run("What should we ship first?", agents, context)
        if result.status == RoundStatus.NO_AGENTS:
            ...
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        synthesizer: Synthesizer,
        config: RoundConfig | None = None,
    ):
        self.invoker = invoker
        self.synthesizer = synthesizer
        self.config = config or RoundConfig()

    async def run(
        self,
        prompt: str,
        agents: list[AgentConfig],
        context: ExecutionContext,
    ) -> RoundResult:
        """
        Execute a round.

        Returns a NO_AGENTS result for an empty roster. Raises SynthesisError,
        AllAgentsFailedError or AgentFailureError when no reply can be produced.
        """
        start = time.monotonic()
        try:
            responses = await self.invoker.invoke(agents, prompt, context)
        except NoAgentsAvailable:
            logger.info(f"[Round] No agents for user={context.user_id} project={context.project_id}")
            return RoundResult.no_agents()

        failed = [r for r in responses if not r.ok]
        policy = self.config.partial_failure_policy

        if failed and policy == ABORT:
            logger.warning(f"[Round] Aborting: {len(failed)} agent(s) failed")
            raise AgentFailureError([r.agent_id for r in failed])

        if len(failed) == len(responses):
            logger.warning(f"[Round] All {len(responses)} agent(s) failed, skipping synthesis")
            raise AllAgentsFailedError([r.agent_id for r in failed])

        to_merge = responses if policy == INCLUDE_FAILURES else [r for r in responses if r.ok]
        synthesis = await self.synthesizer.synthesize(to_merge, prompt, context)

        duration = int((time.monotonic() - start) * 1000)
        logger.info(
            f"[Round] Completed: {len(responses) - len(failed)}/{len(responses)} agent(s) ok, "
            f"{duration}ms"
        )
        return RoundResult(
            status=RoundStatus.COMPLETED,
            responses=responses,
            synthesis=synthesis,
            duration_ms=duration,
        )
