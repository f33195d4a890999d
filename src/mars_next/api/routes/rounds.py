"""
Rounds API -- submit one prompt to a set of agents and get the synthesized reply.

  POST /api/v1/rounds

Outcomes:
  200 completed    per-agent responses + synthesis
  200 no_agents    empty roster, nothing was called
  502              no reply could be produced (synthesis failed, every agent
                   failed, or an agent failed under the abort policy)

Security:
  - Prompt length is validated
  - Agent payloads are schema-validated with size limits
  - Error details stay in the server log; clients get a generic message
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ...orchestration import MultiAgentRound, RoundError, RoundStatus
from ...security import ValidationError, detect_injection_attempt, validate_length, validate_not_empty
from ..middleware.auth import AuthContext, verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import MAX_PROMPT_LENGTH, RoundRequest
from ..models.responses import RoundResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/rounds", response_model=RoundResponse)
async def run_round(
    round_request: RoundRequest,
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
    _rate: None = Depends(check_rate_limit),
) -> RoundResponse:
    """Run one multi-agent round."""
    round_: MultiAgentRound = request.app.state.round
    metrics = request.app.state.metrics

    try:
        prompt = validate_length(
            validate_not_empty(round_request.prompt, "prompt"), "prompt", max_length=MAX_PROMPT_LENGTH
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    agent_ids = [a.id for a in round_request.agents]
    if len(set(agent_ids)) != len(agent_ids):
        raise HTTPException(status_code=400, detail="Agent ids must be unique within a round")

    detect_injection_attempt(prompt)
    agents = [a.to_config() for a in round_request.agents]
    context = round_request.context.to_context()

    try:
        result = await round_.run(prompt, agents, context)
    except RoundError as e:
        metrics["rounds_failed"] += 1
        logger.error(
            f"[RoundsAPI] Round failed for user={context.user_id} "
            f"caller={auth.caller_id}: {type(e).__name__}: {e}"
        )
        raise HTTPException(status_code=502, detail=e.user_message)

    if result.status == RoundStatus.NO_AGENTS:
        metrics["rounds_no_agents"] += 1
    else:
        metrics["rounds_completed"] += 1
        metrics["total_duration_ms"] += result.duration_ms
        metrics["total_agent_calls"] += len(result.responses)
        metrics["failed_agent_calls"] += len(result.failed_agents)

    return RoundResponse.from_result(result)
