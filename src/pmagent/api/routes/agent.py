"""Agent turn endpoint."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from pmagent.api.dependencies import OptionalTicketStoreDep, RunnerDep, SettingsDep
from pmagent.api.models import (
    AgentRespondRequest,
    AgentTurnResponse,
    APIResponse,
    agent_result_to_response,
)
from pmagent.context import ConversationTurn

router = APIRouter(prefix="/agent", tags=["agent"])


@router.post("/respond", response_model=APIResponse[AgentTurnResponse])
async def respond(
    request: AgentRespondRequest,
    settings: SettingsDep,
    store: OptionalTicketStoreDep,
    runner: RunnerDep,
) -> APIResponse[AgentTurnResponse] | JSONResponse:
    """Run one Project Manager turn.

    A turn that fails in the context-pack, openai or tool phase returns 502
    with the phase in ``data.error_phase``.
    """
    config = settings.to_agent_config(
        store=store,
        conversation_history=[
            ConversationTurn(role=turn.role, content=turn.content)
            for turn in request.conversation_history
        ],
        conversation_summary=request.conversation_summary,
        previous_response_id=request.previous_response_id,
        images=list(request.images),
    )
    result = await runner.run(request.message, config)
    body = agent_result_to_response(result, runner.label)
    if not result.ok:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content=APIResponse[AgentTurnResponse](data=body, error=result.error).model_dump(
                mode="json"
            ),
        )
    return APIResponse(data=body)
