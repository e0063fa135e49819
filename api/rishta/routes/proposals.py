from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import SessionContext, get_current_user
from ..config import RL_PROPOSAL_RESPOND_LIMIT, RL_PROPOSAL_SEND_LIMIT, RL_WINDOW_SECONDS
from ..errors import InvalidInput
from ..schemas import ProposalStatusResponse, RespondProposalRequest, SendProposalRequest, SendProposalResponse
from ..services import proposals
from ..services.rate_limit import rate_limit_dependency
from ..services.state_machine import ProposalStatus

router = APIRouter()

RL_PROPOSAL_SEND = rate_limit_dependency("proposal_send", RL_PROPOSAL_SEND_LIMIT, RL_WINDOW_SECONDS)
RL_PROPOSAL_RESPOND = rate_limit_dependency("proposal_respond", RL_PROPOSAL_RESPOND_LIMIT, RL_WINDOW_SECONDS)

DIRECTIONS = {"sent", "received"}


@router.post("/proposals", status_code=201, response_model=SendProposalResponse)
def send(
    payload: SendProposalRequest,
    current_user: SessionContext = Depends(get_current_user),
    _: None = RL_PROPOSAL_SEND,
) -> dict[str, Any]:
    return proposals.send_proposal(current_user.user_id, payload.receiver_id)


@router.post("/proposals/{sender_id}/respond")
def respond(
    sender_id: str,
    payload: RespondProposalRequest,
    current_user: SessionContext = Depends(get_current_user),
    _: None = RL_PROPOSAL_RESPOND,
) -> dict[str, Any]:
    return proposals.respond_to_proposal(current_user.user_id, sender_id, payload.accept)


@router.get("/proposals")
def list_proposals(
    direction: str | None = None,
    status: str | None = None,
    current_user: SessionContext = Depends(get_current_user),
) -> dict[str, Any]:
    if direction and direction not in DIRECTIONS:
        raise InvalidInput("direction must be sent or received")
    if status and status not in {s.value for s in ProposalStatus if s is not ProposalStatus.NONE}:
        raise InvalidInput("status must be pending, accepted or rejected")
    return {"proposals": proposals.list_my_proposals(current_user.user_id, direction=direction, status=status)}


@router.get("/proposals/with/{user_id}", response_model=ProposalStatusResponse)
def status_with(user_id: str, current_user: SessionContext = Depends(get_current_user)) -> dict[str, Any]:
    return proposals.get_status_for_pair(current_user.user_id, user_id)
