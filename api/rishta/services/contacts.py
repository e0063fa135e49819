import logging
from typing import Any

from sqlalchemy import and_, select

from ..database import SessionLocal
from ..models import Profile, Proposal
from .state_machine import ProposalStatus, pair_key

logger = logging.getLogger(__name__)

proposal = Proposal.__table__
profile = Profile.__table__


def get_contact_if_accepted(requester_id: str, target_id: str) -> dict[str, Any] | None:
    """Phone and WhatsApp of ``target_id``, only when the pair's proposal is accepted.

    This is the only read of another user's contact columns. It is evaluated
    against the database on every call; callers must not cache the result as
    a permission.
    """
    requester_id, target_id = str(requester_id), str(target_id)
    if requester_id == target_id:
        return None
    low, high = pair_key(requester_id, target_id)
    with SessionLocal() as db:
        row = db.execute(
            select(profile.c.phone, profile.c.whatsapp)
            .select_from(
                proposal.join(
                    profile,
                    and_(
                        profile.c.user_id == target_id,
                        proposal.c.pair_low == low,
                        proposal.c.pair_high == high,
                    ),
                )
            )
            .where(proposal.c.status == ProposalStatus.ACCEPTED.value)
        ).mappings().first()
    if not row:
        return None
    logger.info(f"[contact] revealed target={target_id} to requester={requester_id}")
    return {"phone": row["phone"], "whatsapp": row["whatsapp"]}
