"""
Proposal lifecycle.

One proposal exists per unordered pair of users. It is created ``pending`` by
the sender (spending one unit of quota in the same transaction) and resolved
exactly once by the receiver. Resolved proposals are never reopened.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.exc import IntegrityError

from .. import repo
from ..database import SessionLocal
from ..errors import AlreadyResolved, DuplicateProposal, NotAuthorized, NotFound, QuotaExhausted, SelfProposal
from ..models import Profile, Proposal
from .events import log_product_event
from .quota import take_quota_unit
from .state_machine import ProposalStatus, pair_key, transition_status

logger = logging.getLogger(__name__)

proposal = Proposal.__table__
profile = Profile.__table__

SUMMARY_COLUMNS = (
    profile.c.user_id,
    profile.c.full_name,
    profile.c.gender,
    profile.c.city,
    profile.c.profession,
    profile.c.profile_picture_url,
    profile.c.verified,
)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _pair_clause(a: str, b: str):
    low, high = pair_key(a, b)
    return and_(proposal.c.pair_low == low, proposal.c.pair_high == high)


def _fetch_pair(db, a: str, b: str) -> dict[str, Any] | None:
    row = db.execute(select(proposal).where(_pair_clause(a, b))).mappings().first()
    return repo.to_dict(row)


def _fetch_profile_flags(db, user_id: str) -> dict[str, Any] | None:
    row = db.execute(
        select(profile.c.user_id, profile.c.approved, profile.c.blocked).where(profile.c.user_id == user_id)
    ).mappings().first()
    return dict(row) if row else None


def send_proposal(sender_id: str, receiver_id: str, now: datetime | None = None) -> dict[str, Any]:
    sender_id, receiver_id = str(sender_id), str(receiver_id)
    if sender_id == receiver_id:
        raise SelfProposal("You cannot send a proposal to yourself")
    now = now or _now_utc()
    low, high = pair_key(sender_id, receiver_id)

    with SessionLocal() as db:
        receiver = _fetch_profile_flags(db, receiver_id)
        if not receiver or not receiver["approved"] or receiver["blocked"]:
            raise NotFound("Profile not found")
        sender = _fetch_profile_flags(db, sender_id)
        if sender and sender["blocked"]:
            raise NotAuthorized("Your profile is blocked")

        existing = _fetch_pair(db, sender_id, receiver_id)
        if existing:
            raise DuplicateProposal(
                "A proposal already exists between you and this profile",
                status=existing["status"],
                is_sender=str(existing["sender_id"]) == sender_id,
            )

        ledger_row = take_quota_unit(db, sender_id, now)
        if not ledger_row:
            db.rollback()
            raise QuotaExhausted("No active package. Purchase a package to send proposals.")

        proposal_id = str(uuid.uuid4())
        status = transition_status(ProposalStatus.NONE.value, "send")
        try:
            db.execute(
                insert(proposal).values(
                    id=proposal_id,
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    pair_low=low,
                    pair_high=high,
                    status=status,
                    created_at=now,
                )
            )
        except IntegrityError:
            db.rollback()
            existing = _fetch_pair(db, sender_id, receiver_id)
            raise DuplicateProposal(
                "A proposal already exists between you and this profile",
                status=(existing or {}).get("status", ProposalStatus.PENDING.value),
                is_sender=bool(existing) and str(existing["sender_id"]) == sender_id,
            )

        log_product_event(
            db,
            event_name="proposal_sent",
            user_id=sender_id,
            properties={"proposal_id": proposal_id, "receiver_id": receiver_id, "user_package_id": ledger_row["id"]},
        )
        db.commit()

    remaining = int(ledger_row["proposals_remaining"])
    logger.info(f"[proposal] sent id={proposal_id} sender={sender_id} receiver={receiver_id} remaining={remaining}")
    return {
        "success": True,
        "remaining": remaining,
        "proposal": {
            "id": proposal_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "status": status,
            "created_at": now,
        },
    }


def respond_to_proposal(receiver_id: str, sender_id: str, accept: bool, now: datetime | None = None) -> dict[str, Any]:
    receiver_id, sender_id = str(receiver_id), str(sender_id)
    now = now or _now_utc()
    action = "accept" if accept else "reject"

    with SessionLocal() as db:
        row = _fetch_pair(db, receiver_id, sender_id)
        if not row:
            raise NotFound("Proposal not found")
        if str(row["receiver_id"]) != receiver_id:
            raise NotAuthorized("Only the receiver can respond to this proposal")

        new_status = transition_status(row["status"], action)
        if new_status == row["status"]:
            raise AlreadyResolved(f"Proposal already {row['status']}", status=row["status"])

        result = db.execute(
            update(proposal)
            .where(proposal.c.id == row["id"], proposal.c.status == ProposalStatus.PENDING.value)
            .values(status=new_status, responded_at=now)
        )
        if result.rowcount != 1:
            db.rollback()
            current = _fetch_pair(db, receiver_id, sender_id) or row
            raise AlreadyResolved(f"Proposal already {current['status']}", status=current["status"])

        log_product_event(
            db,
            event_name=f"proposal_{new_status}",
            user_id=receiver_id,
            properties={"proposal_id": str(row["id"]), "sender_id": str(row["sender_id"])},
        )
        db.commit()

    logger.info(f"[proposal] {new_status} id={row['id']} receiver={receiver_id} sender={row['sender_id']}")
    return {
        "id": str(row["id"]),
        "sender_id": str(row["sender_id"]),
        "receiver_id": str(row["receiver_id"]),
        "status": new_status,
        "responded_at": now,
    }


def get_status_for_pair(a: str, b: str) -> dict[str, Any]:
    with SessionLocal() as db:
        row = _fetch_pair(db, a, b)
    return status_view(row, str(a))


def status_view(row: dict[str, Any] | None, viewer_id: str) -> dict[str, Any]:
    if not row:
        return {"status": ProposalStatus.NONE.value, "sender_id": None, "is_sender": False, "can_respond": False}
    is_sender = str(row["sender_id"]) == str(viewer_id)
    return {
        "status": row["status"],
        "sender_id": str(row["sender_id"]),
        "is_sender": is_sender,
        "can_respond": (not is_sender) and row["status"] == ProposalStatus.PENDING.value,
    }


def statuses_for_viewer(db, viewer_id: str, other_ids: list[str]) -> dict[str, dict[str, Any]]:
    """Badge for every id in ``other_ids`` as seen by ``viewer_id``."""
    if not other_ids:
        return {}
    rows = db.execute(
        select(proposal).where(
            or_(
                and_(proposal.c.sender_id == viewer_id, proposal.c.receiver_id.in_(other_ids)),
                and_(proposal.c.receiver_id == viewer_id, proposal.c.sender_id.in_(other_ids)),
            )
        )
    ).mappings().all()
    by_other: dict[str, dict[str, Any]] = {}
    for r in rows:
        other = str(r["receiver_id"]) if str(r["sender_id"]) == viewer_id else str(r["sender_id"])
        by_other[other] = dict(r)
    return {oid: status_view(by_other.get(oid), viewer_id) for oid in other_ids}


def list_my_proposals(user_id: str, direction: str | None = None, status: str | None = None) -> list[dict[str, Any]]:
    user_id = str(user_id)
    if direction == "sent":
        party = proposal.c.sender_id == user_id
    elif direction == "received":
        party = proposal.c.receiver_id == user_id
    else:
        party = or_(proposal.c.sender_id == user_id, proposal.c.receiver_id == user_id)
    query = select(proposal).where(party)
    if status:
        query = query.where(proposal.c.status == status)

    with SessionLocal() as db:
        rows = [repo.to_dict(r) for r in db.execute(query.order_by(proposal.c.created_at.desc())).mappings().all()]
        other_ids = list({str(r["receiver_id"]) if str(r["sender_id"]) == user_id else str(r["sender_id"]) for r in rows})
        summaries: dict[str, dict[str, Any]] = {}
        if other_ids:
            for s in db.execute(select(*SUMMARY_COLUMNS).where(profile.c.user_id.in_(other_ids))).mappings().all():
                summaries[str(s["user_id"])] = dict(s)

    out: list[dict[str, Any]] = []
    for r in rows:
        is_sender = str(r["sender_id"]) == user_id
        other_id = str(r["receiver_id"]) if is_sender else str(r["sender_id"])
        out.append(
            {
                "id": str(r["id"]),
                "direction": "sent" if is_sender else "received",
                "status": r["status"],
                "created_at": r["created_at"],
                "responded_at": r["responded_at"],
                "counterpart": summaries.get(other_id, {"user_id": other_id}),
                "can_respond": (not is_sender) and r["status"] == ProposalStatus.PENDING.value,
            }
        )
    return out
