from enum import Enum


class ProposalStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


TERMINAL_STATUSES = {ProposalStatus.ACCEPTED.value, ProposalStatus.REJECTED.value}


def transition_status(current: str, action: str) -> str:
    """Return the status a proposal moves to when ``action`` is applied.

    ``send`` only creates from ``none``; ``accept`` and ``reject`` only leave
    ``pending``. Anything else leaves the status unchanged, so callers detect
    a refused transition by comparing the result with ``current``.
    """
    if current in TERMINAL_STATUSES:
        return current

    if action == "send":
        if current == ProposalStatus.NONE.value:
            return ProposalStatus.PENDING.value
        return current

    if action == "accept":
        if current == ProposalStatus.PENDING.value:
            return ProposalStatus.ACCEPTED.value
        return current

    if action == "reject":
        if current == ProposalStatus.PENDING.value:
            return ProposalStatus.REJECTED.value
        return current

    return current


def pair_key(a: str, b: str) -> tuple[str, str]:
    """Canonical key for the unordered pair {a, b}."""
    a, b = str(a), str(b)
    return (a, b) if a <= b else (b, a)
