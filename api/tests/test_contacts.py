from rishta.services import proposals
from rishta.services.contacts import get_contact_if_accepted


def _pair(make_user, grant_quota):
    a = make_user("Ayesha", phone="+92 300 1111111", whatsapp="+92 300 1111112")
    b = make_user("Bilal", gender="male", phone="+92 321 2222222", whatsapp="+92 321 2222223")
    grant_quota(a, 3)
    return a, b


def test_no_proposal_no_contact(make_user, grant_quota):
    a, b = _pair(make_user, grant_quota)
    assert get_contact_if_accepted(a, b) is None
    assert get_contact_if_accepted(b, a) is None


def test_pending_hides_contact(make_user, grant_quota):
    a, b = _pair(make_user, grant_quota)
    proposals.send_proposal(a, b)
    assert get_contact_if_accepted(a, b) is None
    assert get_contact_if_accepted(b, a) is None


def test_rejected_hides_contact(make_user, grant_quota):
    a, b = _pair(make_user, grant_quota)
    proposals.send_proposal(a, b)
    proposals.respond_to_proposal(b, a, accept=False)
    assert get_contact_if_accepted(a, b) is None


def test_accepted_reveals_both_ways(make_user, grant_quota):
    a, b = _pair(make_user, grant_quota)
    proposals.send_proposal(a, b)
    proposals.respond_to_proposal(b, a, accept=True)

    assert get_contact_if_accepted(a, b) == {"phone": "+92 321 2222222", "whatsapp": "+92 321 2222223"}
    assert get_contact_if_accepted(b, a) == {"phone": "+92 300 1111111", "whatsapp": "+92 300 1111112"}


def test_third_party_sees_nothing(make_user, grant_quota):
    a, b = _pair(make_user, grant_quota)
    outsider = make_user("Kamran", gender="male")
    proposals.send_proposal(a, b)
    proposals.respond_to_proposal(b, a, accept=True)

    assert get_contact_if_accepted(outsider, a) is None
    assert get_contact_if_accepted(outsider, b) is None


def test_self_lookup_returns_nothing(make_user, grant_quota):
    a, _ = _pair(make_user, grant_quota)
    assert get_contact_if_accepted(a, a) is None
