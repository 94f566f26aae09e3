"""
Proposal store tests - dedup against open proposals and the resolve lifecycle.
"""

import pytest

from pacegate.core.errors import ValidationError
from pacegate.core.proposals import RESOLUTION_STATUSES, Created, Deduplicated


def _create(plane, **overrides):
    fields = {
        "domain": "example.com",
        "title": "Add favicon",
        "body": "The site has no favicon.",
        "effort": "small",
        "recommendation": "greenlight",
        "source": "test",
    }
    fields.update(overrides)
    return plane.proposals.create_proposal(**fields)


class TestCreate:
    def test_new_proposal_is_pending(self, plane):
        result = _create(plane)
        assert isinstance(result, Created)
        assert result.deduplicated is False
        proposal = result.proposal
        assert proposal.id > 0
        assert proposal.status == "pending"
        assert proposal.created_at == "2026-03-01 12:00:00"
        assert proposal.resolved_at is None
        assert proposal.resolution_note is None

    def test_defaults(self, plane):
        proposal = plane.proposals.create_proposal("d", "t", "b").proposal
        assert proposal.effort == "unknown"
        assert proposal.recommendation == "none"
        assert proposal.source == "api"

    @pytest.mark.parametrize("field", ["domain", "title", "body"])
    def test_required_fields(self, plane, field):
        with pytest.raises(ValidationError):
            _create(plane, **{field: "  "})


class TestDeduplication:
    def test_case_insensitive_duplicate_absorbed(self, plane):
        first = _create(plane)
        second = _create(plane, title="ADD FAVICON", body="Different body", effort="large")

        assert isinstance(second, Deduplicated)
        assert second.deduplicated is True
        assert second.proposal.id == first.proposal.id
        assert second.proposal.body == "The site has no favicon."
        assert second.proposal.effort == "small"

    def test_non_ascii_titles_fold(self, plane):
        first = _create(plane, title="Ébauche du menu")
        second = _create(plane, title="éBAUCHE DU MENU")
        third = _create(plane, title="Straße prüfen")
        fourth = _create(plane, title="STRASSE PRÜFEN")

        assert isinstance(second, Deduplicated)
        assert second.proposal.id == first.proposal.id
        assert isinstance(fourth, Deduplicated)
        assert fourth.proposal.id == third.proposal.id
        assert len(plane.proposals.list_proposals()) == 1

    def test_stored_record_unchanged_by_duplicate(self, plane):
        first = _create(plane)
        _create(plane, title="add favicon", body="Overwritten?")
        assert plane.proposals.get_proposal(first.proposal.id).body == "The site has no favicon."

    def test_different_domain_is_new(self, plane):
        first = _create(plane)
        second = _create(plane, domain="other.com")
        assert isinstance(second, Created)
        assert second.proposal.id != first.proposal.id

    def test_greenlit_still_blocks_duplicates(self, plane):
        first = _create(plane)
        plane.proposals.resolve_proposal(first.proposal.id, "greenlit")
        assert isinstance(_create(plane), Deduplicated)

    @pytest.mark.parametrize("status", ["modified", "rejected", "shelved", "expired", "shipped"])
    def test_resolved_frees_the_slot(self, plane, status):
        first = _create(plane)
        plane.proposals.resolve_proposal(first.proposal.id, status, "done")
        again = _create(plane)
        assert isinstance(again, Created)
        assert again.proposal.id != first.proposal.id

    def test_find_duplicate(self, plane):
        assert plane.proposals.find_duplicate("example.com", "add favicon") is None
        created = _create(plane).proposal
        assert plane.proposals.find_duplicate("example.com", "Add Favicon").id == created.id
        assert plane.proposals.find_duplicate("other.com", "Add favicon") is None


class TestList:
    def test_newest_first(self, plane, clock):
        ids = []
        for i in range(3):
            ids.append(_create(plane, title=f"p{i}").proposal.id)
            clock.advance(minutes=1)
        assert [p.id for p in plane.proposals.list_proposals()] == list(reversed(ids))

    def test_filters_and_limit(self, plane):
        a = _create(plane, title="a").proposal
        _create(plane, title="b", domain="other.com")
        c = _create(plane, title="c").proposal
        plane.proposals.resolve_proposal(a.id, "rejected")

        pending_here = plane.proposals.list_proposals(status="pending", domain="example.com")
        assert [p.id for p in pending_here] == [c.id]
        assert len(plane.proposals.list_proposals(limit=2)) == 2
        assert plane.proposals.count_by_status() == {"pending": 2, "rejected": 1}


class TestResolve:
    def test_resolve(self, plane, clock):
        created = _create(plane).proposal
        clock.advance(hours=1)
        resolved = plane.proposals.resolve_proposal(created.id, "greenlit", "ship it")
        assert resolved.status == "greenlit"
        assert resolved.resolution_note == "ship it"
        assert resolved.resolved_at == "2026-03-01 13:00:00"

    def test_invalid_status_names_value_and_changes_nothing(self, plane):
        created = _create(plane).proposal
        with pytest.raises(ValidationError) as exc_info:
            plane.proposals.resolve_proposal(created.id, "approved")
        assert '"approved"' in str(exc_info.value)
        assert exc_info.value.allowed == RESOLUTION_STATUSES
        assert plane.proposals.get_proposal(created.id).status == "pending"

    def test_pending_is_not_a_resolution(self, plane):
        created = _create(plane).proposal
        with pytest.raises(ValidationError):
            plane.proposals.resolve_proposal(created.id, "pending")

    def test_missing_id_returns_none(self, plane):
        assert plane.proposals.resolve_proposal(9999, "rejected") is None

    def test_invalid_status_checked_before_lookup(self, plane):
        with pytest.raises(ValidationError):
            plane.proposals.resolve_proposal(9999, "bogus")
