"""
Tests for the append-only approval ledger.

Covers:
- append: seq allocation, timestamp defaulting
- list_for: newest first, insertion order breaks timestamp ties
- ORM immutability: update and delete are refused
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from roadmap_kernel.domain.approval import LedgerAction, LedgerEntry
from roadmap_kernel.exceptions import ImmutabilityViolationError
from roadmap_kernel.models.ledger import ApprovalLedgerEntryModel
from roadmap_kernel.selectors.approval_selector import ApprovalSelector
from roadmap_kernel.services.ledger_service import ApprovalLedger
from roadmap_kernel.services.sequence_service import SequenceService


def make_entry(project_id, action=LedgerAction.SUBMITTED, **kwargs) -> LedgerEntry:
    return LedgerEntry(
        entry_id=uuid4(),
        project_id=project_id,
        actor_id=kwargs.pop("actor_id", uuid4()),
        action=action,
        **kwargs,
    )


@pytest.fixture
def ledger(session, deterministic_clock) -> ApprovalLedger:
    return ApprovalLedger(session, deterministic_clock)


class TestAppend:
    def test_assigns_increasing_seq(self, ledger):
        project_id = uuid4()
        first = ledger.append(make_entry(project_id))
        second = ledger.append(make_entry(project_id, LedgerAction.APPROVED))

        assert first.seq >= 1
        assert second.seq == first.seq + 1

    def test_defaults_timestamp_to_clock(self, ledger, deterministic_clock):
        entry = ledger.append(make_entry(uuid4()))
        assert entry.created_at == deterministic_clock.now()

    def test_keeps_caller_timestamp(self, ledger, deterministic_clock):
        at = deterministic_clock.now() - timedelta(hours=3)
        entry = ledger.append(make_entry(uuid4(), created_at=at))
        assert entry.created_at == at

    def test_sequence_is_shared_across_projects(self, ledger, session):
        ledger.append(make_entry(uuid4()))
        ledger.append(make_entry(uuid4()))

        assert SequenceService(session).current_value(SequenceService.APPROVAL_LEDGER) == 2

    def test_logs_append(self, ledger, captured_logs):
        ledger.append(make_entry(uuid4(), notes="ok"))
        assert any(r["message"] == "ledger_entry_appended" for r in captured_logs())


class TestListFor:
    def test_newest_first(self, ledger, deterministic_clock):
        project_id = uuid4()
        ledger.append(make_entry(project_id, LedgerAction.SUBMITTED))
        deterministic_clock.advance_hours(1)
        ledger.append(make_entry(project_id, LedgerAction.APPROVED))

        actions = [e.action for e in ledger.list_for(project_id)]
        assert actions == [LedgerAction.APPROVED, LedgerAction.SUBMITTED]

    def test_equal_timestamps_later_insertion_first(self, ledger):
        project_id = uuid4()
        first = ledger.append(make_entry(project_id, LedgerAction.SUBMITTED))
        second = ledger.append(make_entry(project_id, LedgerAction.APPROVED))
        assert first.created_at == second.created_at

        listed = ledger.list_for(project_id)
        assert [e.entry_id for e in listed] == [second.entry_id, first.entry_id]

    def test_scoped_to_project(self, ledger):
        mine, other = uuid4(), uuid4()
        ledger.append(make_entry(mine))
        ledger.append(make_entry(other))

        assert [e.project_id for e in ledger.list_for(mine)] == [mine]

    def test_unknown_project_is_empty(self, ledger):
        assert ledger.list_for(uuid4()) == []

    def test_matches_audit_view(self, ledger, session):
        project_id = uuid4()
        ledger.append(make_entry(project_id, LedgerAction.SUBMITTED))
        ledger.append(make_entry(project_id, LedgerAction.REJECTED, notes="Over cap"))

        assert ledger.list_for(project_id) == ApprovalSelector(session).ledger(project_id)


class TestImmutability:
    def _stored(self, session, entry):
        return session.execute(
            select(ApprovalLedgerEntryModel).where(ApprovalLedgerEntryModel.id == entry.entry_id)
        ).scalar_one()

    def test_update_refused(self, ledger, session):
        entry = ledger.append(make_entry(uuid4(), notes="original"))
        model = self._stored(session, entry)

        model.notes = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_refused(self, ledger, session):
        entry = ledger.append(make_entry(uuid4()))
        model = self._stored(session, entry)

        session.delete(model)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
