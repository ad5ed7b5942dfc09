"""
Tests for immutable project version snapshots.

Covers:
- snapshot: strictly increasing version numbers
- list_for: ascending order
- verify: hash detects a tampered snapshot
- state_digest: canonical amounts, key order, unsupported values
- ORM immutability
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from roadmap_kernel.exceptions import ImmutabilityViolationError, VersionSequenceError
from roadmap_kernel.models.version import ProjectVersionModel
from roadmap_kernel.services.version_service import VersionStore
from roadmap_kernel.utils.hashing import canonical_json, state_digest


@pytest.fixture
def store(session, deterministic_clock) -> VersionStore:
    return VersionStore(session, deterministic_clock)


def state(n: int) -> dict:
    return {"header": f"rev {n}", "budget_total": str(1000 * n), "version": n}


class TestSnapshot:
    def test_creation_writes_version_one(self, store, make_project):
        project = make_project()

        assert store.last_version(project.project_id) == 1
        [first] = store.list_for(project.project_id)
        assert first.snapshot == project.snapshot()
        assert len(first.snapshot_hash) == 64

    def test_next_number_accepted(self, store, make_project, actors):
        project = make_project()
        version = store.snapshot(project.project_id, 2, state(2), author_id=actors.owner)

        assert version.version_number == 2
        assert version.author_id == actors.owner
        assert store.last_version(project.project_id) == 2

    @pytest.mark.parametrize("bad", [0, -1])
    def test_number_below_one_refused(self, store, make_project, bad):
        project = make_project()
        with pytest.raises(VersionSequenceError):
            store.snapshot(project.project_id, bad, state(1), author_id=None)

    def test_repeated_number_refused(self, store, make_project):
        project = make_project()

        with pytest.raises(VersionSequenceError) as exc_info:
            store.snapshot(project.project_id, 1, state(1), author_id=None)
        assert exc_info.value.last_version == 1

    def test_lower_number_refused(self, store, make_project):
        project = make_project()
        store.snapshot(project.project_id, 4, state(4), author_id=None)
        with pytest.raises(VersionSequenceError):
            store.snapshot(project.project_id, 3, state(3), author_id=None)

    def test_numbers_are_per_project(self, store, make_project):
        a, b = make_project(), make_project()
        store.snapshot(a.project_id, 2, state(2), author_id=None)

        assert store.last_version(b.project_id) == 1


class TestListAndVerify:
    def test_ascending(self, store, make_project):
        project = make_project()
        for n in (2, 3):
            store.snapshot(project.project_id, n, state(n), author_id=None)

        assert [v.version_number for v in store.list_for(project.project_id)] == [1, 2, 3]

    def test_verify_detects_tamper(self, store, make_project):
        project = make_project()
        version = store.snapshot(project.project_id, 2, state(2), author_id=None)

        assert VersionStore.verify(version)
        forged = replace(version, snapshot={**version.snapshot, "budget_total": "1"})
        assert not VersionStore.verify(forged)


class TestStateDigest:
    def test_amount_spelling_does_not_matter(self):
        assert state_digest({"budget_total": Decimal("50000.00")}) == state_digest(
            {"budget_total": Decimal("5E+4")}
        )
        assert canonical_json({"budget_total": Decimal("5E+4")}) == '{"budget_total":"50000"}'

    def test_key_order_does_not_matter(self):
        assert state_digest({"a": 1, "b": 2}) == state_digest({"b": 2, "a": 1})

    def test_ids_by_value(self):
        project_id = uuid4()
        assert state_digest({"project_id": project_id}) == state_digest(
            {"project_id": str(project_id)}
        )

    def test_unsupported_value_refused(self):
        with pytest.raises(TypeError):
            state_digest({"owner": object()})


class TestImmutability:
    def _stored(self, session, project_id):
        return session.execute(
            select(ProjectVersionModel).where(ProjectVersionModel.project_id == project_id)
        ).scalar_one()

    def test_update_refused(self, session, make_project):
        model = self._stored(session, make_project().project_id)

        model.snapshot_hash = "0" * 64
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_refused(self, session, make_project):
        model = self._stored(session, make_project().project_id)

        session.delete(model)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
