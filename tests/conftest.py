import os

# Limiter storage and switch are read at import time.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")

from contextlib import asynccontextmanager
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.dependencies import get_coordinator
from app.main import app
from app.schemas.matching import WorkMode
from app.services.matching import MatchingSessionCoordinator, build_strategy_registry
from app.services.scoring import CandidateProfile, OpportunityProfile


class InMemoryMatchingStore:
    """MatchingStore fake. Writes made inside ``transaction()`` are staged
    and only become visible when the block exits cleanly."""

    def __init__(self, candidates=(), opportunities=()):
        self.candidates = {c.id: c for c in candidates}
        self.opportunities = {o.id: o for o in opportunities}
        self.results = []
        self.save_calls = 0
        self.fail_on_save = None
        self._staged = None

    @property
    def _rows(self):
        return self._staged if self._staged is not None else self.results

    async def list_candidates(self):
        return [self.candidates[cid] for cid in sorted(self.candidates)]

    async def get_candidate(self, candidate_id):
        return self.candidates.get(candidate_id)

    async def list_opportunities(self):
        return [self.opportunities[oid] for oid in sorted(self.opportunities)]

    async def delete_results_for_candidate(self, candidate_id, *, keep_session=None):
        kept = [
            r for r in self._rows
            if r.score.candidate_id != candidate_id or (keep_session and r.session_id == keep_session)
        ]
        deleted = len(self._rows) - len(kept)
        self._rows[:] = kept
        return deleted

    async def delete_all_results(self, *, keep_session=None):
        kept = [r for r in self._rows if keep_session and r.session_id == keep_session]
        deleted = len(self._rows) - len(kept)
        self._rows[:] = kept
        return deleted

    async def save_results(self, records):
        self.save_calls += 1
        if self.fail_on_save == self.save_calls:
            raise RuntimeError("connection reset")
        keys = {_key(r) for r in self._rows}
        for record in records:
            if _key(record) in keys:
                raise ValueError(f"duplicate matching result {_key(record)}")
            keys.add(_key(record))
            self._rows.append(record)
        return len(records)

    @asynccontextmanager
    async def transaction(self):
        self._staged = list(self.results)
        try:
            yield self
            self.results = self._staged
        finally:
            self._staged = None

    def results_for(self, *, session_id=None, algorithm=None, candidate_id=None):
        return [
            r for r in self.results
            if (session_id is None or r.session_id == session_id)
            and (algorithm is None or r.algorithm == algorithm)
            and (candidate_id is None or r.score.candidate_id == candidate_id)
        ]


def _key(record):
    return (record.score.candidate_id, record.score.opportunity_id, record.session_id, record.algorithm)


def uid(n: int) -> UUID:
    return UUID(int=n)


@pytest.fixture()
def make_store():
    return InMemoryMatchingStore


@pytest.fixture()
def sample_store():
    """Three candidates, three opportunities with distinct profiles."""
    candidates = [
        CandidateProfile(uid(1), frozenset({"python", "sql"}), frozenset({"ai"}), WorkMode.DEVELOPMENT),
        CandidateProfile(uid(2), frozenset({"python"}), frozenset({"web", "ai"}), WorkMode.RESEARCH),
        CandidateProfile(uid(3), frozenset(), frozenset({"web"}), None),
    ]
    opportunities = [
        OpportunityProfile(uid(101), frozenset({"python", "sql"}), frozenset({"ai"}), WorkMode.DEVELOPMENT, 1, 1),
        OpportunityProfile(uid(102), frozenset({"python"}), frozenset({"web"}), WorkMode.RESEARCH, 1, 2),
        OpportunityProfile(uid(103), frozenset(), frozenset(), WorkMode.DESIGN, 2, 1),
    ]
    return InMemoryMatchingStore(candidates, opportunities)


@pytest.fixture()
def coordinator(sample_store):
    return MatchingSessionCoordinator(build_strategy_registry(sample_store))


@pytest_asyncio.fixture()
async def client(sample_store):
    def override_get_coordinator():
        return MatchingSessionCoordinator(build_strategy_registry(sample_store))

    app.dependency_overrides[get_coordinator] = override_get_coordinator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
