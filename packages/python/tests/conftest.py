from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Sequence

import numpy as np
import pytest

from watchlyst_core.errors import UpstreamPersistenceFailure
from watchlyst_core.settings import EngineSettings
from watchlyst_core.types import Gesture, ItemRecord, LearningMetadata, PreferenceState, UserStats
from watchlyst_recommendation.engine import RecommendationEngine
from watchlyst_recommendation.types import RecommendationQueue
from watchlyst_user.interactions.schemas import InteractionRecord, ScoringSnapshot
from watchlyst_user.stats.user_stats_repo import bump_stats

FIXED_NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)

ACTION, ADVENTURE, COMEDY, DRAMA, HORROR, ROMANCE, SCIFI = 28, 12, 35, 18, 27, 10749, 878
GENRE_NAMES = {
    ACTION: "Action",
    ADVENTURE: "Adventure",
    COMEDY: "Comedy",
    DRAMA: "Drama",
    HORROR: "Horror",
    ROMANCE: "Romance",
    SCIFI: "Science Fiction",
}


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_item(
    item_id: str,
    genre_ids: list[int],
    *,
    popularity: float = 50.0,
    vote_average: float = 6.0,
    release_date: str | None = "2020-06-01",
) -> ItemRecord:
    return ItemRecord(
        item_id=item_id,
        title=f"Movie {item_id}",
        genre_ids=genre_ids,
        genres=[GENRE_NAMES[g] for g in genre_ids if g in GENRE_NAMES],
        popularity=popularity,
        vote_average=vote_average,
        release_date=release_date,
    )


def build_catalog() -> list[ItemRecord]:
    """
    40 action/sci-fi titles, 15 trending dramas, 10 horror, 10 comedies and
    5 romances. Popularity is unique so candidate order is stable.
    """
    items: list[ItemRecord] = []
    pop = 999.0
    for i in range(40):
        genres = [ACTION, SCIFI] if i % 2 else [ACTION, ADVENTURE]
        items.append(make_item(f"act{i}", genres, popularity=pop, vote_average=6.5))
        pop -= 1
    for i in range(15):
        items.append(make_item(f"drm{i}", [DRAMA], popularity=pop, vote_average=8.2))
        pop -= 1
    for i in range(10):
        items.append(make_item(f"hor{i}", [HORROR], popularity=pop / 10, vote_average=5.0))
        pop -= 1
    for i in range(10):
        items.append(make_item(f"com{i}", [COMEDY], popularity=pop / 10, vote_average=6.0))
        pop -= 1
    for i in range(5):
        items.append(make_item(f"rom{i}", [ROMANCE], popularity=pop / 20, vote_average=7.5))
        pop -= 1
    return items


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def catalog_items() -> list[ItemRecord]:
    return build_catalog()


# ---------- in-memory repositories ----------
class InMemoryItemRepo:
    def __init__(self, items: Sequence[ItemRecord] = ()):
        self.items: Dict[str, ItemRecord] = {i.item_id: i for i in items}
        self.upserts: List[str] = []
        self.counters: Dict[str, Dict[str, int]] = {}
        self.pool_reads = 0
        self.fail_pool = False
        self.fail_upserts = False
        self.fail_counters = False

    async def get_item(self, item_id):
        await asyncio.sleep(0)
        return self.items.get(item_id)

    async def upsert_item(self, item_id, *, feature_vector):
        if self.fail_upserts:
            raise UpstreamPersistenceFailure("movies write rejected")
        self.upserts.append(item_id)
        item = self.items[item_id]
        self.items[item_id] = item.model_copy(update={"feature_vector": dict(feature_vector)})

    async def top_by_popularity(self, limit):
        self.pool_reads += 1
        if self.fail_pool:
            raise UpstreamPersistenceFailure("movies read timed out")
        ranked = sorted(self.items.values(), key=lambda i: i.popularity, reverse=True)
        return ranked[:limit]

    async def missing_feature_vectors(self, limit):
        return [i for i in self.items.values() if i.feature_vector is None][:limit]

    async def record_item_interaction(self, item_id, *, positive):
        if self.fail_counters:
            raise UpstreamPersistenceFailure("counter update rejected")
        c = self.counters.setdefault(item_id, {"total": 0, "positive": 0})
        c["total"] += 1
        c["positive"] += int(positive)


class InMemoryPreferencesRepo:
    def __init__(self):
        self.rows: Dict[str, PreferenceState] = {}
        self.fail_writes = False

    async def get_preferences(self, user_id):
        # yield so unserialized read-modify-writes would interleave
        await asyncio.sleep(0)
        state = self.rows.get(user_id)
        return state.model_copy(deep=True) if state else None

    async def upsert_preferences(self, user_id, *, preference_vector=None, learning_metadata=None):
        await asyncio.sleep(0)
        if self.fail_writes:
            raise UpstreamPersistenceFailure("user_preferences write rejected")
        current = self.rows.get(user_id) or PreferenceState(user_id=user_id, preference_vector={})
        if preference_vector is not None:
            current.preference_vector = dict(preference_vector)
        if learning_metadata is not None:
            current.learning_metadata = LearningMetadata.model_validate(
                learning_metadata.model_dump()
            )
        current.updated_at = FIXED_NOW
        self.rows[user_id] = current


class InMemoryUserStatsRepo:
    def __init__(self):
        self.rows: Dict[str, UserStats] = {}
        self.fail_increments = 0  # number of upcoming increments to reject

    async def get_user_stats(self, user_id):
        return self.rows.get(user_id, UserStats())

    async def increment_user_stats(self, user_id, gesture: Gesture, interaction_id=None):
        if self.fail_increments:
            self.fail_increments -= 1
            raise UpstreamPersistenceFailure("user_stats write rejected")
        updated = bump_stats(
            self.rows.get(user_id, UserStats()), gesture, FIXED_NOW, interaction_id
        )
        self.rows[user_id] = updated
        return updated


class InMemoryInteractionsRepo:
    def __init__(self):
        self.rows: Dict[str, InteractionRecord] = {}
        self.bulk_calls: List[List[str]] = []
        self.fail_bulk = 0  # number of upcoming bulk writes to reject

    async def append_interaction(self, record):
        self.rows[record.interaction_id] = record.model_copy(deep=True)
        return record.interaction_id

    async def update_interaction(self, interaction_id, snapshot: ScoringSnapshot):
        self.rows[interaction_id].scoring_data = snapshot

    async def bulk_upsert(self, records):
        if self.fail_bulk:
            self.fail_bulk -= 1
            raise UpstreamPersistenceFailure("interactions bulk write rejected")
        self.bulk_calls.append([r.interaction_id for r in records])
        for r in records:
            self.rows[r.interaction_id] = r.model_copy(deep=True)

    async def seen_item_ids(self, user_id):
        return {r.item_id for r in self.rows.values() if r.user_id == user_id}

    async def last_interaction(self, user_id):
        mine = [r for r in self.rows.values() if r.user_id == user_id]
        return max(mine, key=lambda r: r.created_at) if mine else None


class InMemoryRecommendationRepo:
    def __init__(self):
        self.queues: Dict[str, RecommendationQueue] = {}
        self.writes = 0

    async def put_recommendation_queue(self, queue):
        self.writes += 1
        self.queues[queue.user_id] = queue.model_copy(deep=True)

    async def get_recommendation_queue(self, user_id):
        return self.queues.get(user_id)


class Store:
    """Bundle of in-memory repositories shared by one engine."""

    def __init__(self, items: Sequence[ItemRecord]):
        self.items = InMemoryItemRepo(items)
        self.preferences = InMemoryPreferencesRepo()
        self.stats = InMemoryUserStatsRepo()
        self.interactions = InMemoryInteractionsRepo()
        self.recommendations = InMemoryRecommendationRepo()


@pytest.fixture
def store(catalog_items) -> Store:
    return Store(catalog_items)


class _Clock:
    """Fixed wall clock that ticks one second per call so records stay ordered."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.now = start
        self.calls = 0

    def __call__(self) -> datetime:
        self.calls += 1
        return self.now + timedelta(seconds=self.calls)


@pytest.fixture
def make_engine(store):
    def _make(**overrides: Any) -> RecommendationEngine:
        settings = EngineSettings(**{"batch_interaction_writes": False, **overrides})
        return RecommendationEngine(
            items=store.items,
            preferences=store.preferences,
            stats=store.stats,
            interactions=store.interactions,
            recommendations=store.recommendations,
            settings=settings,
            rng=np.random.default_rng(7),
            clock=_Clock(),
        )

    return _make


# ---------- chained fake Supabase client ----------
class _Resp:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, db: "FakeSupabaseClient", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._filters: List[Any] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._payload: Any = None
        self._on_conflict = ""

    # Read chain
    def select(self, _cols: str = "*"):
        return self

    def eq(self, col: str, value: Any):
        self._filters.append(lambda r: r.get(col) == value)
        return self

    def is_(self, col: str, value: Any):
        if value is None or value == "null":
            self._filters.append(lambda r: r.get(col) is None)
        else:
            self._filters.append(lambda r: r.get(col) is value)
        return self

    def order(self, col: str, desc: bool = False):
        self._order = (col, desc)
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    # Write chains
    def upsert(self, rows, on_conflict: str = ""):
        self._op = "upsert"
        self._payload = rows if isinstance(rows, list) else [rows]
        self._on_conflict = on_conflict
        return self

    def update(self, values: Dict[str, Any]):
        self._op = "update"
        self._payload = values
        return self

    def execute(self):
        self._db.calls.append((self._table, self._op))
        if self._db.error is not None:
            raise self._db.error
        rows = self._db.tables.setdefault(self._table, [])
        if self._op == "upsert":
            return _Resp(self._upsert(rows))
        matched = [r for r in rows if all(f(r) for f in self._filters)]
        if self._op == "update":
            for r in matched:
                r.update(copy.deepcopy(self._payload))
            return _Resp(copy.deepcopy(matched))
        if self._order is not None:
            col, desc = self._order
            matched.sort(key=lambda r: r.get(col) or 0, reverse=desc)
        if self._limit is not None:
            matched = matched[: self._limit]
        return _Resp(copy.deepcopy(matched))

    def _upsert(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        keys = [k.strip() for k in self._on_conflict.split(",") if k.strip()]
        out = []
        for payload in self._payload:
            existing = next(
                (r for r in rows if keys and all(r.get(k) == payload.get(k) for k in keys)),
                None,
            )
            if existing is None:
                existing = {}
                rows.append(existing)
            existing.update(copy.deepcopy(payload))
            out.append(copy.deepcopy(existing))
        return out


class FakeSupabaseClient:
    def __init__(self, tables: Dict[str, List[Dict[str, Any]]] | None = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = tables or {}
        self.calls: List[tuple[str, str]] = []
        self.error: Exception | None = None

    def table(self, name: str):
        # new chain object per call
        return _FakeQuery(self, name)


@pytest.fixture
def fake_supabase() -> FakeSupabaseClient:
    return FakeSupabaseClient()
