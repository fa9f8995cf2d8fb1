"""Unit tests for the UI-facing prediction session."""

import asyncio
from dataclasses import replace

import pytest

from matchcast.coordination.session import PredictionSession
from matchcast.exceptions import NetworkError
from matchcast.ingestion.base import PushEvent
from matchcast.normalization.ids import make_pair_key
from matchcast.schema import AccuracyStat, Provenance
from tests.mocks import FakeMatchProvider, FakePredictionProvider, server_prediction, wait_until


@pytest.fixture
def make_session(config):
    sessions = []

    def factory(provider, matches=None, alerts=None, **overrides):
        session_config = replace(config, **overrides)
        session = PredictionSession.from_config(session_config, provider, matches, alerts=alerts)
        sessions.append(session)
        return session

    yield factory
    for session in sessions:
        session.close()


class TestGetPrediction:
    @pytest.mark.asyncio
    async def test_server_prediction(self, make_session):
        session = make_session(FakePredictionProvider(result=server_prediction()))
        received = []
        session.add_listener(lambda key, prediction: received.append((key, prediction)))

        prediction = await session.get_prediction("Arsenal", "Chelsea")

        assert prediction.provenance is Provenance.SERVER
        assert received[0][0] == make_pair_key("Arsenal", "Chelsea")
        assert session.current is prediction

    @pytest.mark.asyncio
    async def test_baseline_fallback(self, make_session, mixed_history):
        provider = FakePredictionProvider(result=None)
        matches = FakeMatchProvider(mixed_history)
        session = make_session(provider, matches)

        prediction = await session.get_prediction("Arsenal", "Chelsea")

        assert prediction.provenance is Provenance.BASELINE
        assert prediction.is_normalized()
        assert session.cache.get(make_pair_key("Arsenal", "Chelsea")) == prediction

    @pytest.mark.asyncio
    async def test_cooldown_serves_cached_baseline(self, make_session, mixed_history):
        provider = FakePredictionProvider(result=None)
        matches = FakeMatchProvider(mixed_history)
        session = make_session(provider, matches)

        first = await session.get_prediction("Arsenal", "Chelsea")
        second = await session.get_prediction("Arsenal", "Chelsea")

        assert second == first
        assert len(provider.calls) == 1
        assert matches.calls == 1

    @pytest.mark.asyncio
    async def test_no_history_records_cooldown(self, make_session):
        session = make_session(FakePredictionProvider(result=None), FakeMatchProvider([]))

        prediction = await session.get_prediction("Arsenal", "Chelsea")

        assert prediction is None
        assert session.cache.in_cooldown(make_pair_key("Arsenal", "Chelsea"))

    @pytest.mark.asyncio
    async def test_baseline_disabled(self, make_session, mixed_history):
        session = make_session(
            FakePredictionProvider(result=None), FakeMatchProvider(mixed_history), enable_baseline=False
        )
        assert await session.get_prediction("Arsenal", "Chelsea") is None


class TestSelectTeams:
    @pytest.mark.asyncio
    async def test_rapid_selection_collapses(self, make_session):
        provider = FakePredictionProvider(result=server_prediction("Arsenal", "Spurs"))
        session = make_session(provider, debounce_ms=50)

        first = session.select_teams("Arsenal", "Chelsea")
        second = session.select_teams("Arsenal", "Liverpool")
        last = session.select_teams("Arsenal", "Spurs")
        prediction = await last

        assert first.cancelled() and second.cancelled()
        assert provider.calls == [("Arsenal", "Spurs")]
        assert prediction.away_team == "Spurs"
        assert session.current_key == make_pair_key("Arsenal", "Spurs")

    @pytest.mark.asyncio
    async def test_running_lookup_is_superseded_not_aborted(self, make_session):
        gate = asyncio.Event()
        provider = FakePredictionProvider(result=server_prediction(), gate=gate)
        session = make_session(provider)
        received = []
        session.add_listener(lambda key, prediction: received.append(key))

        first = session.select_teams("Arsenal", "Chelsea")
        assert await wait_until(lambda: provider.calls)
        second = session.select_teams("Arsenal", "Spurs")

        assert await first is None
        assert not first.cancelled()

        gate.set()
        assert await second is not None
        assert await wait_until(lambda: len(provider.completed) == 2)

        assert sorted(provider.completed) == [("Arsenal", "Chelsea"), ("Arsenal", "Spurs")]
        assert session.cache.get(make_pair_key("Arsenal", "Chelsea")) is None
        assert received == [make_pair_key("Arsenal", "Spurs")]


class TestInitialize:
    @pytest.mark.asyncio
    async def test_unreachable_backend_alerts(self, make_session, alert_sink):
        manager, received = alert_sink
        provider = FakePredictionProvider(init_error=NetworkError("prediction service", "refused"))
        session = make_session(provider, alerts=manager)

        assert await session.initialize() is False
        assert received[0].alert_type == "system"
        assert received[0].priority == "urgent"

    @pytest.mark.asyncio
    async def test_ready_backend_is_quiet(self, make_session, alert_sink):
        manager, received = alert_sink
        session = make_session(FakePredictionProvider(), alerts=manager)
        assert await session.initialize() is True
        assert received == []


class TestPushEvents:
    @pytest.mark.asyncio
    async def test_insert_updates_current_pair(self, make_session):
        session = make_session(FakePredictionProvider(result=None))
        session.current_key = make_pair_key("Arsenal", "Chelsea")
        received = []
        session.add_listener(lambda key, prediction: received.append(prediction))
        session.cache.record_no_data(session.current_key)

        session.apply_push_event(PushEvent("INSERT", new={
            "id": 7,
            "home_team": "Arsenal",
            "away_team": "Chelsea",
            "home_win_probability": 0.6,
            "draw_probability": 0.2,
            "away_win_probability": 0.2,
            "confidence_score": 0.8,
        }))

        assert received[0].provenance is Provenance.SERVER
        assert received[0].id == "7"
        assert not session.cache.in_cooldown(session.current_key)

    @pytest.mark.asyncio
    async def test_other_pairs_cached_silently(self, make_session):
        session = make_session(FakePredictionProvider(result=None))
        session.current_key = make_pair_key("Arsenal", "Chelsea")
        received = []
        session.add_listener(lambda key, prediction: received.append(prediction))

        session.apply_push_event(PushEvent("UPDATE", new={
            "id": 8, "home_team": "Spurs", "away_team": "Everton",
            "home_win_probability": 0.4, "draw_probability": 0.3, "away_win_probability": 0.3,
        }))

        assert received == []
        assert session.cache.get(make_pair_key("Spurs", "Everton")) is not None

    @pytest.mark.asyncio
    async def test_delete_invalidates(self, make_session):
        session = make_session(FakePredictionProvider(result=None))
        key = make_pair_key("Arsenal", "Chelsea")
        session.cache.put(key, server_prediction())

        session.apply_push_event(PushEvent("DELETE", old={"id": 1, "home_team": "Arsenal", "away_team": "Chelsea"}))

        assert session.cache.get(key) is None


class TestPassThrough:
    @pytest.mark.asyncio
    async def test_markets(self, make_session, mixed_history):
        session = make_session(FakePredictionProvider(), FakeMatchProvider(mixed_history))
        result = await session.predict_markets("Arsenal", "Chelsea")
        assert result["prediction"]["model_type"] == "ensemble"

    @pytest.mark.asyncio
    async def test_markets_without_history(self, make_session):
        session = make_session(FakePredictionProvider(), FakeMatchProvider([]))
        assert await session.predict_markets("Arsenal", "Chelsea") is None

    @pytest.mark.asyncio
    async def test_accuracy_and_update(self, make_session):
        provider = FakePredictionProvider()
        provider.stats = [AccuracyStat("ensemble", 10, 6, 60.0, 0.7, 0.65)]
        session = make_session(provider)

        stats = await session.get_accuracy_stats()
        updated = await session.trigger_update()

        assert stats[0].accuracy_percentage == 60.0
        assert updated is True
        assert provider.update_calls == 1
