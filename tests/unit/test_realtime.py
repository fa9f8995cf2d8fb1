"""Unit tests for the realtime connection state machine, record store and sync manager."""

import asyncio
import logging

import pytest

from matchcast.ingestion.base import PushEvent
from matchcast.realtime.records import RecordStore
from matchcast.realtime.state import (
    ConnectionEvent,
    ConnectionStateMachine,
    ConnectionStatus,
    InvalidTransitionError,
    TRANSITIONS,
)
from matchcast.realtime.sync import RealtimeSyncManager
from tests.mocks import FakePullSource, FakePushSource, RecordingSleep, wait_until


class TestConnectionStateMachine:
    def test_degraded_after_max_retries(self):
        machine = ConnectionStateMachine(max_retries=2)
        machine.start()

        first = machine.failed("refused")
        assert machine.status is ConnectionStatus.CONNECTING
        assert not first.entered_degraded

        second = machine.failed("refused")
        assert machine.status is ConnectionStatus.DEGRADED
        assert second.entered_degraded
        assert second.attempt == 2

    def test_failures_while_degraded_stay_degraded(self):
        machine = ConnectionStateMachine(max_retries=1)
        machine.start()
        machine.failed()
        outcome = machine.failed()
        assert machine.status is ConnectionStatus.DEGRADED
        assert not outcome.entered_degraded
        assert machine.state.attempt == 2

    def test_subscribed_resets_attempts(self):
        machine = ConnectionStateMachine(max_retries=2)
        machine.start()
        machine.failed()
        machine.failed()

        assert machine.subscribed() is True
        assert machine.status is ConnectionStatus.CONNECTED
        assert machine.state.attempt == 0
        assert machine.state.last_error is None

    def test_first_subscribe_is_not_a_restore(self):
        machine = ConnectionStateMachine()
        machine.start()
        assert machine.subscribed() is False

    def test_backoff(self):
        machine = ConnectionStateMachine(base_delay=2, max_delay=30)
        assert [machine.backoff_delay(n) for n in range(1, 6)] == [2, 4, 8, 16, 30]

    def test_long_outage_keeps_capped_delay(self):
        machine = ConnectionStateMachine(max_retries=2, base_delay=2, max_delay=30)
        machine.start()
        for _ in range(1100):
            outcome = machine.failed("refused")
        assert outcome.attempt == 1100
        assert outcome.delay == 30
        assert machine.status is ConnectionStatus.DEGRADED

    def test_invalid_transition(self):
        machine = ConnectionStateMachine()
        with pytest.raises(InvalidTransitionError):
            machine.subscribed()

    def test_handle_status_strings(self):
        machine = ConnectionStateMachine(max_retries=3)
        machine.start()
        assert machine.handle_status("timed_out", "slow").attempt == 1
        assert machine.handle_status("JOINING") is None
        machine.handle_status("SUBSCRIBED")
        assert machine.status is ConnectionStatus.CONNECTED

    def test_stop_from_every_status(self):
        for status in ConnectionStatus:
            assert TRANSITIONS[(status, ConnectionEvent.STOP)] is ConnectionStatus.DISCONNECTED


class TestRecordStore:
    def test_insert_update_delete(self):
        store = RecordStore()
        store.apply(PushEvent("INSERT", new={"id": 1, "v": "a"}))
        store.apply(PushEvent("UPDATE", new={"id": 1, "v": "b"}))
        assert store.get("1") == {"id": 1, "v": "b"}

        assert store.apply(PushEvent("DELETE", old={"id": 1}))
        assert len(store) == 0

    def test_update_unknown_id_ignored(self):
        store = RecordStore()
        assert not store.apply(PushEvent("UPDATE", new={"id": 5, "v": "x"}))
        assert store.get("5") is None
        assert len(store) == 0

    def test_update_keeps_position(self):
        store = RecordStore()
        store.apply(PushEvent("INSERT", new={"id": "a", "v": 1}))
        store.apply(PushEvent("INSERT", new={"id": "b", "v": 1}))
        assert store.apply(PushEvent("UPDATE", new={"id": "a", "v": 2}))

        assert [row["id"] for row in store.records()] == ["b", "a"]
        assert store.get("a") == {"id": "a", "v": 2}

    def test_delete_unknown_id(self):
        assert not RecordStore().apply(PushEvent("DELETE", old={"id": 9}))

    def test_event_without_id_dropped(self):
        assert not RecordStore().apply(PushEvent("INSERT", new={"v": 1}))

    def test_newest_first_and_capped(self):
        store = RecordStore(max_records=2)
        for i in range(3):
            store.apply(PushEvent("INSERT", new={"id": i}))
        assert [row["id"] for row in store.records()] == [2, 1]

    def test_replace_all(self):
        store = RecordStore()
        store.apply(PushEvent("INSERT", new={"id": "stale"}))
        store.replace_all([{"id": 3}, {"id": 2}, {"name": "no id"}])
        assert [row["id"] for row in store.records()] == [3, 2]


def _manager(push, pull=None, alerts=None, sleep=None, **kwargs):
    return RealtimeSyncManager(
        push,
        pull,
        alerts=alerts,
        sleep=sleep or RecordingSleep(),
        **kwargs,
    )


class TestRealtimeSyncManager:
    @pytest.mark.asyncio
    async def test_degrades_and_polls(self, alert_sink):
        alerts, received = alert_sink
        push = FakePushSource([ConnectionError("refused"), ConnectionError("refused")])
        pull = FakePullSource([{"id": 2, "home_team": "A"}, {"id": 1, "home_team": "B"}])
        sleep = RecordingSleep(passes=1)
        manager = _manager(push, pull, alerts, sleep, max_retries=2, base_delay=2, polling_interval=45)

        await manager.start()
        try:
            assert await wait_until(
                lambda: manager.status is ConnectionStatus.DEGRADED and pull.calls > 0
            )
        finally:
            await manager.stop()

        assert sleep.delays[:2] == [2.0, 45.0]
        lost = [a for a in received if a.title == "Connection Lost"]
        assert len(lost) == 1
        assert lost[0].data["attempts"] == 2
        assert [row["id"] for row in manager.records.records()] == [2, 1]
        assert manager.status is ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_backoff_sequence(self):
        push = FakePushSource([ConnectionError("refused")] * 5)
        sleep = RecordingSleep(passes=4)
        manager = _manager(push, sleep=sleep, max_retries=5, base_delay=2, max_delay=30)

        await manager.start()
        try:
            assert await wait_until(lambda: len(sleep.delays) >= 5)
        finally:
            await manager.stop()

        assert sleep.delays == [2.0, 4.0, 8.0, 16.0, 45.0]
        assert push.attempts == 5

    @pytest.mark.asyncio
    async def test_restores_after_degraded(self, alert_sink):
        alerts, received = alert_sink
        push = FakePushSource([ConnectionError("a"), ConnectionError("b"), "SUBSCRIBED"])
        pull = FakePullSource([])
        manager = _manager(push, pull, alerts, RecordingSleep(passes=3), max_retries=2)

        await manager.start()
        try:
            assert await wait_until(lambda: manager.status is ConnectionStatus.CONNECTED)
            assert manager.state.attempt == 0
            assert manager._poll_task is None
        finally:
            await manager.stop()

        assert [a.title for a in received] == ["Connection Lost", "Connection Restored"]

    @pytest.mark.asyncio
    async def test_dropped_channel_reconnects(self):
        push = FakePushSource(["SUBSCRIBED", "SUBSCRIBED"])
        manager = _manager(push, sleep=RecordingSleep(passes=1), max_retries=3)

        await manager.start()
        try:
            assert await wait_until(lambda: manager.status is ConnectionStatus.CONNECTED)
            push.drop()
            assert await wait_until(lambda: push.attempts == 2 and manager.status is ConnectionStatus.CONNECTED)
        finally:
            await manager.stop()

        assert push.subscriptions[0].closed
        assert push.subscriptions[1].closed

    @pytest.mark.asyncio
    async def test_events_reach_listeners(self):
        push = FakePushSource(["SUBSCRIBED"])
        manager = _manager(push, events=["INSERT", "UPDATE", "DELETE"])
        received = []
        manager.add_listener(received.append)

        async def async_listener(event):
            received.append(("async", event.event_type))

        manager.add_listener(async_listener)

        await manager.start()
        try:
            assert await wait_until(lambda: manager.status is ConnectionStatus.CONNECTED)
            push.emit({"eventType": "INSERT", "new": {"id": 1, "v": "a"}})
            push.emit({"eventType": "UPDATE", "new": {"id": 1, "v": "b"}})
            push.emit({"eventType": "DELETE", "old": {"id": 1}})
            assert await wait_until(lambda: len(received) == 6)
        finally:
            await manager.stop()

        sync_events = [e.event_type for e in received if isinstance(e, PushEvent)]
        assert sync_events == ["INSERT", "UPDATE", "DELETE"]
        assert len(manager.records) == 0

    @pytest.mark.asyncio
    async def test_unsubscribed_event_types_ignored(self):
        push = FakePushSource(["SUBSCRIBED"])
        manager = _manager(push, events=["insert"])
        received = []
        manager.add_listener(received.append)

        await manager.start()
        try:
            assert await wait_until(lambda: manager.status is ConnectionStatus.CONNECTED)
            push.emit({"eventType": "UPDATE", "new": {"id": 1}})
            push.emit({"eventType": "INSERT", "new": {"id": 2}})
            assert await wait_until(lambda: len(received) == 1)
        finally:
            await manager.stop()

        assert received[0].record_id == "2"

    @pytest.mark.asyncio
    async def test_missing_acknowledgement_times_out(self, alert_sink):
        alerts, received = alert_sink
        push = FakePushSource(["SILENT"])
        manager = _manager(push, alerts=alerts, max_retries=1, connect_timeout=0.01)

        await manager.start()
        try:
            for _ in range(100):
                if received:
                    break
                await asyncio.sleep(0.01)
        finally:
            await manager.stop()

        assert received[0].data["error"] == "no subscription acknowledgement"

    @pytest.mark.asyncio
    async def test_unexpected_subscribe_error_is_logged(self, caplog):
        push = FakePushSource([RuntimeError("bad transport")])
        manager = _manager(push)

        with caplog.at_level(logging.ERROR, logger="matchcast.realtime.sync"):
            await manager.start()
            assert await wait_until(lambda: not manager.running)
            await asyncio.sleep(0)
            await manager.stop()

        assert "Realtime sync loop stopped: bad transport" in caplog.text
        assert manager.status is ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_poll_once_without_pull_source(self):
        manager = _manager(FakePushSource())
        assert await manager.poll_once() == 0

    def test_polling_interval_floor(self):
        manager = _manager(FakePushSource(), polling_interval=1)
        assert manager.polling_interval == 15.0
