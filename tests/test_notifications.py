"""Tests for notification batching, filtering and scheduling."""

import threading
from datetime import datetime, timedelta

import pytest

from fieldops.notifications import (
    BatchedNotification,
    BatchState,
    NotificationBatchCollector,
    NotificationFilter,
    NotificationPriority,
    NotificationType,
    PreferenceStore,
    PriorityFilter,
    is_within_quiet_hours,
)


def _assignment(project_id="p1", name="Roof Repair"):
    return BatchedNotification(NotificationType.ASSIGNMENT, project_id, name)


def _schedule(project_id, name="Site", details=None):
    return BatchedNotification(NotificationType.SCHEDULE_CHANGE, project_id, name, details=details)


class TestBatchCollector:
    """Tests for the collect-then-flush cycle."""

    def test_single_event_detailed(self, batcher, scheduler):
        """One event of a type produces its detailed message."""
        batcher.start_batch()
        batcher.add(_assignment(name="X"))
        requests = batcher.flush_batch()

        assert len(requests) == 1
        request = requests[0]
        assert request.title == "New Project Assignment"
        assert request.body == "You've been assigned to X"
        assert request.category == "PROJECT_ASSIGNMENT"
        assert request.priority == NotificationPriority.IMPORTANT
        assert request.data == {"type": "assignment", "projectId": "p1", "taskId": None, "batchCount": 1}
        assert scheduler.scheduled == [request]

    def test_many_events_summarized(self, batcher):
        """Several events of a type become one count summary."""
        batcher.start_batch()
        for i in range(3):
            batcher.add(_schedule(f"p{i}"))
        requests = batcher.flush_batch()

        assert len(requests) == 1
        request = requests[0]
        assert request.title == "OPS Updates"
        assert request.body == "3 schedule changes"
        assert request.data == {
            "type": "batch",
            "batchType": "scheduleChange",
            "projectIds": ["p0", "p1", "p2"],
            "batchCount": 3,
        }

    def test_one_notification_per_type(self, batcher):
        """Mixed events are grouped by type in first-seen order."""
        batcher.start_batch()
        batcher.add(_schedule("p1"))
        batcher.add(_assignment("p2"))
        batcher.add(_schedule("p3"))
        batcher.add(BatchedNotification(NotificationType.COMPLETION, "p4", "Deck"))
        requests = batcher.flush_batch()

        assert [r.body for r in requests] == [
            "2 schedule changes",
            "You've been assigned to Roof Repair",
            "Deck has been marked as completed",
        ]

    def test_no_dedup(self, batcher):
        """Identical events are counted separately."""
        batcher.start_batch()
        batcher.add(_assignment())
        batcher.add(_assignment())
        requests = batcher.flush_batch()

        assert requests[0].body == "2 new project assignments"

    def test_schedule_details(self, batcher):
        """Schedule details replace the default text."""
        batcher.start_batch()
        batcher.add(_schedule("p1", name="Site", details="Now starts Mar 12"))
        assert batcher.flush_batch()[0].body == "Site: Now starts Mar 12"

        batcher.start_batch()
        batcher.add(_schedule("p1", name="Site"))
        assert batcher.flush_batch()[0].body == "Site: Schedule has been updated"

    def test_cancel_sends_nothing(self, batcher, scheduler):
        """Cancelling discards everything and returns to idle."""
        batcher.start_batch()
        batcher.add(_assignment())
        batcher.add(_schedule("p2"))
        batcher.cancel_batch()

        assert batcher.state == BatchState.IDLE
        assert batcher.pending_count == 0
        assert batcher.flush_batch() == []
        assert scheduler.scheduled == []

    def test_idle_add_delivers_immediately(self, batcher, scheduler):
        """Outside a batch an event is sent right away."""
        request = batcher.add(_assignment())

        assert request is not None
        assert scheduler.scheduled == [request]
        assert batcher.is_batching is False

    def test_collecting_add_buffers(self, batcher, scheduler):
        """Inside a batch nothing is sent until flush."""
        batcher.start_batch()

        assert batcher.add(_assignment()) is None
        assert batcher.pending_count == 1
        assert scheduler.scheduled == []

    def test_start_batch_clears(self, batcher):
        """Restarting a batch drops earlier pending events."""
        batcher.start_batch()
        batcher.add(_assignment())
        batcher.start_batch()

        assert batcher.pending_count == 0
        assert batcher.flush_batch() == []

    def test_flush_returns_to_idle(self, batcher):
        """After a flush the collector is idle and empty."""
        batcher.start_batch()
        batcher.add(_assignment())
        batcher.flush_batch()

        assert batcher.state == BatchState.IDLE
        assert batcher.pending_count == 0

    def test_task_texts(self, batcher):
        """Task events use task wording."""
        assert NotificationType.TASK_ASSIGNMENT.single_body("Deck") == "You've been assigned a task on Deck"
        assert NotificationType.TASK_UPDATE.single_body("Deck") == "A task on Deck has been updated"
        assert NotificationType.TASK_UPDATE.summary_body(4) == "4 task updates"
        assert NotificationType.COMPLETION.summary_body(2) == "2 projects completed"

    def test_concurrent_adds(self, batcher):
        """Adds from many threads are all counted."""
        batcher.start_batch()

        def worker(offset):
            for i in range(50):
                batcher.add(_schedule(f"p{offset}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        requests = batcher.flush_batch()
        assert requests[0].body == "200 schedule changes"


class TestQuietHours:
    """Tests for the quiet-hours window."""

    @pytest.mark.parametrize("hour,expected", [(22, True), (23, True), (0, True), (6, True), (7, False), (12, False), (21, False)])
    def test_wraps_midnight(self, hour, expected):
        """A 22-7 window covers the night."""
        assert is_within_quiet_hours(hour, 22, 7) is expected

    @pytest.mark.parametrize("hour,expected", [(8, False), (9, True), (16, True), (17, False)])
    def test_same_day_window(self, hour, expected):
        """A 9-17 window covers the working day."""
        assert is_within_quiet_hours(hour, 9, 17) is expected

    @pytest.mark.parametrize("hour", range(24))
    def test_equal_bounds_never_quiet(self, hour):
        """A 13-13 window is empty."""
        assert is_within_quiet_hours(hour, 13, 13) is False


class TestNotificationFilter:
    """Tests for preference-based suppression."""

    def _filter(self, at, **prefs):
        store = PreferenceStore()
        if prefs:
            store.update(**prefs)
        return NotificationFilter(store, clock=lambda: at), store

    def test_defaults_allow(self):
        """Default preferences let everything through."""
        notification_filter, _ = self._filter(datetime(2026, 3, 10, 23, 0))

        assert notification_filter.should_send(NotificationPriority.NORMAL) is True

    def test_stored_window_alone_suppresses(self):
        """Start and end hours are enough to enable quiet hours."""
        store = PreferenceStore()
        store.set(PreferenceStore.KEY, {"quiet_hours_start": 22, "quiet_hours_end": 7})
        notification_filter = NotificationFilter(store, clock=lambda: datetime(2026, 3, 10, 6, 0))

        assert notification_filter.should_send(NotificationPriority.NORMAL) is False

    def test_equal_hours_never_suppress(self):
        """A window with equal bounds is off."""
        notification_filter, _ = self._filter(datetime(2026, 3, 10, 13, 0), quiet_hours_start=13, quiet_hours_end=13)

        assert notification_filter.should_send(NotificationPriority.NORMAL) is True

    def test_quiet_hours_suppress_non_critical(self):
        """During quiet hours only critical notifications pass."""
        notification_filter, _ = self._filter(datetime(2026, 3, 10, 23, 0), quiet_hours_start=22, quiet_hours_end=7)

        assert notification_filter.should_send(NotificationPriority.NORMAL) is False
        assert notification_filter.should_send(NotificationPriority.IMPORTANT) is False
        assert notification_filter.should_send(NotificationPriority.CRITICAL) is True

    def test_outside_quiet_hours(self):
        """Midday is outside a 22-7 window."""
        notification_filter, _ = self._filter(datetime(2026, 3, 10, 12, 0), quiet_hours_start=22, quiet_hours_end=7)

        assert notification_filter.should_send(NotificationPriority.NORMAL) is True

    def test_mute_suppresses_everything(self):
        """A future mute blocks even critical notifications."""
        now = datetime(2026, 3, 10, 12, 0)
        mute_until = (now + timedelta(hours=1)).timestamp()
        notification_filter, _ = self._filter(now, mute_until=mute_until)

        assert notification_filter.should_send(NotificationPriority.CRITICAL) is False

    def test_expired_mute_cleared(self):
        """A past mute is removed and no longer suppresses."""
        now = datetime(2026, 3, 10, 12, 0)
        notification_filter, store = self._filter(now, mute_until=(now - timedelta(minutes=1)).timestamp())

        assert notification_filter.should_send(NotificationPriority.NORMAL) is True
        assert store.load().mute_until is None

    @pytest.mark.parametrize(
        "tier,normal,important,critical",
        [
            (PriorityFilter.ALL, True, True, True),
            (PriorityFilter.IMPORTANT_ONLY, False, True, True),
            (PriorityFilter.CRITICAL_ONLY, False, False, True),
        ],
    )
    def test_priority_tiers(self, tier, normal, important, critical):
        """Priority tiers drop lower priorities."""
        notification_filter, _ = self._filter(datetime(2026, 3, 10, 12, 0), priority_filter=tier)

        assert notification_filter.should_send(NotificationPriority.NORMAL) is normal
        assert notification_filter.should_send(NotificationPriority.IMPORTANT) is important
        assert notification_filter.should_send(NotificationPriority.CRITICAL) is critical

    def test_filter_applied_on_flush(self, scheduler):
        """Filtered types are dropped from a flush."""
        store = PreferenceStore()
        store.update(priority_filter=PriorityFilter.IMPORTANT_ONLY)
        batcher = NotificationBatchCollector(
            scheduler,
            notification_filter=NotificationFilter(store, clock=lambda: datetime(2026, 3, 10, 12, 0)),
        )

        batcher.start_batch()
        batcher.add(_assignment())
        batcher.add(_schedule("p2"))
        requests = batcher.flush_batch()

        assert [r.title for r in requests] == ["New Project Assignment"]


class TestPreferenceStore:
    """Tests for persisted preferences."""

    def test_round_trip_file(self, temp_dir):
        """Preferences survive a reload."""
        path = temp_dir / "preferences.json"
        PreferenceStore(path).update(quiet_hours_start=21, quiet_hours_end=7)

        prefs = PreferenceStore(path).load()
        assert prefs.quiet_hours_start == 21
        assert prefs.quiet_hours_end == 7

    def test_invalid_hour_rejected(self):
        """Hours outside 0-23 are refused."""
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            PreferenceStore().update(quiet_hours_start=24)

    def test_corrupt_values_use_defaults(self):
        """Stored garbage falls back to defaults."""
        store = PreferenceStore()
        store.set(PreferenceStore.KEY, {"quiet_hours_start": "late"})

        assert store.load().quiet_hours_start == 0


class TestNotificationScheduler:
    """Tests for the local notification scheduler."""

    @pytest.mark.asyncio
    async def test_dispatch_due(self):
        """Due requests go to the delivery handler."""
        from fieldops.notifications import NotificationScheduler

        seen = []

        async def deliver(request):
            seen.append(request.title)

        scheduler = NotificationScheduler(deliver=deliver)
        request = scheduler.add("Hello", "World", delay=0)
        scheduler.add("Later", "Body", delay=3600)

        delivered = await scheduler.dispatch_due(datetime.now() + timedelta(seconds=1))

        assert delivered == 1
        assert seen == ["Hello"]
        assert request.delivered_at is not None
        assert scheduler.pending_count == 1

    @pytest.mark.asyncio
    async def test_failures_logged_not_retried(self):
        """A failed delivery is recorded once and dropped."""
        from fieldops.notifications import NotificationScheduler

        attempts = []

        async def deliver(request):
            attempts.append(request.id)
            raise RuntimeError("permission denied")

        scheduler = NotificationScheduler(deliver=deliver)
        scheduler.add("Hello", "World", delay=0)
        later = datetime.now() + timedelta(seconds=1)

        assert await scheduler.dispatch_due(later) == 0
        assert await scheduler.dispatch_due(later) == 0
        assert len(attempts) == 1
        assert scheduler.get_stats() == {"scheduled": 0, "delivered": 0, "failed": 1}

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        """Only recent deliveries are kept; the stats still count them all."""
        from fieldops.notifications import NotificationScheduler

        async def deliver(request):
            pass

        scheduler = NotificationScheduler(deliver=deliver, history_size=3)
        for i in range(5):
            scheduler.add(f"N{i}", "Body", delay=0)

        assert await scheduler.dispatch_due(datetime.now() + timedelta(seconds=1)) == 5
        assert [r.title for r in scheduler.delivered] == ["N2", "N3", "N4"]
        assert scheduler.get_stats()["delivered"] == 5

    def test_cancel(self, scheduler):
        """Pending requests can be cancelled."""
        request = scheduler.add("Hello", "World")

        assert scheduler.cancel(request.id) is True
        assert scheduler.cancel(request.id) is False
        assert scheduler.pending_count == 0

    @pytest.mark.asyncio
    async def test_background_loop(self):
        """The background loop delivers due requests."""
        import asyncio

        from fieldops.notifications import NotificationScheduler

        seen = []

        async def deliver(request):
            seen.append(request.title)

        scheduler = NotificationScheduler(deliver=deliver, poll_interval=0.01)
        scheduler.add("Now", "Body", delay=0)

        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert seen == ["Now"]
