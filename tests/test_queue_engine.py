import pytest

from app.core.config import settings
from app.core.exceptions import EventNotFound, InvalidTransition, QueuePaused, TokenNotFound, VisitorNotFound
from app.crud import event as event_store
from app.models.token import TokenStatus
from app.services.queue_engine import QueueEngine
from app.services.queue_notifier import QueueNotifier


class RecordingBroadcaster:
    def __init__(self):
        self.published = []

    def publish(self, event_id, message):
        self.published.append((event_id, message))
        return 1

    def types(self):
        return [m["type"] for _, m in self.published]


class ExplodingBroadcaster:
    def publish(self, event_id, message):
        raise RuntimeError("socket layer down")


class RecordingSender:
    def __init__(self):
        self.notices = []

    def send(self, notice):
        self.notices.append(notice)


class ExplodingSender:
    def send(self, notice):
        raise RuntimeError("provider down")


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def engine(broadcaster, sender):
    return QueueEngine(broadcaster=broadcaster, notifier=QueueNotifier(sender=sender, enabled=True))


def _issue_all(engine, db, event, visitors):
    return [engine.create_token(db, event_id=event.id, visitor_id=v.id)[0] for v in visitors]


def test_create_publishes_and_notifies(engine, broadcaster, sender, db, event, visitors):
    token, created = engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    assert created

    event_id, message = broadcaster.published[-1]
    assert event_id == event.id
    assert message["type"] == "token_created"
    assert message["token"]["token_no"] == 1
    assert message["token"]["status"] == "WAITING"
    assert message["stats"]["waiting"] == 1
    assert message["stats"]["total"] == 1

    assert [n.template for n in sender.notices] == ["token_booked"]
    assert sender.notices[0].params["name"] == "Amina"


def test_repeat_create_is_silent(engine, broadcaster, sender, db, event, visitors):
    first, _ = engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    again, created = engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    assert not created
    assert again.token_no == first.token_no
    assert broadcaster.types() == ["token_created"]
    assert len(sender.notices) == 1


def test_create_rejects_unknown_event_and_foreign_visitor(engine, db, event, other_event, visitors):
    with pytest.raises(EventNotFound):
        engine.create_token(db, event_id=9999, visitor_id=visitors[0].id)
    with pytest.raises(VisitorNotFound):
        engine.create_token(db, event_id=other_event.id, visitor_id=visitors[0].id)


def test_stats_and_now_serving(engine, db, event, visitors):
    tokens = _issue_all(engine, db, event, visitors)
    stats = engine.stats(db, event.id)
    assert (stats.waiting, stats.in_progress, stats.completed, stats.total) == (3, 0, 0, 3)
    assert engine.now_serving(db, event.id) is None

    engine.change_status(db, token_id=tokens[2].id, new_status=TokenStatus.IN_PROGRESS)
    engine.change_status(db, token_id=tokens[0].id, new_status=TokenStatus.IN_PROGRESS)
    assert engine.now_serving(db, event.id).token_no == 1

    engine.change_status(db, token_id=tokens[0].id, new_status=TokenStatus.DONE)
    engine.change_status(db, token_id=tokens[1].id, new_status=TokenStatus.NO_SHOW)
    stats = engine.stats(db, event.id)
    assert (stats.waiting, stats.in_progress, stats.completed, stats.no_show, stats.total) == (0, 1, 1, 1, 3)
    assert engine.now_serving(db, event.id).token_no == 3


def test_change_status_publishes_token_changed(engine, broadcaster, db, event, visitors):
    token = _issue_all(engine, db, event, visitors)[0]
    engine.change_status(db, token_id=token.id, new_status=TokenStatus.IN_PROGRESS, actor="expert@example.com")

    _, message = broadcaster.published[-1]
    assert message["type"] == "token_changed"
    assert message["token"]["status"] == "IN_PROGRESS"
    assert message["stats"]["in_progress"] == 1
    assert message["stats"]["waiting"] == 2


def test_rejected_transition_is_not_published(engine, broadcaster, db, event, visitors):
    token = _issue_all(engine, db, event, visitors)[0]
    published = len(broadcaster.published)
    with pytest.raises(InvalidTransition):
        engine.change_status(db, token_id=token.id, new_status=TokenStatus.DONE)
    with pytest.raises(TokenNotFound):
        engine.change_status(db, token_id=9999, new_status=TokenStatus.DONE)
    assert len(broadcaster.published) == published


def test_calling_a_token_notifies_it_and_the_next_one(engine, sender, db, event, visitors):
    tokens = _issue_all(engine, db, event, visitors)
    sender.notices.clear()

    engine.change_status(db, token_id=tokens[0].id, new_status=TokenStatus.IN_PROGRESS)
    assert [(n.template, n.token_no) for n in sender.notices] == [
        ("consultation_ready", 1),
        ("consultation_get_ready", 2),
    ]


def test_completion_sends_feedback_link(engine, sender, db, event, visitors):
    token = _issue_all(engine, db, event, visitors)[0]
    engine.change_status(db, token_id=token.id, new_status=TokenStatus.IN_PROGRESS)
    sender.notices.clear()

    engine.change_status(db, token_id=token.id, new_status=TokenStatus.DONE)
    assert len(sender.notices) == 1
    notice = sender.notices[0]
    assert notice.template == "thank_you_feedback"
    assert notice.params["feedback_link"] == "https://example.com/fb"
    assert notice.params["event_name"] == "Consultation Day"


def test_pause_blocks_new_tokens_only(engine, broadcaster, db, event, visitors):
    held, _ = engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    engine.set_paused(db, event_id=event.id, paused=True)
    assert broadcaster.published[-1][1] == {"type": "queue_paused", "event_id": event.id, "paused": True}

    with pytest.raises(QueuePaused):
        engine.create_token(db, event_id=event.id, visitor_id=visitors[1].id)

    again, created = engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    assert not created and again.id == held.id

    # Existing tokens keep moving while paused
    engine.change_status(db, token_id=held.id, new_status=TokenStatus.IN_PROGRESS)

    engine.set_paused(db, event_id=event.id, paused=False)
    token, created = engine.create_token(db, event_id=event.id, visitor_id=visitors[1].id)
    assert created and token.token_no == 2


def test_snapshot_filter_keeps_full_stats(engine, db, event, visitors):
    tokens = _issue_all(engine, db, event, visitors)
    engine.change_status(db, token_id=tokens[1].id, new_status=TokenStatus.IN_PROGRESS)

    full = engine.snapshot(db, event.id)
    assert [t.token_no for t in full.tokens] == [1, 2, 3]
    assert full.now_serving.token_no == 2
    assert full.paused is False

    waiting = engine.snapshot(db, event.id, statuses=[TokenStatus.WAITING])
    assert [t.token_no for t in waiting.tokens] == [1, 3]
    assert waiting.stats == full.stats
    assert waiting.now_serving.token_no == 2


def test_snapshot_message_is_json_ready(engine, db, event, visitors):
    _issue_all(engine, db, event, visitors)
    message = engine.snapshot_message(db, event.id)
    assert message["type"] == "snapshot"
    assert message["event_id"] == event.id
    assert message["stats"]["total"] == 3
    assert isinstance(message["tokens"][0]["created_at"], str)


def test_realtime_failure_does_not_undo_the_write(db, event, visitors):
    engine = QueueEngine(broadcaster=ExplodingBroadcaster(), notifier=QueueNotifier(sender=ExplodingSender(), enabled=True))
    token, created = engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    assert created
    changed = engine.change_status(db, token_id=token.id, new_status=TokenStatus.IN_PROGRESS)
    assert changed.status == TokenStatus.IN_PROGRESS


def test_publishing_can_be_switched_off(engine, broadcaster, db, event, visitors, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_WEBSOCKET_NOTIFICATIONS", False)
    engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    assert broadcaster.published == []


def test_disabled_notifier_sends_nothing(broadcaster, db, event, visitors):
    sender = RecordingSender()
    engine = QueueEngine(broadcaster=broadcaster, notifier=QueueNotifier(sender=sender, enabled=False))
    engine.create_token(db, event_id=event.id, visitor_id=visitors[0].id)
    assert sender.notices == []


def test_link_consultation(engine, db, event, visitors):
    token = _issue_all(engine, db, event, visitors)[0]
    linked = engine.link_consultation(db, token_id=token.id, consultation_id="c-1")
    assert engine.get_token(db, linked.id).consultation_id == "c-1"
    assert event_store.get(db, event.id).queue_paused is False
