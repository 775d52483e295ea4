from datetime import datetime, timezone

from app.models.token import TokenStatus
from app.models.user import UserRole
from app.schemas import QueueSnapshot, QueueStats, Token
from app.services import queue_views
from app.services.queue_views import QueueCommand

NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def _token(token_no, status, visitor_id=None):
    return Token(
        id=100 + token_no,
        event_id=7,
        visitor_id=visitor_id or token_no,
        token_no=token_no,
        status=status,
        created_at=NOW,
    )


def _snapshot(tokens, paused=False):
    counts = {}
    for t in tokens:
        counts[t.status] = counts.get(t.status, 0) + 1
    serving = [t for t in sorted(tokens, key=lambda t: t.token_no) if t.status == TokenStatus.IN_PROGRESS]
    return QueueSnapshot(
        event_id=7,
        tokens=tokens,
        stats=QueueStats.from_counts(counts),
        now_serving=serving[0] if serving else None,
        paused=paused,
    )


def test_role_commands():
    assert queue_views.commands_for(None) == {QueueCommand.CREATE_TOKEN}
    assert QueueCommand.TOGGLE_PAUSE not in queue_views.commands_for(UserRole.EXPERT)
    assert QueueCommand.TOGGLE_PAUSE in queue_views.commands_for(UserRole.ADMIN)
    assert queue_views.commands_for(UserRole.SALES) == frozenset()


def test_only_staff_may_move_tokens():
    for target in (TokenStatus.IN_PROGRESS, TokenStatus.DONE, TokenStatus.NO_SHOW):
        assert queue_views.can_set_status(UserRole.EXPERT, target)
        assert queue_views.can_set_status(UserRole.ADMIN, target)
        assert not queue_views.can_set_status(UserRole.SALES, target)
        assert not queue_views.can_set_status(None, target)
    assert not queue_views.can_set_status(UserRole.ADMIN, TokenStatus.WAITING)
    assert queue_views.can_toggle_pause(UserRole.ADMIN)
    assert not queue_views.can_toggle_pause(UserRole.EXPERT)


def test_allowed_statuses_follow_the_state_machine():
    assert queue_views.allowed_statuses(UserRole.EXPERT, TokenStatus.WAITING) == [
        TokenStatus.IN_PROGRESS, TokenStatus.NO_SHOW
    ]
    assert queue_views.allowed_statuses(UserRole.EXPERT, TokenStatus.IN_PROGRESS) == [
        TokenStatus.DONE, TokenStatus.NO_SHOW
    ]
    assert queue_views.allowed_statuses(UserRole.EXPERT, TokenStatus.DONE) == []
    assert queue_views.allowed_statuses(UserRole.SALES, TokenStatus.WAITING) == []


def test_expert_view_orders_tokens_and_lists_commands():
    snapshot = _snapshot([
        _token(3, TokenStatus.WAITING),
        _token(1, TokenStatus.DONE),
        _token(2, TokenStatus.IN_PROGRESS),
    ])
    view = queue_views.expert_view(snapshot)
    assert [e.token.token_no for e in view.tokens] == [1, 2, 3]
    assert view.tokens[0].allowed_statuses == []
    assert view.tokens[1].allowed_statuses == [TokenStatus.DONE, TokenStatus.NO_SHOW]
    assert view.now_serving.token_no == 2
    assert view.stats.completed == 1


def test_admin_view_carries_pause_state():
    view = queue_views.admin_view(_snapshot([_token(1, TokenStatus.WAITING)], paused=True))
    assert view.paused is True
    assert view.can_toggle_pause is True
    assert view.tokens[0].allowed_statuses == [TokenStatus.IN_PROGRESS, TokenStatus.NO_SHOW]


def test_visitor_view_counts_tokens_ahead():
    snapshot = _snapshot([
        _token(1, TokenStatus.IN_PROGRESS),
        _token(2, TokenStatus.NO_SHOW),
        _token(3, TokenStatus.WAITING),
        _token(4, TokenStatus.WAITING),
        _token(5, TokenStatus.WAITING),
    ])
    view = queue_views.visitor_view(snapshot, visitor_id=5)
    assert view.token.token_no == 5
    assert view.tokens_ahead == 2
    assert view.now_serving_token_no == 1
    assert view.can_create_token is False


def test_visitor_view_after_consultation_allows_new_token():
    snapshot = _snapshot([_token(1, TokenStatus.DONE, visitor_id=9)])
    view = queue_views.visitor_view(snapshot, visitor_id=9)
    assert view.token.status == TokenStatus.DONE
    assert view.tokens_ahead == 0
    assert view.can_create_token is True


def test_visitor_view_prefers_active_token_over_older_ones():
    snapshot = _snapshot([
        _token(1, TokenStatus.NO_SHOW, visitor_id=9),
        _token(4, TokenStatus.WAITING, visitor_id=9),
    ])
    assert queue_views.visitor_view(snapshot, visitor_id=9).token.token_no == 4


def test_visitor_view_when_paused():
    view = queue_views.visitor_view(_snapshot([], paused=True), visitor_id=1)
    assert view.token is None
    assert view.paused is True
    assert view.can_create_token is False
