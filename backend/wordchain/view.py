"""Client-side game view model.

``reduce(state, event)`` is a pure function folding one change-feed event
(or one optimistic local result) into the immutable ``GameState`` a
player's screen renders. ``GameView`` wires the reducer to a change feed,
keeps the event log and drives the local countdown.

Events may arrive more than once and in any order across collections, so
every rule either ignores stale/duplicate records or converges to the same
state.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from wordchain.feed import INSERT, UPDATE
from wordchain.services.rules import find_winner, remaining_seconds


@dataclass(frozen=True)
class PlayerView:
    id: str
    name: str
    join_order: int
    is_host: bool = False
    status: str = 'active'

    @property
    def is_eliminated(self) -> bool:
        return self.status == 'eliminated'

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> 'PlayerView':
        return cls(
            id=record['id'],
            name=record.get('name', ''),
            join_order=record.get('join_order', 0),
            is_host=bool(record.get('is_host', False)),
            status=record.get('status', 'active'),
        )

    def merge(self, record: Mapping[str, Any]) -> 'PlayerView':
        known = {k: record[k] for k in ('name', 'join_order', 'is_host', 'status') if k in record}
        return replace(self, **known)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'join_order': self.join_order,
            'is_host': self.is_host,
            'status': self.status,
            'is_eliminated': self.is_eliminated,
        }


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    type: str
    record: Mapping[str, Any]


@dataclass(frozen=True)
class GameState:
    lobby_id: Optional[int] = None
    timer_duration: int = 0
    players: Tuple[PlayerView, ...] = ()
    round_id: Optional[int] = None
    round_number: int = 0
    word: Optional[str] = None
    active_player_id: Optional[str] = None
    start_time: Optional[float] = None
    latest_submission: Optional[Mapping[str, Any]] = None
    winner_id: Optional[str] = None

    @classmethod
    def from_snapshot(cls, lobby: Mapping[str, Any], players=(), round_record: Optional[Mapping[str, Any]] = None,
                      latest_submission: Optional[Mapping[str, Any]] = None) -> 'GameState':
        state = cls(
            lobby_id=lobby['id'],
            timer_duration=lobby['timer_duration'],
            players=_with_roster(tuple(PlayerView.from_record(p) for p in players)),
        )
        state = _with_winner(state)
        if round_record is not None:
            state = _adopt_round(state, round_record)
        if latest_submission is not None and latest_submission.get('round_id') == state.round_id:
            state = replace(state, latest_submission=dict(latest_submission))
        return state

    def player(self, player_id) -> Optional[PlayerView]:
        return next((p for p in self.players if p.id == player_id), None)

    def remaining(self, now: float) -> int:
        if self.round_id is None:
            return self.timer_duration
        return remaining_seconds(self.timer_duration, self.start_time, now)

    @property
    def is_over(self) -> bool:
        return self.winner_id is not None

    def to_dict(self, now: Optional[float] = None):
        payload = {
            'lobby_id': self.lobby_id,
            'timer_duration': self.timer_duration,
            'players': [p.to_dict() for p in self.players],
            'round_id': self.round_id,
            'round_number': self.round_number,
            'current_word': self.word,
            'active_player_id': self.active_player_id,
            'start_time': self.start_time,
            'latest_submission': dict(self.latest_submission) if self.latest_submission else None,
            'winner_id': self.winner_id,
        }
        if now is not None:
            payload['remaining'] = self.remaining(now)
        return payload


def _with_roster(players: Tuple[PlayerView, ...]) -> Tuple[PlayerView, ...]:
    return tuple(sorted(players, key=lambda p: p.join_order))


def _with_winner(state: GameState) -> GameState:
    winner = find_winner(state.players)
    return replace(state, winner_id=winner.id if winner else None)


def _adopt_round(state: GameState, r: Mapping[str, Any]) -> GameState:
    return replace(
        state,
        round_id=r['id'],
        round_number=r.get('round_number', state.round_number),
        word=r.get('current_word') or r.get('starting_word'),
        active_player_id=r.get('active_player_id'),
        start_time=r.get('start_time'),
        latest_submission=None,
    )


def _foreign_lobby(state: GameState, record: Mapping[str, Any]) -> bool:
    return state.lobby_id is not None and record.get('lobby_id', state.lobby_id) != state.lobby_id


def _round_inserted(state: GameState, r: Mapping[str, Any]) -> GameState:
    if _foreign_lobby(state, r) or r['id'] == state.round_id:
        return state
    if r.get('round_number', 0) < state.round_number:
        return state
    return _adopt_round(state, r)


def _round_updated(state: GameState, r: Mapping[str, Any]) -> GameState:
    if _foreign_lobby(state, r):
        return state
    if r['id'] != state.round_id:
        # An update for a newer round whose insert we have not seen yet
        if r.get('round_number', 0) > state.round_number:
            return _adopt_round(state, r)
        return state
    if state.start_time is not None and r.get('start_time') is not None and r['start_time'] < state.start_time:
        return state
    return replace(
        state,
        active_player_id=r.get('active_player_id'),
        start_time=r.get('start_time'),
        word=r.get('current_word', state.word),
    )


def _submission_inserted(state: GameState, s: Mapping[str, Any]) -> GameState:
    if s.get('round_id') != state.round_id:
        return state
    latest = state.latest_submission
    if latest is not None and latest.get('id') == s['id']:
        return state
    if state.start_time is not None and s['created_at'] < state.start_time:
        return state
    return replace(state, word=s['word'], latest_submission=dict(s), start_time=s['created_at'])


def _submission_updated(state: GameState, s: Mapping[str, Any]) -> GameState:
    latest = state.latest_submission
    if latest is None or latest.get('id') != s['id']:
        return state
    return replace(state, latest_submission={**latest, **s})


def _player_inserted(state: GameState, p: Mapping[str, Any]) -> GameState:
    if _foreign_lobby(state, p) or state.player(p['id']) is not None:
        return state
    players = _with_roster(state.players + (PlayerView.from_record(p),))
    return _with_winner(replace(state, players=players))


def _player_updated(state: GameState, p: Mapping[str, Any]) -> GameState:
    if _foreign_lobby(state, p):
        return state
    if state.player(p['id']) is None:
        return _player_inserted(state, p)
    players = tuple(v.merge(p) if v.id == p['id'] else v for v in state.players)
    return _with_winner(replace(state, players=_with_roster(players)))


_REDUCERS: Dict[Tuple[str, str], Callable[[GameState, Mapping[str, Any]], GameState]] = {
    ('rounds', INSERT): _round_inserted,
    ('rounds', UPDATE): _round_updated,
    ('submissions', INSERT): _submission_inserted,
    ('submissions', UPDATE): _submission_updated,
    ('players', INSERT): _player_inserted,
    ('players', UPDATE): _player_updated,
}


def reduce(state: GameState, event: ChangeEvent) -> GameState:
    handler = _REDUCERS.get((event.collection, event.type))
    if handler is None:
        return state
    return handler(state, event.record)


TimeoutCallback = Callable[[int, str], None]


class GameView:
    """Holds one client's ``GameState`` and keeps it in step with a feed."""

    def __init__(self, state: GameState, on_timeout: Optional[TimeoutCallback] = None):
        self.state = state
        self.log: List[ChangeEvent] = []
        self._on_timeout = on_timeout
        self._fired: Set[Tuple[int, float]] = set()
        self._feed = None
        self._subscriptions: Dict[str, Any] = {}

    def apply(self, event: ChangeEvent) -> GameState:
        self.log.append(event)
        previous_round = self.state.round_id
        self.state = reduce(self.state, event)
        if self._feed is not None and self.state.round_id != previous_round:
            self._follow_round()
        return self.state

    def _handler(self, collection: str, event_type: str):
        def handle(record):
            self.apply(ChangeEvent(collection, event_type, record))
        return handle

    def attach(self, change_feed) -> None:
        """Subscribe to the lobby's rounds and players and the current round's submissions."""
        self.detach()
        self._feed = change_feed
        scope = {'lobby_id': self.state.lobby_id}
        for collection in ('rounds', 'players'):
            self._subscriptions[collection] = change_feed.subscribe(
                collection, scope,
                on_insert=self._handler(collection, INSERT),
                on_update=self._handler(collection, UPDATE),
            )
        self._follow_round()

    def _follow_round(self) -> None:
        old = self._subscriptions.pop('submissions', None)
        if old is not None:
            self._feed.unsubscribe(old)
        if self.state.round_id is not None:
            self._subscriptions['submissions'] = self._feed.subscribe(
                'submissions', {'round_id': self.state.round_id},
                on_insert=self._handler('submissions', INSERT),
                on_update=self._handler('submissions', UPDATE),
            )

    def detach(self) -> None:
        if self._feed is not None:
            for sub in self._subscriptions.values():
                self._feed.unsubscribe(sub)
        self._subscriptions.clear()
        self._feed = None

    def tick(self, now: float) -> int:
        """Recompute the countdown; fire ``on_timeout`` once per turn at zero."""
        state = self.state
        remaining = state.remaining(now)
        if remaining == 0 and state.round_id is not None and state.active_player_id and not state.is_over:
            key = (state.round_id, state.start_time)
            if key not in self._fired:
                self._fired.add(key)
                if self._on_timeout is not None:
                    self._on_timeout(state.round_id, state.active_player_id)
        return remaining
