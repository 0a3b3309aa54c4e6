"""Round engine: round lifecycle, turn rotation, timeouts and elimination.

Every state change is a guarded write against the store, so any number of
clients (and the server scheduler) may race on the same transition: the
first write whose guards still hold wins, the rest become no-ops.

Per lobby the game moves through::

    NO_ROUND --start_round--> ROUND_ACTIVE
    ROUND_ACTIVE --submit_word--> ROUND_ACTIVE   (turn rotates, timer resets)
    ROUND_ACTIVE --expire_turn--> ROUND_ACTIVE | GAME_OVER
    ROUND_ACTIVE --one active player left--> GAME_OVER
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from wordchain.errors import ConflictError, NotFoundError
from wordchain.models import Lobby, Player, Round, Submission
from wordchain.store import store
from .helpers import now_or, require_text
from .rules import find_winner, next_active_player, remaining_seconds
from .words import RandomSource, pick_starting_word


@dataclass
class TurnOutcome:
    expired: bool
    round: Optional[Round]
    eliminated: Optional[Player] = None
    winner: Optional[Player] = None

    def to_dict(self):
        return {
            'expired': self.expired,
            'round': self.round.to_dict() if self.round else None,
            'eliminated': self.eliminated.to_dict() if self.eliminated else None,
            'winner': self.winner.to_dict() if self.winner else None,
        }


def current_round(lobby_id) -> Optional[Round]:
    return store.rounds.first(Round.round_number.desc(), lobby_id=lobby_id)


def latest_submission(round_id) -> Optional[Submission]:
    return store.submissions.first(Submission.created_at.desc(), Submission.id.desc(), round_id=round_id)


def lobby_players(lobby_id):
    return store.players.list(Player.join_order, lobby_id=lobby_id)


def _insert_round(lobby_id, starting_player_id, word: str,
                  expected_round_number: Optional[int], now: float) -> Round:
    lobby = store.lobbies.require('Lobby', id=lobby_id)
    if lobby.status == 'finished':
        raise ConflictError('The game is over')
    starter = store.players.get(id=starting_player_id, lobby_id=lobby.id)
    if starter is None:
        raise NotFoundError('Starting player not found in this lobby')
    if not starter.is_active:
        raise ConflictError('Eliminated players cannot start a round')

    latest = current_round(lobby.id)
    number = latest.round_number if latest else 0
    if expected_round_number is not None and expected_round_number != number:
        raise ConflictError(f'Round {number} is already current for this lobby')

    # (lobby_id, round_number) is unique: of two concurrent inserts only one commits
    rnd = store.rounds.insert(
        lobby_id=lobby.id,
        round_number=number + 1,
        starting_player_id=starter.id,
        active_player_id=starter.id,
        starting_word=word,
        current_word=word,
        start_time=now,
        ended_at=None,
    )
    if lobby.status == 'waiting':
        store.lobbies.update(lobby, status='in_progress')
    return rnd


def start_round(lobby_id, starting_player_id, starting_word,
                expected_round_number: Optional[int] = None, now: Optional[float] = None) -> Round:
    """Insert the lobby's next round with ``starting_player_id`` on turn.

    ``expected_round_number`` makes the insert conditional on the lobby's
    current highest round number; a mismatch raises ConflictError.
    """
    word = require_text(starting_word, 'Starting word')
    starting_player_id = require_text(starting_player_id, 'Starting player id')
    now = now_or(now)
    with store.transaction():
        rnd = _insert_round(lobby_id, starting_player_id, word, expected_round_number, now)
    current_app.logger.info(
        f"[round-start] lobby={rnd.lobby_id} round={rnd.round_number} player={rnd.active_player_id} word={word}"
    )
    return rnd


def submit_word(round_id, player_id, word, now: Optional[float] = None):
    """Record a word from the active player and pass the turn on.

    Returns ``(submission, round)``.
    """
    word = require_text(word, 'Word')
    player_id = require_text(player_id, 'Player id')
    now = now_or(now)
    with store.transaction():
        rnd = store.rounds.require('Round', id=round_id)
        lobby = store.lobbies.require('Lobby', id=rnd.lobby_id)
        if lobby.status == 'finished':
            raise ConflictError('The game is over')
        if current_round(lobby.id).id != rnd.id:
            raise ConflictError('This round is no longer current')
        if rnd.ended_at is not None or remaining_seconds(lobby.timer_duration, rnd.start_time, now) <= 0:
            raise ConflictError('Time is up for this turn')
        if rnd.active_player_id != player_id:
            raise ConflictError("It is not this player's turn")

        players = lobby_players(lobby.id)
        submitter = next(p for p in players if p.id == player_id)
        upcoming = next_active_player(players, submitter.join_order)

        submission = store.submissions.insert(
            round_id=rnd.id,
            player_id=player_id,
            word=word,
            created_at=now,
            is_disputed=False,
            dispute_result=None,
        )
        updated = store.rounds.update_where(
            rnd.id,
            {'active_player_id': upcoming.id, 'start_time': now, 'current_word': word},
            Round.active_player_id == player_id,
            Round.start_time == rnd.start_time,
            Round.ended_at.is_(None),
        )
        if updated is None:
            raise ConflictError('The turn changed before the word was recorded')
    current_app.logger.info(
        f"[word] round={updated.id} player={player_id} word={word} next={updated.active_player_id}"
    )
    return submission, updated


def _mark_eliminated(player: Player) -> bool:
    return store.players.update_where(player.id, {'status': 'eliminated'}, Player.status == 'active') is not None


def _settle_after_elimination(lobby: Lobby, player: Player, now: float) -> Optional[Player]:
    """Finish the game if one player is left; keep the turn off eliminated players."""
    players = lobby_players(lobby.id)
    winner = find_winner(players)
    if winner is not None and lobby.status != 'finished':
        store.lobbies.update(lobby, status='finished')
    rnd = current_round(lobby.id)
    if rnd is not None and rnd.active_player_id == player.id:
        upcoming = winner or next_active_player(players, player.join_order)
        if upcoming is not None:
            store.rounds.update_where(
                rnd.id,
                {'active_player_id': upcoming.id, 'start_time': now},
                Round.active_player_id == player.id,
            )
    return winner


def eliminate_in_transaction(player: Player, lobby: Lobby, now: float):
    """Eliminate ``player`` inside the caller's transaction. Returns ``(changed, winner)``."""
    changed = _mark_eliminated(player)
    winner = _settle_after_elimination(lobby, player, now)
    return changed, winner


def eliminate_player(player_id, lobby_id, now: Optional[float] = None):
    """Flip a player to eliminated. Re-eliminating is a no-op.

    Returns ``(player, winner)`` where winner is set once the game is over.
    """
    now = now_or(now)
    with store.transaction():
        lobby = store.lobbies.require('Lobby', id=lobby_id)
        player = store.players.require('Player', id=player_id, lobby_id=lobby.id)
        changed, winner = eliminate_in_transaction(player, lobby, now)
    if changed:
        current_app.logger.info(
            f"[eliminate] lobby={lobby_id} player={player_id} winner={winner.id if winner else None}"
        )
    return player, winner



def _hand_off(lobby: Lobby, ended: Round, players, now: float, rng: Optional[RandomSource]):
    """Finish the game or insert the round that follows ``ended``.

    Returns ``(round, winner)``. Runs inside the caller's transaction so the
    lobby is never left with an ended round and nobody on turn.
    """
    winner = find_winner(players)
    if winner is not None:
        if lobby.status != 'finished':
            store.lobbies.update(lobby, status='finished')
        return store.rounds.update(ended, active_player_id=winner.id), winner

    timed_out = next((p for p in players if p.id == ended.active_player_id), None)
    upcoming = next_active_player(players, timed_out.join_order if timed_out else 0)
    if upcoming is None:
        return ended, None
    # (lobby_id, round_number) is unique: a racing start makes this raise ConflictError
    next_round = _insert_round(lobby.id, upcoming.id, pick_starting_word(rng), ended.round_number, now)
    return next_round, None


def _expire_in_transaction(round_id, now: float, rng: Optional[RandomSource]) -> TurnOutcome:
    rnd = store.rounds.require('Round', id=round_id)
    lobby = store.lobbies.require('Lobby', id=rnd.lobby_id)
    latest = current_round(lobby.id)
    if lobby.status == 'finished' or latest.id != rnd.id:
        return TurnOutcome(expired=False, round=latest)

    if rnd.ended_at is not None:
        # Timed out earlier but no round followed: finish the hand-off now
        next_round, winner = _hand_off(lobby, rnd, lobby_players(lobby.id), now, rng)
        current_app.logger.warning(
            f"[turn-expire-recover] lobby={lobby.id} round={rnd.round_number} next={next_round.round_number}"
        )
        return TurnOutcome(expired=next_round.id != rnd.id or winner is not None,
                           round=next_round, winner=winner)

    if rnd.active_player_id is None or remaining_seconds(lobby.timer_duration, rnd.start_time, now) > 0:
        return TurnOutcome(expired=False, round=latest)

    timed_out_id = rnd.active_player_id
    claimed = store.rounds.update_where(
        rnd.id,
        {'ended_at': now},
        Round.ended_at.is_(None),
        Round.active_player_id == timed_out_id,
        Round.start_time == rnd.start_time,
    )
    if claimed is None:
        current_app.logger.warning(f"[turn-expire-lost] round={rnd.id} player={timed_out_id}")
        return TurnOutcome(expired=False, round=current_round(lobby.id))

    player = store.players.require('Player', id=timed_out_id)
    _mark_eliminated(player)
    next_round, winner = _hand_off(lobby, claimed, lobby_players(lobby.id), now, rng)
    current_app.logger.info(
        f"[turn-expire] lobby={lobby.id} round={rnd.round_number} eliminated={timed_out_id} "
        f"next={next_round.active_player_id} winner={winner.id if winner else None}"
    )
    return TurnOutcome(expired=True, round=next_round, eliminated=player, winner=winner)


def expire_turn(round_id, now: Optional[float] = None, rng: Optional[RandomSource] = None) -> TurnOutcome:
    """Time out the active player of a round whose countdown reached zero.

    Claiming the turn, eliminating the player and inserting the next round
    (or finishing the game) commit together. Idempotent: only the first
    caller to claim the turn moves the game on; every other call (early,
    late or concurrent) reports ``expired=False`` with the current round.
    """
    now = now_or(now)
    try:
        with store.transaction():
            outcome = _expire_in_transaction(round_id, now, rng)
    except ConflictError as exc:
        # Another writer moved the lobby on first; nothing of ours was committed
        current_app.logger.warning(f"[turn-expire-conflict] round={round_id} {exc.message}")
        rnd = store.rounds.require('Round', id=round_id)
        return TurnOutcome(expired=False, round=current_round(rnd.lobby_id))
    return outcome
