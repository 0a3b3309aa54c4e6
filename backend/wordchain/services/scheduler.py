import time
from typing import Set, Tuple

from wordchain import socketio
from wordchain.errors import GameError
from wordchain.models import Lobby, Round, Submission
from .disputes import finalize_dispute
from .rounds import current_round, expire_turn


_scheduled_turn_keys: Set[Tuple[int, float]] = set()
_scheduled_dispute_keys: Set[int] = set()

# Swapped out in tests to drive timers without waiting
_now = time.time
_sleep = time.sleep


def _scheduler_enabled(app) -> bool:
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return False
    return bool(app.config.get('ENABLE_TURN_SCHEDULER', True))


def _sleep_until(deadline: float) -> float:
    delay = deadline - _now()
    if delay > 0:
        _sleep(delay)
    return max(_now(), deadline)


def _run(app, worker, *args) -> None:
    if app.config.get('TESTING'):
        worker(*args)
    else:
        socketio.start_background_task(worker, *args)


def schedule_turn_timer(app, round_id: int) -> None:
    """Expire the current turn of a round once its countdown runs out.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set, and
      then runs the worker inline
    - Ensures a single timer per (round_id, start_time) in this process
    - Fires the same guarded transition clients fire, so a client winning
      the race simply turns this timer into a no-op
    - Re-arms itself for the next round the expiry started
    """
    if not _scheduler_enabled(app):
        return

    with app.app_context():
        rnd = Round.query.filter_by(id=round_id).first()
        if not rnd or rnd.ended_at is not None:
            return
        lobby = Lobby.query.filter_by(id=rnd.lobby_id).first()
        if not lobby or lobby.status == 'finished':
            return
        key = (rnd.id, rnd.start_time)
        if key in _scheduled_turn_keys:
            app.logger.info(f"[timer-skip] round={rnd.id} start={rnd.start_time} already scheduled")
            return
        _scheduled_turn_keys.add(key)
        deadline = rnd.start_time + lobby.timer_duration
        app.logger.info(f"[timer-set] round={rnd.id} player={rnd.active_player_id} deadline={deadline}")

    def _worker(rid: int, expected_start: float, fire_at: float):
        now = _sleep_until(fire_at)
        with app.app_context():
            _scheduled_turn_keys.discard((rid, expected_start))
            current = Round.query.filter_by(id=rid).first()
            if not current or current.start_time != expected_start:
                # The turn moved on; whoever moved it armed a fresh timer
                app.logger.info(f"[timer-abort] round={rid} turn already advanced")
                return
            try:
                outcome = expire_turn(rid, now=now)
            except GameError as exc:
                app.logger.warning(f"[timer-error] round={rid} {exc.message}")
                return
            app.logger.info(f"[timer-fire] round={rid} expired={outcome.expired}")
            if outcome.expired and outcome.round is not None and outcome.round.id != rid:
                schedule_turn_timer(app, outcome.round.id)

    _run(app, _worker, round_id, key[1], deadline)


def schedule_lobby_timer(app, lobby_id: int) -> None:
    """Arm the turn timer of whatever round is current for the lobby."""
    if not _scheduler_enabled(app):
        return
    with app.app_context():
        rnd = current_round(lobby_id)
        round_id = rnd.id if rnd else None
    if round_id is not None:
        schedule_turn_timer(app, round_id)


def schedule_dispute_finalize(app, submission_id: int) -> None:
    """Finalize a dispute when its window closes, unless someone already did."""
    if not _scheduler_enabled(app):
        return

    with app.app_context():
        submission = Submission.query.filter_by(id=submission_id).first()
        if not submission or not submission.is_disputed or submission.dispute_result is not None:
            return
        if submission.id in _scheduled_dispute_keys:
            return
        _scheduled_dispute_keys.add(submission.id)
        deadline = submission.created_at + float(app.config.get('DISPUTE_WINDOW_SEC', 5))
        app.logger.info(f"[dispute-timer-set] submission={submission.id} deadline={deadline}")

    def _worker(sid: int, fire_at: float):
        now = _sleep_until(fire_at)
        with app.app_context():
            _scheduled_dispute_keys.discard(sid)
            try:
                outcome = finalize_dispute(sid, now=now)
            except GameError as exc:
                app.logger.warning(f"[dispute-timer-error] submission={sid} {exc.message}")
                return
            app.logger.info(f"[dispute-timer-fire] submission={sid} result={outcome.result}")
            if outcome.eliminated is not None:
                schedule_lobby_timer(app, outcome.eliminated.lobby_id)

    _run(app, _worker, submission_id, deadline)
