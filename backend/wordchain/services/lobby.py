import time
import uuid
from typing import Optional

from flask import current_app

from wordchain.errors import ConflictError, ValidationError
from wordchain.models import Player
from wordchain.store import store
from .helpers import require_text
from .rounds import current_round, latest_submission
from .words import RandomSource, generate_code


def _new_identity() -> str:
    return uuid.uuid4().hex


def _parse_timer(timer_duration) -> int:
    if timer_duration is None or timer_duration == '':
        return int(current_app.config.get('DEFAULT_TIMER_DURATION_SEC', 15))
    try:
        duration = int(timer_duration)
    except (TypeError, ValueError):
        raise ValidationError('Timer duration must be a whole number of seconds')
    if duration <= 0:
        raise ValidationError('Timer duration must be positive')
    return duration


GAME_CODE_ATTEMPTS = 20


def _unique_game_code(rng: Optional[RandomSource] = None) -> str:
    """Generate a short game code not used by any lobby."""
    length = int(current_app.config.get('GAME_CODE_LENGTH', 6))
    for _ in range(GAME_CODE_ATTEMPTS):
        code = generate_code(length, rng)
        if not store.lobbies.get(game_code=code):
            return code
    current_app.logger.warning(f"[lobby-code-exhausted] attempts={GAME_CODE_ATTEMPTS} length={length}")
    raise ConflictError('Could not generate a free game code, try again')



def create_lobby(name, timer_duration=None, player_id: Optional[str] = None,
                 rng: Optional[RandomSource] = None):
    """Create a lobby and seat its creator as host with join order 1."""
    name = require_text(name, 'Player name')
    duration = _parse_timer(timer_duration)
    identity = (player_id or '').strip() or _new_identity()
    if store.players.get(id=identity):
        raise ConflictError('This player already belongs to a lobby')

    with store.transaction():
        lobby = store.lobbies.insert(
            game_code=_unique_game_code(rng),
            timer_duration=duration,
            status='waiting',
            created_at=time.time(),
        )
        host = store.players.insert(
            id=identity,
            lobby_id=lobby.id,
            name=name,
            join_order=1,
            is_host=True,
            status='active',
        )
    current_app.logger.info(f"[lobby-create] lobby={lobby.id} code={lobby.game_code} host={host.id} timer={duration}s")
    return lobby, host


def join_lobby(game_code, name, player_id: Optional[str] = None):
    """Join by game code. Re-joining with the same identity returns the existing seat."""
    code = require_text(game_code, 'Game code').upper()
    name = require_text(name, 'Player name')
    lobby = store.lobbies.require('Lobby', game_code=code)

    identity = (player_id or '').strip()
    if identity:
        existing = store.players.get(id=identity)
        if existing is not None:
            if existing.lobby_id == lobby.id:
                return lobby, existing
            raise ConflictError('This player already belongs to another lobby')
    else:
        identity = _new_identity()

    if lobby.status != 'waiting':
        raise ConflictError('This game is not accepting new players')

    with store.transaction():
        # join_order is guarded by the (lobby_id, join_order) unique constraint
        seated = len(store.players.list(lobby_id=lobby.id))
        player = store.players.insert(
            id=identity,
            lobby_id=lobby.id,
            name=name,
            join_order=seated + 1,
            is_host=False,
            status='active',
        )
    current_app.logger.info(f"[lobby-join] lobby={lobby.id} player={player.id} join_order={player.join_order}")
    return lobby, player


def lobby_snapshot(game_code) -> dict:
    """Everything a client needs to render the board on first load."""
    code = require_text(game_code, 'Game code').upper()
    lobby = store.lobbies.require('Lobby', game_code=code)
    players = store.players.list(Player.join_order, lobby_id=lobby.id)
    rnd = current_round(lobby.id)
    return {
        'lobby': lobby,
        'players': players,
        'round': rnd,
        'latest_submission': latest_submission(rnd.id) if rnd else None,
    }
