from flask import Blueprint, jsonify, request, current_app
import time
from wordchain.errors import GameError, ValidationError
from wordchain.services.disputes import cast_vote, finalize_dispute, open_dispute
from wordchain.services.lobby import create_lobby, join_lobby, lobby_snapshot
from wordchain.services.rounds import eliminate_player, expire_turn, start_round, submit_word
from wordchain.services.scheduler import (
    schedule_dispute_finalize,
    schedule_lobby_timer,
    schedule_turn_timer,
)
from wordchain.view import GameState


games = Blueprint('games', __name__)


def _app():
    return current_app._get_current_object()


@games.errorhandler(GameError)
def handle_game_error(exc: GameError):
    current_app.logger.info(f"[rejected] {request.method} {request.path} -> {exc.status_code}: {exc.message}")
    payload = {'error': exc.message}
    code = getattr(exc, 'code', None)
    if code:
        payload['code'] = code
    return jsonify(payload), exc.status_code


@games.route('/lobbies', methods=['POST'])
def create_lobby_route():
    data = request.get_json(silent=True) or {}
    lobby, host = create_lobby(
        data.get('name'),
        timer_duration=data.get('timer_duration'),
        player_id=data.get('player_id'),
    )
    return jsonify({
        'message': 'New game created!',
        'lobby': lobby.to_dict(),
        'player': host.to_dict(),
    }), 201


@games.route('/lobbies/join', methods=['POST'])
def join_lobby_route():
    data = request.get_json(silent=True) or {}
    lobby, player = join_lobby(data.get('game_code'), data.get('name'), player_id=data.get('player_id'))
    return jsonify({
        'lobby': lobby.to_dict(),
        'player': player.to_dict(),
    }), 201


@games.route('/lobbies/<string:game_code>/state', methods=['GET'])
def get_lobby_state(game_code):
    snapshot = lobby_snapshot(game_code)
    lobby = snapshot['lobby']
    rnd = snapshot['round']
    latest = snapshot['latest_submission']
    state = GameState.from_snapshot(
        lobby.to_dict(),
        [p.to_dict() for p in snapshot['players']],
        rnd.to_dict() if rnd else None,
        latest.to_dict() if latest else None,
    )
    payload = state.to_dict(now=time.time())
    payload['game_code'] = lobby.game_code
    payload['status'] = lobby.status
    payload['durations'] = {
        'turn': lobby.timer_duration,
        'dispute_window': int(current_app.config.get('DISPUTE_WINDOW_SEC', 5)),
    }
    return jsonify(payload)


@games.route('/lobbies/<int:lobby_id>/rounds', methods=['POST'])
def start_round_route(lobby_id):
    data = request.get_json(silent=True) or {}
    expected = data.get('expected_round_number')
    try:
        expected = int(expected) if expected is not None else None
    except (TypeError, ValueError):
        raise ValidationError('expected_round_number must be an integer')
    rnd = start_round(
        lobby_id,
        data.get('starting_player_id'),
        data.get('starting_word'),
        expected_round_number=expected,
    )
    schedule_turn_timer(_app(), rnd.id)
    return jsonify(rnd.to_dict()), 201


@games.route('/rounds/<int:round_id>/submissions', methods=['POST'])
def submit_word_route(round_id):
    data = request.get_json(silent=True) or {}
    submission, rnd = submit_word(round_id, data.get('player_id'), data.get('word'))
    schedule_turn_timer(_app(), rnd.id)
    return jsonify({
        'submission': submission.to_dict(),
        'round': rnd.to_dict(),
    }), 201


@games.route('/rounds/<int:round_id>/timeout', methods=['POST'])
def expire_turn_route(round_id):
    outcome = expire_turn(round_id)
    if outcome.expired and outcome.round is not None:
        schedule_turn_timer(_app(), outcome.round.id)
    return jsonify(outcome.to_dict())


@games.route('/lobbies/<int:lobby_id>/players/<string:player_id>/eliminate', methods=['POST'])
def eliminate_player_route(lobby_id, player_id):
    player, winner = eliminate_player(player_id, lobby_id)
    schedule_lobby_timer(_app(), lobby_id)
    return jsonify({
        'player': player.to_dict(),
        'winner': winner.to_dict() if winner else None,
    })


@games.route('/submissions/<int:submission_id>/dispute', methods=['POST'])
def open_dispute_route(submission_id):
    data = request.get_json(silent=True) or {}
    submission = open_dispute(submission_id, player_id=data.get('player_id'))
    schedule_dispute_finalize(_app(), submission.id)
    return jsonify(submission.to_dict())


@games.route('/submissions/<int:submission_id>/votes', methods=['POST'])
def cast_vote_route(submission_id):
    data = request.get_json(silent=True) or {}
    ballot = cast_vote(submission_id, data.get('player_id'), data.get('vote'))
    return jsonify(ballot.to_dict()), 201


@games.route('/submissions/<int:submission_id>/finalize', methods=['POST'])
def finalize_dispute_route(submission_id):
    outcome = finalize_dispute(submission_id)
    if outcome.eliminated is not None:
        schedule_lobby_timer(_app(), outcome.eliminated.lobby_id)
    return jsonify(outcome.to_dict())
