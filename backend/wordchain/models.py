from wordchain import db
import time


class Lobby(db.Model):
    __tablename__ = 'lobby'
    id = db.Column(db.Integer, primary_key=True)
    game_code = db.Column(db.String(12), unique=True, nullable=False, index=True)
    timer_duration = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(32), nullable=False, default='waiting')  # waiting, in_progress, finished
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    def to_dict(self):
        return {
            'id': self.id,
            'game_code': self.game_code,
            'timer_duration': self.timer_duration,
            'status': self.status,
            'created_at': self.created_at,
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('lobby_id', 'join_order', name='uq_player_lobby_join_order'),
    )
    # Identity of the joining user, issued outside this service
    id = db.Column(db.String(64), primary_key=True)
    lobby_id = db.Column(db.Integer, db.ForeignKey('lobby.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    join_order = db.Column(db.Integer, nullable=False)
    is_host = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(16), nullable=False, default='active')  # active, eliminated

    @property
    def is_active(self):
        return self.status == 'active'

    def to_dict(self):
        return {
            'id': self.id,
            'lobby_id': self.lobby_id,
            'name': self.name,
            'join_order': self.join_order,
            'is_host': self.is_host,
            'status': self.status,
        }


class Round(db.Model):
    __tablename__ = 'round'
    __table_args__ = (
        db.UniqueConstraint('lobby_id', 'round_number', name='uq_round_lobby_round_number'),
    )
    id = db.Column(db.Integer, primary_key=True)
    lobby_id = db.Column(db.Integer, db.ForeignKey('lobby.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    starting_player_id = db.Column(db.String(64), db.ForeignKey('player.id'), nullable=False)
    active_player_id = db.Column(db.String(64), db.ForeignKey('player.id'), nullable=True)
    starting_word = db.Column(db.String(128), nullable=False)
    current_word = db.Column(db.String(128), nullable=False)
    # Epoch seconds anchoring the countdown of the current turn
    start_time = db.Column(db.Float, nullable=False)
    # Set once, when the turn times out
    ended_at = db.Column(db.Float, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'lobby_id': self.lobby_id,
            'round_number': self.round_number,
            'starting_player_id': self.starting_player_id,
            'active_player_id': self.active_player_id,
            'starting_word': self.starting_word,
            'current_word': self.current_word,
            'start_time': self.start_time,
            'ended_at': self.ended_at,
        }


class Submission(db.Model):
    __tablename__ = 'submission'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), db.ForeignKey('player.id'), nullable=False)
    word = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    is_disputed = db.Column(db.Boolean, nullable=False, default=False)
    # None while unresolved, True accepted, False rejected
    dispute_result = db.Column(db.Boolean, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'round_id': self.round_id,
            'player_id': self.player_id,
            'word': self.word,
            'created_at': self.created_at,
            'is_disputed': self.is_disputed,
            'dispute_result': self.dispute_result,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (
        db.UniqueConstraint('submission_id', 'player_id', name='uq_vote_submission_player'),
    )
    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.Integer, db.ForeignKey('submission.id'), nullable=False, index=True)
    player_id = db.Column(db.String(64), db.ForeignKey('player.id'), nullable=False)
    vote = db.Column(db.Boolean, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'submission_id': self.submission_id,
            'player_id': self.player_id,
            'vote': self.vote,
        }
