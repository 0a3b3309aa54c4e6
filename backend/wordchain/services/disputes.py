"""Dispute engine: challenge window, votes and the majority tally.

A word can be challenged for a short window after it was submitted. Each
active player in the lobby gets one vote; the dispute is accepted only on a
strict accept majority, otherwise the author is eliminated.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from flask import current_app

from wordchain.errors import ConflictError
from wordchain.models import Player, Submission, Vote
from wordchain.store import store
from .helpers import now_or, parse_bool, require_text
from .rounds import eliminate_in_transaction, latest_submission


@dataclass
class DisputeOutcome:
    accept: int
    decline: int
    result: bool
    submission: Submission
    eliminated: Optional[Player] = None
    winner: Optional[Player] = None

    def to_dict(self):
        return {
            'accept': self.accept,
            'decline': self.decline,
            'dispute_result': self.result,
            'submission': self.submission.to_dict(),
            'eliminated': self.eliminated.to_dict() if self.eliminated else None,
            'winner': self.winner.to_dict() if self.winner else None,
        }


def tally_votes(votes: Iterable[Vote]) -> Tuple[int, int]:
    accept = decline = 0
    for v in votes:
        if v.vote:
            accept += 1
        else:
            decline += 1
    return accept, decline


def open_dispute(submission_id, player_id: Optional[str] = None, now: Optional[float] = None) -> Submission:
    """Flag the latest word of a round as disputed while the window is open."""
    now = now_or(now)
    window = float(current_app.config.get('DISPUTE_WINDOW_SEC', 5))
    with store.transaction():
        submission = store.submissions.require('Submission', id=submission_id)
        rnd = store.rounds.require('Round', id=submission.round_id)
        if player_id:
            store.players.require('Player', id=player_id, lobby_id=rnd.lobby_id)
        if submission.is_disputed:
            return submission
        if latest_submission(rnd.id).id != submission.id:
            raise ConflictError('Only the most recent word can be disputed')
        if now - submission.created_at > window:
            raise ConflictError('The dispute window has closed')
        opened = store.submissions.update_where(
            submission.id, {'is_disputed': True}, Submission.is_disputed.is_(False)
        )
        if opened is None:
            return store.submissions.refresh(submission)
    current_app.logger.info(f"[dispute-open] submission={submission_id} by={player_id}")
    return opened


def cast_vote(submission_id, player_id, vote) -> Vote:
    """Record one accept/decline vote per active player on an open dispute."""
    vote = parse_bool(vote, 'Vote')
    player_id = require_text(player_id, 'Player id')
    with store.transaction():
        submission = store.submissions.require('Submission', id=submission_id)
        if not submission.is_disputed:
            raise ConflictError('This word is not under dispute')
        if submission.dispute_result is not None:
            raise ConflictError('This dispute is already settled')
        rnd = store.rounds.require('Round', id=submission.round_id)
        voter = store.players.require('Player', id=player_id, lobby_id=rnd.lobby_id)
        if not voter.is_active:
            raise ConflictError('Eliminated players cannot vote')
        if store.votes.get(submission_id=submission.id, player_id=voter.id) is not None:
            raise ConflictError('This player already voted on this dispute')
        # (submission_id, player_id) is unique, so a racing duplicate fails on insert
        ballot = store.votes.insert(submission_id=submission.id, player_id=voter.id, vote=vote)
    current_app.logger.info(f"[vote] submission={submission_id} player={player_id} vote={vote}")
    return ballot


def finalize_dispute(submission_id, now: Optional[float] = None) -> DisputeOutcome:
    """Settle a dispute from this submission's votes only.

    Ties reject. Finalizing twice returns the stored result and applies no
    consequence the second time.
    """
    now = now_or(now)
    with store.transaction():
        submission = store.submissions.require('Submission', id=submission_id)
        if not submission.is_disputed:
            raise ConflictError('This word is not under dispute')
        accept, decline = tally_votes(store.votes.list(submission_id=submission.id))
        if submission.dispute_result is not None:
            return DisputeOutcome(accept, decline, submission.dispute_result, submission)

        result = accept > decline
        settled = store.submissions.update_where(
            submission.id, {'dispute_result': result}, Submission.dispute_result.is_(None)
        )
        if settled is None:
            submission = store.submissions.refresh(submission)
            return DisputeOutcome(accept, decline, submission.dispute_result, submission)

        eliminated = winner = None
        if not result:
            rnd = store.rounds.require('Round', id=settled.round_id)
            lobby = store.lobbies.require('Lobby', id=rnd.lobby_id)
            if lobby.status != 'finished':
                author = store.players.require('Player', id=settled.player_id)
                changed, winner = eliminate_in_transaction(author, lobby, now)
                eliminated = author if changed else None
        outcome = DisputeOutcome(accept, decline, result, settled, eliminated, winner)
    current_app.logger.info(
        f"[dispute-final] submission={submission_id} accept={accept} decline={decline} "
        f"result={'accepted' if result else 'rejected'}"
    )
    return outcome
