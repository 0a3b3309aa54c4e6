"""Record store facade over the SQLAlchemy session.

Each collection offers insert/get/list/update plus ``update_where``, a
single-statement guarded write that only lands when its guards still hold.
Changes are staged per session and handed to the change feed after a
successful commit, so subscribers never see rolled-back records.
"""

from contextlib import contextmanager
from typing import Any, Dict, List

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from wordchain import db
from wordchain.errors import ConflictError, NotFoundError, StoreError
from wordchain.feed import INSERT, UPDATE, ChangeFeed, feed as default_feed
from wordchain.models import Lobby, Player, Round, Submission, Vote

_PENDING_KEY = 'wordchain_pending_changes'


def _store_error(exc: SQLAlchemyError) -> StoreError:
    code = getattr(getattr(exc, 'orig', None), 'pgcode', None) or type(exc).__name__
    return StoreError(code, str(exc.orig if getattr(exc, 'orig', None) is not None else exc))


class Collection:
    def __init__(self, store: 'RecordStore', name: str, model):
        self.store = store
        self.name = name
        self.model = model

    def insert(self, **fields):
        obj = self.model(**fields)
        db.session.add(obj)
        self.store.flush()
        self.store.stage(self.name, INSERT, obj)
        return obj

    def get(self, **filters):
        try:
            return self.model.query.filter_by(**filters).first()
        except SQLAlchemyError as exc:
            raise _store_error(exc)

    def first(self, *order_by, **filters):
        try:
            return self.model.query.filter_by(**filters).order_by(*order_by).first()
        except SQLAlchemyError as exc:
            raise _store_error(exc)

    def require(self, what: str, **filters):
        obj = self.get(**filters)
        if obj is None:
            raise NotFoundError(f'{what} not found')
        return obj

    def refresh(self, obj):
        try:
            db.session.refresh(obj)
        except SQLAlchemyError as exc:
            raise _store_error(exc)
        return obj

    def list(self, *order_by, **filters) -> List[Any]:
        try:
            query = self.model.query.filter_by(**filters)
            if order_by:
                query = query.order_by(*order_by)
            return query.all()
        except SQLAlchemyError as exc:
            raise _store_error(exc)

    def update(self, obj, **fields):
        for key, value in fields.items():
            setattr(obj, key, value)
        db.session.add(obj)
        self.store.flush()
        self.store.stage(self.name, UPDATE, obj)
        return obj

    def update_where(self, pk, values: Dict[str, Any], *guards):
        """Apply ``values`` to row ``pk`` only if every guard still holds.

        Returns the refreshed record, or None when the guards did not match.
        """
        stmt = (
            update(self.model)
            .where(self.model.id == pk, *guards)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
        except IntegrityError as exc:
            self.store.rollback()
            raise ConflictError(f'{self.name} write conflicted: {exc.orig}')
        except SQLAlchemyError as exc:
            self.store.rollback()
            raise _store_error(exc)
        if result.rowcount != 1:
            return None
        obj = db.session.get(self.model, pk)
        db.session.refresh(obj)
        self.store.stage(self.name, UPDATE, obj)
        return obj


class RecordStore:
    def __init__(self, change_feed: ChangeFeed):
        self.feed = change_feed
        self.lobbies = Collection(self, 'lobbies', Lobby)
        self.players = Collection(self, 'players', Player)
        self.rounds = Collection(self, 'rounds', Round)
        self.submissions = Collection(self, 'submissions', Submission)
        self.votes = Collection(self, 'votes', Vote)

    def _pending(self) -> List[tuple]:
        return db.session.info.setdefault(_PENDING_KEY, [])

    def stage(self, collection: str, event_type: str, obj) -> None:
        self._pending().append((collection, event_type, obj.to_dict()))

    def flush(self) -> None:
        try:
            db.session.flush()
        except IntegrityError as exc:
            self.rollback()
            raise ConflictError(f'Write conflicted with a concurrent change: {exc.orig}')
        except SQLAlchemyError as exc:
            self.rollback()
            raise _store_error(exc)

    def rollback(self) -> None:
        db.session.rollback()
        db.session.info.pop(_PENDING_KEY, None)

    @contextmanager
    def transaction(self):
        """Commit on success, roll back and re-raise on any error."""
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.commit()

    def commit(self) -> None:
        try:
            db.session.commit()
        except IntegrityError as exc:
            self.rollback()
            raise ConflictError(f'Write conflicted with a concurrent change: {exc.orig}')
        except SQLAlchemyError as exc:
            self.rollback()
            raise _store_error(exc)
        changes = db.session.info.pop(_PENDING_KEY, [])
        for collection, event_type, record in changes:
            self.feed.publish(collection, event_type, record)
        if changes:
            current_app.logger.debug(f"[store-commit] published={len(changes)}")


store = RecordStore(default_feed)
