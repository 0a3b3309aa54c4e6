"""Change feed: per-collection, per-filter push channels.

Every committed insert/update is published once. In-process subscribers get
a callback; remote clients get a ``change`` Socket.IO event in each scope
room the record falls into, e.g. ``rounds:lobby_id=eq.3``. Delivery order
follows publish order, which follows commit order.
"""

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from flask import current_app

from wordchain import socketio
from wordchain.errors import ValidationError

NAMESPACE = '/ws'

# Fields a subscriber may filter on, per collection
SCOPE_FIELDS = {
    'lobbies': ('id',),
    'players': ('id', 'lobby_id'),
    'rounds': ('id', 'lobby_id'),
    'submissions': ('id', 'round_id'),
    'votes': ('id', 'submission_id'),
}

INSERT = 'insert'
UPDATE = 'update'

Callback = Callable[[Dict[str, Any]], None]


def scope_name(collection: str, field_name: str, value) -> str:
    return f"{collection}:{field_name}=eq.{value}"


@dataclass
class Subscription:
    id: int
    collection: str
    filters: Dict[str, Any] = field(default_factory=dict)
    on_insert: Optional[Callback] = None
    on_update: Optional[Callback] = None

    def matches(self, collection: str, record: Dict[str, Any]) -> bool:
        if collection != self.collection:
            return False
        return all(record.get(k) == v for k, v in self.filters.items())


class ChangeFeed:
    def __init__(self, sio=None, namespace: str = NAMESPACE):
        self._sio = sio
        self._namespace = namespace
        self._subscriptions: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def subscribe(self, collection: str, filters: Optional[Dict[str, Any]] = None,
                  on_insert: Optional[Callback] = None,
                  on_update: Optional[Callback] = None) -> Subscription:
        validate_scope(collection, filters or {})
        with self._lock:
            sub = Subscription(next(self._ids), collection, dict(filters or {}), on_insert, on_update)
            self._subscriptions[sub.id] = sub
        return sub

    def unsubscribe(self, handle: Subscription) -> None:
        with self._lock:
            self._subscriptions.pop(handle.id, None)

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    def publish(self, collection: str, event_type: str, record: Dict[str, Any]) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.matches(collection, record)]
        for sub in targets:
            callback = sub.on_insert if event_type == INSERT else sub.on_update
            if callback is None:
                continue
            try:
                callback(record)
            except Exception:
                # One broken subscriber must not starve the others
                current_app.logger.exception(
                    f"[feed-callback-error] sub={sub.id} collection={collection} type={event_type}"
                )
        if self._sio is not None:
            payload = {'collection': collection, 'type': event_type, 'record': record}
            for field_name in SCOPE_FIELDS.get(collection, ()):
                value = record.get(field_name)
                if value is None:
                    continue
                self._sio.emit('change', payload, to=scope_name(collection, field_name, value),
                               namespace=self._namespace)


def validate_scope(collection: str, filters: Dict[str, Any]) -> None:
    allowed = SCOPE_FIELDS.get(collection)
    if allowed is None:
        raise ValidationError(f'Unknown collection: {collection}')
    unknown = set(filters) - set(allowed)
    if unknown:
        raise ValidationError(f'Cannot filter {collection} on: {", ".join(sorted(unknown))}')


feed = ChangeFeed(socketio)
