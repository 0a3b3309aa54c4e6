"""Small shared helpers for the game services."""

import time
from typing import Optional

from wordchain.errors import ValidationError


def require_text(value, label: str) -> str:
    text = '' if value is None else str(value).strip()
    if not text:
        raise ValidationError(f'{label} is required')
    return text


def now_or(now: Optional[float]) -> float:
    return time.time() if now is None else float(now)


def parse_bool(value, label: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ValidationError(f'{label} must be true or false')
