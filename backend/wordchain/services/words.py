"""Random source for game codes and automatic starting words.

Anything with ``choice(seq)`` works as a source; tests pass a seeded
``random.Random`` or a fixed stub.
"""

import random
import string
from typing import Optional, Protocol, Sequence

STARTING_WORDS = ('apple', 'brave', 'crane', 'delta', 'eagle')
GAME_CODE_ALPHABET = string.ascii_uppercase + string.digits


class RandomSource(Protocol):
    def choice(self, seq: Sequence): ...


_default_source: RandomSource = random.Random()


def get_random_source(rng: Optional[RandomSource] = None) -> RandomSource:
    return rng if rng is not None else _default_source


def pick_starting_word(rng: Optional[RandomSource] = None, words: Sequence[str] = STARTING_WORDS) -> str:
    return get_random_source(rng).choice(words)


def generate_code(length: int = 6, rng: Optional[RandomSource] = None) -> str:
    source = get_random_source(rng)
    return ''.join(source.choice(GAME_CODE_ALPHABET) for _ in range(length))
