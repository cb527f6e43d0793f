from typing import NamedTuple

from whitered.models import CODE_LENGTH


class Hits(NamedTuple):
    whites: int
    reds: int


def score(secret: str, guess: str) -> Hits:
    """Score a guess against a secret.

    A white is a digit in the right position; a red is a digit present in
    the secret at another position. Both codes are validated upstream to be
    4 distinct digits, so a digit can never be counted twice.
    """
    whites = 0
    reds = 0
    for i, digit in enumerate(guess):
        if digit == secret[i]:
            whites += 1
        elif digit in secret:
            reds += 1
    return Hits(whites, reds)


def is_win(hits: Hits) -> bool:
    return hits.whites == CODE_LENGTH
