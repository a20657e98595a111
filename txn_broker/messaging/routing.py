"""Helpers for dot-delimited topic routing keys."""

from txn_broker.messaging.constants import (
    ACCOUNT_ID_SEGMENT,
    MULTI_WORD_WILDCARD,
    SINGLE_WORD_WILDCARD,
    UNKNOWN_ACCOUNT_ID,
)


def validate_account_pattern(pattern: str) -> str:
    """
    Check that the first ``*`` of ``pattern`` is the whole segment at index 2.

    That is where consumers read the account id back from, so ``deposit.*`` or
    ``*.laos.*`` would publish keys whose account id logs as ``unknown``.

    Raises:
        ValueError: If the account segment is not a ``*`` wildcard.
    """
    segments = pattern.split(".")
    leading = segments[:ACCOUNT_ID_SEGMENT]

    if (
        len(segments) <= ACCOUNT_ID_SEGMENT
        or segments[ACCOUNT_ID_SEGMENT] != SINGLE_WORD_WILDCARD
        or any(SINGLE_WORD_WILDCARD in segment for segment in leading)
    ):
        raise ValueError(
            f"Routing key pattern must have '*' as segment {ACCOUNT_ID_SEGMENT} "
            f"(e.g. 'deposit.laos.*'), got: {pattern!r}"
        )

    return pattern


def topic_for_account(pattern: str, account_id: str) -> str:
    """
    Build a concrete routing key by replacing the ``*`` account segment of ``pattern``.

    Example:
        >>> topic_for_account("deposit.laos.*", "00120010010106019")
        'deposit.laos.00120010010106019'

    Raises:
        ValueError: If the pattern has no ``*`` at segment 2 or the account id
            is empty or contains a ``.``.
    """
    validate_account_pattern(pattern)

    if not account_id or "." in account_id:
        raise ValueError(f"Account id must be a non-empty single segment, got: {account_id!r}")

    return pattern.replace(SINGLE_WORD_WILDCARD, account_id, 1)


def account_id_from_routing_key(routing_key: str | None) -> str:
    """Return the account id segment of a routing key, or ``"unknown"``."""
    parts = (routing_key or "").split(".")
    if len(parts) > ACCOUNT_ID_SEGMENT:
        return parts[ACCOUNT_ID_SEGMENT]
    return UNKNOWN_ACCOUNT_ID


def topic_matches(pattern: str, routing_key: str) -> bool:
    """
    Check a routing key against a binding pattern using topic exchange rules.

    ``*`` matches exactly one word, ``#`` matches zero or more words.
    """
    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words

    head, rest = pattern[0], pattern[1:]

    if head == MULTI_WORD_WILDCARD:
        # try every possible number of consumed words, including zero
        return any(_match(rest, words[i:]) for i in range(len(words) + 1))

    if not words:
        return False

    if head == SINGLE_WORD_WILDCARD or head == words[0]:
        return _match(rest, words[1:])

    return False
