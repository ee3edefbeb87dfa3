"""Verbs: named operations that force a noun's cell on, off, or to its negation.

Every positive verb has a negative partner (``open``/``close``,
``show``/``hide``, ...). ``toggle`` inverts whatever ``is_active`` reads at
the moment it is applied.

Verbs never raise on a bad target. Passing something that is not a noun (or
a noun without a setter) logs a warning and leaves everything untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from enum import Enum
from types import MappingProxyType

from .nouns import Noun, setter_for

logger = logging.getLogger(__name__)

Verb = Callable[[object], None]

# ---------------------------------------------------------------------------
# Verb table
# ---------------------------------------------------------------------------

VERB_PAIRS: Mapping[str, str] = MappingProxyType(
    {
        "open": "close",
        "show": "hide",
        "turn_on": "turn_off",
        "check": "uncheck",
        "enable": "disable",
        "expand": "collapse",
        "activate": "deactivate",
        "start": "end",
        "connect": "disconnect",
        "focus": "blur",
        "mount": "unmount",
        "reveal": "conceal",
        "display": "dismiss",
        "lock": "unlock",
        "subscribe": "unsubscribe",
    }
)

TOGGLE = "toggle"

POSITIVE_VERBS: frozenset[str] = frozenset(VERB_PAIRS)
NEGATIVE_VERBS: frozenset[str] = frozenset(VERB_PAIRS.values())

VERB_NAMES: tuple[str, ...] = (*VERB_PAIRS, *VERB_PAIRS.values(), TOGGLE)
"""Every valid verb name, positives first, then negatives, then ``toggle``."""


class VerbKind(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    TOGGLE = "toggle"


class UnknownVerbError(ValueError):
    """Raised when a verb name is not in the verb table."""


def resolve_verb(name: str) -> VerbKind:
    if name in POSITIVE_VERBS:
        return VerbKind.POSITIVE
    if name in NEGATIVE_VERBS:
        return VerbKind.NEGATIVE
    if name == TOGGLE:
        return VerbKind.TOGGLE
    raise UnknownVerbError(f"Unknown verb {name!r}. Valid verbs: {', '.join(VERB_NAMES)}")


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def set_noun_value(noun: object, value: bool) -> bool:
    """Write ``value`` through the noun's setter. Returns False if there was none."""
    setter = setter_for(noun)
    if setter is None:
        logger.warning(
            "No setter on noun %s for %s action",
            noun.name if isinstance(noun, Noun) else None,
            "positive" if value else "negative",
        )
        return False
    setter(value)
    return True


def apply_verb(name: str, noun: object) -> None:
    """Apply the verb called ``name`` to ``noun``.

    Raises:
        UnknownVerbError: If ``name`` is not a verb. A bad ``noun`` never raises.
    """
    match resolve_verb(name):
        case VerbKind.POSITIVE:
            set_noun_value(noun, True)
        case VerbKind.NEGATIVE:
            set_noun_value(noun, False)
        case VerbKind.TOGGLE:
            # Sampled now, not when the call was queued.
            active = isinstance(noun, Noun) and noun.read("is_active") is True
            set_noun_value(noun, not active)


class Verbs(Mapping[str, Verb]):
    """Read-only namespace of verb functions: ``verbs.open(noun)``, ``verbs["close"]``."""

    __slots__ = ("_table",)

    def __init__(self) -> None:
        table: dict[str, Verb] = {}
        for verb_name in VERB_NAMES:
            table[verb_name] = _bind(verb_name)
        self._table = MappingProxyType(table)

    def __getitem__(self, name: str) -> Verb:
        return self._table[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __getattr__(self, name: str) -> Verb:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._table[name]
        except KeyError:
            raise AttributeError(f"{name!r} is not a verb") from None

    def __dir__(self) -> list[str]:
        return [*super().__dir__(), *self._table]

    def __repr__(self) -> str:
        return f"Verbs({', '.join(self._table)})"


def _bind(verb_name: str) -> Verb:
    def verb(noun: object) -> None:
        apply_verb(verb_name, noun)

    verb.__name__ = verb_name
    verb.__qualname__ = verb_name
    return verb


verbs = Verbs()
