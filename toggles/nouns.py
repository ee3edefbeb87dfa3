"""Nouns: named read-only views over a single boolean cell.

A noun answers every predicate in the predicate table. Positive predicates
(``is_open``, ``is_visible``, ``has_started``) read the cell directly;
negative predicates (``is_closed``, ``is_hidden``, ``has_ended``) read its
negation:

    >>> noun, setter = create_cell(False, name="modal")
    >>> noun.is_open, noun.is_closed
    (False, True)
    >>> setter(True)
    >>> noun.is_open, noun.is_closed
    (True, False)

The setter is never reachable from the noun itself. It is recorded in a
private weak mapping and handed out by :func:`setter_for`, which is how the
verbs in :mod:`toggles.verbs` mutate a noun they are given.
"""

from __future__ import annotations

import uuid
import weakref
from collections.abc import Callable, Mapping
from types import MappingProxyType

Getter = Callable[[], bool]
Setter = Callable[[bool], None]

# ---------------------------------------------------------------------------
# Predicate table
# ---------------------------------------------------------------------------

_POSITIVE_STATES = (
    "active",
    "open",
    "shown",
    "visible",
    "on",
    "checked",
    "enabled",
    "expanded",
    "activated",
    "connected",
    "focused",
    "mounted",
    "revealed",
    "locked",
    "subscribed",
)
_NEGATIVE_STATES = (
    "closed",
    "hidden",
    "off",
    "unchecked",
    "disabled",
    "collapsed",
    "deactivated",
    "disconnected",
    "blurred",
    "concealed",
    "unlocked",
)
# Only the first has-state reads the cell directly.
_HAS_STATES = ("started", "ended")


def _build_predicates() -> dict[str, bool]:
    table: dict[str, bool] = {}
    table.update((f"is_{s}", True) for s in _POSITIVE_STATES)
    table.update((f"is_{s}", False) for s in _NEGATIVE_STATES)
    table.update((f"has_{s}", i == 0) for i, s in enumerate(_HAS_STATES))
    return table


PREDICATES: Mapping[str, bool] = MappingProxyType(_build_predicates())
"""Predicate name -> polarity. ``True`` reads the cell, ``False`` its negation."""


# ---------------------------------------------------------------------------
# Noun
# ---------------------------------------------------------------------------


class Noun:
    """A named view exposing one boolean through every predicate in PREDICATES.

    Nouns own no state. Each predicate is recomputed from the getter on every
    access, so a reading always reflects the current value of the cell.
    """

    __slots__ = ("_name", "_get", "__weakref__")

    def __init__(self, name: str, get_active: Getter) -> None:
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_get", get_active)

    @property
    def name(self) -> str:
        return self._name

    def read(self, predicate: str) -> bool | None:
        """Return the reading for ``predicate``, or None if it is not a predicate."""
        polarity = PREDICATES.get(predicate)
        if polarity is None:
            return None
        active = self._get()
        return active if polarity else not active

    def as_dict(self) -> dict[str, bool]:
        """Current reading of every predicate."""
        active = self._get()
        return {p: (active if polarity else not active) for p, polarity in PREDICATES.items()}

    def __setattr__(self, attr: str, value: object) -> None:
        raise AttributeError(f"Noun {self._name!r} is read-only; use a verb to change it")

    def __delattr__(self, attr: str) -> None:
        raise AttributeError(f"Noun {self._name!r} is read-only")

    def __repr__(self) -> str:
        return f"Noun(name={self._name!r}, is_active={self._get()})"


def _predicate_property(predicate: str, polarity: bool) -> property:
    def fget(self: Noun) -> bool:
        active = self._get()
        return active if polarity else not active

    fget.__name__ = predicate
    return property(fget, doc=f"{'Reads' if polarity else 'Negates'} the underlying cell.")


for _predicate, _polarity in PREDICATES.items():
    setattr(Noun, _predicate, _predicate_property(_predicate, _polarity))
del _predicate, _polarity


# ---------------------------------------------------------------------------
# Construction and the setter capability
# ---------------------------------------------------------------------------

_SETTERS: weakref.WeakKeyDictionary[Noun, Setter] = weakref.WeakKeyDictionary()


def create_view(name: str, get_active: Getter, set_active: Setter) -> Noun:
    """Build a noun over the cell that ``get_active``/``set_active`` close over.

    Two views built from the same accessor pair read identically; views built
    from different pairs never share state.
    """
    noun = Noun(name, get_active)
    _SETTERS[noun] = set_active
    return noun


def setter_for(noun: object) -> Setter | None:
    """Return the mutation capability recorded for ``noun``, if any."""
    if not isinstance(noun, Noun):
        return None
    return _SETTERS.get(noun)


def random_name() -> str:
    return uuid.uuid4().hex[:6]


def create_cell(
    initial: bool = False,
    name: str | None = None,
    on_change: Callable[[], None] | None = None,
) -> tuple[Noun, Setter]:
    """Create a standalone cell and return ``(view, setter)``.

    ``on_change`` is called after every write, whether or not the value
    actually changed.
    """
    state = [bool(initial)]

    def get_active() -> bool:
        return state[0]

    def set_active(value: bool) -> None:
        state[0] = bool(value)
        if on_change is not None:
            on_change()

    noun = create_view(name if name is not None else random_name(), get_active, set_active)
    return noun, set_active
