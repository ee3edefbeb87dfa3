"""Binding layer: lazily-created nouns scoped locally or to a shared namespace.

A :class:`Toggles` object hands out nouns by attribute or item access. The
first access to a name creates the noun; later accesses return the same one.

    >>> toggles, verbs = use_toggles(True, False)
    >>> verbs.toggle(toggles.menu)          # menu starts True
    >>> toggles.menu.is_open, toggles.sidebar.is_open
    (False, False)

With a namespace, nouns live in the shared registry under
``"<namespace>:<name>"``, so every ``Toggles`` bound to the same namespace
sees the same cells. The binding holds a reference on each key it touched
until :meth:`Toggles.close`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from types import TracebackType

from .config import ToggleConfig, get_default_config
from .nouns import Noun, create_cell, create_view
from .registry import ToggleRegistry, Unsubscribe, get_default_registry
from .verbs import VERB_NAMES, Verbs, verbs

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Local:
    """Cells private to one binding."""


@dataclass(frozen=True)
class Shared:
    """Cells shared through the registry under ``namespace``."""

    namespace: str

    def key(self, name: str) -> str:
        return f"{self.namespace}:{name}"


type Scope = Local | Shared

LOCAL = Local()


class NounNameConflictError(ValueError):
    """Raised in development mode when a noun is named after a verb."""


def parse_toggle_args(*args: object) -> tuple[Scope, tuple[bool, ...]]:
    """Split ``("ns", True, False)`` style arguments into a scope and initial values.

    A leading string is a namespace; everything else is an initial value.
    """
    match args:
        case (str(namespace), *rest):
            return Shared(namespace), tuple(bool(v) for v in rest)
        case _:
            return LOCAL, tuple(bool(v) for v in args)


# ---------------------------------------------------------------------------
# Toggles
# ---------------------------------------------------------------------------


class Toggles:
    """A family of nouns bound to one scope.

    Names that clash with this class's own attributes (``close``, ``scope``,
    ...) are still reachable with ``toggles["name"]``.
    """

    def __init__(
        self,
        scope: Scope = LOCAL,
        initial_values: Sequence[bool] = (),
        *,
        registry: ToggleRegistry | None = None,
        on_change: Callable[[], None] | None = None,
        config: ToggleConfig | None = None,
    ) -> None:
        self._scope = scope
        self._initial_values = tuple(bool(v) for v in initial_values)
        self._registry = registry
        self._on_change = on_change
        self._config = config if config is not None else get_default_config()
        self._nouns: dict[str, Noun] = {}
        self._local_states: dict[str, bool] = {}
        self._acquired: list[str] = []
        self._unsubscribers: list[Unsubscribe] = []
        self._closed = False

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def registry(self) -> ToggleRegistry:
        if self._registry is None:
            self._registry = get_default_registry()
        return self._registry

    def noun(self, name: str) -> Noun | None:
        """Return the noun called ``name``, creating it on first access.

        Returns None (production) or raises :class:`NounNameConflictError`
        (development) when ``name`` is also a verb.
        """
        if name in VERB_NAMES:
            message = f'Invalid noun name "{name}": noun names must not conflict with verb names'
            if not self._config.is_production:
                raise NounNameConflictError(message)
            logger.warning(message)
            return None

        cached = self._nouns.get(name)
        if cached is not None:
            return cached

        if self._closed:
            raise RuntimeError("Toggles binding is closed")

        index = len(self._nouns)
        initial = self._initial_values[index] if index < len(self._initial_values) else False

        match self._scope:
            case Local():
                noun = self._local_noun(name, initial)
            case Shared() as shared:
                noun = self._shared_noun(shared.key(name), initial)
            case other:
                raise TypeError(f"Unsupported scope: {other!r}")

        self._nouns[name] = noun
        return noun

    def _local_noun(self, name: str, initial: bool) -> Noun:
        self._local_states[name] = initial

        def get_active() -> bool:
            return self._local_states[name]

        def set_active(value: bool) -> None:
            self._local_states[name] = bool(value)
            self._notify()

        return create_view(name, get_active, set_active)

    def _shared_noun(self, key: str, initial: bool) -> Noun:
        registry = self.registry
        noun = registry.get(key, initial)
        registry.acquire(key)
        self._acquired.append(key)
        self._unsubscribers.append(registry.subscribe(key, self._notify))
        return noun

    def _notify(self) -> None:
        if self._on_change is not None and not self._closed:
            self._on_change()

    def __getattr__(self, name: str) -> Noun | None:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.noun(name)

    def __getitem__(self, name: str) -> Noun | None:
        return self.noun(name)

    def __contains__(self, name: object) -> bool:
        return name in self._nouns

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._nouns))

    def __len__(self) -> int:
        return len(self._nouns)

    def as_dict(self) -> dict[str, bool]:
        """``is_active`` of every noun created so far."""
        return {name: noun.read("is_active") is True for name, noun in self._nouns.items()}

    def close(self) -> None:
        """Unsubscribe and release every shared key this binding acquired."""
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self._acquired:
            registry = self.registry
            for key in self._acquired:
                registry.release(key)
            self._acquired.clear()

    def __enter__(self) -> Toggles:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Toggles(scope={self._scope!r}, nouns={list(self._nouns)})"


def use_toggles(
    *args: object,
    registry: ToggleRegistry | None = None,
    on_change: Callable[[], None] | None = None,
    config: ToggleConfig | None = None,
) -> tuple[Toggles, Verbs]:
    """``use_toggles("ns", True)`` -> ``(Toggles(Shared("ns"), (True,)), verbs)``."""
    scope, initial_values = parse_toggle_args(*args)
    toggles = Toggles(
        scope,
        initial_values,
        registry=registry,
        on_change=on_change,
        config=config,
    )
    return toggles, verbs


def create_toggle(initial: bool = False, *, on_change: Callable[[], None] | None = None) -> Noun:
    """A single anonymous local noun with a random name."""
    noun, _ = create_cell(initial, on_change=on_change)
    return noun
