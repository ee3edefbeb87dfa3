"""Shared toggle registry: reference-counted, time-boxed boolean cells.

Independent call sites that ask for the same key get the same noun back, so
a toggle opened in one place reads as open everywhere. Each entry keeps:

- the current state and the value it was first created with,
- the change observers subscribed to it,
- a reference count, and the time it was last touched.

An entry is evicted by the periodic sweep once nobody references it and it
has sat idle for longer than the TTL. Referenced entries are never evicted,
however old.

Everything here is synchronous and expects single-threaded use. The sweep
runs as an asyncio timer callback, so it interleaves with other work on the
loop but never runs in the middle of a registry call.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import traceback
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .config import (
    DEFAULT_MAX_NOTIFY_DEPTH,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
    DEFAULT_TTL_SECONDS,
    ToggleConfig,
    get_default_config,
)
from .nouns import Noun, create_view
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

Callback = Callable[[], None]
Unsubscribe = Callable[[], None]

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


class ToggleNotFoundError(KeyError):
    """Raised when subscribing to (or inspecting) a key that was never created."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass
class _ToggleEntry:
    key: str
    state: bool
    initial_value: bool
    origin: str
    last_accessed: float
    ref_count: int = 0
    # dict as an insertion-ordered set
    subscribers: dict[Callback, None] = field(default_factory=dict)
    depth: int = 0
    noun: Noun | None = None


@dataclass(frozen=True)
class EntrySnapshot:
    """Point-in-time copy of an entry, safe to hand out."""

    key: str
    state: bool
    initial_value: bool
    ref_count: int
    subscriber_count: int
    last_accessed: float
    origin: str

    def to_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "state": self.state,
            "initial_value": self.initial_value,
            "ref_count": self.ref_count,
            "subscriber_count": self.subscriber_count,
            "last_accessed": self.last_accessed,
            "origin": self.origin,
        }


def _call_site() -> str:
    """Describe the innermost stack frame outside this package."""
    for frame in reversed(traceback.extract_stack()):
        if not os.path.abspath(frame.filename).startswith(_PACKAGE_DIR + os.sep):
            return f'File "{frame.filename}", line {frame.lineno}, in {frame.name}'
    return "<unknown>"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToggleRegistry:
    """Process-wide map from string key to a shared boolean cell.

    The registry does not start its eviction timer by itself. Call
    :meth:`start` from code running on an event loop (or pass the loop), and
    :meth:`destroy` on shutdown.
    """

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_TTL_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        max_notify_depth: int = DEFAULT_MAX_NOTIFY_DEPTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self.max_notify_depth = max_notify_depth
        self._clock = clock
        self._entries: dict[str, _ToggleEntry] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._destroyed = False

    @classmethod
    def from_config(cls, config: ToggleConfig) -> ToggleRegistry:
        return cls(
            ttl=config.ttl_seconds,
            sweep_interval=config.sweep_interval_seconds,
            max_notify_depth=config.max_notify_depth,
        )

    # ─── Entries ──────────────────────────────────────────

    def get(self, key: str, initial_value: bool = False) -> Noun:
        """Return the noun for ``key``, creating the entry if needed.

        A later call with a different ``initial_value`` keeps the existing
        state and logs the conflict with both call sites.
        """
        initial_value = bool(initial_value)
        entry = self._entries.get(key)
        if entry is None:
            entry = _ToggleEntry(
                key=key,
                state=initial_value,
                initial_value=initial_value,
                origin=_call_site(),
                last_accessed=self._clock(),
            )
            entry.noun = create_view(key, self._reader(entry), self._writer(entry))
            self._entries[key] = entry
            logger.debug("Created toggle %r (initial=%s)", key, initial_value)
        elif entry.initial_value != initial_value:
            logger.error(
                'Shared toggle "%s" initialized with conflicting values!\n'
                "First initialization: %s\n%s\n\n"
                "Second initialization: %s\n%s",
                key,
                entry.initial_value,
                entry.origin,
                initial_value,
                _call_site(),
            )

        entry.last_accessed = self._clock()
        assert entry.noun is not None
        return entry.noun

    def _reader(self, entry: _ToggleEntry) -> Callable[[], bool]:
        def get_active() -> bool:
            return entry.state

        return get_active

    def _writer(self, entry: _ToggleEntry) -> Callable[[bool], None]:
        def set_active(value: bool) -> None:
            if entry.depth >= self.max_notify_depth:
                logger.error(
                    "Toggle %r was set %d times from inside its own change "
                    "observers; ignoring set(%s) to stop the recursion",
                    entry.key,
                    entry.depth,
                    bool(value),
                )
                return
            entry.state = bool(value)
            entry.depth += 1
            try:
                for callback in tuple(entry.subscribers):
                    # Removed earlier in this same fan-out.
                    if callback not in entry.subscribers:
                        continue
                    callback()
            finally:
                entry.depth -= 1

        return set_active

    def acquire(self, key: str) -> None:
        """Add a reference. Unknown keys are ignored."""
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.ref_count += 1
        entry.last_accessed = self._clock()

    def release(self, key: str) -> None:
        """Drop a reference, never going below zero. Unknown keys are ignored."""
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.ref_count = max(0, entry.ref_count - 1)
        entry.last_accessed = self._clock()

    def subscribe(self, key: str, callback: Callback) -> Unsubscribe:
        """Call ``callback`` after every write to ``key``.

        Returns a function that removes exactly this callback. It is safe to
        call more than once, after the entry is gone, and during fan-out.

        Raises:
            ToggleNotFoundError: If ``key`` was never created with :meth:`get`.
        """
        entry = self._entries.get(key)
        if entry is None:
            raise ToggleNotFoundError(f'Toggle "{key}" not found in shared registry')
        entry.subscribers[callback] = None

        def unsubscribe() -> None:
            entry.subscribers.pop(callback, None)

        return unsubscribe

    def has(self, key: str) -> bool:
        return key in self._entries

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> Iterator[str]:
        return iter(tuple(self._entries))

    def ref_count(self, key: str) -> int:
        entry = self._entries.get(key)
        if entry is None:
            raise ToggleNotFoundError(f'Toggle "{key}" not found in shared registry')
        return entry.ref_count

    def snapshot(self, key: str) -> EntrySnapshot | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return EntrySnapshot(
            key=entry.key,
            state=entry.state,
            initial_value=entry.initial_value,
            ref_count=entry.ref_count,
            subscriber_count=len(entry.subscribers),
            last_accessed=entry.last_accessed,
            origin=entry.origin,
        )

    def snapshots(self) -> tuple[EntrySnapshot, ...]:
        return tuple(s for key in self._entries if (s := self.snapshot(key)) is not None)

    # ─── Eviction ─────────────────────────────────────────

    def sweep(self) -> list[str]:
        """Evict every unreferenced entry idle for longer than the TTL."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.ref_count == 0 and now - entry.last_accessed > self.ttl
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d idle toggle(s): %s", len(expired), expired)
        return expired

    @property
    def running(self) -> bool:
        return (
            self._timer is not None
            and self._loop is not None
            and not self._loop.is_closed()
        )

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Schedule the periodic sweep on ``loop`` (default: the running loop).

        Without an event loop the sweep stays off; :meth:`sweep` can still
        be called directly.

        Raises:
            RuntimeError: If the registry has been destroyed.
        """
        if self._destroyed:
            raise RuntimeError("Cannot start a destroyed ToggleRegistry")
        if self._loop is not None and self._loop.is_closed():
            # Left over from a loop that has since shut down.
            self.stop()
        if self._timer is not None:
            return
        if loop is None:
            match _running_loop():
                case Ok(running):
                    loop = running
                case Err(e):
                    logger.debug("Eviction sweep not scheduled: %s", e)
                    return
        self._loop = loop
        self._schedule()
        logger.debug("Eviction sweep scheduled every %ss", self.sweep_interval)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._loop = None

    def _schedule(self) -> None:
        assert self._loop is not None
        self._timer = self._loop.call_later(self.sweep_interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.sweep()
        if self._loop is not None and not self._loop.is_closed():
            self._schedule()

    def clear(self) -> None:
        """Drop every entry and restart the sweep timer. Meant for test isolation."""
        loop = self._loop
        if loop is not None and loop.is_closed():
            loop = None
        self.stop()
        self._entries.clear()
        if not self._destroyed:
            self.start(loop)

    def destroy(self) -> None:
        """Drop every entry and stop the sweep for good."""
        self.stop()
        self._entries.clear()
        self._destroyed = True


def _running_loop() -> Result[asyncio.AbstractEventLoop, RuntimeError]:
    try:
        return Ok(asyncio.get_running_loop())
    except RuntimeError as e:
        return Err(e)


_default_registry: ToggleRegistry | None = None


def get_default_registry() -> ToggleRegistry:
    """Return the process-wide registry, building it from the environment on first use.

    The returned registry is not started; the application decides when.
    """
    global _default_registry
    if _default_registry is None:
        _default_registry = ToggleRegistry.from_config(get_default_config())
    return _default_registry
