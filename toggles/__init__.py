"""toggles: shared named boolean cells read through nouns and changed with verbs."""

from .nouns import PREDICATES, Noun, create_cell, create_view
from .verbs import (
    NEGATIVE_VERBS,
    POSITIVE_VERBS,
    TOGGLE,
    VERB_NAMES,
    VERB_PAIRS,
    UnknownVerbError,
    VerbKind,
    Verbs,
    apply_verb,
    resolve_verb,
    set_noun_value,
    verbs,
)
from .registry import (
    EntrySnapshot,
    ToggleNotFoundError,
    ToggleRegistry,
    get_default_registry,
)
from .binding import (
    LOCAL,
    Local,
    NounNameConflictError,
    Scope,
    Shared,
    Toggles,
    create_toggle,
    parse_toggle_args,
    use_toggles,
)
from .config import Mode, ToggleConfig, get_default_config
from .result import Err, Ok, Result, first_error

__all__ = [
    # Nouns
    "PREDICATES", "Noun", "create_cell", "create_view",
    # Verbs
    "NEGATIVE_VERBS", "POSITIVE_VERBS", "TOGGLE", "VERB_NAMES", "VERB_PAIRS",
    "UnknownVerbError", "VerbKind", "Verbs", "apply_verb", "resolve_verb",
    "set_noun_value", "verbs",
    # Registry
    "EntrySnapshot", "ToggleNotFoundError", "ToggleRegistry", "get_default_registry",
    # Binding
    "LOCAL", "Local", "NounNameConflictError", "Scope", "Shared", "Toggles",
    "create_toggle", "parse_toggle_args", "use_toggles",
    # Config
    "Mode", "ToggleConfig", "get_default_config",
    # Result
    "Ok", "Err", "Result", "first_error",
]
