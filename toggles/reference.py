"""Markdown reference for the predicate and verb vocabulary.

Run: python -m toggles.reference > VOCABULARY.md
"""

import os
from typing import Any

import jinja2

from .nouns import PREDICATES
from .verbs import TOGGLE, VERB_NAMES, VERB_PAIRS

_TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
_ENV = jinja2.Environment(
    loader=jinja2.FileSystemLoader(_TEMPLATE_DIR),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render(template_name: str, **kwargs: Any) -> str:
    """Render a Jinja2 template with the given keyword arguments."""
    template = _ENV.get_template(template_name)
    return template.render(**kwargs)


def generate_reference() -> str:
    return render(
        "reference.md.j2",
        predicates=list(PREDICATES.items()),
        pairs=list(VERB_PAIRS.items()),
        toggle=TOGGLE,
        verb_count=len(VERB_NAMES),
    )


if __name__ == "__main__":
    print(generate_reference())
