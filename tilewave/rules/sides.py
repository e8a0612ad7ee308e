"""Side descriptors and the side-matching rule.

Every tile side is labelled with a descriptor of the form::

    <symmetry>-<name>[-u_<name>]

``symmetry`` is ``i`` (identical: matches another ``i`` side), or ``p``/``q``
(a mirrored pair: ``p`` matches ``q`` and vice versa). ``name`` identifies the
kind of edge, and two touching sides must carry the same name. The optional
unequal flag ``u_<name>`` forbids the side from touching a side called
``<name>``; two sides carrying the same unequal flag never touch either.

Examples: ``i-road``, ``p-wall``, ``q-wall``, ``i-edge-u_edge``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from tilewave.errors import InvalidRuleError
from tilewave.types import Direction, GridPos

# Direction utilities
DIRECTIONS: list[Direction] = ["N", "E", "S", "W"]
OPPOSITE_DIR: dict[Direction, Direction] = {"N": "S", "E": "W", "S": "N", "W": "E"}
DIR_OFFSETS: dict[Direction, GridPos] = {
    "N": (0, -1),
    "E": (1, 0),
    "S": (0, 1),
    "W": (-1, 0),
}

UNEQUAL_PREFIX = "u_"

_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


class Symmetry(Enum):
    """Symmetry tag of a side."""

    IDENTICAL = "i"
    MIRRORED_P = "p"
    MIRRORED_Q = "q"

    def matches(self, other: Symmetry) -> bool:
        """Return True if a side with this tag may face a side with ``other``."""
        if self is Symmetry.IDENTICAL:
            return other is Symmetry.IDENTICAL
        if self is Symmetry.MIRRORED_P:
            return other is Symmetry.MIRRORED_Q
        return other is Symmetry.MIRRORED_P


@dataclass(frozen=True)
class SideDescriptor:
    """A parsed side label.

    Attributes:
        symmetry: Which sides this one may face.
        name: The edge kind; touching sides must share it.
        unequal: Name of the edge kind this side refuses to touch, if any.
    """

    symmetry: Symmetry
    name: str
    unequal: str | None = None

    def __str__(self) -> str:
        text = f"{self.symmetry.value}-{self.name}"
        if self.unequal is not None:
            text += f"-{UNEQUAL_PREFIX}{self.unequal}"
        return text


def parse_side(text: str) -> SideDescriptor:
    """Parse a ``symmetry-name[-u_name]`` descriptor.

    Raises:
        InvalidRuleError: If ``text`` does not follow the grammar.
    """
    if not isinstance(text, str):
        raise InvalidRuleError(f"Side descriptor must be a string, got {text!r}")

    parts = text.strip().split("-")
    if len(parts) not in (2, 3):
        raise InvalidRuleError(
            f"Malformed side descriptor {text!r}: expected "
            "'<symmetry>-<name>' or '<symmetry>-<name>-u_<name>'"
        )

    try:
        symmetry = Symmetry(parts[0])
    except ValueError:
        raise InvalidRuleError(
            f"Unknown symmetry {parts[0]!r} in side descriptor {text!r}; "
            "expected one of 'i', 'p', 'q'"
        ) from None

    name = parts[1]
    if not _NAME_RE.match(name):
        raise InvalidRuleError(f"Invalid side name {name!r} in {text!r}")

    unequal = None
    if len(parts) == 3:
        flag = parts[2]
        if not flag.startswith(UNEQUAL_PREFIX):
            raise InvalidRuleError(
                f"Unknown flag {flag!r} in {text!r}; flags must start with "
                f"'{UNEQUAL_PREFIX}'"
            )
        unequal = flag[len(UNEQUAL_PREFIX) :]
        if not _NAME_RE.match(unequal):
            raise InvalidRuleError(f"Invalid unequal flag {flag!r} in {text!r}")

    return SideDescriptor(symmetry, name, unequal)


def sides_fit(a: SideDescriptor, b: SideDescriptor) -> bool:
    """Return True if side ``a`` may touch side ``b``.

    The relation is symmetric: ``sides_fit(a, b) == sides_fit(b, a)``.
    """
    if a.name != b.name:
        return False
    if not a.symmetry.matches(b.symmetry):
        return False
    if a.unequal is not None and a.unequal == b.name:
        return False
    if b.unequal is not None and b.unequal == a.name:
        return False
    # Two sides flagged against the same edge kind never touch
    return not (a.unequal is not None and a.unequal == b.unequal)
