"""
Label Normalizer.

Maps raw vision-service labels ("stop_sign", "Stop", "no-walk") onto one
canonical token per semantic category, so that label noise between
frames does not split one physical sign into several tracks.

Matching order:
1. Exact match against every alias (canonical tokens included)
2. Exact match against the short forms (bare colours, "sign", "signal")
3. First table entry where either string contains the other
4. The cleaned raw label unchanged

Short forms never take part in step 3. A one-word label such as
"green" would otherwise sit inside a pedestrian alias and be spoken as
a walk signal.

Step 3 depends on table order; entries with more specific aliases are
listed before the broader ones they contain ("do not walk" before
"walk signal").
"""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional, Sequence, Tuple


_SEPARATORS = re.compile(r"[\s\-_]+")


# canonical -> aliases (cleaned form). Order matters for substring matching.
DEFAULT_ALIAS_TABLE: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("do not walk", ("no walk", "dont walk", "don't walk", "red hand", "upraised hand",
                     "flashing hand")),
    ("crosswalk ahead", ("crosswalk", "pedestrian crossing", "zebra crossing")),
    ("stop sign ahead", ("stop sign", "stop", "octagon sign")),
    ("walk signal", ("walk", "walk sign", "walking person", "walking figure")),
    ("red light", ("traffic light red", "red traffic light", "red signal")),
    ("yellow light", ("traffic light yellow", "yellow traffic light", "amber light",
                      "amber signal")),
    ("green light", ("traffic light green", "green traffic light", "green signal")),
    ("hazard ahead", ("hazard", "danger", "obstacle", "construction", "warning sign")),
    ("speed limit sign", ("speed limit",)),
)

# Exact-only aliases. "sign" and "signal" are too generic to categorize
# and pass through as themselves.
DEFAULT_SHORT_FORMS: Dict[str, str] = {
    "red": "red light",
    "yellow": "yellow light",
    "amber": "yellow light",
    "green": "green light",
    "sign": "sign",
    "signal": "signal",
}


def clean_label(raw_label: str) -> str:
    """Lower-case, trim, and collapse whitespace/hyphens/underscores to one space."""
    return _SEPARATORS.sub(" ", raw_label.strip().lower()).strip()


class LabelNormalizer:
    """
    Pure label normalizer over a static alias table.

    Usage:
        normalizer = LabelNormalizer()
        normalizer.normalize("Stop_Sign")  # "stop sign ahead"
    """

    def __init__(
        self,
        alias_table: Optional[Sequence[Tuple[str, Sequence[str]]]] = None,
        short_forms: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            alias_table: Ordered (canonical, aliases) pairs. Defaults to
                DEFAULT_ALIAS_TABLE.
            short_forms: Exact-only aliases. Default to DEFAULT_SHORT_FORMS
                with the default table, and to none with a custom table.
        """
        table = DEFAULT_ALIAS_TABLE if alias_table is None else alias_table
        if short_forms is None:
            short_forms = DEFAULT_SHORT_FORMS if alias_table is None else {}

        # Ordered (cleaned key, canonical) pairs for the substring scan
        self._entries: Tuple[Tuple[str, str], ...] = tuple(
            (clean_label(key), canonical)
            for canonical, aliases in table
            for key in (canonical, *aliases)
        )

        self._exact: Dict[str, str] = {}
        for key, canonical in self._entries:
            # first definition of an alias wins
            self._exact.setdefault(key, canonical)
        for key, canonical in short_forms.items():
            self._exact.setdefault(clean_label(key), canonical)

    def normalize(self, raw_label: str) -> str:
        """Map a raw label to its canonical category."""
        cleaned = clean_label(raw_label)
        if not cleaned:
            return cleaned

        exact = self._exact.get(cleaned)
        if exact is not None:
            return exact

        for key, canonical in self._entries:
            if key in cleaned or cleaned in key:
                return canonical

        return cleaned

    def labels_equivalent(self, a: str, b: str) -> bool:
        return self.normalize(a) == self.normalize(b)

    @property
    def canonical_labels(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for _, canonical in self._entries:
            seen.setdefault(canonical, None)
        return tuple(seen)

    @classmethod
    def from_mapping(cls, table: Mapping[str, Sequence[str]]) -> LabelNormalizer:
        """Build from a {canonical: [aliases]} mapping (insertion order kept)."""
        return cls(tuple((canonical, tuple(aliases)) for canonical, aliases in table.items()))


_default = LabelNormalizer()


def normalize(raw_label: str) -> str:
    """Normalize with the default alias table."""
    return _default.normalize(raw_label)


def labels_equivalent(a: str, b: str) -> bool:
    """True when both labels normalize to the same canonical category."""
    return _default.labels_equivalent(a, b)
