"""
Mod helpers for challenge qualification.

Scores from the osu! API list their mods as acronyms ("HD", "DT", ...). A
challenge map either requires an exact mod combination or allows free mod
selection on top of a required base.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

# Mods that imply another mod for qualification purposes
MOD_ALIASES = {
    "NC": "DT",
    "PF": "SD",
}

# Mods that never affect whether a score qualifies
NEUTRAL_MODS = frozenset({"SD"})

# Canonical display order
MOD_ORDER = ["EZ", "NF", "HT", "HR", "SD", "DT", "HD", "FL", "SO", "TD"]


def parse_mods(raw) -> FrozenSet[str]:
    """Parse a mod string ("HDHR") or an iterable of acronyms into a set."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.strip().upper()
        if raw in ("", "NM", "NOMOD"):
            return frozenset()
        return frozenset(raw[i:i + 2] for i in range(0, len(raw), 2))
    return frozenset(str(mod).upper() for mod in raw)


def normalise_mods(mods: Iterable[str]) -> FrozenSet[str]:
    """Resolve aliases so NC counts as DT and PF counts as SD."""
    return frozenset(MOD_ALIASES.get(mod.upper(), mod.upper()) for mod in mods)


def format_mods(mods: Iterable[str]) -> str:
    """Join mods in canonical order, unknown mods last."""
    mods = set(mods)
    ordered = [mod for mod in MOD_ORDER if mod in mods]
    ordered.extend(sorted(mods.difference(MOD_ORDER)))
    return "".join(ordered)


@dataclass(frozen=True)
class ModRequirement:
    """Mod predicate attached to a challenge map."""
    required: FrozenSet[str] = field(default_factory=frozenset)
    freemod: bool = False

    @classmethod
    def parse(cls, raw: str, freemod: bool = False) -> "ModRequirement":
        return cls(required=normalise_mods(parse_mods(raw)), freemod=freemod)

    def is_satisfied_by(self, mods: Iterable[str]) -> bool:
        applied = normalise_mods(mods)
        if not self.required.issubset(applied):
            return False
        if self.freemod:
            return True
        return applied - NEUTRAL_MODS == self.required - NEUTRAL_MODS

    @property
    def friendly(self) -> str:
        if self.freemod:
            if not self.required:
                return "Freemod :)"
            return f"{format_mods(self.required)} + Freemod"
        return format_mods(self.required) or "NM"

    def to_storage(self) -> str:
        return format_mods(self.required)
