from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, List, Optional


def clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, x))


@dataclass(frozen=True)
class Ideology:
    economic: float = 50.0      # 0..100 (left..right)
    governance: float = 50.0    # 0..100 (liberal..authoritarian)

    def distance(self, other: "Ideology") -> float:
        return ((self.economic - other.economic) ** 2 + (self.governance - other.governance) ** 2) ** 0.5

    def drifted(self, d_economic: float, d_governance: float) -> "Ideology":
        return Ideology(clamp(self.economic + d_economic), clamp(self.governance + d_governance))


@dataclass(frozen=True)
class Seat:
    code: str
    name: str
    state: str


@dataclass(frozen=True)
class Demographics:
    seat_code: str
    total_electorate: int
    # Percent (0..100) of the electorate per ethnic group.
    ethnic_shares: Dict[str, float] = field(default_factory=dict)
    urban_rural: Optional[str] = None

    def share_of(self, ethnicity: Optional[str]) -> float:
        if not ethnicity:
            return 0.0
        return float(self.ethnic_shares.get(ethnicity, 0.0))


@dataclass(frozen=True)
class Affiliation:
    affiliation_id: str
    name: str
    ethnicity: Optional[str]
    base_ideology: Ideology = field(default_factory=Ideology)
    home_state: Optional[str] = None


@dataclass(frozen=True)
class HistoryEntry:
    date: date
    event: str


@dataclass
class Character:
    character_id: str
    name: str
    affiliation_id: str
    ethnicity: Optional[str]
    state: str                  # home state
    current_seat_code: str
    date_of_birth: date
    charisma: float = 50.0
    influence: float = 50.0
    recognition: float = 50.0
    ideology: Ideology = field(default_factory=Ideology)
    is_alive: bool = True
    is_mp: bool = False
    is_player: bool = False
    history: List[HistoryEntry] = field(default_factory=list)

    def age_on(self, on: date) -> int:
        return age_on(self.date_of_birth, on)

    def with_history(self, on: date, event: str, **changes) -> "Character":
        """Copy with `changes` applied and one more history line (history is append-only)."""
        return replace(self, history=self.history + [HistoryEntry(on, event)], **changes)


def age_on(dob: date, on: date) -> int:
    """Completed calendar years between `dob` and `on`."""
    return on.year - dob.year - ((on.month, on.day) < (dob.month, dob.day))
