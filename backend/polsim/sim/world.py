from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from .agent import Affiliation, Character, Demographics, Ideology, Seat

AllianceType = Literal["electoral_pact", "governing_coalition"]
VoteDirection = Literal["Aye", "Nay", "Abstain"]

# seat code -> affiliation id -> bonus weight (0..0.5)
StrongholdMap = Dict[str, Dict[str, float]]
# seat code -> winning party id
ElectionResults = Dict[str, str]
# seat code -> party id -> votes
DetailedResults = Dict[str, Dict[str, int]]


class LogType(str, Enum):
    EVENT = "event"
    MAJOR_EVENT = "major_event"
    POLITICS = "politics"
    ELECTION = "election"
    PERSONAL = "personal"
    DEATH = "death"


@dataclass
class StateBranch:
    state: str
    leader_id: Optional[str] = None
    executive_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContestedSeat:
    candidate_id: str
    allocated_affiliation_id: str


@dataclass
class Party:
    party_id: str
    name: str
    color: str
    unity: float = 60.0
    ideology: Ideology = field(default_factory=Ideology)
    ethnicity_focus: Optional[str] = None
    leader_id: Optional[str] = None
    deputy_leader_id: Optional[str] = None
    affiliation_ids: List[str] = field(default_factory=list)
    state_branches: List[StateBranch] = field(default_factory=list)
    contested_seats: Dict[str, ContestedSeat] = field(default_factory=dict)


@dataclass
class PoliticalAlliance:
    alliance_id: str
    name: str
    alliance_type: AllianceType
    member_party_ids: List[str] = field(default_factory=list)


@dataclass
class Government:
    chief_executive_id: Optional[str]
    cabinet_ids: List[str]
    ruling_party_ids: List[str]
    formed_on: date


@dataclass(frozen=True)
class Bill:
    bill_id: str
    title: str
    description: str = ""
    is_constitutional: bool = False
    proposing_party_id: Optional[str] = None
    position: Ideology = field(default_factory=Ideology)


@dataclass(frozen=True)
class BillVoteResult:
    passed: bool
    threshold: int
    tally: Dict[VoteDirection, int]
    breakdown: Dict[str, VoteDirection]


@dataclass(frozen=True)
class LogEntry:
    entry_id: int
    date: date
    title: str
    description: str
    type: LogType


@dataclass(frozen=True)
class EventEffect:
    target: Literal["party", "character"]
    target_id: str
    attribute: str
    delta: float


@dataclass(frozen=True)
class GameEvent:
    event_id: str
    date: date
    title: str
    description: str
    effects: Tuple[EventEffect, ...] = ()


@dataclass(frozen=True)
class SeatWinner:
    party_id: str
    candidate_id: str
    candidate_name: str


@dataclass(frozen=True)
class ElectionHistoryEntry:
    date: date
    results: ElectionResults
    detailed_results: DetailedResults
    seat_winners: Dict[str, SeatWinner]
    seat_candidates: Dict[str, Dict[str, Tuple[str, str]]]
    total_electorate: int
    total_votes: int
    total_seats: int
    parties: List[Party]
    alliances: List[PoliticalAlliance]


@dataclass
class World:
    """Everything the engine reads and writes.

    Operations never mutate a World they are given; they return a new one
    (usually via `dataclasses.replace`) and the simulation commits it.
    """
    current_date: date
    next_election_date: date
    seats: Dict[str, Seat]
    demographics: Dict[str, Demographics]
    affiliations: Dict[str, Affiliation]
    parties: List[Party]
    characters: List[Character] = field(default_factory=list)
    alliances: List[PoliticalAlliance] = field(default_factory=list)
    stronghold_map: StrongholdMap = field(default_factory=dict)
    election_results: ElectionResults = field(default_factory=dict)
    election_history: List[ElectionHistoryEntry] = field(default_factory=list)
    government: Optional[Government] = None
    speaker_id: Optional[str] = None
    log: List[LogEntry] = field(default_factory=list)

    def party(self, party_id: Optional[str]) -> Optional[Party]:
        if party_id is None:
            return None
        for p in self.parties:
            if p.party_id == party_id:
                return p
        return None

    def character(self, character_id: Optional[str]) -> Optional[Character]:
        if character_id is None:
            return None
        for c in self.characters:
            if c.character_id == character_id:
                return c
        return None

    def living(self) -> List[Character]:
        return [c for c in self.characters if c.is_alive]

    def living_ids(self) -> set:
        return {c.character_id for c in self.characters if c.is_alive}
