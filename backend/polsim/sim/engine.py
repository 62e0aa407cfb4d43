from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Any, Dict, List, Literal, Optional

from loguru import logger

from ..config import DEFAULT_SPEED_MS, EVENT_CHANCE
from ..errors import ActionRejectedError
from .agent import Character, clamp
from .ai import determine_ai_action
from .election import ElectionOutcome, apply_election, run_general_election
from .events import apply_event_effects, check_for_game_event
from .influence import affiliation_to_party, best_candidate, compute_stronghold_map, party_of, projected_control
from .lifecycle import RestructuringResult, form_alliance, propose_restructuring, secede_affiliation
from .naming import generate_character_name
from .parliament import (
    CHIEF_EXECUTIVE_TITLE,
    ConfidenceVoteResult,
    SpeakerVoteResult,
    character_role,
    cleanup_government_vacancies,
    cleanup_political_vacancies,
    conduct_bill_vote,
    conduct_speaker_vote,
    conduct_vote_of_confidence,
    perform_security_crackdown,
)
from .population import create_successor, populate_world_characters, should_character_die
from .world import (
    AllianceType,
    Bill,
    BillVoteResult,
    ContestedSeat,
    GameEvent,
    LogEntry,
    LogType,
    Party,
    StateBranch,
    VoteDirection,
    World,
)

Phase = Literal["game", "election-results", "speaker-election", "bill-vote"]
ActionType = Literal[
    "promoteParty", "addressLocal", "strengthenLocalBranch", "organizeStateRally", "undermineRival",
]

# action -> (influence, recognition)
ACTION_GAINS: Dict[str, tuple] = {
    "promoteParty": (5, 2),
    "addressLocal": (8, 4),
    "strengthenLocalBranch": (5, 0),
    "organizeStateRally": (10, 5),
}
BRANCH_EXECUTIVES = 2


def add_log(world: World, title: str, description: str, log_type: LogType) -> World:
    entry = LogEntry(len(world.log) + 1, world.current_date, title, description, log_type)
    return replace(world, log=world.log + [entry])


@dataclass(frozen=True)
class TickOutcome:
    world: World
    event: Optional[GameEvent] = None
    deaths: List[str] = field(default_factory=list)
    successors: List[str] = field(default_factory=list)
    government_collapsed: bool = False
    election: Optional[ElectionOutcome] = None


def _seat_affiliation_counts(characters: List[Character]) -> Dict[str, Dict[str, int]]:
    counts: Dict[str, Dict[str, int]] = {}
    for c in characters:
        if c.is_alive:
            per_seat = counts.setdefault(c.current_seat_code, {})
            per_seat[c.affiliation_id] = per_seat.get(c.affiliation_id, 0) + 1
    return counts


def advance_day(
    world: World,
    rng: random.Random,
    player_character_id: Optional[str] = None,
    event_chance: float = EVENT_CHANCE,
) -> TickOutcome:
    """One simulated day. Steps run in a fixed order and each leaves the world consistent."""
    today = world.current_date + timedelta(days=1)
    world = replace(world, current_date=today)

    if today.day == 1:
        event = check_for_game_event(today, world, rng, event_chance)
        if event is not None:
            return TickOutcome(world, event=event)

    aff_to_party = affiliation_to_party(world.parties)
    parties = {p.party_id: p for p in world.parties}
    seat_counts = _seat_affiliation_counts(world.characters)

    changed = False
    died: List[Character] = []
    updated: List[Character] = []
    for char in world.characters:
        if not char.is_alive:
            updated.append(char)
            continue

        if should_character_die(char, today, rng):
            changed = True
            dead = replace(char, is_alive=False)
            died.append(dead)
            updated.append(dead)
            world = add_log(world, "Obituary",
                            f"{char.name} has passed away at the age of {char.age_on(today)}.", LogType.DEATH)
            continue

        if char.is_player or char.character_id == player_character_id:
            updated.append(char)
            continue

        role = character_role(char.character_id, parties.get(party_of(char, aff_to_party)))
        acted = determine_ai_action(char, role, world, seat_counts, rng)
        if acted is not char:
            changed = True
        updated.append(acted)

    successors = [create_successor(d, today, rng, i) for i, d in enumerate(died)]
    world = replace(world, characters=updated + successors)
    if died:
        logger.debug("{}: {} deaths", today.isoformat(), len(died))

    collapsed = False
    if changed or successors:
        living = world.living_ids()
        cleaned_parties = cleanup_political_vacancies(world.parties, living)
        government = world.government
        if government is not None:
            government = cleanup_government_vacancies(government, living)
            if government.chief_executive_id is None:
                collapsed = True
                government = None
        world = replace(world, parties=cleaned_parties, government=government)
        if collapsed:
            world = add_log(world, "Government Crisis",
                            f"The {CHIEF_EXECUTIVE_TITLE} position is vacant. Government has collapsed.",
                            LogType.MAJOR_EVENT)
            logger.info("Government collapsed on {}", today.isoformat())

    tick = TickOutcome(
        world,
        deaths=[d.character_id for d in died],
        successors=[s.character_id for s in successors],
        government_collapsed=collapsed,
    )

    if today >= world.next_election_date:
        outcome = run_general_election(world, rng)
        world = apply_election(world, outcome)
        world = add_log(world, "General Election",
                        f"The {today.year} General Election has concluded.", LogType.ELECTION)
        return replace(tick, world=world, election=outcome)
    return tick


def seed_party_structures(world: World) -> World:
    """Leaders, state branches and contested seats for freshly populated parties."""
    aff_to_party = affiliation_to_party(world.parties)
    parties: List[Party] = []
    for p in world.parties:
        members = sorted(
            (c for c in world.characters if c.is_alive and aff_to_party.get(c.affiliation_id) == p.party_id),
            key=lambda c: (-c.influence, -c.recognition, c.character_id),
        )
        ids = {c.character_id for c in members}
        leader = p.leader_id if p.leader_id in ids else (members[0].character_id if members else None)
        deputy = p.deputy_leader_id if p.deputy_leader_id in ids else next(
            (c.character_id for c in members if c.character_id != leader), None
        )
        branches: Dict[str, StateBranch] = {}
        for c in members:
            if c.character_id in (leader, deputy):
                continue
            b = branches.setdefault(c.state, StateBranch(c.state))
            if b.leader_id is None:
                b.leader_id = c.character_id
            elif len(b.executive_ids) < BRANCH_EXECUTIVES:
                b.executive_ids.append(c.character_id)
        parties.append(replace(p, leader_id=leader, deputy_leader_id=deputy,
                               state_branches=list(branches.values()), contested_seats={}))
    world = replace(world, parties=parties)

    allocated: List[Party] = []
    for p in world.parties:
        contested: Dict[str, ContestedSeat] = {}
        for code in world.seats:
            cand, _ = best_candidate(world, p, code, aff_to_party)
            if cand is not None:
                contested[code] = ContestedSeat(cand.character_id, cand.affiliation_id)
        allocated.append(replace(p, contested_seats=contested))
    world = replace(world, parties=allocated)
    return replace(world, stronghold_map=compute_stronghold_map(world))


def create_player_character(
    world: World,
    name: str,
    affiliation_id: str,
    seat_code: str,
    rng: random.Random,
) -> Character:
    if affiliation_id not in world.affiliations:
        raise ActionRejectedError(f"Unknown affiliation {affiliation_id}")
    if seat_code not in world.seats:
        raise ActionRejectedError(f"Unknown seat {seat_code}")
    aff = world.affiliations[affiliation_id]
    return Character(
        character_id=f"player-{rng.getrandbits(32):08x}",
        name=name.strip() or generate_character_name(aff.ethnicity, rng),
        affiliation_id=affiliation_id,
        ethnicity=aff.ethnicity,
        state=world.seats[seat_code].state,
        current_seat_code=seat_code,
        date_of_birth=date(1920, 1, 1),
        charisma=float(rng.randint(25, 74)),
        influence=float(rng.randint(25, 74)),
        recognition=float(rng.randint(25, 74)),
        ideology=aff.base_ideology,
        is_player=True,
    )


class Simulation:
    """Owns the committed world and the pause/phase state machine around it."""

    def __init__(
        self,
        world: World,
        seed: Optional[int] = None,
        player_character_id: Optional[str] = None,
        event_chance: float = EVENT_CHANCE,
    ):
        self.world = world
        self.rng = random.Random(seed)
        self.event_chance = event_chance
        self.player_character_id = player_character_id
        self.speed: Optional[int] = None
        self.phase: Phase = "game"
        self.active_event: Optional[GameEvent] = None
        self.speaker_candidate_ids: List[str] = []
        self.speaker_vote: Optional[SpeakerVoteResult] = None
        self.current_bill: Optional[Bill] = None
        self.bill_result: Optional[BillVoteResult] = None
        self.last_restructuring: Optional[RestructuringResult] = None

    @classmethod
    def new_game(
        cls,
        world: World,
        seed: Optional[int] = None,
        player: Optional[Dict[str, str]] = None,
        event_chance: float = EVENT_CHANCE,
    ) -> "Simulation":
        sim = cls(world, seed=seed, event_chance=event_chance)
        npcs = populate_world_characters(
            world.seats, world.demographics, world.parties, world.affiliations, world.current_date, sim.rng
        )
        characters = list(npcs)
        if player is not None:
            me = create_player_character(world, player.get("name", ""), player["affiliation_id"],
                                         player["seat_code"], sim.rng)
            characters.insert(0, me)
            sim.player_character_id = me.character_id
        sim.world = seed_party_structures(replace(world, characters=characters))
        if player is not None:
            seat = world.seats[player["seat_code"]]
            sim._log("Welcome", f"You have started your journey as a politician in {seat.name}, {seat.state}.",
                     LogType.PERSONAL)
        else:
            sim._log("Spectator Mode", "Observing the political landscape.", LogType.MAJOR_EVENT)
        logger.info("New game with {} characters", len(characters))
        return sim

    # --- derived state ---

    @property
    def is_running(self) -> bool:
        return self.speed is not None

    @property
    def player_character(self) -> Optional[Character]:
        return self.world.character(self.player_character_id)

    @property
    def player_party(self) -> Optional[Party]:
        me = self.player_character
        if me is None:
            return None
        return self.world.party(affiliation_to_party(self.world.parties).get(me.affiliation_id))

    def projected_control(self) -> Dict[str, Optional[str]]:
        return projected_control(self.world)

    # --- time control ---

    def play(self, speed: int = DEFAULT_SPEED_MS) -> bool:
        if self.active_event is not None or self.phase != "game":
            logger.debug("play() ignored: event or vote pending")
            return False
        self.speed = speed
        return True

    def pause(self) -> None:
        self.speed = None

    def tick(self) -> Optional[TickOutcome]:
        if not self.is_running:
            return None
        outcome = advance_day(self.world, self.rng, self.player_character_id, self.event_chance)
        self.world = outcome.world
        if outcome.event is not None:
            self.active_event = outcome.event
            self.pause()
        elif outcome.election is not None:
            self.speaker_candidate_ids = list(outcome.election.speaker_candidate_ids)
            self.speaker_vote = None
            self.phase = "election-results"
            self.pause()
        return outcome

    def advance(self, days: int) -> List[TickOutcome]:
        """Tick up to `days` times, stopping early when the loop pauses itself."""
        out: List[TickOutcome] = []
        for _ in range(days):
            t = self.tick()
            if t is None:
                break
            out.append(t)
        return out

    def acknowledge_event(self) -> Optional[GameEvent]:
        event = self.active_event
        if event is None:
            return None
        self.world = apply_event_effects(self.world, event)
        self.world = add_log(self.world, event.title, event.description, LogType.EVENT)
        self.active_event = None
        return event

    # --- election flow ---

    def force_election(self) -> None:
        """Schedule the general election for tomorrow."""
        self.world = replace(self.world, next_election_date=self.world.current_date + timedelta(days=1))

    def close_election_results(self) -> None:
        self._require(self.phase == "election-results", "No election results to close")
        self.phase = "speaker-election"

    def elect_speaker(self, player_vote_id: Optional[str] = None) -> SpeakerVoteResult:
        self._require(self.phase == "speaker-election", "No speaker election in progress")
        candidates = [c for c in (self.world.character(cid) for cid in self.speaker_candidate_ids) if c]
        me = self.player_character
        party = self.player_party if me is not None and me.is_alive and me.is_mp else None
        result = conduct_speaker_vote(
            self.world.election_results, self.world.parties, candidates,
            affiliation_to_party(self.world.parties),
            party.party_id if party else None, player_vote_id,
        )
        self.speaker_vote = result
        self.world = replace(self.world, speaker_id=result.winner_id)
        winner = self.world.character(result.winner_id)
        if winner is not None:
            self.world = replace(self.world, characters=[
                c.with_history(self.world.current_date, "Elected Speaker of Parliament.")
                if c.character_id == winner.character_id else c
                for c in self.world.characters
            ])
            self._log("Speaker Elected", f"{winner.name} has been elected as the new Speaker of Parliament.",
                      LogType.POLITICS)
        self.phase = "game"
        return result

    # --- parliament ---

    def call_vote_of_confidence(self, player_vote: Optional[VoteDirection] = None) -> ConfidenceVoteResult:
        gov = self.world.government
        self._require(gov is not None, "There is no government to test")
        result = conduct_vote_of_confidence(gov, self.world.characters, self.world.parties,
                                            self.player_character_id, player_vote)
        if result.passed:
            self._log("Vote of Confidence",
                      f"The government survived the vote of confidence ({result.votes_for} vs {result.votes_against}).",
                      LogType.POLITICS)
        else:
            self.world = replace(self.world, government=None)
            self._log("Government Collapse",
                      f"The government lost the vote of confidence ({result.votes_for} vs {result.votes_against}) "
                      "and has fallen.", LogType.MAJOR_EVENT)
        return result

    def propose_bill(self, bill: Bill) -> Bill:
        self._require(self.phase == "game", "Parliament is busy")
        party = self.player_party
        if bill.proposing_party_id is None and party is not None:
            bill = replace(bill, proposing_party_id=party.party_id)
        self.current_bill = bill
        self.bill_result = None
        self.phase = "bill-vote"
        self.pause()
        return bill

    def vote_on_bill(self, player_vote: Optional[VoteDirection] = None) -> BillVoteResult:
        self._require(self.phase == "bill-vote" and self.current_bill is not None, "No bill before Parliament")
        bill = self.current_bill
        result = conduct_bill_vote(bill, self.world.characters, self.world.parties, self.world.government,
                                   self.player_character_id, player_vote)
        self.bill_result = result
        self.phase = "game"
        if result.passed:
            self._log("Bill Passed", f"The {bill.title} has been passed by Parliament.", LogType.POLITICS)
        else:
            self._log("Bill Defeated", f"The {bill.title} failed to pass.", LogType.POLITICS)
        return result

    def security_crackdown(self) -> GameEvent:
        gov = self.world.government
        self._require(gov is not None, "Only a sitting government can order a crackdown")
        result = perform_security_crackdown(self.world.current_date, self.world.characters,
                                            self.world.parties, gov)
        self.world = replace(self.world, characters=result.characters, parties=result.parties)
        self.active_event = result.event
        self.pause()
        return result.event

    # --- player actions ---

    def perform_action(self, action: ActionType, payload: Optional[Dict[str, Any]] = None) -> Character:
        me = self.player_character
        self._require(me is not None and me.is_alive, "No living player character")
        seat = self.world.seats.get(me.current_seat_code)
        if action in ACTION_GAINS:
            d_inf, d_rec = ACTION_GAINS[action]
            updated = replace(me, influence=clamp(me.influence + d_inf), recognition=clamp(me.recognition + d_rec))
            self._replace_character(updated)
            self._log("Action", _ACTION_TEXT[action].format(seat=seat.name if seat else me.current_seat_code),
                      LogType.PERSONAL)
            return updated
        if action == "undermineRival":
            rival = self.world.party((payload or {}).get("party_id"))
            self._require(rival is not None, "Unknown rival party")
            self.world = replace(self.world, parties=[
                replace(p, unity=clamp(p.unity - 2)) if p.party_id == rival.party_id else p
                for p in self.world.parties
            ])
            self._log("Action", f"You criticized {rival.name}.", LogType.PERSONAL)
            return me
        raise ActionRejectedError(f"Unknown action {action}")

    def move_player(self, seat_code: str) -> Character:
        me = self.player_character
        self._require(me is not None and me.is_alive, "No living player character")
        self._require(seat_code in self.world.seats, f"Unknown seat {seat_code}")
        updated = replace(me, current_seat_code=seat_code)
        self._replace_character(updated)
        self._log("Movement", f"Moved to {self.world.seats[seat_code].name}.", LogType.PERSONAL)
        return updated

    # --- restructuring ---

    def propose_merger(
        self,
        mode: Literal["merge", "absorb"],
        party_ids: List[str],
        affiliation_ids: List[str],
        new_name: Optional[str] = None,
    ) -> RestructuringResult:
        me, party = self.player_character, self.player_party
        self._require(me is not None and party is not None, "No player party")
        result = propose_restructuring(self.world, mode, party.party_id, party_ids, affiliation_ids,
                                       self.rng, new_name=new_name, leader_id=me.character_id)
        self._commit_restructuring(result)
        if not result.report.is_empty:
            self._log("Party Restructuring", "Political landscape shifted due to new agreements.",
                      LogType.MAJOR_EVENT)
        return result

    def secede(
        self,
        target_party_id: Optional[str] = None,
        new_party_name: Optional[str] = None,
        focus: Optional[str] = None,
    ) -> RestructuringResult:
        me = self.player_character
        self._require(me is not None and me.is_alive, "No living player character")
        result = secede_affiliation(self.world, me.affiliation_id, me.character_id,
                                    target_party_id, new_party_name, focus)
        self._commit_restructuring(result)
        if result.report.is_empty:
            return result
        if target_party_id is not None:
            self._log("Defection", f"{me.name} led their faction to join a new party.", LogType.MAJOR_EVENT)
        else:
            self._log("New Party", f"{result.report.new_name} has been founded by {me.name}.", LogType.MAJOR_EVENT)
        return result

    def create_alliance(self, name: str, invited_party_ids: List[str], alliance_type: AllianceType) -> RestructuringResult:
        party = self.player_party
        self._require(party is not None, "No player party")
        result = form_alliance(self.world, party.party_id, invited_party_ids, name, alliance_type, self.rng)
        self._commit_restructuring(result)
        if result.report.resulting_alliance_id:
            self._log("Coalition Formed", f"The {name} has been established.", LogType.POLITICS)
        else:
            self._log("Coalition Failed", "Negotiations for a new coalition collapsed.", LogType.POLITICS)
        return result

    # --- internals ---

    def _commit_restructuring(self, result: RestructuringResult) -> None:
        self.last_restructuring = result
        self.world = result.world

    def _replace_character(self, updated: Character) -> None:
        self.world = replace(self.world, characters=[
            updated if c.character_id == updated.character_id else c for c in self.world.characters
        ])

    def _log(self, title: str, description: str, log_type: LogType) -> None:
        self.world = add_log(self.world, title, description, log_type)

    @staticmethod
    def _require(condition: bool, message: str) -> None:
        if not condition:
            raise ActionRejectedError(message)


_ACTION_TEXT = {
    "promoteParty": "You promoted your party in {seat}.",
    "addressLocal": "You addressed local concerns.",
    "strengthenLocalBranch": "You strengthened the local branch.",
    "organizeStateRally": "You organized a major state rally.",
}
