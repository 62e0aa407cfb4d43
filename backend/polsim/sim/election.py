from __future__ import annotations

import copy
import random
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Mapping, Optional, Tuple

from loguru import logger

from ..config import ELECTION_INTERVAL_YEARS
from .agent import Character
from .influence import affiliation_to_party, best_candidate, compute_stronghold_map, residents_by_seat
from .parliament import determine_speaker_candidates, form_government
from .world import (
    DetailedResults,
    ElectionHistoryEntry,
    ElectionResults,
    Government,
    Party,
    SeatWinner,
    World,
)

DEFAULT_ELECTORATE = 10_000
# Score for a party with no living candidate in the seat (national brand, write-ins).
MINIMAL_PRESENCE_SCORE = 5.0
MULTI_ETHNIC_BASE_APPEAL = 40.0
ALLIANCE_MULTIPLIER = 1.1
RANDOM_FLOOR = 0.8
RANDOM_SPAN = 0.4


def add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29 February in a non-leap target year.
        return d.replace(year=d.year + years, day=28)


def allocate_votes(scores: Mapping[str, float], electorate: int) -> Dict[str, int]:
    """Split `electorate` proportionally to `scores` (largest remainder, exact total).

    Remainder ties go to the lowest party id.
    """
    total = sum(max(0.0, s) for s in scores.values())
    if total <= 0 or electorate <= 0:
        return {pid: 0 for pid in scores}

    quotas = {pid: max(0.0, s) / total * electorate for pid, s in scores.items()}
    votes = {pid: int(q) for pid, q in quotas.items()}
    leftover = electorate - sum(votes.values())
    for pid in sorted(quotas, key=lambda p: (-(quotas[p] - votes[p]), p))[:leftover]:
        votes[pid] += 1
    return votes


def pick_winner(votes: Mapping[str, int]) -> Optional[str]:
    """Most votes; ties go to the lowest party id."""
    if not votes:
        return None
    return sorted(votes, key=lambda pid: (-votes[pid], pid))[0]


def party_seat_score(
    world: World,
    party: Party,
    seat_code: str,
    aff_to_party: Mapping[str, str],
    in_alliance: bool,
    rng: random.Random,
    residents: Optional[List[Character]] = None,
) -> Tuple[float, Optional[Character]]:
    score = party.unity / 2

    cand, inf = best_candidate(world, party, seat_code, aff_to_party, residents)
    score += inf if cand is not None else MINIMAL_PRESENCE_SCORE

    demo = world.demographics.get(seat_code)
    if demo is not None and party.ethnicity_focus:
        score += demo.share_of(party.ethnicity_focus)
    else:
        score += MULTI_ETHNIC_BASE_APPEAL

    if in_alliance:
        score *= ALLIANCE_MULTIPLIER

    score *= RANDOM_FLOOR + rng.random() * RANDOM_SPAN
    return score, cand


@dataclass(frozen=True)
class SeatOutcome:
    seat_code: str
    electorate: int
    votes: Dict[str, int]
    winner_id: Optional[str]
    candidates: Dict[str, Tuple[str, str]]


def contest_seat(
    world: World,
    seat_code: str,
    aff_to_party: Mapping[str, str],
    allied_party_ids: set,
    rng: random.Random,
    residents: Optional[List[Character]] = None,
) -> SeatOutcome:
    demo = world.demographics.get(seat_code)
    electorate = demo.total_electorate if demo is not None else DEFAULT_ELECTORATE

    scores: Dict[str, float] = {}
    candidates: Dict[str, Tuple[str, str]] = {}
    for party in world.parties:
        score, cand = party_seat_score(
            world, party, seat_code, aff_to_party, party.party_id in allied_party_ids, rng, residents
        )
        scores[party.party_id] = score
        if cand is not None:
            candidates[party.party_id] = (cand.character_id, cand.name)

    votes = allocate_votes(scores, electorate)
    return SeatOutcome(seat_code, electorate, votes, pick_winner(votes), candidates)


@dataclass(frozen=True)
class ElectionOutcome:
    results: ElectionResults
    detailed_results: DetailedResults
    history_entry: ElectionHistoryEntry
    characters: List[Character]
    government: Optional[Government]
    speaker_candidate_ids: List[str]
    next_election_date: date


def run_general_election(world: World, rng: random.Random) -> ElectionOutcome:
    aff_to_party = affiliation_to_party(world.parties)
    allied = {pid for a in world.alliances for pid in a.member_party_ids}
    by_seat = residents_by_seat(world.characters)

    results: ElectionResults = {}
    detailed: DetailedResults = {}
    winners: Dict[str, SeatWinner] = {}
    seat_candidates: Dict[str, Dict[str, Tuple[str, str]]] = {}
    electorate_total = 0

    for seat_code in world.seats:
        outcome = contest_seat(world, seat_code, aff_to_party, allied, rng, by_seat.get(seat_code, []))
        electorate_total += outcome.electorate
        detailed[seat_code] = outcome.votes
        if outcome.candidates:
            seat_candidates[seat_code] = outcome.candidates
        if outcome.winner_id is None:
            continue
        results[seat_code] = outcome.winner_id
        cand_id, cand_name = outcome.candidates.get(outcome.winner_id, ("", "Unknown"))
        winners[seat_code] = SeatWinner(outcome.winner_id, cand_id, cand_name)

    elected = {w.candidate_id for w in winners.values() if w.candidate_id}
    characters: List[Character] = []
    for c in world.characters:
        if c.character_id in elected:
            c = c.with_history(world.current_date, f"Elected MP for {c.current_seat_code}.", is_mp=True)
        elif c.is_mp:
            c = replace(c, is_mp=False)
        characters.append(c)

    government, characters = form_government(
        results, world.parties, characters, world.alliances, world.current_date
    )
    speaker_candidates = determine_speaker_candidates(results, world.parties, characters, government)

    entry = ElectionHistoryEntry(
        date=world.current_date,
        results=dict(results),
        detailed_results={k: dict(v) for k, v in detailed.items()},
        seat_winners=dict(winners),
        seat_candidates=seat_candidates,
        total_electorate=electorate_total,
        total_votes=sum(sum(v.values()) for v in detailed.values()),
        total_seats=len(world.seats),
        parties=copy.deepcopy(world.parties),
        alliances=copy.deepcopy(world.alliances),
    )
    logger.info(
        "General election {}: {} seats decided, government={}",
        world.current_date.isoformat(), len(results),
        ",".join(government.ruling_party_ids) if government else "none",
    )
    return ElectionOutcome(
        results=results,
        detailed_results=detailed,
        history_entry=entry,
        characters=characters,
        government=government,
        speaker_candidate_ids=[c.character_id for c in speaker_candidates],
        next_election_date=add_years(world.current_date, ELECTION_INTERVAL_YEARS),
    )


def apply_election(world: World, outcome: ElectionOutcome) -> World:
    updated = replace(
        world,
        characters=outcome.characters,
        election_results=dict(outcome.results),
        election_history=world.election_history + [outcome.history_entry],
        government=outcome.government,
        speaker_id=None,
        next_election_date=outcome.next_election_date,
    )
    return replace(updated, stronghold_map=compute_stronghold_map(updated))
