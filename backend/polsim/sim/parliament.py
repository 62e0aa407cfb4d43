from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from loguru import logger

from ..config import CABINET_SIZE
from .agent import Character, clamp
from .influence import affiliation_to_party
from .world import (
    Bill,
    BillVoteResult,
    ElectionResults,
    GameEvent,
    Government,
    Party,
    PoliticalAlliance,
    VoteDirection,
)

CHIEF_EXECUTIVE_TITLE = "Chief Minister"
MAX_COALITION_DISTANCE = 45.0
SPEAKER_CANDIDATES = 3
# Bill AI: below this distance a party supports, above the upper one it opposes.
BILL_SUPPORT_DISTANCE = 25.0
BILL_OPPOSE_DISTANCE = 45.0
CRACKDOWN_TARGETS = 5


class CharacterRole(str, Enum):
    NATIONAL_LEADER = "National Leader"
    NATIONAL_DEPUTY_LEADER = "National Deputy Leader"
    STATE_LEADER = "State Leader"
    STATE_EXECUTIVE = "State Executive"
    MEMBER = "Member"


def character_role(character_id: str, party: Optional[Party]) -> CharacterRole:
    if party is None:
        return CharacterRole.MEMBER
    if party.leader_id == character_id:
        return CharacterRole.NATIONAL_LEADER
    if party.deputy_leader_id == character_id:
        return CharacterRole.NATIONAL_DEPUTY_LEADER
    if any(b.leader_id == character_id for b in party.state_branches):
        return CharacterRole.STATE_LEADER
    if any(character_id in b.executive_ids for b in party.state_branches):
        return CharacterRole.STATE_EXECUTIVE
    return CharacterRole.MEMBER


def majority_threshold(total_seats: int) -> int:
    return total_seats // 2 + 1


def seat_counts(results: ElectionResults) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for pid in results.values():
        counts[pid] = counts.get(pid, 0) + 1
    return counts


def _rank(c: Character) -> Tuple[float, float, str]:
    return (-c.influence, -c.recognition, c.character_id)


def _build_coalition(
    counts: Mapping[str, int],
    parties: Mapping[str, Party],
    alliances: Iterable[PoliticalAlliance],
    majority: int,
) -> Optional[List[str]]:
    blocs: Set[Tuple[str, ...]] = set()
    for a in alliances:
        members = tuple(sorted(pid for pid in a.member_party_ids if counts.get(pid)))
        if members:
            blocs.add(members)
    for pid in counts:
        blocs.add((pid,))

    def bloc_seats(bloc: Iterable[str]) -> int:
        return sum(counts.get(pid, 0) for pid in bloc)

    ordered = sorted(blocs, key=lambda b: (-bloc_seats(b), len(b), b))
    if not ordered:
        return None
    coalition = list(ordered[0])
    if bloc_seats(coalition) >= majority:
        return coalition

    dominant = sorted(coalition, key=lambda pid: (-counts.get(pid, 0), pid))[0]
    anchor = parties.get(dominant)
    if anchor is None:
        return None

    def closeness(pid: str) -> Tuple[float, int, str]:
        p = parties.get(pid)
        dist = anchor.ideology.distance(p.ideology) if p else float("inf")
        return (dist, -counts.get(pid, 0), pid)

    for pid in sorted((p for p in counts if p not in coalition), key=closeness):
        if closeness(pid)[0] > MAX_COALITION_DISTANCE:
            break
        coalition.append(pid)
        if bloc_seats(coalition) >= majority:
            return coalition
    return None


def form_government(
    results: ElectionResults,
    parties: List[Party],
    characters: List[Character],
    alliances: List[PoliticalAlliance],
    on: date,
    cabinet_size: int = CABINET_SIZE,
) -> Tuple[Optional[Government], List[Character]]:
    """Largest bloc able to command a majority; None when no majority can be built."""
    counts = seat_counts(results)
    if not counts:
        return None, characters

    by_id = {p.party_id: p for p in parties}
    coalition = _build_coalition(counts, by_id, alliances, majority_threshold(len(results)))
    if coalition is None:
        logger.info("No majority achievable from {} seats", len(results))
        return None, characters

    ruling = sorted(coalition, key=lambda pid: (-counts.get(pid, 0), pid))
    dominant = by_id[ruling[0]]
    aff_to_party = affiliation_to_party(parties)

    def party_id_of(c: Character) -> Optional[str]:
        return aff_to_party.get(c.affiliation_id)

    ruling_mps = sorted(
        (c for c in characters if c.is_alive and c.is_mp and party_id_of(c) in ruling),
        key=_rank,
    )
    by_char = {c.character_id: c for c in characters}
    leader = by_char.get(dominant.leader_id) if dominant.leader_id else None

    chief: Optional[Character] = None
    if leader is not None and leader.is_alive and leader.is_mp:
        chief = leader
    if chief is None:
        chief = next((c for c in ruling_mps if party_id_of(c) == dominant.party_id), None)
    if chief is None and leader is not None and leader.is_alive:
        chief = leader
    if chief is None:
        members = sorted(
            (c for c in characters if c.is_alive and party_id_of(c) == dominant.party_id), key=_rank
        )
        chief = members[0] if members else None
    if chief is None:
        return None, characters

    cabinet = [c.character_id for c in ruling_mps if c.character_id != chief.character_id][:cabinet_size]
    gov = Government(
        chief_executive_id=chief.character_id,
        cabinet_ids=cabinet,
        ruling_party_ids=ruling,
        formed_on=on,
    )

    cabinet_set = set(cabinet)
    updated: List[Character] = []
    for c in characters:
        if c.character_id == chief.character_id:
            c = c.with_history(on, f"Appointed {CHIEF_EXECUTIVE_TITLE}.")
        elif c.character_id in cabinet_set:
            c = c.with_history(on, "Appointed to the Cabinet.")
        updated.append(c)
    logger.info("Government formed by {} ({} seats of {})",
                ", ".join(ruling), sum(counts[p] for p in ruling), len(results))
    return gov, updated


def determine_speaker_candidates(
    results: ElectionResults,
    parties: List[Party],
    characters: List[Character],
    government: Optional[Government],
) -> List[Character]:
    counts = seat_counts(results)
    if government is not None:
        pool_parties = set(government.ruling_party_ids)
        excluded = {government.chief_executive_id, *government.cabinet_ids}
    elif counts:
        pool_parties = {sorted(counts, key=lambda pid: (-counts[pid], pid))[0]}
        excluded = set()
    else:
        return []

    aff_to_party = affiliation_to_party(parties)
    sitting = [
        c for c in characters
        if c.is_alive and c.is_mp and aff_to_party.get(c.affiliation_id) in pool_parties
    ]
    pool = [c for c in sitting if c.character_id not in excluded]
    if not pool and government is not None:
        # Small chambers: fall back to ministers rather than leave the chair empty.
        pool = [c for c in sitting if c.character_id != government.chief_executive_id]
    pool.sort(key=lambda c: (-(c.recognition + c.influence), c.character_id))
    return pool[:SPEAKER_CANDIDATES]


@dataclass(frozen=True)
class SpeakerVoteResult:
    winner_id: Optional[str]
    tally: Dict[str, int]
    breakdown: Dict[str, str]


def conduct_speaker_vote(
    results: ElectionResults,
    parties: List[Party],
    candidates: List[Character],
    aff_to_party: Mapping[str, str],
    player_party_id: Optional[str] = None,
    player_vote_id: Optional[str] = None,
) -> SpeakerVoteResult:
    """Party blocs vote as units; the player's ballot replaces one seat of their party's bloc.

    Plurality wins; ties go to the lowest candidate id.
    """
    if not candidates:
        return SpeakerVoteResult(None, {}, {})

    counts = seat_counts(results)
    by_id = {p.party_id: p for p in parties}
    tally: Dict[str, int] = {c.character_id: 0 for c in candidates}
    breakdown: Dict[str, str] = {}
    cand_party = {c.character_id: aff_to_party.get(c.affiliation_id) for c in candidates}

    for pid in sorted(counts):
        seats = counts[pid]
        party = by_id.get(pid)
        own = [c.character_id for c in candidates if cand_party[c.character_id] == pid]
        if own:
            choice = own[0]
        elif party is not None:
            def dist(cid: str) -> float:
                other = by_id.get(cand_party[cid] or "")
                return party.ideology.distance(other.ideology) if other else float("inf")
            choice = min((c.character_id for c in candidates), key=dist)
        else:
            choice = candidates[0].character_id

        if pid == player_party_id and player_vote_id in tally:
            tally[player_vote_id] += 1
            seats -= 1
        tally[choice] += seats
        breakdown[pid] = choice

    winner = sorted(tally, key=lambda cid: (-tally[cid], cid))[0]
    return SpeakerVoteResult(winner, tally, breakdown)


@dataclass(frozen=True)
class ConfidenceVoteResult:
    passed: bool
    votes_for: int
    votes_against: int
    abstentions: int


def confidence_survives(ayes: int, nays: int) -> bool:
    return ayes > nays


def conduct_vote_of_confidence(
    government: Government,
    characters: List[Character],
    parties: List[Party],
    player_character_id: Optional[str] = None,
    player_vote: Optional[VoteDirection] = None,
) -> ConfidenceVoteResult:
    aff_to_party = affiliation_to_party(parties)
    ruling = set(government.ruling_party_ids)
    tally: Dict[str, int] = {"Aye": 0, "Nay": 0, "Abstain": 0}
    for mp in characters:
        if not (mp.is_alive and mp.is_mp):
            continue
        if mp.character_id == player_character_id and player_vote is not None:
            vote = player_vote
        else:
            vote = "Aye" if aff_to_party.get(mp.affiliation_id) in ruling else "Nay"
        tally[vote] += 1
    return ConfidenceVoteResult(
        passed=confidence_survives(tally["Aye"], tally["Nay"]),
        votes_for=tally["Aye"],
        votes_against=tally["Nay"],
        abstentions=tally["Abstain"],
    )


def ai_decide_bill_vote(party: Optional[Party], bill: Bill, government: Optional[Government] = None) -> VoteDirection:
    if party is None:
        return "Abstain"
    if bill.proposing_party_id == party.party_id:
        return "Aye"
    dist = party.ideology.distance(bill.position)
    if government is not None:
        ruling = set(government.ruling_party_ids)
        if party.party_id in ruling and bill.proposing_party_id in ruling and dist <= BILL_OPPOSE_DISTANCE:
            return "Aye"
    if dist < BILL_SUPPORT_DISTANCE:
        return "Aye"
    if dist > BILL_OPPOSE_DISTANCE:
        return "Nay"
    return "Abstain"


def bill_pass_threshold(total_votes: int, constitutional: bool) -> int:
    if constitutional:
        return -(-2 * total_votes // 3)
    return total_votes // 2 + 1


def conduct_bill_vote(
    bill: Bill,
    characters: List[Character],
    parties: List[Party],
    government: Optional[Government],
    player_character_id: Optional[str] = None,
    player_vote: Optional[VoteDirection] = None,
) -> BillVoteResult:
    aff_to_party = affiliation_to_party(parties)
    by_id = {p.party_id: p for p in parties}
    tally: Dict[str, int] = {"Aye": 0, "Nay": 0, "Abstain": 0}
    breakdown: Dict[str, VoteDirection] = {}

    for mp in characters:
        if not (mp.is_alive and mp.is_mp):
            continue
        pid = aff_to_party.get(mp.affiliation_id)
        if mp.character_id == player_character_id and player_vote is not None:
            vote = player_vote
        else:
            vote = ai_decide_bill_vote(by_id.get(pid or ""), bill, government)
        tally[vote] += 1
        if pid:
            breakdown[pid] = vote

    total = tally["Aye"] + tally["Nay"] + tally["Abstain"]
    threshold = bill_pass_threshold(total, bill.is_constitutional)
    return BillVoteResult(
        passed=total > 0 and tally["Aye"] >= threshold,
        threshold=threshold,
        tally=tally,
        breakdown=breakdown,
    )


@dataclass(frozen=True)
class CrackdownResult:
    characters: List[Character]
    parties: List[Party]
    event: GameEvent


def perform_security_crackdown(
    on: date,
    characters: List[Character],
    parties: List[Party],
    government: Government,
) -> CrackdownResult:
    """Detain the most influential opposition figures. Deterministic in its inputs."""
    aff_to_party = affiliation_to_party(parties)
    ruling = set(government.ruling_party_ids)
    opposition = [
        c for c in characters
        if c.is_alive and aff_to_party.get(c.affiliation_id) not in ruling
        and aff_to_party.get(c.affiliation_id) is not None
    ]
    targets = sorted(opposition, key=_rank)[:CRACKDOWN_TARGETS]
    target_ids = {c.character_id for c in targets}

    updated_chars = [
        c.with_history(
            on, "Detained during a government security crackdown.",
            influence=clamp(c.influence - 15), recognition=clamp(c.recognition + 5),
        ) if c.character_id in target_ids else c
        for c in characters
    ]
    hit_parties = {aff_to_party[c.affiliation_id] for c in targets}
    updated_parties = []
    for p in parties:
        if p.party_id in hit_parties:
            p = replace(p, unity=clamp(p.unity - 8))
        elif p.party_id in ruling:
            p = replace(p, unity=clamp(p.unity - 3))
        updated_parties.append(p)

    if targets:
        names = ", ".join(c.name for c in targets)
        description = (
            f"Security forces detained {len(targets)} opposition figures, including {names}. "
            "Opposition ranks are shaken while dissent grows inside the ruling coalition."
        )
    else:
        description = "A security sweep was ordered but found no opposition figures to detain."
    event = GameEvent(
        event_id=f"crackdown-{on.isoformat()}",
        date=on,
        title="Security Crackdown",
        description=description,
    )
    return CrackdownResult(updated_chars, updated_parties, event)


def cleanup_political_vacancies(parties: List[Party], living_ids: Set[str]) -> List[Party]:
    """Clear dead characters out of leadership, branches and contested seats."""
    out: List[Party] = []
    for p in parties:
        leader, deputy = p.leader_id, p.deputy_leader_id
        if deputy is not None and deputy not in living_ids:
            deputy = None
        if leader is not None and leader not in living_ids:
            leader, deputy = deputy, None

        branches = []
        for b in p.state_branches:
            execs = [e for e in b.executive_ids if e in living_ids]
            b_leader = b.leader_id
            if b_leader is not None and b_leader not in living_ids:
                b_leader = execs.pop(0) if execs else None
            branches.append(replace(b, leader_id=b_leader, executive_ids=execs))

        contested = {
            code: rec for code, rec in p.contested_seats.items() if rec.candidate_id in living_ids
        }
        out.append(replace(
            p, leader_id=leader, deputy_leader_id=deputy,
            state_branches=branches, contested_seats=contested,
        ))
    return out


def cleanup_government_vacancies(government: Government, living_ids: Set[str]) -> Government:
    chief = government.chief_executive_id
    if chief is not None and chief not in living_ids:
        chief = None
    return replace(
        government,
        chief_executive_id=chief,
        cabinet_ids=[cid for cid in government.cabinet_ids if cid in living_ids],
    )
