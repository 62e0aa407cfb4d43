from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import DataConsistencyError
from .agent import Affiliation, Character, Demographics, Seat
from .world import ElectionResults, Party, StrongholdMap, World

OFFICIAL_CANDIDATE_MULTIPLIER = 1.2
HOME_STATE_MULTIPLIER = 1.1
# Applied when the party allocated the seat to a different affiliation.
OFF_ALLOCATION_MULTIPLIER = 0.8
MAX_STRONGHOLD_WEIGHT = 0.5
HOLDER_STRONGHOLD_BONUS = 0.15


def demographic_alignment(ethnicity: Optional[str], demographics: Optional[Demographics]) -> float:
    """0.5 (no co-ethnics) .. 1.5 (fully co-ethnic). Unknown demographics are neutral."""
    if demographics is None or not demographics.ethnic_shares:
        return 1.0
    return 0.5 + demographics.share_of(ethnicity) / 100.0


def effective_influence(
    character: Character,
    seat: Seat,
    demographics: Optional[Demographics],
    affiliations: Mapping[str, Affiliation],
    stronghold_map: StrongholdMap,
    official_candidate_id: Optional[str] = None,
    allocated_affiliation_id: Optional[str] = None,
) -> float:
    if character.affiliation_id not in affiliations:
        raise DataConsistencyError(
            f"Character {character.character_id} references unknown affiliation {character.affiliation_id}"
        )

    inf = max(0.0, float(character.influence))
    inf *= demographic_alignment(character.ethnicity, demographics)

    if character.state and character.state == seat.state:
        inf *= HOME_STATE_MULTIPLIER

    weight = stronghold_map.get(seat.code, {}).get(character.affiliation_id, 0.0)
    inf *= 1.0 + max(0.0, min(MAX_STRONGHOLD_WEIGHT, weight))

    if allocated_affiliation_id and allocated_affiliation_id != character.affiliation_id:
        inf *= OFF_ALLOCATION_MULTIPLIER

    if official_candidate_id is not None and official_candidate_id == character.character_id:
        inf *= OFFICIAL_CANDIDATE_MULTIPLIER
    return inf


def affiliation_to_party(parties: Iterable[Party]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for p in parties:
        for aff_id in p.affiliation_ids:
            if aff_id in out and out[aff_id] != p.party_id:
                raise DataConsistencyError(
                    f"Affiliation {aff_id} is owned by both {out[aff_id]} and {p.party_id}"
                )
            out[aff_id] = p.party_id
    return out


def check_affiliation_ownership(parties: Iterable[Party], affiliations: Mapping[str, Affiliation]) -> None:
    """Every known affiliation must be owned by exactly one party."""
    owners = affiliation_to_party(parties)
    orphans = sorted(a for a in affiliations if a not in owners)
    if orphans:
        raise DataConsistencyError(f"Affiliations owned by no party: {', '.join(orphans)}")
    unknown = sorted(a for a in owners if a not in affiliations)
    if unknown:
        raise DataConsistencyError(f"Parties reference unknown affiliations: {', '.join(unknown)}")


def party_of(character: Character, aff_to_party: Mapping[str, str]) -> str:
    pid = aff_to_party.get(character.affiliation_id)
    if pid is None:
        raise DataConsistencyError(
            f"Affiliation {character.affiliation_id} of {character.character_id} is owned by no party"
        )
    return pid


def best_candidate(
    world: World,
    party: Party,
    seat_code: str,
    aff_to_party: Mapping[str, str],
    candidates: Optional[List[Character]] = None,
) -> Tuple[Optional[Character], float]:
    """Strongest living member of `party` resident in `seat_code`, with their effective influence."""
    seat = world.seats[seat_code]
    demo = world.demographics.get(seat_code)
    contest = party.contested_seats.get(seat_code)
    pool = candidates if candidates is not None else world.characters

    best: Optional[Character] = None
    best_inf = 0.0
    for c in pool:
        if not c.is_alive or c.current_seat_code != seat_code:
            continue
        if party_of(c, aff_to_party) != party.party_id:
            continue
        inf = effective_influence(
            c, seat, demo, world.affiliations, world.stronghold_map,
            contest.candidate_id if contest else None,
            contest.allocated_affiliation_id if contest else None,
        )
        if best is None or inf > best_inf:
            best, best_inf = c, inf
    return best, best_inf


def residents_by_seat(characters: Iterable[Character]) -> Dict[str, List[Character]]:
    out: Dict[str, List[Character]] = {}
    for c in characters:
        if c.is_alive:
            out.setdefault(c.current_seat_code, []).append(c)
    return out


def projected_control(world: World) -> Dict[str, Optional[str]]:
    """Seat -> party whose best resident candidate has the highest effective influence.

    Usable before any election. Ties go to the lowest party id.
    """
    aff_to_party = affiliation_to_party(world.parties)
    by_seat = residents_by_seat(world.characters)
    out: Dict[str, Optional[str]] = {}
    for seat_code in world.seats:
        residents = by_seat.get(seat_code, [])
        leader: Optional[str] = None
        leader_inf = 0.0
        for party in sorted(world.parties, key=lambda p: p.party_id):
            cand, inf = best_candidate(world, party, seat_code, aff_to_party, residents)
            if cand is not None and inf > leader_inf:
                leader, leader_inf = party.party_id, inf
        out[seat_code] = leader
    return out


def compute_stronghold_map(
    world: World,
    seat_codes: Optional[Iterable[str]] = None,
    election_results: Optional[ElectionResults] = None,
) -> Dict[str, Dict[str, float]]:
    """Stronghold weights from each affiliation's share of resident influence.

    An affiliation whose party currently holds the seat gets an extra bonus.
    Only `seat_codes` are recomputed; other seats keep their existing weights.
    """
    results = election_results if election_results is not None else world.election_results
    aff_to_party = affiliation_to_party(world.parties)
    by_seat = residents_by_seat(world.characters)
    codes = list(seat_codes) if seat_codes is not None else list(world.seats)

    out = {k: dict(v) for k, v in world.stronghold_map.items()}
    for code in codes:
        residents = by_seat.get(code, [])
        totals: Dict[str, float] = {}
        for c in residents:
            totals[c.affiliation_id] = totals.get(c.affiliation_id, 0.0) + max(0.0, c.influence)
        grand = sum(totals.values())
        weights: Dict[str, float] = {}
        holder = results.get(code)
        for aff_id, total in totals.items():
            w = (total / grand) * 0.35 if grand > 0 else 0.0
            if holder is not None and aff_to_party.get(aff_id) == holder:
                w += HOLDER_STRONGHOLD_BONUS
            weights[aff_id] = round(min(MAX_STRONGHOLD_WEIGHT, w), 4)
        if weights:
            out[code] = weights
        else:
            out.pop(code, None)
    return out
