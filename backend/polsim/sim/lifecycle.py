from __future__ import annotations

import copy
import random
import re
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Literal, Optional, Set, Tuple

from loguru import logger

from .agent import Character, Ideology, clamp
from .influence import (
    affiliation_to_party,
    best_candidate,
    check_affiliation_ownership,
    compute_stronghold_map,
)
from .world import AllianceType, ContestedSeat, Party, PoliticalAlliance, StateBranch, World

RestructureMode = Literal["merge", "absorb", "secede", "alliance"]

CONSENT_PROBABILITY = 0.6
MERGER_UNITY_PENALTY = 5.0
ABSORPTION_UNITY_PENALTY = 2.0
NEW_PARTY_UNITY = 70.0

# Seeds a breakaway party's ideology; blended 50/50 with the affiliation's own.
FOCUS_IDEOLOGIES: Dict[str, Ideology] = {
    "socialist": Ideology(20, 45),
    "capitalist": Ideology(80, 55),
    "liberal": Ideology(50, 20),
    "authoritarian": Ideology(50, 80),
    "centrist": Ideology(50, 50),
}
PALETTE = ["#1f77b4", "#d62728", "#2ca02c", "#9467bd", "#ff7f0e", "#17becf", "#8c564b", "#e377c2"]


@dataclass(frozen=True)
class RestructuringReport:
    mode: RestructureMode
    accepted_party_ids: List[str] = field(default_factory=list)
    accepted_affiliation_ids: List[str] = field(default_factory=list)
    rejected_party_ids: List[str] = field(default_factory=list)
    rejected_affiliation_ids: List[str] = field(default_factory=list)
    resulting_party_id: Optional[str] = None
    resulting_alliance_id: Optional[str] = None
    new_name: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.accepted_party_ids or self.accepted_affiliation_ids)


@dataclass(frozen=True)
class RestructuringResult:
    world: World
    report: RestructuringReport


def decide_consent(rng: random.Random) -> bool:
    return rng.random() < CONSENT_PROBABILITY


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "party"


def _unique_party_id(name: str, parties: Iterable[Party]) -> str:
    taken = {p.party_id for p in parties}
    base = f"party-{_slug(name)}"
    pid, n = base, 2
    while pid in taken:
        pid, n = f"{base}-{n}", n + 1
    return pid


def _members(world: World, aff_ids: Set[str]) -> List[Character]:
    return [c for c in world.characters if c.is_alive and c.affiliation_id in aff_ids]


def _top(chars: Iterable[Character], exclude: Iterable[str] = ()) -> Optional[Character]:
    skip = set(exclude)
    ranked = sorted(
        (c for c in chars if c.character_id not in skip),
        key=lambda c: (-c.influence, -c.recognition, c.character_id),
    )
    return ranked[0] if ranked else None


def _detach(world: World, party: Party, aff_ids: Set[str]) -> Party:
    """Party without `aff_ids`; leadership, branch and contest slots held by their members are vacated."""
    leaving = {c.character_id for c in world.characters if c.affiliation_id in aff_ids}
    leader, deputy = party.leader_id, party.deputy_leader_id
    if deputy in leaving:
        deputy = None
    if leader in leaving:
        leader, deputy = deputy, None

    branches = []
    for b in party.state_branches:
        execs = [e for e in b.executive_ids if e not in leaving]
        b_leader = b.leader_id
        if b_leader in leaving:
            b_leader = execs.pop(0) if execs else None
        branches.append(StateBranch(b.state, b_leader, execs))

    contested = {
        code: rec for code, rec in party.contested_seats.items()
        if rec.allocated_affiliation_id not in aff_ids and rec.candidate_id not in leaving
    }
    remaining = [a for a in party.affiliation_ids if a not in aff_ids]
    if leader is None and remaining:
        top = _top(_members(world, set(remaining)))
        leader = top.character_id if top else None
    return replace(
        party, affiliation_ids=remaining, leader_id=leader, deputy_leader_id=deputy,
        state_branches=branches, contested_seats=contested,
    )


def _merge_branches(base: List[StateBranch], others: Iterable[StateBranch]) -> List[StateBranch]:
    merged = [StateBranch(b.state, b.leader_id, list(b.executive_ids)) for b in base]
    by_state = {b.state: b for b in merged}
    for ob in others:
        mine = by_state.get(ob.state)
        if mine is None:
            mine = StateBranch(ob.state, ob.leader_id, list(ob.executive_ids))
            merged.append(mine)
            by_state[ob.state] = mine
        else:
            for cid in ([ob.leader_id] if ob.leader_id else []) + ob.executive_ids:
                if cid != mine.leader_id and cid not in mine.executive_ids:
                    mine.executive_ids.append(cid)
        if mine.leader_id is None and mine.executive_ids:
            mine.leader_id = mine.executive_ids.pop(0)
    return merged


def _blend_ideology(parts: List[Tuple[Ideology, float]]) -> Ideology:
    total = sum(w for _, w in parts) or 1.0
    return Ideology(
        clamp(sum(i.economic * w for i, w in parts) / total),
        clamp(sum(i.governance * w for i, w in parts) / total),
    )


def _touched_seats(world: World, aff_ids: Set[str], party_ids: Set[str]) -> Set[str]:
    seats = {c.current_seat_code for c in world.characters if c.affiliation_id in aff_ids}
    for p in world.parties:
        if p.party_id in party_ids:
            seats.update(p.contested_seats)
    seats.update(code for code, pid in world.election_results.items() if pid in party_ids)
    return {s for s in seats if s in world.seats}


def _relabel_results(world: World, relabel: Dict[str, str], moved_affs: Set[str], new_owner: Optional[str]) -> Dict[str, str]:
    """Remap seat holders after ownership changes.

    Seats won by a candidate of a moved affiliation follow the affiliation.
    """
    results = {code: relabel.get(pid, pid) for code, pid in world.election_results.items()}
    if new_owner is None or not moved_affs or not world.election_history:
        return results
    by_id = {c.character_id: c for c in world.characters}
    for code, win in world.election_history[-1].seat_winners.items():
        cand = by_id.get(win.candidate_id)
        if code in results and cand is not None and cand.affiliation_id in moved_affs:
            results[code] = new_owner
    return results


def _reconcile(world: World, touched: Set[str], allocate_for: Set[str]) -> World:
    """Restore contested-seat and stronghold consistency after an ownership change."""
    aff_to_party = affiliation_to_party(world.parties)
    living = {c.character_id: c for c in world.characters if c.is_alive}

    parties: List[Party] = []
    for p in world.parties:
        contested: Dict[str, ContestedSeat] = {}
        for code, rec in p.contested_seats.items():
            cand = living.get(rec.candidate_id)
            if (cand is not None and aff_to_party.get(cand.affiliation_id) == p.party_id
                    and aff_to_party.get(rec.allocated_affiliation_id) == p.party_id):
                contested[code] = rec
        parties.append(replace(p, contested_seats=contested))
    world = replace(world, parties=parties)

    if allocate_for:
        parties = []
        for p in world.parties:
            if p.party_id in allocate_for:
                contested = dict(p.contested_seats)
                for code in sorted(touched):
                    if code in contested:
                        continue
                    cand, _ = best_candidate(world, p, code, aff_to_party)
                    if cand is not None:
                        contested[code] = ContestedSeat(cand.character_id, cand.affiliation_id)
                p = replace(p, contested_seats=contested)
            parties.append(p)
        world = replace(world, parties=parties)

    world = replace(world, stronghold_map=compute_stronghold_map(world, touched))
    check_affiliation_ownership(world.parties, world.affiliations)
    return world


def _combine(world: World, base: Party, others: List[Party], extra_affs: List[str]) -> Party:
    aff_ids = list(base.affiliation_ids)
    for aff_id in [a for o in others for a in o.affiliation_ids] + extra_affs:
        if aff_id not in aff_ids:
            aff_ids.append(aff_id)

    contested = dict(base.contested_seats)
    for o in others:
        for code, rec in o.contested_seats.items():
            contested.setdefault(code, rec)

    weights = [(base.ideology, float(len(base.affiliation_ids) or 1))]
    weights += [(o.ideology, float(len(o.affiliation_ids) or 1)) for o in others]
    weights += [(world.affiliations[a].base_ideology, 1.0) for a in extra_affs if a in world.affiliations]
    unity_parts = [(base.unity, len(base.affiliation_ids) or 1)] + [(o.unity, len(o.affiliation_ids) or 1) for o in others]
    unity = sum(u * w for u, w in unity_parts) / sum(w for _, w in unity_parts)

    focuses = {base.ethnicity_focus} | {o.ethnicity_focus for o in others}
    return replace(
        base,
        affiliation_ids=aff_ids,
        ideology=_blend_ideology(weights),
        unity=unity,
        ethnicity_focus=base.ethnicity_focus if len(focuses) == 1 else None,
        state_branches=_merge_branches(base.state_branches, [b for o in others for b in o.state_branches]),
        contested_seats=contested,
    )


def _restructure(
    world: World,
    mode: RestructureMode,
    initiator_party_id: str,
    party_ids: List[str],
    affiliation_ids: List[str],
    new_name: Optional[str],
    leader_id: Optional[str],
    deputy_id: Optional[str],
    preserve_id: bool,
) -> RestructuringResult:
    world = copy.deepcopy(world)
    initiator = world.party(initiator_party_id)
    if initiator is None:
        return RestructuringResult(world, RestructuringReport(mode))
    joining = [p for p in world.parties if p.party_id in set(party_ids) and p.party_id != initiator_party_id]
    joining_ids = {p.party_id for p in joining}

    owners = affiliation_to_party(world.parties)
    poached = [
        a for a in affiliation_ids
        if a in owners and owners[a] != initiator_party_id and owners[a] not in joining_ids
    ]
    poached_set = set(poached)

    # Pull individually invited affiliations out of their current parties.
    stripped = [
        _detach(world, p, poached_set) if any(a in poached_set for a in p.affiliation_ids) else p
        for p in world.parties
    ]
    world = replace(world, parties=stripped)
    initiator = world.party(initiator_party_id)
    joining = [world.party(pid) for pid in [p.party_id for p in joining]]

    combined = _combine(world, initiator, joining, poached)
    if mode == "merge":
        penalty = MERGER_UNITY_PENALTY
        name = new_name or initiator.name
        pid = initiator_party_id if preserve_id else _unique_party_id(name, world.parties)
        deputy = deputy_id or next(
            (o.leader_id for o in joining if o.leader_id), initiator.deputy_leader_id
        )
        combined = replace(
            combined, party_id=pid, name=name,
            leader_id=leader_id or initiator.leader_id, deputy_leader_id=deputy,
        )
    else:
        penalty = ABSORPTION_UNITY_PENALTY
    combined = replace(combined, unity=clamp(combined.unity - penalty))

    gone = {initiator_party_id} | joining_ids
    survivors = [p for p in world.parties if p.party_id not in gone and p.affiliation_ids]
    dissolved = {p.party_id for p in world.parties if p.party_id not in gone and not p.affiliation_ids}
    parties = survivors + [combined]

    relabel = {old: combined.party_id for old in gone}
    alliances = _rewrite_alliances(world.alliances, relabel, dissolved)

    touched = _touched_seats(world, set(combined.affiliation_ids), gone | dissolved)
    results = _relabel_results(
        world, {**relabel, **{d: combined.party_id for d in dissolved}}, poached_set, combined.party_id
    )
    world = replace(world, parties=parties, alliances=alliances, election_results=results)
    if world.government is not None:
        ruling = []
        for pid in world.government.ruling_party_ids:
            pid = relabel.get(pid, pid)
            if pid not in ruling and pid not in dissolved:
                ruling.append(pid)
        world = replace(world, government=replace(world.government, ruling_party_ids=ruling))
    world = _reconcile(world, touched, {combined.party_id})

    logger.info("{} by {}: parties={} affiliations={} -> {}", mode, initiator_party_id,
                sorted(joining_ids), poached, combined.party_id)
    report = RestructuringReport(
        mode=mode,
        accepted_party_ids=sorted(joining_ids),
        accepted_affiliation_ids=poached,
        resulting_party_id=combined.party_id,
        new_name=combined.name,
    )
    return RestructuringResult(world, report)


def _rewrite_alliances(alliances: List[PoliticalAlliance], relabel: Dict[str, str], dissolved: Set[str]) -> List[PoliticalAlliance]:
    out = []
    for a in alliances:
        members: List[str] = []
        for pid in a.member_party_ids:
            pid = relabel.get(pid, pid)
            if pid not in members and pid not in dissolved:
                members.append(pid)
        if members:
            out.append(replace(a, member_party_ids=members))
    return out


def merge_parties(
    world: World,
    initiator_party_id: str,
    party_ids: List[str],
    affiliation_ids: List[str],
    new_name: str,
    leader_id: Optional[str] = None,
    deputy_id: Optional[str] = None,
    preserve_id: bool = False,
) -> RestructuringResult:
    """Combine the initiator with consenting parties/affiliations under a new name."""
    return _restructure(world, "merge", initiator_party_id, party_ids, affiliation_ids,
                        new_name, leader_id, deputy_id, preserve_id)


def absorb_parties(
    world: World,
    absorbing_party_id: str,
    party_ids: List[str],
    affiliation_ids: List[str],
) -> RestructuringResult:
    """Fold consenting parties/affiliations into the absorbing party; its identity is unchanged."""
    return _restructure(world, "absorb", absorbing_party_id, party_ids, affiliation_ids,
                        None, None, None, True)


def secede_affiliation(
    world: World,
    affiliation_id: str,
    leader_id: str,
    target_party_id: Optional[str] = None,
    new_party_name: Optional[str] = None,
    focus: Optional[str] = None,
) -> RestructuringResult:
    """Move one affiliation out of its party, into `target_party_id` or a newly founded party."""
    world = copy.deepcopy(world)
    owners = affiliation_to_party(world.parties)
    old_pid = owners.get(affiliation_id)
    if old_pid is None or old_pid == target_party_id or (target_party_id is None and not new_party_name):
        return RestructuringResult(world, RestructuringReport("secede"))
    if target_party_id is not None and world.party(target_party_id) is None:
        return RestructuringResult(world, RestructuringReport("secede"))

    moved = {affiliation_id}
    members = _members(world, moved)
    leader = world.character(leader_id)
    old_party = world.party(old_pid)
    touched = _touched_seats(world, moved, {old_pid})

    detached = _detach(world, old_party, moved)
    parties = [detached if p.party_id == old_pid else p for p in world.parties]

    if target_party_id is not None:
        target = world.party(target_party_id)
        branches = _merge_branches(target.state_branches, [
            StateBranch(leader.state, None, [leader.character_id])
        ] if leader is not None else [])
        joined = replace(target, affiliation_ids=target.affiliation_ids + [affiliation_id], state_branches=branches)
        parties = [joined if p.party_id == target_party_id else p for p in parties]
        new_owner = target_party_id
        name = target.name
    else:
        aff = world.affiliations[affiliation_id]
        seed = FOCUS_IDEOLOGIES.get((focus or "").lower())
        ideology = _blend_ideology([(aff.base_ideology, 1.0), (seed, 1.0)]) if seed else aff.base_ideology
        new_owner = _unique_party_id(new_party_name, parties)
        name = new_party_name
        deputy = _top(members, exclude=[leader_id])
        branches: Dict[str, StateBranch] = {}
        for c in sorted(members, key=lambda c: (-c.influence, c.character_id)):
            b = branches.setdefault(c.state, StateBranch(c.state))
            if c.character_id == leader_id:
                if b.leader_id is not None:
                    b.executive_ids.insert(0, b.leader_id)
                b.leader_id = leader_id
            elif b.leader_id is None:
                b.leader_id = c.character_id
            else:
                b.executive_ids.append(c.character_id)
        founded = Party(
            party_id=new_owner,
            name=new_party_name,
            color=PALETTE[len(parties) % len(PALETTE)],
            unity=NEW_PARTY_UNITY,
            ideology=ideology,
            ethnicity_focus=aff.ethnicity,
            leader_id=leader_id,
            deputy_leader_id=deputy.character_id if deputy else None,
            affiliation_ids=[affiliation_id],
            state_branches=list(branches.values()),
        )
        parties = parties + [founded]

    dissolved = {p.party_id for p in parties if not p.affiliation_ids}
    parties = [p for p in parties if p.party_id not in dissolved]
    relabel = {pid: new_owner for pid in dissolved}

    characters = world.characters
    if leader is not None:
        verb = f"joined {name}" if target_party_id else f"founded {name}"
        characters = [
            c.with_history(world.current_date, f"Led the {affiliation_id} faction out of {old_party.name} and {verb}.")
            if c.character_id == leader_id else c
            for c in characters
        ]

    results = _relabel_results(world, relabel, moved, new_owner)
    government = world.government
    if government is not None and old_pid in dissolved:
        government = replace(government, ruling_party_ids=[p for p in government.ruling_party_ids if p != old_pid])
    world = replace(
        world,
        parties=parties,
        characters=characters,
        alliances=_rewrite_alliances(world.alliances, {}, dissolved),
        election_results=results,
        government=government,
    )
    world = _reconcile(world, touched, {new_owner})

    logger.info("Affiliation {} left {} for {}", affiliation_id, old_pid, new_owner)
    report = RestructuringReport(
        mode="secede",
        accepted_affiliation_ids=[affiliation_id],
        resulting_party_id=new_owner,
        new_name=name,
    )
    return RestructuringResult(world, report)


def form_alliance(
    world: World,
    initiator_party_id: str,
    invited_party_ids: List[str],
    name: str,
    alliance_type: AllianceType,
    rng: random.Random,
) -> RestructuringResult:
    already = {pid for a in world.alliances if a.alliance_type == alliance_type for pid in a.member_party_ids}
    accepted, rejected = [], []
    for pid in invited_party_ids:
        if pid == initiator_party_id or world.party(pid) is None:
            continue
        if pid not in already and decide_consent(rng):
            accepted.append(pid)
        else:
            rejected.append(pid)
    if not accepted:
        return RestructuringResult(world, RestructuringReport("alliance", rejected_party_ids=rejected, new_name=name))

    taken = {a.alliance_id for a in world.alliances}
    aid, n = f"alliance-{_slug(name)}", 2
    while aid in taken:
        aid, n = f"alliance-{_slug(name)}-{n}", n + 1
    alliance = PoliticalAlliance(aid, name, alliance_type, [initiator_party_id] + accepted)
    world = replace(world, alliances=world.alliances + [alliance])
    logger.info("Alliance {} formed: {}", aid, alliance.member_party_ids)
    return RestructuringResult(world, RestructuringReport(
        "alliance", accepted_party_ids=accepted, rejected_party_ids=rejected,
        resulting_alliance_id=aid, new_name=name,
    ))


def propose_restructuring(
    world: World,
    mode: Literal["merge", "absorb"],
    initiator_party_id: str,
    party_ids: List[str],
    affiliation_ids: List[str],
    rng: random.Random,
    new_name: Optional[str] = None,
    leader_id: Optional[str] = None,
) -> RestructuringResult:
    """Ask every invited party and affiliation; restructure with those who accept.

    When nobody accepts the world is returned untouched with an empty report.
    """
    acc_p, rej_p, acc_a, rej_a = [], [], [], []
    for pid in party_ids:
        (acc_p if decide_consent(rng) else rej_p).append(pid)
    for aid in affiliation_ids:
        (acc_a if decide_consent(rng) else rej_a).append(aid)

    if not acc_p and not acc_a:
        return RestructuringResult(world, RestructuringReport(
            mode, rejected_party_ids=rej_p, rejected_affiliation_ids=rej_a, new_name=new_name,
        ))

    if mode == "merge":
        result = merge_parties(world, initiator_party_id, acc_p, acc_a, new_name or "", leader_id)
    else:
        result = absorb_parties(world, initiator_party_id, acc_p, acc_a)
    report = replace(result.report, rejected_party_ids=rej_p, rejected_affiliation_ids=rej_a)
    return RestructuringResult(result.world, report)
