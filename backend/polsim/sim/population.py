from __future__ import annotations

import random
from datetime import date
from typing import List, Mapping

from .agent import Affiliation, Character, Demographics, HistoryEntry, Seat
from .naming import generate_character_name
from .world import Party

# (upper age bound, daily rate); the last bracket covers everyone older.
MORTALITY_BRACKETS = [
    (50, 0.00005),
    (60, 0.0001),
    (70, 0.0005),
    (80, 0.0015),
    (90, 0.005),
]
MORTALITY_CEILING = 0.02
# Only this fraction of ticks evaluates the age rate at all.
MORTALITY_SAMPLING = 0.1

SUCCESSOR_MIN_AGE = 25
SUCCESSOR_MAX_AGE = 50      # exclusive
IDEOLOGY_DRIFT = 10.0
MIN_ETHNIC_PRESENCE = 2.0


def mortality_rate(age: int) -> float:
    for bound, rate in MORTALITY_BRACKETS:
        if age < bound:
            return rate
    return MORTALITY_CEILING


def death_probability(age: int) -> float:
    """Effective daily probability: sampling gate x age rate."""
    return MORTALITY_SAMPLING * mortality_rate(age)


def should_character_die(character: Character, on: date, rng: random.Random) -> bool:
    if not character.is_alive:
        return False
    if rng.random() >= MORTALITY_SAMPLING:
        return False
    return rng.random() < mortality_rate(character.age_on(on))


def _birth_date_for_age(on: date, years: int, rng: random.Random) -> date:
    # Days 1..28 exist in every month.
    month = rng.randint(1, 12)
    day = rng.randint(1, 28)
    year = on.year - years
    if (month, day) > (on.month, on.day):
        year -= 1
    return date(year, month, day)


def create_successor(deceased: Character, on: date, rng: random.Random, serial: int = 0) -> Character:
    years = rng.randint(SUCCESSOR_MIN_AGE, SUCCESSOR_MAX_AGE - 1)
    dob = _birth_date_for_age(on, years, rng)
    ideology = deceased.ideology.drifted(
        rng.uniform(-IDEOLOGY_DRIFT, IDEOLOGY_DRIFT),
        rng.uniform(-IDEOLOGY_DRIFT, IDEOLOGY_DRIFT),
    )
    cid = f"npc-{deceased.current_seat_code}-{deceased.affiliation_id}-{on:%Y%m%d}-{serial}-{rng.getrandbits(24):06x}"
    return Character(
        character_id=cid,
        name=generate_character_name(deceased.ethnicity, rng),
        affiliation_id=deceased.affiliation_id,
        ethnicity=deceased.ethnicity,
        state=deceased.state,
        current_seat_code=deceased.current_seat_code,
        date_of_birth=dob,
        # Fresh stats, usually below those of a long-serving predecessor.
        charisma=float(rng.randint(20, 79)),
        influence=float(rng.randint(10, 49)),
        recognition=float(rng.randint(5, 24)),
        ideology=ideology,
        is_alive=True,
        is_mp=False,
        is_player=False,
        history=[HistoryEntry(
            on,
            f"Emerged as a new voice for the {deceased.affiliation_id} faction in "
            f"{deceased.current_seat_code}, succeeding {deceased.name}.",
        )],
    )


def populate_world_characters(
    seats: Mapping[str, Seat],
    demographics: Mapping[str, Demographics],
    parties: List[Party],
    affiliations: Mapping[str, Affiliation],
    on: date,
    rng: random.Random,
) -> List[Character]:
    """One NPC per (seat, affiliation) wherever the affiliation's ethnicity is present (>= 2%)."""
    out: List[Character] = []
    counter = 0
    for code, seat in seats.items():
        demo = demographics.get(code)
        if demo is None:
            continue
        for party in parties:
            for aff_id in party.affiliation_ids:
                aff = affiliations.get(aff_id)
                if aff is None:
                    continue
                # Multi-ethnic affiliations (no ethnicity) stand everywhere.
                if aff.ethnicity and demo.share_of(aff.ethnicity) < MIN_ETHNIC_PRESENCE:
                    continue
                years = rng.randint(20, 49)
                out.append(Character(
                    character_id=f"npc-{code}-{aff_id}-{counter}",
                    name=generate_character_name(aff.ethnicity, rng),
                    affiliation_id=aff_id,
                    ethnicity=aff.ethnicity,
                    state=seat.state,
                    current_seat_code=code,
                    date_of_birth=_birth_date_for_age(on, years, rng),
                    charisma=float(rng.randint(15, 64)),
                    influence=float(rng.randint(10, 49)),
                    recognition=float(rng.randint(5, 34)),
                    ideology=aff.base_ideology,
                ))
                counter += 1
    return out

