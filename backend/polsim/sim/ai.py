from __future__ import annotations

import random
from dataclasses import replace
from typing import Dict, Mapping

from .agent import Character, clamp
from .parliament import CharacterRole
from .world import World

# Daily chance that a character does anything at all, by role.
ACTION_CHANCE: Dict[CharacterRole, float] = {
    CharacterRole.NATIONAL_LEADER: 0.05,
    CharacterRole.NATIONAL_DEPUTY_LEADER: 0.04,
    CharacterRole.STATE_LEADER: 0.03,
    CharacterRole.STATE_EXECUTIVE: 0.02,
    CharacterRole.MEMBER: 0.01,
}
RELOCATE_CHANCE = 0.1
# Leaders also grow recognition when they campaign.
RECOGNITION_GAIN: Dict[CharacterRole, float] = {
    CharacterRole.NATIONAL_LEADER: 2.0,
    CharacterRole.NATIONAL_DEPUTY_LEADER: 1.5,
    CharacterRole.STATE_LEADER: 1.0,
}


def determine_ai_action(
    character: Character,
    role: CharacterRole,
    world: World,
    seat_affiliation_counts: Mapping[str, Mapping[str, int]],
    rng: random.Random,
) -> Character:
    """One day of NPC behaviour. Returns `character` itself when nothing happened."""
    if rng.random() >= ACTION_CHANCE.get(role, 0.01):
        return character

    if role == CharacterRole.MEMBER and not character.is_mp and rng.random() < RELOCATE_CHANCE:
        target = _relocation_target(character, world, seat_affiliation_counts)
        if target is not None:
            name = world.seats[target].name
            return character.with_history(world.current_date, f"Moved to {name} to organise the faction.",
                                          current_seat_code=target)

    gain = rng.randint(1, 3)
    return replace(
        character,
        influence=clamp(character.influence + gain),
        recognition=clamp(character.recognition + RECOGNITION_GAIN.get(role, 0.5)),
    )


def _relocation_target(
    character: Character,
    world: World,
    seat_affiliation_counts: Mapping[str, Mapping[str, int]],
) -> str | None:
    """Home-state seat with the strongest stronghold for the faction but the fewest of its members."""
    best, best_key = None, None
    for code, seat in world.seats.items():
        if seat.state != character.state or code == character.current_seat_code:
            continue
        weight = world.stronghold_map.get(code, {}).get(character.affiliation_id, 0.0)
        crowd = seat_affiliation_counts.get(code, {}).get(character.affiliation_id, 0)
        key = (-weight, crowd, code)
        if best_key is None or key < best_key:
            best, best_key = code, key
    return best
