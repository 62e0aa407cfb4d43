from __future__ import annotations

import random
from dataclasses import replace
from datetime import date
from typing import Callable, List, Optional

from loguru import logger

from ..config import EVENT_CHANCE
from .agent import clamp
from .world import EventEffect, GameEvent, World

PARTY_ATTRIBUTES = {"unity"}
CHARACTER_ATTRIBUTES = {"influence", "recognition", "charisma"}


def _economic_boom(world: World, on: date, rng: random.Random) -> Optional[GameEvent]:
    if world.government is not None:
        winners = world.government.ruling_party_ids
    elif world.parties:
        winners = [rng.choice(world.parties).party_id]
    else:
        return None
    return GameEvent(
        event_id=f"boom-{on.isoformat()}",
        date=on,
        title="Economic Boom",
        description="Commodity prices surge and the economy grows quickly. Incumbents take the credit.",
        effects=tuple(EventEffect("party", pid, "unity", 5) for pid in winners),
    )


def _scandal(world: World, on: date, rng: random.Random) -> Optional[GameEvent]:
    pool = [c for c in world.characters if c.is_alive and c.influence > 30]
    if not pool:
        return None
    c = rng.choice(pool)
    return GameEvent(
        event_id=f"scandal-{on.isoformat()}",
        date=on,
        title="Financial Scandal",
        description=f"Newspapers allege that {c.name} misused party funds.",
        effects=(
            EventEffect("character", c.character_id, "influence", -10),
            EventEffect("character", c.character_id, "recognition", 5),
        ),
    )


def _communal_tension(world: World, on: date, rng: random.Random) -> Optional[GameEvent]:
    if not world.parties:
        return None
    effects = tuple(
        EventEffect("party", p.party_id, "unity", 3 if p.ethnicity_focus else -3)
        for p in world.parties
    )
    return GameEvent(
        event_id=f"tension-{on.isoformat()}",
        date=on,
        title="Communal Tensions",
        description="Communal tensions flare. Communal parties close ranks while multi-ethnic parties struggle.",
        effects=effects,
    )


def _rising_star(world: World, on: date, rng: random.Random) -> Optional[GameEvent]:
    pool = [c for c in world.characters if c.is_alive and not c.is_player and c.age_on(on) < 40]
    if not pool:
        return None
    c = rng.choice(pool)
    return GameEvent(
        event_id=f"star-{on.isoformat()}",
        date=on,
        title="A Rising Star",
        description=f"A rousing speech by {c.name} draws national attention.",
        effects=(
            EventEffect("character", c.character_id, "charisma", 10),
            EventEffect("character", c.character_id, "recognition", 10),
        ),
    )


def _infighting(world: World, on: date, rng: random.Random) -> Optional[GameEvent]:
    if not world.parties:
        return None
    p = rng.choice(world.parties)
    return GameEvent(
        event_id=f"infighting-{on.isoformat()}",
        date=on,
        title="Party Infighting",
        description=f"Factional disputes break out inside {p.name}.",
        effects=(EventEffect("party", p.party_id, "unity", -8),),
    )


EVENT_GENERATORS: List[Callable[[World, date, random.Random], Optional[GameEvent]]] = [
    _economic_boom,
    _scandal,
    _communal_tension,
    _rising_star,
    _infighting,
]


def check_for_game_event(
    on: date,
    world: World,
    rng: random.Random,
    chance: float = EVENT_CHANCE,
) -> Optional[GameEvent]:
    if rng.random() >= chance:
        return None
    event = rng.choice(EVENT_GENERATORS)(world, on, rng)
    if event is not None:
        logger.info("World event on {}: {}", on.isoformat(), event.title)
    return event


def apply_event_effects(world: World, event: GameEvent) -> World:
    parties = list(world.parties)
    characters = list(world.characters)
    for eff in event.effects:
        if eff.target == "party" and eff.attribute in PARTY_ATTRIBUTES:
            parties = [
                replace(p, **{eff.attribute: clamp(getattr(p, eff.attribute) + eff.delta)})
                if p.party_id == eff.target_id else p
                for p in parties
            ]
        elif eff.target == "character" and eff.attribute in CHARACTER_ATTRIBUTES:
            characters = [
                replace(c, **{eff.attribute: clamp(getattr(c, eff.attribute) + eff.delta)})
                if c.character_id == eff.target_id else c
                for c in characters
            ]
        else:
            logger.warning("Ignoring unsupported event effect {}", eff)
    return replace(world, parties=parties, characters=characters)
