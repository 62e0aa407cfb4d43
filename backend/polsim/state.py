from __future__ import annotations

import json
import os
from dataclasses import asdict, replace
from datetime import date
from typing import Any, Dict, List, Optional

from .config import FIRST_ELECTION_DATE, START_DATE
from .sim.agent import Affiliation, Character, Demographics, Ideology, Seat
from .sim.engine import Simulation
from .sim.world import Bill, Party, PoliticalAlliance, World


def _ideology(raw: Any) -> Ideology:
    if isinstance(raw, dict):
        return Ideology(float(raw.get("economic", 50)), float(raw.get("governance", 50)))
    eco, gov = raw
    return Ideology(float(eco), float(gov))


def _load_raw() -> Dict[str, Any]:
    base_dir = os.path.dirname(__file__)
    path = os.path.join(base_dir, "data", "world.json")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def seats_from_rows(rows: List[Dict[str, Any]]) -> tuple:
    seats: Dict[str, Seat] = {}
    demographics: Dict[str, Demographics] = {}
    for s in rows:
        code = s["code"]
        seats[code] = Seat(code=code, name=s.get("name", code), state=s["state"])
        demographics[code] = Demographics(
            seat_code=code,
            total_electorate=int(s.get("electorate", 0)),
            ethnic_shares={k: float(v) for k, v in s.get("shares", {}).items()},
            urban_rural=s.get("urban_rural"),
        )
    return seats, demographics


def load_mock_world() -> World:
    raw = _load_raw()
    seats, demographics = seats_from_rows(raw["seats"])
    affiliations = {
        a["id"]: Affiliation(
            affiliation_id=a["id"],
            name=a.get("name", a["id"]),
            ethnicity=a.get("ethnicity"),
            base_ideology=_ideology(a.get("ideology", [50, 50])),
            home_state=a.get("home_state"),
        )
        for a in raw["affiliations"]
    }
    parties = [
        Party(
            party_id=p["id"],
            name=p.get("name", p["id"]),
            color=p.get("color", "#888888"),
            unity=float(p.get("unity", 60)),
            ideology=_ideology(p.get("ideology", [50, 50])),
            ethnicity_focus=p.get("ethnicity_focus"),
            affiliation_ids=list(p.get("affiliation_ids", [])),
        )
        for p in raw["parties"]
    ]
    alliances = [
        PoliticalAlliance(a["id"], a.get("name", a["id"]), a.get("type", "electoral_pact"), list(a["member_party_ids"]))
        for a in raw.get("alliances", [])
    ]
    start = date.fromisoformat(raw["start_date"]) if "start_date" in raw else START_DATE
    first = date.fromisoformat(raw["first_election_date"]) if "first_election_date" in raw else FIRST_ELECTION_DATE
    return World(
        current_date=start,
        next_election_date=first,
        seats=seats,
        demographics=demographics,
        affiliations=affiliations,
        parties=parties,
        alliances=alliances,
    )


def load_bill_templates() -> List[Bill]:
    return [
        Bill(
            bill_id=b["id"],
            title=b["title"],
            description=b.get("description", ""),
            is_constitutional=bool(b.get("is_constitutional", False)),
            position=_ideology(b.get("position", [50, 50])),
        )
        for b in _load_raw().get("bills", [])
    ]


# --- In-memory "active" configuration ---

ACTIVE_SOURCE: str = "mock"  # 'mock' | 'csv'
ACTIVE_META: Dict[str, Any] = {}
BASE_WORLD: World = load_mock_world()
ACTIVE_SIMULATION: Optional[Simulation] = None


def set_active_seats(seats: Dict[str, Seat], demographics: Dict[str, Demographics], source: str,
                     meta: Optional[Dict[str, Any]] = None) -> None:
    """Swap the seat table used by the next new game."""
    global ACTIVE_SOURCE, ACTIVE_META, BASE_WORLD
    ACTIVE_SOURCE = source
    ACTIVE_META = meta or {}
    BASE_WORLD = replace(BASE_WORLD, seats=seats, demographics=demographics)


def reset_base_world() -> None:
    global ACTIVE_SOURCE, ACTIVE_META, BASE_WORLD
    ACTIVE_SOURCE, ACTIVE_META, BASE_WORLD = "mock", {}, load_mock_world()


def get_base_world() -> World:
    return BASE_WORLD


def set_active_simulation(sim: Optional[Simulation]) -> None:
    global ACTIVE_SIMULATION
    ACTIVE_SIMULATION = sim


def get_active_simulation() -> Optional[Simulation]:
    return ACTIVE_SIMULATION


def get_seat_summary() -> Dict[str, Any]:
    w = BASE_WORLD
    return {
        "source": ACTIVE_SOURCE,
        "meta": ACTIVE_META,
        "count": len(w.seats),
        "seats": [
            {
                "code": s.code,
                "name": s.name,
                "state": s.state,
                "electorate": w.demographics[s.code].total_electorate if s.code in w.demographics else 0,
                "shares": dict(w.demographics[s.code].ethnic_shares) if s.code in w.demographics else {},
            }
            for s in w.seats.values()
        ],
    }


# --- Serialization for the HTTP layer ---

def serialize_character(c: Character, with_history: bool = False) -> Dict[str, Any]:
    out = asdict(c)
    if not with_history:
        out.pop("history")
    return out


def serialize_party(p: Party) -> Dict[str, Any]:
    return asdict(p)


def serialize_status(sim: Simulation) -> Dict[str, Any]:
    w = sim.world
    gov = w.government
    return {
        "current_date": w.current_date,
        "next_election_date": w.next_election_date,
        "phase": sim.phase,
        "running": sim.is_running,
        "speed": sim.speed,
        "active_event": asdict(sim.active_event) if sim.active_event else None,
        "player_character_id": sim.player_character_id,
        "government": asdict(gov) if gov else None,
        "speaker_id": w.speaker_id,
        "speaker_candidate_ids": list(sim.speaker_candidate_ids),
        "current_bill": asdict(sim.current_bill) if sim.current_bill else None,
        "living_characters": len(w.living()),
        "parties": [serialize_party(p) for p in w.parties],
        "alliances": [asdict(a) for a in w.alliances],
    }
