"""Shared fixtures: a three-seat, three-party world."""

import random
from datetime import date

import pytest

from polsim.sim.agent import Affiliation, Character, Demographics, Ideology, Seat
from polsim.sim.world import Party, World


class FixedRandom(random.Random):
    """random() always returns `value`; the other draws behave normally."""

    def __init__(self, value: float, seed: int = 0):
        super().__init__(seed)
        self.value = value

    def random(self):
        return self.value


def make_character(cid, affiliation_id, seat="S1", state="North", ethnicity=None,
                   influence=50.0, recognition=20.0, dob=date(1920, 1, 1), **kw):
    return Character(
        character_id=cid,
        name=cid.title(),
        affiliation_id=affiliation_id,
        ethnicity=ethnicity,
        state=state,
        current_seat_code=seat,
        date_of_birth=dob,
        influence=influence,
        recognition=recognition,
        **kw,
    )


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def world():
    seats = {
        "S1": Seat("S1", "Riverside", "North"),
        "S2": Seat("S2", "Hillcrest", "North"),
        "S3": Seat("S3", "Harbour", "South"),
    }
    demographics = {
        "S1": Demographics("S1", 10_000, {"A": 80.0, "B": 20.0}),
        "S2": Demographics("S2", 12_000, {"A": 30.0, "B": 70.0}),
        "S3": Demographics("S3", 8_000, {"A": 50.0, "B": 50.0}),
    }
    affiliations = {
        "a1": Affiliation("a1", "Alpha One", "A", Ideology(60, 50), "North"),
        "a2": Affiliation("a2", "Alpha Two", "B", Ideology(65, 45), "North"),
        "b1": Affiliation("b1", "Beta", "B", Ideology(20, 40), "South"),
        "g1": Affiliation("g1", "Gamma", None, Ideology(45, 80), "South"),
    }
    parties = [
        Party("red", "Red Party", "#f00", 70.0, Ideology(62, 48), None, "r1", "r2", ["a1", "a2"]),
        Party("blue", "Blue Party", "#00f", 60.0, Ideology(20, 40), "B", "b1", None, ["b1"]),
        Party("green", "Green Party", "#0f0", 50.0, Ideology(45, 80), None, "g1", None, ["g1"]),
    ]
    characters = [
        make_character("r1", "a1", "S1", ethnicity="A", influence=70),
        make_character("r2", "a2", "S2", ethnicity="B", influence=55),
        make_character("r3", "a1", "S3", state="South", ethnicity="A", influence=40),
        make_character("b1", "b1", "S2", ethnicity="B", influence=60),
        make_character("b2", "b1", "S3", state="South", ethnicity="B", influence=45),
        make_character("g1", "g1", "S3", state="South", influence=35),
        make_character("g2", "g1", "S1", influence=20),
    ]
    return World(
        current_date=date(1958, 1, 1),
        next_election_date=date(1959, 8, 19),
        seats=seats,
        demographics=demographics,
        affiliations=affiliations,
        parties=parties,
        characters=characters,
    )
