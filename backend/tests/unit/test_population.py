"""Tests for mortality, succession and world population."""

import random
from dataclasses import replace
from datetime import date

from conftest import FixedRandom, make_character
from polsim.sim import population
from polsim.sim.agent import age_on


class TestMortality:
    def test_rate_never_decreases_with_age(self):
        rates = [population.mortality_rate(age) for age in range(0, 121)]
        assert rates == sorted(rates)
        probs = [population.death_probability(age) for age in range(0, 121)]
        assert probs == sorted(probs)

    def test_ceiling(self):
        assert population.mortality_rate(95) == population.MORTALITY_CEILING

    def test_dead_cannot_die_again(self):
        c = make_character("x", "a1", is_alive=False)
        assert not population.should_character_die(c, date(1960, 1, 1), FixedRandom(0.0))

    def test_gate_blocks(self):
        c = make_character("x", "a1", dob=date(1850, 1, 1))
        assert not population.should_character_die(c, date(1960, 1, 1), FixedRandom(0.5))

    def test_old_character_dies_when_gate_and_rate_pass(self):
        c = make_character("x", "a1", dob=date(1850, 1, 1))
        assert population.should_character_die(c, date(1960, 1, 1), FixedRandom(0.001))


class TestAge:
    def test_birthday_not_yet_reached(self):
        assert age_on(date(1920, 6, 15), date(1960, 6, 14)) == 39
        assert age_on(date(1920, 6, 15), date(1960, 6, 15)) == 40


class TestSuccessor:
    def test_successor_age_window(self):
        deceased = make_character("old", "a1", "S1", ethnicity="A", is_mp=True)
        rng = random.Random(7)
        for on in (date(1960, 1, 1), date(1964, 2, 29), date(1971, 12, 31)):
            for i in range(200):
                s = population.create_successor(deceased, on, rng, i)
                assert population.SUCCESSOR_MIN_AGE <= s.age_on(on) < population.SUCCESSOR_MAX_AGE

    def test_successor_inherits_place(self):
        deceased = make_character("old", "a1", "S2", state="North", ethnicity="A", is_mp=True)
        s = population.create_successor(deceased, date(1960, 3, 1), random.Random(1))
        assert (s.affiliation_id, s.current_seat_code, s.state, s.ethnicity) == ("a1", "S2", "North", "A")
        assert s.is_alive and not s.is_mp and not s.is_player
        assert s.character_id != deceased.character_id
        assert len(s.history) == 1
        assert abs(s.ideology.economic - deceased.ideology.economic) <= population.IDEOLOGY_DRIFT

    def test_unique_ids_same_day(self):
        deceased = make_character("old", "a1")
        rng = random.Random(3)
        ids = {population.create_successor(deceased, date(1960, 1, 1), rng, i).character_id for i in range(50)}
        assert len(ids) == 50


class TestPopulate:
    def test_skips_absent_ethnicities(self, world):
        world.demographics["S1"] = replace(world.demographics["S1"], ethnic_shares={"A": 99.0, "B": 1.0})
        chars = population.populate_world_characters(
            world.seats, world.demographics, world.parties, world.affiliations, date(1958, 1, 1), random.Random(5)
        )
        in_s1 = {c.affiliation_id for c in chars if c.current_seat_code == "S1"}
        assert in_s1 == {"a1", "g1"}

    def test_one_per_seat_and_affiliation(self, world):
        chars = population.populate_world_characters(
            world.seats, world.demographics, world.parties, world.affiliations, date(1958, 1, 1), random.Random(5)
        )
        keys = [(c.current_seat_code, c.affiliation_id) for c in chars]
        assert len(keys) == len(set(keys))
        assert len({c.character_id for c in chars}) == len(chars)
        assert all(20 <= c.age_on(date(1958, 1, 1)) < 50 for c in chars)
