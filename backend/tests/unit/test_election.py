"""Tests for the election engine."""

import random
from dataclasses import replace
from datetime import date

import pytest

from conftest import make_character
from polsim.errors import DataConsistencyError
from polsim.sim import election
from polsim.sim.agent import Affiliation, Demographics, Seat
from polsim.sim.influence import affiliation_to_party
from polsim.sim.world import Party, World


class TestAllocateVotes:
    def test_sums_to_electorate(self):
        votes = election.allocate_votes({"a": 33.3, "b": 33.3, "c": 33.4}, 10_000)
        assert sum(votes.values()) == 10_000

    def test_proportional(self):
        assert election.allocate_votes({"a": 3.0, "b": 1.0}, 100) == {"a": 75, "b": 25}

    def test_zero_scores(self):
        assert election.allocate_votes({"a": 0.0, "b": 0.0}, 100) == {"a": 0, "b": 0}

    def test_remainder_goes_to_lowest_id_on_tie(self):
        assert election.allocate_votes({"b": 1.0, "a": 1.0}, 3) == {"a": 2, "b": 1}


class TestPickWinner:
    def test_most_votes(self):
        assert election.pick_winner({"a": 10, "b": 12}) == "b"

    def test_tie_goes_to_lowest_id(self):
        assert election.pick_winner({"zeta": 5, "alpha": 5}) == "alpha"

    def test_empty(self):
        assert election.pick_winner({}) is None


class TestAddYears:
    def test_plain(self):
        assert election.add_years(date(1959, 8, 19), 4) == date(1963, 8, 19)

    def test_leap_day(self):
        assert election.add_years(date(1960, 2, 29), 1) == date(1961, 2, 28)
        assert election.add_years(date(1960, 2, 29), 4) == date(1964, 2, 29)


class TestGeneralElection:
    def test_votes_and_winners(self, world, rng):
        outcome = election.run_general_election(world, rng)
        for code, votes in outcome.detailed_results.items():
            assert sum(votes.values()) == world.demographics[code].total_electorate
            winner = outcome.results[code]
            assert votes[winner] == max(votes.values())

    def test_schedules_next_election(self, world, rng):
        world.current_date = date(1959, 8, 19)
        outcome = election.run_general_election(world, rng)
        assert outcome.next_election_date == date(1963, 8, 19)

    def test_winners_become_mps(self, world, rng):
        outcome = election.run_general_election(world, rng)
        mps = {c.character_id for c in outcome.characters if c.is_mp}
        winners = {w.candidate_id for w in outcome.history_entry.seat_winners.values() if w.candidate_id}
        assert mps == winners

    def test_history_is_a_snapshot(self, world, rng):
        unity = world.parties[0].unity
        outcome = election.run_general_election(world, rng)
        updated = election.apply_election(world, outcome)
        updated.parties[0].unity = 1.0
        assert outcome.history_entry.parties[0].unity == unity
        assert updated.election_history[-1] is outcome.history_entry

    def test_unowned_affiliation_aborts_election(self, world, rng):
        world.parties = [replace(p, affiliation_ids=[]) if p.party_id == "green" else p for p in world.parties]
        with pytest.raises(DataConsistencyError):
            election.run_general_election(world, rng)

    def test_input_world_untouched(self, world, rng):
        before = [c.is_mp for c in world.characters]
        election.run_general_election(world, rng)
        assert [c.is_mp for c in world.characters] == before
        assert world.election_results == {}

    def test_missing_candidate_still_scores(self, world, rng):
        aff_to_party = affiliation_to_party(world.parties)
        score, cand = election.party_seat_score(world, world.party("blue"), "S1", aff_to_party, False, rng)
        assert cand is None
        assert score > 0


def _balanced_world():
    seat = Seat("S1", "Midtown", "Central")
    parties = [
        Party("a", "Party A", "#f00", 60.0, affiliation_ids=["fa"]),
        Party("b", "Party B", "#00f", 60.0, affiliation_ids=["fb"]),
    ]
    return World(
        current_date=date(1959, 8, 19),
        next_election_date=date(1959, 8, 19),
        seats={"S1": seat},
        demographics={"S1": Demographics("S1", 10_000, {})},
        affiliations={"fa": Affiliation("fa", "FA", None), "fb": Affiliation("fb", "FB", None)},
        parties=parties,
        characters=[
            make_character("ca", "fa", "S1", state="Central", influence=50),
            make_character("cb", "fb", "S1", state="Central", influence=50),
        ],
    )


class TestBalance:
    def test_symmetric_parties_split_the_seat(self):
        world = _balanced_world()
        aff_to_party = affiliation_to_party(world.parties)
        rng = random.Random(2024)
        wins = {"a": 0, "b": 0}
        for _ in range(1000):
            outcome = election.contest_seat(world, "S1", aff_to_party, set(), rng)
            assert sum(outcome.votes.values()) == 10_000
            wins[outcome.winner_id] += 1
        assert 420 <= wins["a"] <= 580
