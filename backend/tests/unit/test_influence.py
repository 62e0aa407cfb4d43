"""Tests for the influence model."""

import copy
from dataclasses import replace

import pytest

from conftest import make_character
from polsim.errors import DataConsistencyError
from polsim.sim import influence
from polsim.sim.agent import Demographics
from polsim.sim.world import ContestedSeat


class TestDemographicAlignment:
    def test_missing_demographics_is_neutral(self):
        assert influence.demographic_alignment("A", None) == 1.0

    def test_empty_shares_is_neutral(self):
        assert influence.demographic_alignment("A", Demographics("X", 100, {})) == 1.0

    def test_share_scales_alignment(self):
        demo = Demographics("X", 100, {"A": 80.0})
        assert influence.demographic_alignment("A", demo) == pytest.approx(1.3)
        assert influence.demographic_alignment("B", demo) == pytest.approx(0.5)


class TestEffectiveInfluence:
    def test_official_candidate_multiplier(self, world):
        c = world.character("r1")
        args = (c, world.seats["S1"], world.demographics["S1"], world.affiliations, {})
        plain = influence.effective_influence(*args)
        official = influence.effective_influence(*args, official_candidate_id="r1")
        assert official == pytest.approx(plain * influence.OFFICIAL_CANDIDATE_MULTIPLIER)

    def test_missing_demographics_does_not_fail(self, world):
        c = world.character("r1")
        assert influence.effective_influence(c, world.seats["S1"], None, world.affiliations, {}) > 0

    def test_stronghold_bonus_is_capped(self, world):
        c = world.character("r1")
        seat, demo = world.seats["S1"], world.demographics["S1"]
        capped = influence.effective_influence(c, seat, demo, world.affiliations, {"S1": {"a1": 0.5}})
        over = influence.effective_influence(c, seat, demo, world.affiliations, {"S1": {"a1": 3.0}})
        assert capped == over

    def test_unknown_affiliation_raises(self, world):
        stray = make_character("x", "nope")
        with pytest.raises(DataConsistencyError):
            influence.effective_influence(stray, world.seats["S1"], None, world.affiliations, {})


class TestOwnership:
    def test_double_ownership_raises(self, world):
        parties = [replace(world.parties[0], affiliation_ids=["a1", "b1"])] + world.parties[1:]
        with pytest.raises(DataConsistencyError):
            influence.affiliation_to_party(parties)

    def test_orphan_affiliation_raises(self, world):
        with pytest.raises(DataConsistencyError):
            influence.check_affiliation_ownership(world.parties[:2], world.affiliations)

    def test_consistent_world_passes(self, world):
        influence.check_affiliation_ownership(world.parties, world.affiliations)

    def test_character_of_unowned_affiliation_raises(self, world):
        world.parties = [replace(p, affiliation_ids=[]) if p.party_id == "green" else p for p in world.parties]
        aff_to_party = influence.affiliation_to_party(world.parties)
        with pytest.raises(DataConsistencyError):
            influence.best_candidate(world, world.party("red"), "S1", aff_to_party)
        with pytest.raises(DataConsistencyError):
            influence.projected_control(world)


class TestBestCandidate:
    def test_picks_strongest_resident(self, world):
        aff_to_party = influence.affiliation_to_party(world.parties)
        cand, inf = influence.best_candidate(world, world.party("red"), "S1", aff_to_party)
        assert cand.character_id == "r1"
        assert inf > 0

    def test_dead_characters_are_ignored(self, world):
        world.characters = [replace(c, is_alive=False) if c.character_id == "r1" else c for c in world.characters]
        aff_to_party = influence.affiliation_to_party(world.parties)
        cand, _ = influence.best_candidate(world, world.party("red"), "S1", aff_to_party)
        assert cand is None

    def test_official_candidate_can_outrank(self, world):
        world.characters.append(make_character("r9", "a1", "S1", ethnicity="A", influence=65))
        red = world.party("red")
        red.contested_seats = {"S1": ContestedSeat("r9", "a1")}
        aff_to_party = influence.affiliation_to_party(world.parties)
        cand, _ = influence.best_candidate(world, red, "S1", aff_to_party)
        assert cand.character_id == "r9"


class TestProjectedControl:
    def test_every_seat_projected(self, world):
        projection = influence.projected_control(world)
        assert set(projection) == set(world.seats)
        assert projection["S1"] == "red"

    def test_idempotent_and_pure(self, world):
        before = copy.deepcopy(world)
        first = influence.projected_control(world)
        second = influence.projected_control(world)
        assert first == second
        assert world == before

    def test_empty_seat_has_no_controller(self, world):
        world.characters = [c for c in world.characters if c.current_seat_code != "S3"]
        assert influence.projected_control(world)["S3"] is None


class TestStrongholdMap:
    def test_weights_bounded(self, world):
        world.election_results = {"S1": "red", "S2": "blue", "S3": "red"}
        weights = influence.compute_stronghold_map(world)
        for seat in weights.values():
            assert all(0 <= w <= influence.MAX_STRONGHOLD_WEIGHT for w in seat.values())

    def test_holder_bonus(self, world):
        plain = influence.compute_stronghold_map(world)
        world.election_results = {"S2": "blue"}
        held = influence.compute_stronghold_map(world)
        assert held["S2"]["b1"] == pytest.approx(plain["S2"]["b1"] + influence.HOLDER_STRONGHOLD_BONUS)

    def test_only_requested_seats_recomputed(self, world):
        world.stronghold_map = {"S1": {"a1": 0.42}}
        out = influence.compute_stronghold_map(world, seat_codes=["S2"])
        assert out["S1"] == {"a1": 0.42}
        assert "S2" in out
