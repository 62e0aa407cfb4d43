"""Tests for the daily loop and the simulation state machine."""

from dataclasses import replace
from datetime import date, timedelta

import pytest

from conftest import FixedRandom
from polsim.errors import ActionRejectedError, DataConsistencyError
from polsim.sim.engine import Simulation, advance_day
from polsim.sim.influence import affiliation_to_party, check_affiliation_ownership
from polsim.sim.parliament import conduct_speaker_vote
from polsim.sim.world import Bill, Government, LogType
from polsim.state import load_mock_world

QUIET = 0.99


def _age(world, cid, dob):
    world.characters = [replace(c, date_of_birth=dob) if c.character_id == cid else c for c in world.characters]
    return world


def run_days(sim, days):
    """Advance, resolving every pause the way a player clicking through would."""
    remaining = days
    while remaining > 0:
        if sim.active_event is not None:
            sim.acknowledge_event()
        if sim.phase == "election-results":
            sim.close_election_results()
        if sim.phase == "speaker-election":
            sim.elect_speaker()
        assert sim.play()
        remaining -= len(sim.advance(remaining))


class TestAdvanceDay:
    def test_quiet_day(self, world):
        out = advance_day(world, FixedRandom(QUIET))
        assert out.world.current_date == date(1958, 1, 2)
        assert out.event is None and out.election is None
        assert out.world.characters == world.characters

    def test_monthly_event_pauses_before_anything_else(self, world):
        world.current_date = date(1958, 1, 31)
        out = advance_day(world, FixedRandom(0.0))
        assert out.world.current_date == date(1958, 2, 1)
        assert out.event is not None
        assert out.world.characters is world.characters

    def test_no_event_mid_month(self, world):
        world.current_date = date(1958, 1, 14)
        out = advance_day(world, FixedRandom(QUIET), event_chance=1.0)
        assert out.event is None

    def test_death_and_succession(self, world):
        world.current_date = date(1958, 1, 5)
        world = _age(world, "r1", date(1850, 1, 1))
        out = advance_day(world, FixedRandom(0.001), event_chance=0.0)
        assert out.deaths == ["r1"]
        assert len(out.successors) == 1
        heir = out.world.character(out.successors[0])
        assert (heir.affiliation_id, heir.current_seat_code) == ("a1", "S1")
        assert not out.world.character("r1").is_alive
        assert out.world.log[-1].type == LogType.DEATH
        assert out.world.party("red").leader_id == "r2"

    def test_chief_death_collapses_government(self, world):
        world.current_date = date(1958, 1, 5)
        world = _age(world, "r1", date(1850, 1, 1))
        world.government = Government("r1", ["r2"], ["red"], date(1957, 8, 31))
        out = advance_day(world, FixedRandom(0.001), event_chance=0.0)
        assert out.government_collapsed
        assert out.world.government is None
        assert any(e.type == LogType.MAJOR_EVENT for e in out.world.log)

    def test_player_is_not_driven_by_ai(self, world):
        world.current_date = date(1958, 1, 5)
        before = world.character("g2")
        out = advance_day(world, FixedRandom(0.001), player_character_id="g2", event_chance=0.0)
        assert out.world.character("g2") == before

    def test_unowned_affiliation_aborts_the_day(self, world):
        world.parties = [replace(p, affiliation_ids=[]) if p.party_id == "green" else p for p in world.parties]
        with pytest.raises(DataConsistencyError):
            advance_day(world, FixedRandom(QUIET), event_chance=0.0)

    def test_election_day(self, world):
        world.current_date = date(1959, 8, 18)
        out = advance_day(world, FixedRandom(QUIET))
        assert out.election is not None
        assert out.world.next_election_date == date(1963, 8, 19)
        assert len(out.world.election_history) == 1
        assert out.world.log[-1].type == LogType.ELECTION


@pytest.fixture
def sim():
    return Simulation.new_game(load_mock_world(), seed=11, event_chance=0.0)


@pytest.fixture
def player_sim():
    return Simulation.new_game(
        load_mock_world(), seed=11, event_chance=0.0,
        player={"name": "Test Player", "affiliation_id": "umno", "seat_code": "P010"},
    )


class TestNewGame:
    def test_spectator(self, sim):
        w = sim.world
        assert w.characters
        assert all(p.leader_id for p in w.parties)
        assert sim.player_character is None
        assert w.log[-1].title == "Spectator Mode"
        check_affiliation_ownership(w.parties, w.affiliations)

    def test_contested_seats_reference_members(self, sim):
        w = sim.world
        owners = affiliation_to_party(w.parties)
        for p in w.parties:
            for rec in p.contested_seats.values():
                assert owners[w.character(rec.candidate_id).affiliation_id] == p.party_id

    def test_player(self, player_sim):
        me = player_sim.player_character
        assert me.is_player and me.name == "Test Player"
        assert me.current_seat_code == "P010"
        assert player_sim.player_party.party_id == "alliance"

    def test_unknown_seat_rejected(self):
        with pytest.raises(ActionRejectedError):
            Simulation.new_game(load_mock_world(), seed=1,
                                player={"affiliation_id": "umno", "seat_code": "P999"})


class TestTimeControl:
    def test_paused_tick_does_nothing(self, sim):
        assert sim.tick() is None

    def test_play_and_pause(self, sim):
        start = sim.world.current_date
        sim.play()
        sim.advance(3)
        sim.pause()
        assert sim.tick() is None
        assert (sim.world.current_date - start).days == 3

    def test_event_blocks_play(self, sim):
        sim.event_chance = 1.0
        sim.world = replace(sim.world, current_date=date(1958, 1, 31))
        sim.play()
        sim.advance(10)
        assert sim.active_event is not None
        assert not sim.is_running
        assert not sim.play()
        sim.acknowledge_event()
        assert sim.world.log[-1].type == LogType.EVENT
        assert sim.play()


class TestElectionFlow:
    def test_election_then_speaker(self, sim):
        sim.force_election()
        sim.play()
        ticks = sim.advance(30)
        assert len(ticks) == 1
        assert sim.phase == "election-results"
        assert not sim.play()

        with pytest.raises(ActionRejectedError):
            sim.elect_speaker()
        sim.close_election_results()
        result = sim.elect_speaker()
        assert sim.world.speaker_id == result.winner_id
        assert sim.phase == "game"

    def test_close_without_results_rejected(self, sim):
        with pytest.raises(ActionRejectedError):
            sim.close_election_results()


class TestParliament:
    def _open_speaker_election(self, sim):
        sim.force_election()
        run_days(sim, 1)
        sim.close_election_results()

    def _elect(self, sim):
        self._open_speaker_election(sim)
        sim.elect_speaker()

    def test_bill_cycle(self, player_sim):
        self._elect(player_sim)
        bill = player_sim.propose_bill(Bill("b1", "Test Act"))
        assert bill.proposing_party_id == "alliance"
        assert player_sim.phase == "bill-vote"
        result = player_sim.vote_on_bill("Aye")
        assert player_sim.phase == "game"
        assert result.threshold > 0
        assert player_sim.world.log[-1].title in ("Bill Passed", "Bill Defeated")

    def test_vote_without_bill_rejected(self, sim):
        with pytest.raises(ActionRejectedError):
            sim.vote_on_bill("Aye")

    def test_confidence_without_government_rejected(self, sim):
        with pytest.raises(ActionRejectedError):
            sim.call_vote_of_confidence()

    def test_crackdown_pauses_for_event(self, sim):
        chief = sim.world.party("alliance").leader_id
        sim.world = replace(sim.world, government=Government(chief, [], ["alliance"], sim.world.current_date))
        assert sim.world.government is not None
        event = sim.security_crackdown()
        assert sim.active_event is event
        assert not sim.play()

    def test_speaker_vote_ignores_player_without_seat(self, player_sim):
        self._open_speaker_election(player_sim)
        me = player_sim.player_character_id
        player_sim.world = replace(player_sim.world, characters=[
            replace(c, is_mp=False) if c.character_id == me else c for c in player_sim.world.characters
        ])
        w = player_sim.world
        candidates = [w.character(cid) for cid in player_sim.speaker_candidate_ids]
        blocs = conduct_speaker_vote(w.election_results, w.parties, candidates, affiliation_to_party(w.parties))
        own_choice = blocs.breakdown.get("alliance")
        rival = next((c.character_id for c in candidates if c.character_id != own_choice), own_choice)

        result = player_sim.elect_speaker(player_vote_id=rival)
        assert result.tally == blocs.tally


class TestPlayerActions:
    def test_address_local(self, player_sim):
        before = player_sim.player_character.influence
        me = player_sim.perform_action("addressLocal")
        assert me.influence == min(100.0, before + 8)
        assert player_sim.world.log[-1].type == LogType.PERSONAL

    def test_undermine_rival(self, player_sim):
        unity = player_sim.world.party("pmip").unity
        player_sim.perform_action("undermineRival", {"party_id": "pmip"})
        assert player_sim.world.party("pmip").unity == unity - 2

    def test_move(self, player_sim):
        me = player_sim.move_player("P011")
        assert me.current_seat_code == "P011"
        with pytest.raises(ActionRejectedError):
            player_sim.move_player("nowhere")

    def test_spectator_cannot_act(self, sim):
        with pytest.raises(ActionRejectedError):
            sim.perform_action("addressLocal")

    def test_secede_founds_party(self, player_sim):
        result = player_sim.secede(new_party_name="Malayan Reform Party", focus="centrist")
        assert result.report.resulting_party_id == "party-malayan-reform-party"
        assert player_sim.player_party.party_id == "party-malayan-reform-party"
        assert player_sim.player_party.leader_id == player_sim.player_character_id
        check_affiliation_ownership(player_sim.world.parties, player_sim.world.affiliations)


class TestLongRun:
    def test_invariants_hold_over_an_election_cycle(self):
        sim = Simulation.new_game(load_mock_world(), seed=3)
        run_days(sim, 800)
        w = sim.world
        assert w.current_date == date(1958, 1, 1) + timedelta(days=800)
        assert len(w.election_history) == 1
        check_affiliation_ownership(w.parties, w.affiliations)
        living = w.living_ids()
        for p in w.parties:
            assert p.leader_id is None or p.leader_id in living
            for rec in p.contested_seats.values():
                assert rec.candidate_id in living
        if w.government is not None:
            assert w.government.chief_executive_id in living
        for code, votes in w.election_history[0].detailed_results.items():
            assert sum(votes.values()) == w.demographics[code].total_electorate
