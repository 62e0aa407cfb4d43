"""Tests for world events, NPC behaviour and debate speeches."""

import asyncio
from datetime import date

from conftest import FixedRandom
from polsim.sim import debate, events
from polsim.sim.agent import Ideology
from polsim.sim.ai import determine_ai_action
from polsim.sim.parliament import CharacterRole
from polsim.sim.world import Bill, EventEffect, GameEvent


class TestEvents:
    def test_no_event_above_chance(self, world):
        assert events.check_for_game_event(date(1958, 2, 1), world, FixedRandom(0.5), chance=0.15) is None

    def test_event_below_chance(self, world):
        event = events.check_for_game_event(date(1958, 2, 1), world, FixedRandom(0.0), chance=0.15)
        assert event is not None
        assert event.date == date(1958, 2, 1)

    def test_effects_are_clamped(self, world):
        event = GameEvent("e", date(1958, 2, 1), "Test", "", (
            EventEffect("party", "red", "unity", 50),
            EventEffect("character", "g2", "influence", -80),
        ))
        out = events.apply_event_effects(world, event)
        assert out.party("red").unity == 100
        assert out.character("g2").influence == 0
        assert world.party("red").unity == 70

    def test_unsupported_effect_ignored(self, world):
        event = GameEvent("e", date(1958, 2, 1), "Test", "", (EventEffect("party", "red", "budget", 5),))
        out = events.apply_event_effects(world, event)
        assert out.parties == world.parties


class TestAi:
    def test_idle(self, world):
        c = world.character("g2")
        assert determine_ai_action(c, CharacterRole.MEMBER, world, {}, FixedRandom(0.5)) is c

    def test_campaign_gains_influence(self, world):
        c = world.character("r1")
        out = determine_ai_action(c, CharacterRole.NATIONAL_LEADER, world, {}, FixedRandom(0.0))
        assert out.influence > c.influence
        assert out.recognition == c.recognition + 2.0

    def test_member_relocates_within_home_state(self, world):
        c = world.character("g2")
        world.stronghold_map = {"S2": {"g1": 0.3}}
        out = determine_ai_action(c, CharacterRole.MEMBER, world, {}, FixedRandom(0.0))
        assert out.current_seat_code == "S2"
        assert world.seats[out.current_seat_code].state == c.state
        assert out.history[-1].event.startswith("Moved")


class TestDebate:
    def _bill(self):
        return Bill("b", "Test Act", "Does things.", position=Ideology(90, 50))

    def test_template_mentions_bill(self, world):
        text = debate.template_speech("Speaker", world.party("blue"), "oppose", self._bill())
        assert "Test Act" in text
        assert "more market-driven" in text

    def test_debate_without_llm(self, world):
        speakers = [("A", world.party("red"), "Aye"), ("B", world.party("blue"), "Nay")]
        speeches = asyncio.run(debate.debate_bill(speakers, self._bill(), use_llm=False))
        assert [s["stance"] for s in speeches] == ["support", "oppose"]

    def test_llm_failure_falls_back(self, world, monkeypatch):
        async def offline(prompt, model, base_url=None):
            return None

        monkeypatch.setattr(debate, "ollama_generate", offline)
        text = asyncio.run(debate.generate_speech("A", world.party("red"), "Abstain", self._bill(), use_llm=True))
        assert text == debate.template_speech("A", world.party("red"), "undecided", self._bill())
