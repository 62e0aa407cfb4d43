from __future__ import annotations
from typing import List, Literal, Optional
import httpx

from ..config import LLM_MODEL, OLLAMA_BASE_URL
from .world import Bill, Party, VoteDirection

Stance = Literal["support","oppose","undecided"]

STANCE_FOR_VOTE = {"Aye": "support", "Nay": "oppose", "Abstain": "undecided"}


def _axis_words(party: Party, bill: Bill) -> str:
    words = []
    d_eco = bill.position.economic - party.ideology.economic
    d_gov = bill.position.governance - party.ideology.governance
    if abs(d_eco) >= 10:
        words.append("more market-driven" if d_eco > 0 else "more redistributive")
    if abs(d_gov) >= 10:
        words.append("more centralised" if d_gov > 0 else "more devolved")
    return " and ".join(words) if words else "close to our own programme"


def template_speech(speaker_name: str, party: Party, stance: Stance, bill: Bill) -> str:
    # Short and structured; no references to real people.
    lean = _axis_words(party, bill)
    if stance == "support":
        return (f"{speaker_name} ({party.name}): I rise in support of the {bill.title}. "
                f"It is {lean}, and it serves the people who sent us here.")
    if stance == "oppose":
        return (f"{speaker_name} ({party.name}): {party.name} cannot support the {bill.title}. "
                f"It is {lean}, and that is not what this country needs.")
    return (f"{speaker_name} ({party.name}): The {bill.title} has merit. It is {lean}, "
            f"and we will listen to the debate before deciding.")


def build_prompt(speaker_name: str, party: Party, stance: Stance, bill: Bill) -> str:
    return (
        "You are a member of parliament in a simulated legislature. "
        "Do NOT reference real people, parties, or scandals. "
        "Write a concise floor speech (<=90 words).\n\n"
        f"Speaker: {speaker_name} of {party.name}\n"
        f"Party ideology (economic 0=left..100=right, governance 0=liberal..100=authoritarian): "
        f"{party.ideology.economic:.0f}/{party.ideology.governance:.0f}\n"
        f"Bill: {bill.title}. {bill.description}\n"
        f"Bill position: {bill.position.economic:.0f}/{bill.position.governance:.0f}\n"
        f"Constitutional amendment: {'yes' if bill.is_constitutional else 'no'}\n"
        f"Stance: {stance}\n"
        "Speech:"
    )


async def ollama_generate(prompt: str, model: str, base_url: str = OLLAMA_BASE_URL) -> Optional[str]:
    # Ollama generate endpoint: POST /api/generate
    try:
        async with httpx.AsyncClient(timeout=20) as client:
            r = await client.post(
                f"{base_url}/api/generate",
                json={"model": model, "prompt": prompt, "stream": False},
            )
            r.raise_for_status()
            data = r.json()
            return data.get("response")
    except httpx.HTTPError:
        return None


async def generate_speech(speaker_name: str, party: Party, vote: VoteDirection, bill: Bill,
                          use_llm: bool, llm_model: str = LLM_MODEL) -> str:
    stance: Stance = STANCE_FOR_VOTE[vote]
    if not use_llm:
        return template_speech(speaker_name, party, stance, bill)

    prompt = build_prompt(speaker_name, party, stance, bill)
    out = await ollama_generate(prompt, model=llm_model)
    return out.strip() if out else template_speech(speaker_name, party, stance, bill)


async def debate_bill(spokespeople: List[tuple], bill: Bill, use_llm: bool, llm_model: str = LLM_MODEL) -> List[dict]:
    """`spokespeople` is a list of (name, party, expected vote); one speech each."""
    speeches = []
    for name, party, vote in spokespeople:
        text = await generate_speech(name, party, vote, bill, use_llm=use_llm, llm_model=llm_model)
        speeches.append({"speaker": name, "party_id": party.party_id, "stance": STANCE_FOR_VOTE[vote], "text": text})
    return speeches
