from __future__ import annotations
from contextlib import contextmanager
from dataclasses import asdict
from typing import List

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import APP_ORIGINS, DEFAULT_SPEED_MS, LLM_MODEL, LOG_LEVEL, LOG_TO_FILE, SEED
from .errors import ActionRejectedError, DataConsistencyError
from .log import setup_logging
from .models import (
    ActionRequest,
    AdvanceRequest,
    AllianceRequest,
    BillVoteResponse,
    ConfidenceVoteResponse,
    DebateRequest,
    LoadSeatCsvUrlRequest,
    MoveRequest,
    NewGameRequest,
    PlayRequest,
    ProposeBillRequest,
    RestructureRequest,
    RestructuringResponse,
    SecedeRequest,
    SeatSummary,
    Speech,
    SpeakerVoteRequest,
    SpeakerVoteResponse,
    TickReport,
    VoteRequest,
)
from .state import (
    get_active_simulation,
    get_base_world,
    get_seat_summary,
    load_bill_templates,
    reset_base_world,
    serialize_character,
    serialize_status,
    set_active_seats,
    set_active_simulation,
)
from .sim.agent import Ideology
from .sim.debate import debate_bill
from .sim.engine import Simulation
from .sim.lifecycle import RestructuringResult
from .sim.parliament import ai_decide_bill_vote, seat_counts
from .sim.world import Bill
from .data_pipeline.seats import fetch_csv, parse_seat_csv, states_of

setup_logging(LOG_LEVEL, to_file=LOG_TO_FILE)

app = FastAPI(title="Political Simulation", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=APP_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@contextmanager
def _guard():
    try:
        yield
    except ActionRejectedError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except DataConsistencyError as e:
        logger.error("Inconsistent world state: {}", e.message)
        raise HTTPException(status_code=409, detail=e.message)


def _sim() -> Simulation:
    sim = get_active_simulation()
    if sim is None:
        raise HTTPException(status_code=409, detail="No game in progress. POST /game/new first.")
    return sim


def _restructuring_response(result: RestructuringResult) -> RestructuringResponse:
    return RestructuringResponse(**asdict(result.report))


@app.get("/health")
def health():
    return {"ok": True}


# --- seat tables ---

@app.get("/seats/summary", response_model=SeatSummary)
def seats_summary():
    return get_seat_summary()


@app.post("/seats/use_mock", response_model=SeatSummary)
def seats_use_mock():
    reset_base_world()
    return get_seat_summary()


@app.post("/seats/load_csv_url", response_model=SeatSummary)
async def seats_load_csv_url(req: LoadSeatCsvUrlRequest):
    """Replace the seat table used by the next new game.

    Expected columns (configurable): seat code, name, state, electorate and
    one percentage column per ethnicity.
    """
    try:
        csv_text = await fetch_csv(req.url)
    except httpx.HTTPError as e:
        raise HTTPException(status_code=400, detail=f"Failed to download CSV: {e}")

    seats, demographics = parse_seat_csv(
        csv_text,
        code_col=req.code_col,
        name_col=req.name_col,
        state_col=req.state_col,
        electorate_col=req.electorate_col,
        share_cols=req.share_cols,
        delimiter=req.delimiter,
    )
    if not seats:
        raise HTTPException(status_code=404, detail="No seats found in CSV (check column names).")
    set_active_seats(seats, demographics, source="csv", meta={"url": req.url, "states": states_of(seats)})
    return get_seat_summary()


# --- game lifecycle and time ---

@app.post("/game/new")
def game_new(req: NewGameRequest):
    seed = req.seed if req.seed is not None else SEED
    kwargs = {} if req.event_chance is None else {"event_chance": req.event_chance}
    with _guard():
        sim = Simulation.new_game(
            get_base_world(),
            seed=seed,
            player=req.player.model_dump() if req.player else None,
            **kwargs,
        )
    set_active_simulation(sim)
    return serialize_status(sim)


@app.get("/game/status")
def game_status():
    return serialize_status(_sim())


@app.post("/game/play")
def game_play(req: PlayRequest):
    sim = _sim()
    if not sim.play(req.speed_ms):
        raise HTTPException(status_code=409, detail="Resolve the pending event or vote first.")
    return serialize_status(sim)


@app.post("/game/pause")
def game_pause():
    sim = _sim()
    sim.pause()
    return serialize_status(sim)


@app.post("/game/advance", response_model=TickReport)
def game_advance(req: AdvanceRequest):
    """Run `days` ticks (or until the loop pauses itself for an event or election)."""
    sim = _sim()
    was_running = sim.is_running
    if not was_running and not sim.play(sim.speed or DEFAULT_SPEED_MS):
        raise HTTPException(status_code=409, detail="Resolve the pending event or vote first.")
    with _guard():
        ticks = sim.advance(req.days)
    if not was_running:
        sim.pause()

    paused_for = None
    if ticks and ticks[-1].event is not None:
        paused_for = "event"
    elif ticks and ticks[-1].election is not None:
        paused_for = "election"
    return TickReport(
        days_advanced=len(ticks),
        current_date=sim.world.current_date.isoformat(),
        paused_for=paused_for,
        deaths=[cid for t in ticks for cid in t.deaths],
        successors=[cid for t in ticks for cid in t.successors],
        government_collapsed=any(t.government_collapsed for t in ticks),
    )


@app.post("/game/event/acknowledge")
def game_acknowledge_event():
    sim = _sim()
    event = sim.acknowledge_event()
    if event is None:
        raise HTTPException(status_code=409, detail="No event is pending.")
    return asdict(event)


@app.get("/game/log")
def game_log(limit: int = Query(50, ge=1)):
    entries = _sim().world.log
    return [asdict(e) for e in entries[-limit:]][::-1]


@app.get("/game/characters/{character_id}")
def game_character(character_id: str):
    c = _sim().world.character(character_id)
    if c is None:
        raise HTTPException(status_code=404, detail="Unknown character")
    return serialize_character(c, with_history=True)


@app.get("/game/seats/{seat_code}/characters")
def game_seat_characters(seat_code: str):
    w = _sim().world
    if seat_code not in w.seats:
        raise HTTPException(status_code=404, detail="Unknown seat")
    return [serialize_character(c) for c in w.characters if c.is_alive and c.current_seat_code == seat_code]


# --- elections ---

@app.get("/game/projection")
def game_projection():
    return _sim().projected_control()


@app.post("/game/election/force")
def game_force_election():
    sim = _sim()
    sim.force_election()
    return serialize_status(sim)


@app.get("/game/elections/latest")
def game_latest_election():
    w = _sim().world
    if not w.election_history:
        raise HTTPException(status_code=404, detail="No election has been held yet.")
    entry = w.election_history[-1]
    out = asdict(entry)
    out["seat_counts"] = seat_counts(entry.results)
    return out


@app.get("/game/elections/history")
def game_election_history():
    return [
        {"date": e.date, "seat_counts": seat_counts(e.results), "total_votes": e.total_votes,
         "total_electorate": e.total_electorate, "total_seats": e.total_seats}
        for e in _sim().world.election_history
    ]


@app.post("/game/election/close")
def game_close_election():
    sim = _sim()
    with _guard():
        sim.close_election_results()
    return serialize_status(sim)


@app.post("/game/speaker/vote", response_model=SpeakerVoteResponse)
def game_speaker_vote(req: SpeakerVoteRequest):
    sim = _sim()
    with _guard():
        result = sim.elect_speaker(req.candidate_id)
    return SpeakerVoteResponse(winner_id=result.winner_id, tally=result.tally)


# --- parliament ---

@app.post("/game/confidence", response_model=ConfidenceVoteResponse)
def game_confidence(req: VoteRequest):
    sim = _sim()
    with _guard():
        result = sim.call_vote_of_confidence(req.vote)
    return ConfidenceVoteResponse(**asdict(result))


@app.get("/bills/templates")
def bills_templates():
    return [asdict(b) for b in load_bill_templates()]


@app.post("/game/bills/propose")
def game_propose_bill(req: ProposeBillRequest):
    sim = _sim()
    if req.template_id:
        bill = next((b for b in load_bill_templates() if b.bill_id == req.template_id), None)
        if bill is None:
            raise HTTPException(status_code=404, detail=f"Unknown bill template {req.template_id}")
    elif req.title:
        bill = Bill(
            bill_id=f"bill-{len(sim.world.log) + 1}",
            title=req.title,
            description=req.description,
            is_constitutional=req.is_constitutional,
            position=Ideology(req.economic, req.governance),
        )
    else:
        raise HTTPException(status_code=400, detail="Provide template_id or title.")
    with _guard():
        bill = sim.propose_bill(bill)
    return asdict(bill)


@app.post("/game/bills/debate", response_model=List[Speech])
async def game_debate_bill(req: DebateRequest):
    sim = _sim()
    bill = sim.current_bill
    if bill is None:
        raise HTTPException(status_code=409, detail="No bill before Parliament.")
    w = sim.world
    seats = seat_counts(w.election_results)
    speakers = []
    for party in sorted(w.parties, key=lambda p: (-seats.get(p.party_id, 0), p.party_id)):
        leader = w.character(party.leader_id)
        if leader is None or not leader.is_alive:
            continue
        speakers.append((leader.name, party, ai_decide_bill_vote(party, bill, w.government)))
        if len(speakers) >= req.max_speakers:
            break
    return await debate_bill(speakers, bill, use_llm=req.use_llm, llm_model=req.llm_model or LLM_MODEL)


@app.post("/game/bills/vote", response_model=BillVoteResponse)
def game_vote_bill(req: VoteRequest):
    sim = _sim()
    with _guard():
        result = sim.vote_on_bill(req.vote)
    return BillVoteResponse(passed=result.passed, threshold=result.threshold, tally=result.tally)


@app.post("/game/crackdown")
def game_crackdown():
    sim = _sim()
    with _guard():
        event = sim.security_crackdown()
    return asdict(event)


# --- player ---

@app.post("/game/actions")
def game_action(req: ActionRequest):
    sim = _sim()
    with _guard():
        me = sim.perform_action(req.action, {"party_id": req.party_id})
    return serialize_character(me)


@app.post("/game/move")
def game_move(req: MoveRequest):
    sim = _sim()
    with _guard():
        me = sim.move_player(req.seat_code)
    return serialize_character(me)


@app.post("/game/restructure", response_model=RestructuringResponse)
def game_restructure(req: RestructureRequest):
    sim = _sim()
    with _guard():
        result = sim.propose_merger(req.mode, req.party_ids, req.affiliation_ids, req.new_name)
    return _restructuring_response(result)


@app.post("/game/secede", response_model=RestructuringResponse)
def game_secede(req: SecedeRequest):
    sim = _sim()
    if req.target_party_id is None and not req.new_party_name:
        raise HTTPException(status_code=400, detail="Provide target_party_id or new_party_name.")
    with _guard():
        result = sim.secede(req.target_party_id, req.new_party_name, req.focus)
    return _restructuring_response(result)


@app.post("/game/alliances", response_model=RestructuringResponse)
def game_alliance(req: AllianceRequest):
    sim = _sim()
    with _guard():
        result = sim.create_alliance(req.name, req.invited_party_ids, req.alliance_type)
    return _restructuring_response(result)
