from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Literal

Vote = Literal["Aye","Nay","Abstain"]
ActionName = Literal["promoteParty","addressLocal","strengthenLocalBranch","organizeStateRally","undermineRival"]

class PlayerSetup(BaseModel):
    name: str = Field("", examples=["Ahmad bin Omar"])
    affiliation_id: str = Field(..., examples=["umno"])
    seat_code: str = Field(..., examples=["P010"])

class NewGameRequest(BaseModel):
    # Omit `player` to spectate.
    player: Optional[PlayerSetup] = None
    seed: Optional[int] = None
    event_chance: Optional[float] = Field(None, ge=0.0, le=1.0)

class PlayRequest(BaseModel):
    speed_ms: int = Field(500, ge=10, le=10_000)

class AdvanceRequest(BaseModel):
    days: int = Field(1, ge=1, le=3650)

class TickReport(BaseModel):
    days_advanced: int
    current_date: str
    paused_for: Optional[Literal["event","election"]] = None
    deaths: List[str] = []
    successors: List[str] = []
    government_collapsed: bool = False

class SpeakerVoteRequest(BaseModel):
    candidate_id: Optional[str] = None

class SpeakerVoteResponse(BaseModel):
    winner_id: Optional[str]
    tally: Dict[str, int]

class VoteRequest(BaseModel):
    vote: Optional[Vote] = None

class ConfidenceVoteResponse(BaseModel):
    passed: bool
    votes_for: int
    votes_against: int
    abstentions: int

class ProposeBillRequest(BaseModel):
    """Either pick a bundled template or describe a bill."""

    template_id: Optional[str] = Field(None, examples=["land-reform"])
    title: Optional[str] = None
    description: str = ""
    is_constitutional: bool = False
    economic: float = Field(50.0, ge=0.0, le=100.0)
    governance: float = Field(50.0, ge=0.0, le=100.0)

class DebateRequest(BaseModel):
    use_llm: bool = False
    llm_model: Optional[str] = None
    max_speakers: int = Field(4, ge=1, le=20)

class Speech(BaseModel):
    speaker: str
    party_id: str
    stance: Literal["support","oppose","undecided"]
    text: str

class BillVoteResponse(BaseModel):
    passed: bool
    threshold: int
    tally: Dict[str, int]

class ActionRequest(BaseModel):
    action: ActionName
    party_id: Optional[str] = None

class MoveRequest(BaseModel):
    seat_code: str

class RestructureRequest(BaseModel):
    mode: Literal["merge","absorb"]
    party_ids: List[str] = []
    affiliation_ids: List[str] = []
    new_name: Optional[str] = None

class SecedeRequest(BaseModel):
    target_party_id: Optional[str] = None
    new_party_name: Optional[str] = None
    focus: Optional[Literal["socialist","capitalist","liberal","authoritarian","centrist"]] = None

class AllianceRequest(BaseModel):
    name: str = Field(..., examples=["Socialist Front"])
    invited_party_ids: List[str]
    alliance_type: Literal["electoral_pact","governing_coalition"] = "electoral_pact"

class RestructuringResponse(BaseModel):
    mode: str
    accepted_party_ids: List[str] = []
    accepted_affiliation_ids: List[str] = []
    rejected_party_ids: List[str] = []
    rejected_affiliation_ids: List[str] = []
    resulting_party_id: Optional[str] = None
    resulting_alliance_id: Optional[str] = None
    new_name: Optional[str] = None


class SeatSummary(BaseModel):
    source: str
    meta: Dict[str, Any] = {}
    count: int
    seats: List[Dict[str, Any]] = []


class LoadSeatCsvUrlRequest(BaseModel):
    """Loads a seat table (code, name, state, electorate, ethnic percentages) from a public URL."""

    url: str
    code_col: str = "code"
    name_col: str = "name"
    state_col: str = "state"
    electorate_col: str = "electorate"
    share_cols: Dict[str, str] = {"Malay": "malay_pct", "Chinese": "chinese_pct", "Indian": "indian_pct"}
    delimiter: str = ","
