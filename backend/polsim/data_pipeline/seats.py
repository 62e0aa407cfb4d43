from __future__ import annotations

import csv
import io
from typing import Dict, List, Optional, Tuple

import httpx

from ..sim.agent import Demographics, Seat


async def fetch_csv(url: str, timeout_s: float = 30.0) -> str:
    async with httpx.AsyncClient(timeout=timeout_s, follow_redirects=True) as client:
        r = await client.get(url)
        r.raise_for_status()
        return r.text


def _text(row: Dict[str, str], col: Optional[str]) -> Optional[str]:
    if not col:
        return None
    return (row.get(col) or "").strip() or None


def _number(raw: Optional[str]) -> float:
    return float((raw or "0").replace(",", "").strip() or 0)


def parse_seat_csv(
    csv_text: str,
    *,
    code_col: str = "code",
    name_col: str = "name",
    state_col: str = "state",
    electorate_col: str = "electorate",
    share_cols: Optional[Dict[str, str]] = None,
    urban_rural_col: Optional[str] = "urban_rural",
    delimiter: str = ",",
) -> Tuple[Dict[str, Seat], Dict[str, Demographics]]:
    """Return ({code: Seat}, {code: Demographics}) from a seat table.

    `share_cols` maps ethnicity -> column holding its percent of the electorate,
    e.g. {"Malay": "malay_pct"}. Rows without a code or state are skipped, as
    are rows whose numbers do not parse.
    """
    share_cols = share_cols or {"Malay": "malay_pct", "Chinese": "chinese_pct", "Indian": "indian_pct"}
    reader = csv.DictReader(io.StringIO(csv_text), delimiter=delimiter)
    seats: Dict[str, Seat] = {}
    demographics: Dict[str, Demographics] = {}
    for row in reader:
        code = (row.get(code_col) or "").strip()
        state = (row.get(state_col) or "").strip()
        if not code or not state:
            continue
        try:
            electorate = int(_number(row.get(electorate_col)))
            shares = {eth: _number(row.get(col)) for eth, col in share_cols.items() if row.get(col) is not None}
        except ValueError:
            continue

        seats[code] = Seat(code=code, name=(row.get(name_col) or code).strip(), state=state)
        demographics[code] = Demographics(
            seat_code=code,
            total_electorate=max(0, electorate),
            ethnic_shares=shares,
            urban_rural=_text(row, urban_rural_col),
        )
    return seats, demographics


def states_of(seats: Dict[str, Seat]) -> List[str]:
    return sorted({s.state for s in seats.values()})
