from __future__ import annotations

import random
from typing import Dict, List, Optional, Tuple

NAME_POOLS: Dict[str, Tuple[List[str], List[str]]] = {
    "Malay": (
        ["Ahmad", "Ismail", "Hassan", "Abdullah", "Mohd", "Yusof", "Aziz", "Razak", "Hamid", "Zainal", "Fatimah", "Aminah"],
        ["bin Omar", "bin Ali", "bin Hussein", "bin Ibrahim", "bin Daud", "binti Salleh", "bin Musa", "bin Yaakob"],
    ),
    "Chinese": (
        ["Tan", "Lim", "Lee", "Wong", "Ong", "Chong", "Goh", "Teh", "Ng", "Khoo"],
        ["Cheng Lock", "Siew Sin", "Kok Wah", "Ah Kow", "Boon Huat", "Mei Ling", "Chee Keong", "Hock Seng"],
    ),
    "Indian": (
        ["Sambanthan", "Ramasamy", "Muthu", "Devan", "Karpal", "Manickam", "Letchumi", "Subramaniam"],
        ["a/l Veerasamy", "a/l Krishnan", "a/l Pillai", "a/l Nair", "Singh", "a/p Rajan"],
    ),
}
FALLBACK_POOL = (
    ["Alex", "Sam", "Jordan", "Robin", "Kim", "Lee", "Pat"],
    ["Rahman", "Chandran", "Lau", "Gomez", "Anthony"],
)


def generate_character_name(ethnicity: Optional[str], rng: random.Random) -> str:
    first, last = NAME_POOLS.get(ethnicity or "", FALLBACK_POOL)
    return f"{rng.choice(first)} {rng.choice(last)}"
