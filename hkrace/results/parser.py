"""Parse HKJC dividend pools into winners, placings, combinations and dividends.

Pools arrive as scraped from the results page::

    [{"name": "獨贏", "list": [{"shengchuzuhe": "8", "paicai": "35.00"}]},
     {"name": "連贏", "list": [{"shengchuzuhe": "3,8", "paicai": "1,234.50"}]}]

``shengchuzuhe`` is the winning combination and ``paicai`` the dividend per
$10 unit. Pool names are matched against Chinese and English aliases.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

# Dividend text when a pool had no winning combination (e.g. fewer than 4 finishers)
DID_NOT_PAY = "未能勝出"

POOL_ALIASES: dict[str, tuple[str, ...]] = {
    "win": ("獨贏", "WIN"),
    "place": ("位置", "PLACE"),
    "quinella": ("連贏", "QUINELLA"),
    "tierce": ("三重彩", "TIERCE"),
    "first4": ("四連環", "FIRST 4", "FIRST-4", "FIRST4"),
    "quartet": ("四重彩", "QUARTET"),
}

# Pools whose names contain another pool's alias but are different products
_COMPOUND_POOLS = ("位置Q", "QUINELLA PLACE")

_COMBO_SPLIT = re.compile(r"[-+,]")


@dataclass
class ParsedResult:
    """Winner, placed horses and Win dividend extracted from a race's pools."""

    winner: Optional[int] = None
    placings: list[int] = field(default_factory=list)
    win_dividend: float = 0.0


def _normalise_name(name) -> str:
    return str(name or "").strip().upper()


def find_pool(pools: list[dict] | None, kind: str) -> Optional[dict]:
    """Find the pool of the given kind (``win``, ``place``, ``quinella`` ...).

    Exact alias matches win over substring matches, and compound pools such
    as 位置Q never satisfy a substring match for 位置.
    """
    if not pools:
        return None
    aliases = [a.upper() for a in POOL_ALIASES[kind]]

    for pool in pools:
        if _normalise_name(pool.get("name")) in aliases:
            return pool

    for pool in pools:
        name = _normalise_name(pool.get("name"))
        if any(c.upper() in name for c in _COMPOUND_POOLS):
            continue
        if any(a in name for a in aliases):
            return pool
    return None


def pool_entries(pool: Optional[dict]) -> list[dict]:
    """Return a pool's entry list, tolerating missing or malformed pools."""
    if not pool:
        return []
    entries = pool.get("list")
    return entries if isinstance(entries, list) else []


def parse_combination(text) -> Optional[list[int]]:
    """Parse ``"3,8"``, ``"2-4-6-9"`` or ``"1+5"`` into horse numbers.

    Returns None when any token is not a number, so callers can drop the entry.
    """
    if text is None:
        return None
    tokens = [t.strip() for t in _COMBO_SPLIT.split(str(text))]
    # isdigit() alone lets through superscripts that int() rejects
    if not tokens or any(not (t.isascii() and t.isdigit()) for t in tokens):
        return None
    return [int(t) for t in tokens]


def parse_dividend(text) -> float:
    """Parse a dividend string like ``"1,234.50"``. Unpaid or unparseable text is 0."""
    if text is None:
        return 0.0
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = str(text).replace(",", "").strip()
    if not cleaned or cleaned == DID_NOT_PAY:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        logger.debug("Unparseable dividend %r treated as 0", text)
        return 0.0


def parse_results(pools: list[dict] | None) -> ParsedResult:
    """Extract the winner, placings and Win dividend.

    ``winner`` is None when there is no Win pool, it is empty, or its first
    combination is malformed. Callers must skip such races rather than count
    them as losses.
    """
    result = ParsedResult()

    win_entries = pool_entries(find_pool(pools, "win"))
    if win_entries:
        combo = parse_combination(win_entries[0].get("shengchuzuhe"))
        if combo:
            result.winner = combo[0]
            result.win_dividend = parse_dividend(win_entries[0].get("paicai"))

    for entry in pool_entries(find_pool(pools, "place")):
        combo = parse_combination(entry.get("shengchuzuhe"))
        if combo:
            result.placings.extend(combo)

    return result
