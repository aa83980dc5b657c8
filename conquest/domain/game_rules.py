"""Game rules that are independent from HTTP, DB and the shared store.

Rule of thumb (same as the rest of ``domain``):
- OK: arithmetic, progressions, sampling with an injected generator.
- Not OK: sessions, redis, FastAPI, reading the clock.
"""

from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from conquest.models.schema_models import ItemType

GACHA_COIN_PER_DRAW = 1000
ALLOWED_DRAW_COUNTS = (1, 10)
DECK_CARD_NUMBER = 3
PRESENT_COUNT_PER_PAGE = 100
ONE_TIME_TOKEN_TTL = 600
SESSION_TTL = 86400
INITIAL_CARD_ID = 2
LEVEL_UP_RATE = 1.2


# ==============================================================================
# ==== Login ===================================================================
# ==============================================================================


def is_complete_today_login(last_activated_at: int, request_at: int, tz: tzinfo) -> bool:
    """True when both timestamps fall on the same calendar day in ``tz``."""
    last_day = datetime.fromtimestamp(last_activated_at, tz).date()
    today = datetime.fromtimestamp(request_at, tz).date()
    return last_day == today


def advance_login_bonus(
    last_reward_sequence: int, loop_count: int, column_count: int, looped: bool
) -> Tuple[int, int] | None:
    """Move a login bonus one step forward.

    Returns:
        (sequence, loop_count) after the step, or None when a non-looping
        bonus is already complete.
    """
    if last_reward_sequence < column_count:
        return last_reward_sequence + 1, loop_count
    if looped:
        return 1, loop_count + 1
    return None


# ==============================================================================
# ==== Gacha ===================================================================
# ==============================================================================


def gacha_cost(draw_count: int) -> int:
    return GACHA_COIN_PER_DRAW * draw_count


def draw_prize_indexes(weights: Sequence[int], draw_count: int, rng: np.random.Generator) -> List[int]:
    """Pick ``draw_count`` prize indexes proportionally to ``weights``.

    Each draw takes an integer in ``[0, total]`` and walks the table until the
    running weight exceeds it. A draw equal to ``total`` exceeds no boundary;
    it lands on the last entry so every paid draw yields a prize.
    """
    cumulative = np.cumsum(np.asarray(weights, dtype=np.int64))
    total = int(cumulative[-1])
    draws = rng.integers(0, total, size=draw_count, endpoint=True)
    indexes = np.searchsorted(cumulative, draws, side="right")
    return [int(i) for i in np.minimum(indexes, len(weights) - 1)]


# ==============================================================================
# ==== Presents ================================================================
# ==============================================================================


def aggregate_presents(presents: Iterable) -> Tuple[int, List[int], List[Tuple[int, int]]]:
    """Split present contents into coin total, card item ids and stackable items.

    Returns:
        (coin total, card item ids in order, [(item_id, amount)] merged per item)
    """
    coin = 0
    card_ids: List[int] = []
    stackables: Dict[int, int] = {}
    for present in presents:
        if present.item_type == ItemType.COIN:
            coin += present.amount
        elif present.item_type == ItemType.CARD:
            card_ids.append(present.item_id)
        else:
            stackables[present.item_id] = stackables.get(present.item_id, 0) + present.amount
    return coin, card_ids, list(stackables.items())


# ==============================================================================
# ==== Cards ===================================================================
# ==============================================================================


def next_level_threshold(base_exp_per_level: int, level: int) -> float:
    return base_exp_per_level * LEVEL_UP_RATE ** (level - 1)


def apply_level_up(
    level: int,
    total_exp: int,
    amount_per_sec: float,
    base_exp_per_level: int,
    base_amount_per_sec: int,
    max_amount_per_sec: int,
    max_level: int,
) -> Tuple[int, int]:
    """Level a card up as many times as its total experience allows.

    Every level adds ``(max - base) / (max_level - 1)`` to the yield. The sum
    is kept as a float and truncated to an int for storage.

    Returns:
        (level, amount_per_sec)
    """
    if max_level <= 1:
        return level, int(amount_per_sec)
    step = (max_amount_per_sec - base_amount_per_sec) / (max_level - 1)
    while level < max_level and next_level_threshold(base_exp_per_level, level) <= total_exp:
        level += 1
        amount_per_sec += step
    return level, int(amount_per_sec)


# ==============================================================================
# ==== Passive reward ==========================================================
# ==============================================================================


def accrue_reward(coin: int, last_getreward_at: int, request_at: int, amounts_per_sec: Iterable[int]) -> Tuple[int, int]:
    """Add ``elapsed * sum(yields)`` to the balance.

    A request time earlier than the stored timestamp accrues nothing and does
    not move the timestamp back.

    Returns:
        (new coin balance, new last_getreward_at)
    """
    elapsed = max(0, request_at - last_getreward_at)
    return coin + elapsed * sum(amounts_per_sec), max(last_getreward_at, request_at)
