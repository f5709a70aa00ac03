"""
陣營服務：分配間諜，並決定每位玩家能看到的陣營資訊
"""
import random
from typing import List, Optional, Sequence

from core.exceptions import InvalidPlayerCount

# 玩家人數 -> 間諜人數
SPY_COUNTS = {5: 2, 6: 2, 7: 3, 8: 3, 9: 3, 10: 4}


def assign_spies(player_ids: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """
    隨機抽出間諜

    參數：
        player_ids: 所有玩家 ID（依座位順序）
        rng: 可選的亂數產生器（測試時可固定 seed）

    返回：
        間諜的 playerID 列表（依座位順序排列）

    異常：
        InvalidPlayerCount: 玩家人數沒有對應的間諜人數
    """
    spy_count = SPY_COUNTS.get(len(player_ids))
    if spy_count is None:
        raise InvalidPlayerCount(
            f"Cannot assign spies for {len(player_ids)} players"
        )

    rng = rng or random.Random()
    chosen = set(rng.sample(list(player_ids), spy_count))
    return [player_id for player_id in player_ids if player_id in chosen]


def visible_spies(player_id: str, spies: Sequence[str]) -> List[str]:
    """間諜看得到所有間諜；抵抗軍什麼都看不到"""
    if player_id in spies:
        return list(spies)
    return []
