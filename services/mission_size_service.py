"""
任務人數服務：依玩家人數與任務編號決定出任務的人數

純計算邏輯，不涉及狀態轉換
"""
from typing import Dict, Tuple

from core.exceptions import InvalidPlayerCount, NoMissionsRemaining

MIN_PLAYERS = 5
MAX_PLAYERS = 10
MISSIONS_PER_GAME = 5

# 玩家人數 -> 第 1~5 個任務的人數
MISSION_SIZES: Dict[int, Tuple[int, ...]] = {
    5: (2, 3, 2, 3, 3),
    6: (2, 3, 4, 3, 4),
    7: (2, 3, 3, 4, 4),
    8: (3, 4, 4, 5, 5),
    9: (3, 4, 4, 5, 5),
    10: (3, 4, 4, 5, 5),
}


def get_mission_size(player_count: int, mission_index: int) -> int:
    """
    取得某個任務需要的隊伍人數

    參數：
        player_count: 玩家人數（5-10）
        mission_index: 任務 index（0-based）

    返回：
        隊伍人數

    異常：
        InvalidPlayerCount: 玩家人數不在 5-10
        NoMissionsRemaining: mission_index 超出 5 個任務

    範例：
        get_mission_size(5, 0) -> 2
        get_mission_size(7, 3) -> 4
    """
    sizes = MISSION_SIZES.get(player_count)
    if sizes is None:
        raise InvalidPlayerCount(
            f"Games need {MIN_PLAYERS}-{MAX_PLAYERS} players, got {player_count}"
        )
    if not 0 <= mission_index < len(sizes):
        raise NoMissionsRemaining(
            f"Mission {mission_index + 1} does not exist (a game has {len(sizes)} missions)"
        )
    return sizes[mission_index]
