"""
Barrier：追蹤這個階段還有哪些玩家沒做動作

每個需要「所有人都做完」的階段（factionViewed、voteOnTeamProposal、votesViewed）
都用同一個 barrier：
- 每位玩家只能把自己從 waiting_for 移除一次
- 最後一位移除時 waiting_for 立刻補滿所有玩家，準備下一個階段
- 只有一個呼叫會看到「剩 0 人」，由它負責推進階段
"""
from typing import Tuple

from core.game_state import GameState
from core.exceptions import AlreadyActedOrNotOwed


def mark_done(state: GameState, player_id: str, action: str = "act") -> Tuple[GameState, int]:
    """
    把玩家標記為已完成本階段的動作

    參數：
        state: 目前的 GameState
        player_id: 做動作的玩家
        action: 動作描述（用於錯誤訊息）

    返回：
        (新的 GameState, 還在等待的人數)
        人數為 0 表示所有人都完成了，waiting_for 已經補滿

    異常：
        AlreadyActedOrNotOwed: 玩家不在 waiting_for 裡（重複動作）
    """
    if player_id not in state.waiting_for:
        raise AlreadyActedOrNotOwed(action, player_id=player_id)

    remaining = tuple(pid for pid in state.waiting_for if pid != player_id)
    if not remaining:
        return state.evolve(waiting_for=state.player_ids), 0
    return state.evolve(waiting_for=remaining), len(remaining)
