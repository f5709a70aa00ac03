"""
投票服務：驗證隊伍提案的投票、計算回合結果

純計算邏輯，不改變 Game 的狀態（由 InGameManager 負責）
"""
from typing import Dict, Mapping, Optional, Sequence

from models import VoteType, RoundOutcome, TBD
from core.exceptions import InvalidVote

# 第 5 次提案（index 4）被否決，任務直接失敗
LAST_ROUND_INDEX = 4


def parse_vote(vote_type) -> VoteType:
    """
    驗證投票內容

    只接受 "APPROVE" / "REJECT"，其他任何值（包含 None、"TBD"）都拒絕

    異常：
        InvalidVote: 投票內容不合法
    """
    try:
        return VoteType(vote_type)
    except (ValueError, TypeError):
        raise InvalidVote(vote_type)


def count_rejections(votes: Mapping[str, VoteType]) -> int:
    return sum(1 for vote in votes.values() if vote == VoteType.REJECT)


def resolve_round_outcome(votes: Mapping[str, VoteType], num_total_votes: int) -> RoundOutcome:
    """
    計算隊伍提案的結果

    規則：
    - 否決票 >= 總票數的一半 → REJECTED（平手算否決）
    - 否則 → APPROVED

    參數：
        votes: playerID -> 投票
        num_total_votes: 總票數（等於玩家人數）

    範例（5 人）：
        3 票否決 → REJECTED（3 * 2 = 6 >= 5）
        2 票否決 → APPROVED（2 * 2 = 4 < 5）
    """
    if count_rejections(votes) * 2 >= num_total_votes:
        return RoundOutcome.REJECTED
    return RoundOutcome.APPROVED


def failed_mission_number(
    mission_index: int,
    round_index: int,
    outcome: RoundOutcome
) -> Optional[int]:
    """
    第 5 次提案仍被否決時，回傳失敗任務的編號（1-based，給前端顯示）

    其他情況回傳 None
    """
    if round_index >= LAST_ROUND_INDEX and outcome == RoundOutcome.REJECTED:
        return mission_index + 1
    return None


def compose_votes(player_ids: Sequence[str], votes: Mapping[str, VoteType]) -> Dict[str, str]:
    """依座位順序組出 playerID -> 投票，沒投票的玩家標記為 TBD"""
    composition = {}
    for player_id in player_ids:
        vote = votes.get(player_id)
        composition[player_id] = vote.value if vote is not None else TBD
    return composition
