"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層與 WebSocket 層統一處理

遊戲內的異常幾乎都代表「客戶端繞過前端送出不合法的動作」，
一律直接拒絕該動作，不重試，只通知送出動作的那條連線。
"""


class ResistanceGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ Game / Lobby 相關異常 ============

class GameNotFound(ResistanceGameException):
    """遊戲不存在"""
    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Game {session_id} not found")


class InvalidPlayerCount(ResistanceGameException):
    """玩家數量不符合要求（5 到 10 人）"""
    pass


class GameNotAcceptingPlayers(ResistanceGameException):
    """遊戲不接受新玩家加入（已經開始）"""
    pass


class NoMissionsRemaining(ResistanceGameException):
    """所有任務都已進行過，無法再建立新任務"""
    pass


# ============ Player 相關異常 ============

class PlayerNotFound(ResistanceGameException):
    """玩家不存在"""
    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")


class UnknownActor(ResistanceGameException):
    """連線找不到對應的玩家"""
    def __init__(self, action: str):
        self.action = action
        super().__init__(
            f"Cannot {action}: this connection does not belong to any player"
        )


class UnknownSession(ResistanceGameException):
    """玩家找不到對應的遊戲"""
    def __init__(self, action: str, session_id=None):
        self.action = action
        self.session_id = session_id
        super().__init__(
            f"Cannot {action}: no game found for session {session_id}"
        )


# ============ 狀態相關異常 ============

class WrongPhase(ResistanceGameException):
    """動作與遊戲目前等待的動作不符"""
    def __init__(self, action: str, expected=None):
        self.action = action
        self.expected = expected
        expected_name = getattr(expected, "value", expected)
        super().__init__(
            f"Cannot {action} now: the game is waiting for '{expected_name}'"
        )


class InvalidStateTransition(ResistanceGameException):
    """非法的狀態轉換"""
    pass


class GameBusy(ResistanceGameException):
    """同一場遊戲的其他動作一直搶先 commit，重試次數用完"""
    def __init__(self, action_name: str):
        self.action_name = action_name
        super().__init__(f"Game is busy ({action_name}), please try again")


class UnknownAction(ResistanceGameException):
    """未知的動作名稱"""
    def __init__(self, action_name):
        self.action_name = action_name
        super().__init__(f"Unknown action '{action_name}'")


# ============ 提案 / 投票相關異常 ============

class UnauthorizedActor(ResistanceGameException):
    """非隊長嘗試執行隊長才能做的動作"""
    def __init__(self, action: str, player_id=None):
        self.action = action
        self.player_id = player_id
        super().__init__(f"Cannot {action}: only the current leader may do this")


class UnknownPlayerInProposal(ResistanceGameException):
    """提案隊伍中有不在遊戲裡的玩家"""
    def __init__(self, unknown_ids):
        self.unknown_ids = list(unknown_ids)
        super().__init__(
            f"Proposed team contains unknown players: {', '.join(self.unknown_ids)}"
        )


class InvalidTeamSize(ResistanceGameException):
    """提案隊伍人數與任務人數不符，或有重複成員"""
    pass


class InvalidVote(ResistanceGameException):
    """投票內容不是 APPROVE / REJECT"""
    def __init__(self, vote_type):
        self.vote_type = vote_type
        super().__init__(f"Invalid vote {vote_type!r}: must be APPROVE or REJECT")


class AlreadyActedOrNotOwed(ResistanceGameException):
    """玩家在這個階段已經做過動作了（或本來就不需要做）"""
    def __init__(self, action: str, player_id=None):
        self.action = action
        self.player_id = player_id
        super().__init__(f"Cannot {action}: you have already done this once")
