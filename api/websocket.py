"""
WebSocket Endpoint：遊戲內動作的傳輸層

URL: /ws/{session_id}?playerId={player_id}

連線流程：
1. 驗證玩家屬於這場遊戲，綁定一個新的 connection ID
2. 收到動作 → 交給 InGameManager → 結果廣播給同一場遊戲的所有連線
3. 不合法的動作只回傳 error 給送出的那條連線
4. 斷線時解除 connection ID

客戶端送出的格式：
    {"action": "proposeTeam", "proposedTeam": ["<playerID>", ...]}
    {"action": "voteOnTeamProposal", "voteType": "APPROVE"}
    {"action": "factionViewed"} / {"action": "votesViewed"}
    {"action": "newChat", "message": "...", "messageFrom": "<playerID>"}
"""
from typing import Any, Dict
import json
import logging
import uuid

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import get_session_factory
from schemas import ClientAction, ProposeTeamFields, VoteFields, ChatFields, GameEvent
from core.game_manager import GameManager
from core.in_game_manager import InGameManager
from core.exceptions import ResistanceGameException, UnknownAction

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    追蹤每場遊戲的 WebSocket 連線

    只在 event loop 上使用，不需要額外的鎖
    """

    def __init__(self):
        # {session_id: {connection_id: WebSocket}}
        self._sessions: Dict[str, Dict[str, WebSocket]] = {}

    def register(self, session_id: str, connection_id: str, ws: WebSocket) -> None:
        self._sessions.setdefault(session_id, {})[connection_id] = ws

    def disconnect(self, session_id: str, connection_id: str) -> None:
        connections = self._sessions.get(session_id, {})
        connections.pop(connection_id, None)
        if not connections:
            self._sessions.pop(session_id, None)

    def count(self, session_id: str) -> int:
        return len(self._sessions.get(session_id, {}))

    async def send_to(self, session_id: str, connection_id: str, message: Dict[str, Any]) -> None:
        ws = self._sessions.get(session_id, {}).get(connection_id)
        if ws:
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning(f"[{session_id}] send to {connection_id} failed: {e}")
                self.disconnect(session_id, connection_id)

    async def broadcast(self, session_id: str, message: Dict[str, Any]) -> None:
        for connection_id, ws in list(self._sessions.get(session_id, {}).items()):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning(f"[{session_id}] broadcast to {connection_id} failed: {e}")
                self.disconnect(session_id, connection_id)


manager = ConnectionManager()


def dispatch_action(db: Session, connection_id: str, data: Dict[str, Any]) -> GameEvent:
    """
    把客戶端送來的訊息轉成 InGameManager 的呼叫

    異常：
        UnknownAction: 動作名稱不存在
        ValidationError: 動作內容格式錯誤
        ResistanceGameException: 動作不合法
    """
    action_name = data.get("action")
    try:
        action = ClientAction(action_name)
    except (ValueError, TypeError):
        raise UnknownAction(action_name)

    if action == ClientAction.FACTION_VIEWED:
        return InGameManager.faction_viewed(db, connection_id)

    elif action == ClientAction.PROPOSE_TEAM:
        fields = ProposeTeamFields.model_validate(data)
        return InGameManager.propose_team(db, connection_id, fields.proposed_team)

    elif action == ClientAction.VOTE_ON_TEAM_PROPOSAL:
        fields = VoteFields.model_validate(data)
        return InGameManager.vote_on_team_proposal(db, connection_id, fields.vote_type)

    elif action == ClientAction.VOTES_VIEWED:
        return InGameManager.votes_viewed(db, connection_id)

    elif action == ClientAction.NEW_CHAT:
        fields = ChatFields.model_validate(data)
        return InGameManager.new_chat(db, connection_id, fields.message)

    raise UnknownAction(action_name)


def _in_session(session_factory, func, *args):
    """在自己的 Session 裡執行一次資料庫操作（每個動作一個 Session）"""
    db = session_factory()
    try:
        return func(db, *args)
    finally:
        db.close()


def _error(message: str, code: str) -> Dict[str, Any]:
    return {"action": "error", "code": code, "message": message}


@router.websocket("/ws/{session_id}")
async def game_socket(
    ws: WebSocket,
    session_id: str,
    playerId: str = Query(...),
    session_factory=Depends(get_session_factory),
):
    connection_id = uuid.uuid4().hex

    try:
        await run_in_threadpool(
            _in_session, session_factory, GameManager.attach_connection, session_id, playerId, connection_id
        )
    except ResistanceGameException as e:
        await ws.close(code=4404, reason=str(e))
        return

    await ws.accept()
    manager.register(session_id, connection_id, ws)

    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await manager.send_to(session_id, connection_id, _error("Invalid JSON", "PARSE_ERROR"))
                continue
            if not isinstance(data, dict):
                await manager.send_to(session_id, connection_id, _error("Expected a JSON object", "PARSE_ERROR"))
                continue

            try:
                event = await run_in_threadpool(
                    _in_session, session_factory, dispatch_action, connection_id, data
                )
            except ResistanceGameException as e:
                logger.warning(f"[{session_id}] rejected {data.get('action')} from {playerId}: {e}")
                await manager.send_to(session_id, connection_id, _error(str(e), type(e).__name__))
                continue
            except ValidationError as e:
                await manager.send_to(session_id, connection_id, _error(str(e), "INVALID_FIELDS"))
                continue
            except Exception as e:
                logger.error(f"[{session_id}] failed to handle {data.get('action')}: {e}", exc_info=True)
                await manager.send_to(session_id, connection_id, _error("Internal error", "SERVER_ERROR"))
                continue

            await manager.broadcast(session_id, event.to_wire())

    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(session_id, connection_id)
        await run_in_threadpool(
            _in_session, session_factory, GameManager.detach_connection, connection_id
        )
