"""API endpoints for race chat sessions."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from equiscope.chat import ChatContext
from equiscope.errors import InvalidRaceIdError
from equiscope.racing.guid import RaceGuid

router = APIRouter()


class SessionCreate(BaseModel):
    """Request to open a chat session."""

    user_id: Optional[str] = None
    race_guid: Optional[str] = None
    horse_slug: Optional[str] = None


class MessageRequest(BaseModel):
    """A user turn; race/horse override the session's current context."""

    text: str
    race_guid: Optional[str] = None
    horse_slug: Optional[str] = None


def _check_guid(guid: Optional[str]) -> None:
    if not guid:
        return
    try:
        RaceGuid.parse(guid)
    except InvalidRaceIdError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/sessions")
async def create_session(request: Request, body: Optional[SessionCreate] = None):
    """Open a session, optionally pointed at a race straight away."""
    body = body or SessionCreate()
    _check_guid(body.race_guid)
    chat = request.app.state.chat
    session_id = await chat.create_session(body.user_id)
    if body.race_guid:
        await chat.update_context(session_id, ChatContext(body.race_guid, body.horse_slug))
    return await chat.get_session(session_id)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, request: Request):
    """Session details with its recent messages."""
    data = await request.app.state.chat.get_session(session_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return data


@router.post("/sessions/{session_id}/messages")
async def post_message(session_id: str, body: MessageRequest, request: Request):
    """Send a user message and get the grounded reply."""
    if not body.text.strip():
        raise HTTPException(status_code=400, detail="Message text is required")
    _check_guid(body.race_guid)

    chat = request.app.state.chat
    session = await chat.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    race_guid = body.race_guid or session.get("current_race_guid")
    horse_slug = body.horse_slug or session.get("current_horse_slug")
    if body.race_guid and body.race_guid != session.get("current_race_guid"):
        await chat.update_context(session_id, ChatContext(race_guid, horse_slug))

    response = await chat.answer(session_id, body.text, ChatContext(race_guid, horse_slug))
    return response.to_dict()
