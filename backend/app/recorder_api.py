"""
Recorder API

Endpoints for starting and stopping browser recordings, previewing the
generated code, regenerating saved recordings and streaming recorder
events over a WebSocket.
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Dict, List, Any, Optional, Set
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect

from recorder import RecordingSession, RecorderConfig
from recorder.capture.action_recorder import LISTENER_EVENTS
from artifact_storage import ArtifactStorage
from models import (
    StartRecordingRequest,
    StartRecordingResponse,
    StopRecordingResponse,
    RecordingStatusResponse,
    PreviewResponse,
    RegenerateResponse,
    RecordingSummary,
)

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api/recorder", tags=["Recorder"])

# Global instances
_session: Optional[RecordingSession] = None
_storage: Optional[ArtifactStorage] = None

# WebSocket connections for recorder events
_event_connections: List[WebSocket] = []
_broadcast_tasks: Set[asyncio.Task] = set()


def get_storage() -> ArtifactStorage:
    """Get or create artifact storage instance"""
    global _storage
    if _storage is None:
        _storage = ArtifactStorage(data_dir=RecorderConfig.from_env().output_dir)
    return _storage


def get_session() -> RecordingSession:
    """Get or create the recording session"""
    global _session
    if _session is None:
        _session = RecordingSession(config=RecorderConfig.from_env(), storage=get_storage())
        for event in LISTENER_EVENTS:
            _session.on(event, _relay(event))
    return _session


def _relay(event: str):
    """Listener that forwards a recorder event to every WebSocket client"""
    def forward(payload: Any):
        message = json.dumps({"event": event, "data": payload}, default=str)
        task = asyncio.get_running_loop().create_task(broadcast_event(message))
        _broadcast_tasks.add(task)
        task.add_done_callback(_broadcast_tasks.discard)
    return forward


async def broadcast_event(message: str):
    """Send a recorder event to all connected WebSocket clients"""
    disconnected = []
    for ws in _event_connections:
        try:
            await ws.send_text(message)
        except Exception as e:
            logger.debug(f"Dropping recorder event client: {e}")
            disconnected.append(ws)

    # Clean up disconnected
    for ws in disconnected:
        if ws in _event_connections:
            _event_connections.remove(ws)


# ==================== Recording ====================

@router.post("/start", response_model=StartRecordingResponse)
async def start_recording(request: StartRecordingRequest):
    """
    Launch a browser on the given URL and start recording.

    Only one recording can run at a time.
    """
    session = get_session()
    if session.is_busy:
        raise HTTPException(status_code=409, detail="A recording is already in progress")

    overrides: Dict[str, Any] = {}
    if request.browser is not None:
        overrides["browser"] = request.browser.value
    for name in ("headless", "generate_page_objects", "record_hover"):
        value = getattr(request, name)
        if value is not None:
            overrides[name] = value
    if overrides:
        session.config = replace(session.config, **overrides)

    result = await session.start(request.url, request.test_name)
    if not result.success:
        status_code = 409 if result.already_active else 500
        raise HTTPException(status_code=status_code, detail=result.error)

    return StartRecordingResponse(success=True, url=request.url, test_name=request.test_name)


@router.post("/stop", response_model=StopRecordingResponse)
async def stop_recording():
    """
    Stop the active recording and write the generated artifacts.

    Generation and write failures are reported in the response; the
    recorder is always ready for a new recording afterwards.
    """
    session = get_session()
    if not session.is_recording:
        raise HTTPException(status_code=409, detail="No active recording")

    result = await session.stop()
    return StopRecordingResponse(**result.to_dict())


@router.get("/status", response_model=RecordingStatusResponse)
async def get_recording_status():
    """Get the recorder state"""
    return RecordingStatusResponse(**get_session().status())


@router.get("/preview", response_model=PreviewResponse)
async def preview_recording():
    """Render the test and page objects for the actions recorded so far"""
    return PreviewResponse(**get_session().preview())


@router.get("/recordings", response_model=List[RecordingSummary])
async def list_recordings():
    """List summary reports of finished recordings"""
    return [RecordingSummary(**report) for report in get_storage().list_reports()]


@router.post("/recordings/{file_name}/generate", response_model=RegenerateResponse)
async def regenerate_recording(file_name: str, dry_run: bool = False):
    """
    Re-render a saved recording's test and page objects from its stored actions.

    With dry_run the sources are returned without being written.
    """
    try:
        report = get_storage().get_report(file_name)
    except (OSError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Unreadable recording: {e}")
    if report is None:
        raise HTTPException(status_code=404, detail="Recording not found")

    try:
        result = get_session().regenerate(report, dry_run=dry_run)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return RegenerateResponse(**result)


# ==================== WebSocket for Recorder Events ====================

@router.websocket("/ws/events")
async def websocket_events(websocket: WebSocket):
    """WebSocket endpoint for status, action and error events"""
    await websocket.accept()
    _event_connections.append(websocket)

    try:
        while True:
            # Keep connection alive
            await websocket.receive_text()
    except WebSocketDisconnect:
        if websocket in _event_connections:
            _event_connections.remove(websocket)
