from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from enum import Enum


class RecorderStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


class BrowserName(str, Enum):
    CHROMIUM = "chromium"
    CHROME = "chrome"
    FIREFOX = "firefox"
    WEBKIT = "webkit"
    SAFARI = "safari"


class StartRecordingRequest(BaseModel):
    """Request to open a browser and start recording"""
    url: str
    test_name: str = Field(min_length=1)
    # Overrides for the server's recorder configuration
    browser: Optional[BrowserName] = None
    headless: Optional[bool] = None
    generate_page_objects: Optional[bool] = None
    record_hover: Optional[bool] = None


class StartRecordingResponse(BaseModel):
    success: bool
    url: str
    test_name: str
    message: str = "Recording started"


class StopRecordingResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    test_file_path: Optional[str] = None
    page_object_paths: List[str] = []
    report_path: Optional[str] = None
    action_count: int = 0
    duration_seconds: float = 0.0
    errors: Dict[str, str] = {}  # artifact name -> write error


class RecordingStatusResponse(BaseModel):
    state: RecorderStatus
    test_name: Optional[str] = None
    url: Optional[str] = None
    action_count: int = 0
    elapsed_seconds: float = 0.0


class PreviewResponse(BaseModel):
    """Generated source for the actions recorded so far; nothing is written"""
    test_name: Optional[str] = None
    action_count: int = 0
    steps: List[Dict[str, Any]] = []
    test_source: str
    page_objects: Dict[str, str] = {}  # module file name -> source


class RecordingSummary(BaseModel):
    test_name: Optional[str] = None
    url: Optional[str] = None
    timestamp: Optional[str] = None
    duration_seconds: float = 0.0
    action_count: int = 0
    files: Dict[str, Any] = {}
    # Report file name, used to address the recording
    file_name: Optional[str] = None


class RegenerateResponse(PreviewResponse):
    """Source re-rendered from a saved recording"""
    dry_run: bool = False
    test_file_path: Optional[str] = None
    page_object_paths: List[str] = []
    errors: Dict[str, str] = {}  # artifact name -> write error
