from dotenv import load_dotenv
import pathlib

# .env lives in backend/, next to app/
load_dotenv(pathlib.Path(__file__).parent.parent / '.env')

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os
import sys
from typing import List

from recorder_api import router as recorder_router
from recorder import __version__

# Playwright launches browsers as subprocesses, which needs the Proactor loop on Windows
if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

# Configure logging
logger = logging.getLogger(__name__)

# Local recorder UIs allowed when CORS_ORIGINS is unset
DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


def cors_origins() -> List[str]:
    """Comma-separated CORS_ORIGINS, e.g. https://recorder.example.com,https://qa.example.com"""
    configured = os.getenv("CORS_ORIGINS", "")
    if not configured:
        return DEFAULT_ORIGINS
    return [origin.strip() for origin in configured.split(",") if origin.strip()]


app = FastAPI(title="Browser Interaction Recorder", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)

app.include_router(recorder_router)


@app.get("/")
async def root():
    return {"name": "Browser Interaction Recorder", "version": __version__}


@app.get("/health")
async def health():
    return {"status": "ok"}
