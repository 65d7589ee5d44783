"""
Launcher for the recorder backend.

Use this instead of `uvicorn main:app` on Windows: the event loop policy
has to be set before uvicorn creates its loop.
"""

import sys
import os
import asyncio

# Recorder status lines should appear immediately in the console
os.environ['PYTHONUNBUFFERED'] = '1'

if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())


def main():
    import uvicorn

    host = os.getenv("RECORDER_HOST", "0.0.0.0")
    port = int(os.getenv("RECORDER_PORT", "8000"))
    log_level = os.getenv("RECORDER_LOG_LEVEL", "info").lower()

    print(f"\n Recorder backend on http://localhost:{port} (docs at /docs)", flush=True)

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=False,
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
