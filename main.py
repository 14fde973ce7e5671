"""
main.py — Server launcher and entry point.

Run this file to start the forecasting API and open the interactive docs:

    python main.py

The API docs will open at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

The mock sensor source runs separately:
    uvicorn simulator.app:app --port 8001

The operator dashboard runs separately:
    streamlit run dashboard/app.py

Direct uvicorn usage (without browser auto-open):
    uvicorn app:app --reload
"""

from __future__ import annotations

import threading
import time
import webbrowser

import uvicorn

from backend.utils.config import get_settings


def _open_browser_after_startup(url: str, delay_seconds: float = 2.0) -> None:
    """
    Open the API docs in the default browser after a short delay.

    The delay allows uvicorn to finish startup (synthetic history, sensor
    polling) before the browser hits the server for the first time.
    """
    time.sleep(delay_seconds)
    print(f"\n  Opening API docs → {url}\n")
    webbrowser.open(url)


def main() -> None:
    """Start the ER queue forecasting server and open the API docs."""
    settings = get_settings()
    base_url = f"http://{settings.host}:{settings.port}"
    docs_url = f"{base_url}/docs"

    print("=" * 60)
    print(f"  {settings.app_name} v{settings.app_version}")
    print("=" * 60)
    print(f"  Server       : {base_url}")
    print(f"  API docs     : {docs_url}")
    print(f"  Sensor source: {settings.sensor_api_url}")
    print(f"  Polling      : {'enabled' if settings.sensor_polling_enabled else 'disabled'}")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Open browser in background thread after startup completes
    browser_thread = threading.Thread(
        target=_open_browser_after_startup,
        args=(docs_url,),
        daemon=True,
    )
    browser_thread.start()

    # Start uvicorn; this blocks until CTRL+C
    uvicorn.run(
        "app:app",       # points to app.py → app object
        host=settings.host,
        port=settings.port,
        reload=True,     # hot-reload on file changes during development
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
