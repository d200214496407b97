"""
Launch script for the Event Rental Invoicer.

Starts the web application and opens it in the browser.

Usage:
    python run.py
"""
import os
import subprocess
import sys
import threading
import time
import urllib.error
import urllib.request
import webbrowser

PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
APP_PORT = os.environ.get("INVOICER_PORT", "8000")
APP_URL = f"http://localhost:{APP_PORT}"
HEALTH_URL = f"{APP_URL}/health"
MAX_WAIT_SECONDS = 30


def _print(msg: str) -> None:
    print(f"[run] {msg}")


def check_python_deps() -> bool:
    """Check that required Python packages are installed."""
    missing = []
    for pkg in ["fastapi", "uvicorn", "jinja2", "itsdangerous"]:
        try:
            __import__(pkg)
        except ImportError:
            missing.append(pkg)

    if missing:
        _print(f"Missing Python packages: {', '.join(missing)}")
        _print("Install with: pip install -e .[dev]")
        return False
    return True


def wait_for_app() -> bool:
    """Wait until the health endpoint responds."""
    start = time.time()

    while time.time() - start < MAX_WAIT_SECONDS:
        try:
            req = urllib.request.Request(HEALTH_URL, method="GET")
            with urllib.request.urlopen(req, timeout=2) as resp:
                if resp.status == 200:
                    return True
        except (urllib.error.URLError, ConnectionError, OSError):
            pass

        time.sleep(1)

    return False


def open_browser() -> None:
    """Wait for the web server to be ready, then open the browser."""
    if wait_for_app():
        _print(f"Opening browser at {APP_URL}")
    else:
        _print("WARNING: Could not verify server is running. Open manually: " + APP_URL)
    webbrowser.open(APP_URL)


def launch_app() -> None:
    """Launch the FastAPI web application via uvicorn."""
    _print(f"Launching Event Rental Invoicer at {APP_URL} ...")

    # Open browser in a background thread (waits for server to start)
    threading.Thread(target=open_browser, daemon=True).start()

    subprocess.run(
        [sys.executable, "-m", "src"],
        cwd=PROJECT_ROOT,
    )


def main() -> int:
    _print("=" * 50)
    _print("Event Rental Invoicer - Launcher")
    _print("=" * 50)

    _print("Checking Python dependencies...")
    if not check_python_deps():
        return 1
    _print("Python dependencies OK.")

    launch_app()
    return 0


if __name__ == "__main__":
    sys.exit(main())
