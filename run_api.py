"""
Run the gateway with uvicorn and a predictable sys.path.
Usage:
  python run_api.py            (APP_PORT defaults to 3001, APP_RELOAD=1 enables reload)
"""
import os
import sys

from uvicorn import run

ROOT = os.path.dirname(os.path.abspath(__file__))
BACKEND_APP_DIR = os.path.join(ROOT, "backend", "app")

if ROOT not in sys.path:
  sys.path.insert(0, ROOT)

if __name__ == "__main__":
  log_level = os.environ.get("APP_LOG_LEVEL", "info").lower()
  reload = os.environ.get("APP_RELOAD", "0") in {"1", "true", "TRUE", "True"}
  run(
    "backend.app.main:app",
    host=os.environ.get("APP_HOST", "0.0.0.0"),
    port=int(os.environ.get("APP_PORT", "3001")),
    reload=reload,
    reload_dirs=[BACKEND_APP_DIR] if reload else None,
    log_level=log_level,
    access_log=True,
  )
