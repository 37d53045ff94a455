"""Service name, description and version.

The version string lives in the repository VERSION file so packaging and the
/info endpoint report the same value.
"""

from pathlib import Path

_VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"


def _load_version() -> str:
	try:
		return _VERSION_FILE.read_text(encoding="utf-8").strip() or "0.0.0"
	except FileNotFoundError:  # pragma: no cover - only when repository is missing VERSION
		return "0.0.0"


__app_name__ = "Piped Search Gateway API"
__description__ = (
	"Backend-for-frontend that races Piped mirrors, fans out music searches,"
	" caches merged results and re-ranks them by past selections."
)
__version__ = _load_version()
