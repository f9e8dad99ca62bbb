import os
import re
from dataclasses import dataclass
from typing import Mapping

from . import __version__

DEFAULT_MAX_INPUT_SIZE = 100 * 1024
DEFAULT_CORS_ORIGIN = "*"

CORS_ALLOW_METHODS = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"

_TRUTHY = {"1", "true", "yes", "on"}
_DIGITS_RE = re.compile(r"\s*[0-9]+\s*")


def _positive_int(raw: str | None, default: int) -> int:
    if raw is None or not _DIGITS_RE.fullmatch(raw):
        return default
    value = int(raw)
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    """Service configuration, read once when the app is created."""

    max_input_size: int = DEFAULT_MAX_INPUT_SIZE
    cors_origin: str = DEFAULT_CORS_ORIGIN
    version: str = __version__
    host: str = "0.0.0.0"
    port: int = 8080
    reload: bool = False
    log_level: str = "INFO"
    log_format: str = "console"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            max_input_size=_positive_int(env.get("MAX_INPUT_SIZE"), DEFAULT_MAX_INPUT_SIZE),
            cors_origin=env.get("CORS_ORIGIN") or DEFAULT_CORS_ORIGIN,
            host=env.get("HOST", "0.0.0.0"),
            port=_positive_int(env.get("PORT"), 8080),
            reload=env.get("RELOAD", "false").lower() in _TRUTHY,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT", "console").lower(),
        )

    def cors_headers(self) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.cors_origin,
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        }
