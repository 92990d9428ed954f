"""Runtime configuration for sitedrop.

All settings come from environment variables. The module-level constants are
the defaults read at import time; ``Settings.from_env()`` re-reads them so the
entry point and tests can build an app against any environment.

Environment Variables:
    DEPLOY_KEY: Deployment secret (read per request, not stored here)
    HOST: Listen address (default: 0.0.0.0)
    PORT: Listen port (default: 3010)
    OUTPUT_DIR: Served site directory (default: ./public)
    ENV_FILE: Config file holding the DEPLOY_KEY assignment (default: ./.env)
    ANALYTICS_URL: Analytics collector base URL (default: disabled)
    ANALYTICS_DELAY: Seconds to wait before reporting a deploy (default: 5)
    KEY_RELOAD: "restart" or "memory" (default: restart)
    LOG_LEVEL: Root log level (default: INFO)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel

# =============================================================================
# Defaults
# =============================================================================

DEPLOY_KEY_VAR: str = "DEPLOY_KEY"
"""Name of the environment variable (and .env assignment) holding the secret."""

DEFAULT_PORT: int = 3010
"""Listen port when PORT is not set."""

PACKAGE_DIR: Path = Path(__file__).resolve().parent
"""Directory of the installed sitedrop package."""

PLACEHOLDER_PAGE: Path = PACKAGE_DIR / "static" / "deploying.html"
"""Interim index.html shown while a deployment is being extracted."""


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseModel):
    """Server settings resolved from the environment.

    Attributes:
        host: Address uvicorn binds to.
        port: Port uvicorn binds to.
        output_dir: Directory served as the web root and replaced on deploy.
        env_file: Config file the key generator reads and writes.
        placeholder_page: Template copied to output_dir/index.html during deploys.
        analytics_url: Base URL of the analytics collector; empty disables it.
        analytics_delay: Seconds between a successful deploy and its report.
        key_reload: How a generated key takes effect ("restart" or "memory").
        log_level: Root log level name.
    """

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    output_dir: Path = Path("public")
    env_file: Path = Path(".env")
    placeholder_page: Path = PLACEHOLDER_PAGE
    analytics_url: str = ""
    analytics_delay: float = 5.0
    key_reload: Literal["restart", "memory"] = "restart"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        cwd = Path.cwd()
        return cls(
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT") or DEFAULT_PORT),
            output_dir=cwd / env.get("OUTPUT_DIR", "public"),
            env_file=cwd / env.get("ENV_FILE", ".env"),
            analytics_url=env.get("ANALYTICS_URL", "").rstrip("/"),
            analytics_delay=float(env.get("ANALYTICS_DELAY") or 5.0),
            key_reload=env.get("KEY_RELOAD", "restart").lower(),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


def load_settings() -> Settings:
    """Export the env file into os.environ, then read settings from it.

    Values already in the environment win over the file.
    """
    load_dotenv(Path.cwd() / os.environ.get("ENV_FILE", ".env"), override=False)
    return Settings.from_env()
