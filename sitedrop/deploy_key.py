"""Deploy key storage and one-shot key generation.

The deploy key lives in the process environment (``DEPLOY_KEY``) and is
mirrored in a dotenv file. A key moves through three states:

    ABSENT -> generate() -> WRITTEN_PENDING_RESTART -> restart -> ACTIVE

Once a key is present in either the environment or the file, generate()
refuses to run. The only way back to ABSENT is editing the file by hand.

A single DeployKeyStore is created at startup and shared by all handlers.
It owns the generation guard, a non-blocking lock so a second concurrent
request is rejected instead of queued.
"""

from __future__ import annotations

import hmac
import logging
import os
import threading
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from pathlib import Path

from dotenv import dotenv_values, set_key

from sitedrop.config import DEPLOY_KEY_VAR
from sitedrop.errors import ConcurrencyRejection, ConfigurationError, KeyAlreadyExistsError
from sitedrop.words import make_key

_LOG = logging.getLogger(__name__)


class DeployKeyStore:
    """Process-wide deploy key accessor and generator.

    Attributes:
        env_file: Dotenv file that persists the key.
        environ: Environment mapping the key is read from at request time.
    """

    def __init__(
        self,
        env_file: Path,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self.env_file = env_file
        self.environ = os.environ if environ is None else environ
        self._guard = threading.Lock()
        self._active: str | None = None

    def current(self) -> str | None:
        """Return the configured key, or None if none is set."""
        if self._active:
            return self._active
        return self.environ.get(DEPLOY_KEY_VAR) or None

    def is_configured(self) -> bool:
        return self.current() is not None

    def verify(self, candidate: str | None) -> bool:
        """Check a request-supplied key against the configured one.

        Uses constant-time comparison. A missing candidate never matches.
        """
        key = self.current()
        if not key or not candidate:
            return False
        return hmac.compare_digest(candidate.encode(), key.encode())

    def file_key(self) -> str | None:
        """Return the non-empty key assigned in the env file, if any."""
        if not self.env_file.exists():
            return None
        return dotenv_values(self.env_file).get(DEPLOY_KEY_VAR) or None

    def activate(self, key: str) -> None:
        """Make ``key`` the live key without restarting the process."""
        self._active = key
        _LOG.info("Deploy key activated in memory")

    @contextmanager
    def generating(self) -> Iterator[None]:
        """Hold the generation guard, rejecting if another caller holds it."""
        if not self._guard.acquire(blocking=False):
            raise ConcurrencyRejection("Invalid request.")
        try:
            yield
        finally:
            self._guard.release()

    def generate(self) -> str:
        """Generate, persist and return a new deploy key.

        Returns:
            The new key. It is written to the env file but not yet active.

        Raises:
            ConcurrencyRejection: Another generation is in progress.
            KeyAlreadyExistsError: A key is set in the environment or the file.
            ConfigurationError: The env file does not exist.
        """
        with self.generating():
            if self.is_configured():
                raise KeyAlreadyExistsError("Invalid request. Key already exists.")

            if not self.env_file.exists():
                raise ConfigurationError(".env file does not exist")

            # Written but not yet loaded by a restart
            if self.file_key():
                raise KeyAlreadyExistsError("Invalid request. Key already exists.")

            key = make_key()
            set_key(self.env_file, DEPLOY_KEY_VAR, key, quote_mode="never")
            _LOG.info("Generated new deploy key and wrote it to %s", self.env_file)
            return key
