"""Unit tests for sitedrop/deploy_key.py and sitedrop/words.py."""

import re
import threading
import time
from unittest.mock import patch

import pytest

from sitedrop import deploy_key as deploy_key_module
from sitedrop.deploy_key import DeployKeyStore
from sitedrop.errors import ConcurrencyRejection, ConfigurationError, KeyAlreadyExistsError
from sitedrop.words import ADJECTIVES, COLORS, NOUNS, make_key

KEY_PATTERN = re.compile(r"^[a-z]+-[a-z]+-[a-z]+$")


class TestMakeKey:
    """Tests for make_key."""

    def test_shape(self):
        """Should join adjective, color and noun with hyphens."""
        for _ in range(50):
            key = make_key()
            assert KEY_PATTERN.match(key)
            adjective, color, noun = key.split("-")
            assert adjective in ADJECTIVES
            assert color in COLORS
            assert noun in NOUNS

    def test_word_lists_have_no_duplicates(self):
        """Each word should appear once so draws are uniform."""
        for words in (ADJECTIVES, COLORS, NOUNS):
            assert len(words) == len(set(words))


class TestCurrentAndVerify:
    """Tests for DeployKeyStore.current / verify."""

    def test_absent(self, tmp_path):
        """Should report no key when the variable is unset."""
        store = DeployKeyStore(tmp_path / ".env", environ={})
        assert store.current() is None
        assert not store.is_configured()

    def test_empty_counts_as_absent(self, tmp_path):
        """An empty DEPLOY_KEY is not a configured key."""
        store = DeployKeyStore(tmp_path / ".env", environ={"DEPLOY_KEY": ""})
        assert store.current() is None

    def test_read_at_call_time(self, tmp_path):
        """Changes to the environment should be visible immediately."""
        environ = {}
        store = DeployKeyStore(tmp_path / ".env", environ=environ)
        environ["DEPLOY_KEY"] = "odd-red-cat"
        assert store.current() == "odd-red-cat"

    def test_verify_exact_match(self, tmp_path):
        store = DeployKeyStore(tmp_path / ".env", environ={"DEPLOY_KEY": "odd-red-cat"})
        assert store.verify("odd-red-cat")
        assert not store.verify("odd-red-dog")
        assert not store.verify("ODD-RED-CAT")
        assert not store.verify(" odd-red-cat")

    def test_verify_missing_candidate(self, tmp_path):
        store = DeployKeyStore(tmp_path / ".env", environ={"DEPLOY_KEY": "odd-red-cat"})
        assert not store.verify(None)
        assert not store.verify("")

    def test_verify_without_key(self, tmp_path):
        """Nothing verifies while no key is configured."""
        store = DeployKeyStore(tmp_path / ".env", environ={})
        assert not store.verify("")
        assert not store.verify("anything")

    def test_activate_overrides_environment(self, tmp_path):
        store = DeployKeyStore(tmp_path / ".env", environ={})
        store.activate("shy-blue-frog")
        assert store.current() == "shy-blue-frog"
        assert store.verify("shy-blue-frog")


class TestFileKey:
    """Tests for DeployKeyStore.file_key."""

    def test_missing_file(self, tmp_path):
        assert DeployKeyStore(tmp_path / ".env", environ={}).file_key() is None

    def test_empty_assignment(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PORT=3010\nDEPLOY_KEY=\n")
        assert DeployKeyStore(env_file, environ={}).file_key() is None

    def test_present(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=wild-pink-bee\n")
        assert DeployKeyStore(env_file, environ={}).file_key() == "wild-pink-bee"


class TestGenerate:
    """Tests for DeployKeyStore.generate."""

    def test_writes_key_to_file(self, tmp_path):
        """Should replace the empty assignment and keep other lines."""
        env_file = tmp_path / ".env"
        env_file.write_text("PORT=3010\nDEPLOY_KEY=\nOTHER=value\n")
        store = DeployKeyStore(env_file, environ={})

        key = store.generate()

        assert KEY_PATTERN.match(key)
        lines = env_file.read_text().splitlines()
        assert lines.count(f"DEPLOY_KEY={key}") == 1
        assert "PORT=3010" in lines
        assert "OTHER=value" in lines
        assert store.file_key() == key

    def test_appends_when_no_assignment(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("PORT=3010\n")
        store = DeployKeyStore(env_file, environ={})

        key = store.generate()

        assert f"DEPLOY_KEY={key}" in env_file.read_text().splitlines()

    def test_does_not_activate(self, tmp_path):
        """A written key is pending until the process reloads it."""
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=\n")
        store = DeployKeyStore(env_file, environ={})

        store.generate()

        assert store.current() is None

    def test_rejects_when_environment_has_key(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=\n")
        store = DeployKeyStore(env_file, environ={"DEPLOY_KEY": "old-red-pig"})

        with pytest.raises(KeyAlreadyExistsError) as exc_info:
            store.generate()

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid request. Key already exists."
        assert env_file.read_text() == "DEPLOY_KEY=\n"

    def test_rejects_when_file_has_key(self, tmp_path):
        """Should not overwrite a key that is written but not yet loaded."""
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=old-red-pig\n")
        store = DeployKeyStore(env_file, environ={})

        with pytest.raises(KeyAlreadyExistsError):
            store.generate()

        assert env_file.read_text() == "DEPLOY_KEY=old-red-pig\n"

    def test_missing_env_file(self, tmp_path):
        store = DeployKeyStore(tmp_path / ".env", environ={})

        with pytest.raises(ConfigurationError) as exc_info:
            store.generate()

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == ".env file does not exist"
        assert not (tmp_path / ".env").exists()

    def test_second_call_rejected(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=\n")
        store = DeployKeyStore(env_file, environ={})

        store.generate()
        content = env_file.read_text()

        with pytest.raises(KeyAlreadyExistsError):
            store.generate()
        assert env_file.read_text() == content

    def test_rejected_while_generating(self, tmp_path):
        """A call made while the guard is held should be rejected, not queued."""
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=\n")
        store = DeployKeyStore(env_file, environ={})

        with store.generating():
            with pytest.raises(ConcurrencyRejection) as exc_info:
                store.generate()

        assert type(exc_info.value) is ConcurrencyRejection
        assert exc_info.value.message == "Invalid request."
        assert env_file.read_text() == "DEPLOY_KEY=\n"

    def test_guard_released_after_failure(self, tmp_path):
        store = DeployKeyStore(tmp_path / ".env", environ={})

        with pytest.raises(ConfigurationError):
            store.generate()

        (tmp_path / ".env").write_text("DEPLOY_KEY=\n")
        assert KEY_PATTERN.match(store.generate())

    def test_concurrent_calls_one_wins(self, tmp_path):
        """Two threads generating at once: exactly one gets a key."""
        env_file = tmp_path / ".env"
        env_file.write_text("DEPLOY_KEY=\n")
        store = DeployKeyStore(env_file, environ={})
        real_dotenv_values = deploy_key_module.dotenv_values

        def slow_dotenv_values(path):
            time.sleep(0.2)
            return real_dotenv_values(path)

        barrier = threading.Barrier(2)
        keys = []
        errors = []

        def worker():
            barrier.wait()
            try:
                keys.append(store.generate())
            except ConcurrencyRejection as e:
                errors.append(e)

        with patch("sitedrop.deploy_key.dotenv_values", side_effect=slow_dotenv_values):
            threads = [threading.Thread(target=worker) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert len(keys) == 1
        assert len(errors) == 1
        assert errors[0].status_code == 401
        assert store.file_key() == keys[0]
