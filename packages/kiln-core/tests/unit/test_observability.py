"""Unit tests for redaction and logging setup."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from kiln_core.observability import (
    REDACTION_MASK,
    active_redactions,
    clear_redactions,
    configure_logging,
    redact,
    redaction_processor,
    register_redaction,
    span,
    unregister_redaction,
)
from kiln_core.security import ValueFingerprint


class TestRedaction:
    """Tests for value redaction."""

    def test_registered_value_is_masked(self) -> None:
        """Registered values are replaced by the mask."""
        register_redaction(ValueFingerprint.of("postgres://u:p@db/app"))
        assert redact("cannot reach postgres://u:p@db/app now") == (
            f"cannot reach {REDACTION_MASK} now"
        )

    def test_longest_value_masked_first(self) -> None:
        """A value containing another registered value is masked whole."""
        register_redaction(ValueFingerprint.of("p@db"))
        register_redaction(ValueFingerprint.of("postgres://u:p@db/app"))
        assert redact("postgres://u:p@db/app") == REDACTION_MASK

    def test_unregister(self) -> None:
        """An unregistered value is no longer masked; registering twice counts once."""
        fingerprint = ValueFingerprint.of("secret-value")
        register_redaction(fingerprint)
        register_redaction(fingerprint)
        assert active_redactions() == 1

        unregister_redaction(fingerprint)

        assert active_redactions() == 0
        assert redact("secret-value") == "secret-value"

    def test_repeated_and_overlapping_occurrences(self) -> None:
        """Every occurrence is masked; overlapping ones collapse into one mask."""
        register_redaction(ValueFingerprint.of("abab"))
        assert redact("abab x abab") == f"{REDACTION_MASK} x {REDACTION_MASK}"
        assert redact("ababab") == REDACTION_MASK

    def test_non_ascii_text_preserved(self) -> None:
        """Text around the masked value keeps its characters."""
        register_redaction(ValueFingerprint.of("pässword"))
        assert redact("ünïcode pässword é") == f"ünïcode {REDACTION_MASK} é"

    def test_clear(self) -> None:
        """clear_redactions forgets all values."""
        register_redaction(ValueFingerprint.of("secret-value"))
        clear_redactions()
        assert redact("secret-value") == "secret-value"

    def test_processor_masks_nested_values(self) -> None:
        """The structlog processor masks strings in nested event fields."""
        register_redaction(ValueFingerprint.of("secret-value"))
        event = {
            "event": "compile secret-value",
            "args": ["a", "secret-value"],
            "env": {"DATABASE_URL": "secret-value"},
            "count": 3,
        }
        result = redaction_processor(None, "info", event)

        assert result["event"] == f"compile {REDACTION_MASK}"
        assert result["args"] == ["a", REDACTION_MASK]
        assert result["env"] == {"DATABASE_URL": REDACTION_MASK}
        assert result["count"] == 3


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self) -> Iterator[None]:
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_logs_are_redacted(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Configured logging masks registered values in JSON output."""
        configure_logging(log_level="INFO", json_format=True)
        register_redaction(ValueFingerprint.of("secret-value"))

        structlog.get_logger("kiln.test").info("connecting", target="secret-value")

        captured = capsys.readouterr()
        line = [ln for ln in captured.err.splitlines() if "connecting" in ln][-1]
        record = json.loads(line)
        assert record["target"] == REDACTION_MASK
        assert "secret-value" not in captured.err

    def test_log_level_applied(self) -> None:
        """The root logger level follows log_level."""
        configure_logging(log_level="WARNING", json_format=False)
        assert logging.getLogger().level == logging.WARNING


class TestSpan:
    """Tests for the span helper."""

    def test_span_reraises(self) -> None:
        """Exceptions inside a span propagate."""
        with pytest.raises(RuntimeError), span("failing", log_start=False, log_end=False):
            raise RuntimeError("boom")

    def test_span_yields(self) -> None:
        """A span can be used as a context manager."""
        with span("ok", attributes={"pipeline": "app"}) as current:
            assert current is not None
