"""Unit tests for the unified logger."""

from ln_translator.utils.unified_logger import LogLevel, LogType, UnifiedLogger


def make_logger(min_level=LogLevel.DEBUG):
    entries = []
    logger = UnifiedLogger("test", console_output=False, enable_colors=False,
                           min_level=min_level, storage_callback=entries.append)
    return logger, entries


class TestUnifiedLogger:
    """Structured entries and level filtering."""

    def test_entry_shape(self):
        logger, entries = make_logger()
        logger.warning("careful", data={"page": 1})
        entry = entries[0]
        assert entry["level"] == "WARNING"
        assert entry["type"] == "general"
        assert entry["message"] == "careful"
        assert entry["data"] == {"page": 1}

    def test_min_level(self):
        logger, entries = make_logger(min_level=LogLevel.INFO)
        logger.debug("hidden")
        logger.info("shown")
        assert [e["message"] for e in entries] == ["shown"]

    def test_progress_updates_session_state(self):
        logger, _ = make_logger()
        logger.info("Progress", LogType.PROGRESS, {"current": 4, "total": 10})
        assert logger.session_state["current_page"] == 4

    def test_console_output(self, capsys):
        logger = UnifiedLogger("test", enable_colors=False)
        logger.error("Translation stopped", LogType.ERROR_DETAIL, {"details": "boom"})
        out = capsys.readouterr().out
        assert "ERROR: Translation stopped" in out
        assert "Details: boom" in out


class TestLegacyCallback:
    """log_callback(key, message[, data]) used by the core components."""

    def test_level_from_key(self):
        logger, entries = make_logger()
        callback = logger.create_legacy_callback()

        callback("debug", "d")
        callback("build_error", "e")
        callback("build_warning", "w")
        callback("build_complete", "i")
        callback("info", "plain")

        assert [e["level"] for e in entries] == ["DEBUG", "ERROR", "WARNING", "INFO", "INFO"]

    def test_structured_data(self):
        logger, entries = make_logger()
        callback = logger.create_legacy_callback()

        callback("debug", "Backend Request", {"type": "llm_request", "prompt": "本文。"})
        callback("info", "Page 1 done", {"type": "progress", "current": 1, "total": 2})

        assert [e["type"] for e in entries] == ["llm_request", "progress"]

    def test_key_used_when_no_message(self):
        logger, entries = make_logger()
        logger.create_legacy_callback()("Something happened")
        assert entries[0]["message"] == "Something happened"
