"""Test log level filtering in the file sink."""

import pytest

from pipeboard.core.log import (
    LEVELS,
    ConsoleSink,
    FileSink,
    LogfireSink,
    OTLPSink,
    level_name,
    setup_logger,
)


def file_logger(log_file, level):
    return setup_logger(
        log_root=log_file.parent,
        service_name="test",
        console=ConsoleSink(enabled=False),
        otlp=OTLPSink(enabled=False),
        file=FileSink(enabled=True, level=level, path=str(log_file)),
        logfire=LogfireSink(enabled=False),
    )


def emit_all(logger):
    logger.spew("SPEW message")
    logger.trace("TRACE message")
    logger.debug("DEBUG message")
    logger.info("INFO message")
    logger.warn("WARN message")
    logger.error("ERROR message")
    logger.close()


@pytest.mark.parametrize("level, present, absent", [
    ("spew", ["SPEW", "TRACE", "DEBUG", "INFO"], []),
    ("trace", ["TRACE", "DEBUG", "INFO"], ["SPEW"]),
    ("debug", ["DEBUG", "INFO", "WARN"], ["SPEW", "TRACE"]),
    ("warn", ["WARN", "ERROR"], ["SPEW", "TRACE", "DEBUG", "INFO"]),
])
def test_file_sink_level(tmp_path, level, present, absent):
    log_file = tmp_path / f"{level}.log"

    emit_all(file_logger(log_file, level))

    content = log_file.read_text()
    for word in present:
        assert f"{word} message" in content
    for word in absent:
        assert f"{word} message" not in content


def test_keyword_attributes_are_appended(tmp_path):
    log_file = tmp_path / "attrs.log"
    logger = file_logger(log_file, "info")

    logger.info("Pipeline state changed", pipeline="some-pipeline")
    logger.close()

    content = log_file.read_text()
    assert "Pipeline state changed" in content
    assert "pipeline='some-pipeline'" in content


@pytest.mark.parametrize("name", list(LEVELS))
def test_level_name_round_trip(name):
    assert level_name(LEVELS[name]) == name
