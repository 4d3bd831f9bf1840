import io
import logging

import pytest

from flatgltf.logging import configure_logging, get_logger
from flatgltf.reporting import PlainReporter, set_reporter, set_verbosity, task


def test_task_reports_stats_on_success():
    stream = io.StringIO()
    set_reporter(PlainReporter(stream=stream, use_color=False))
    with task("flatten", "Flatten scene") as stats:
        stats.update(meshes=2, primitives=3)
    out = stream.getvalue()
    assert "✔ Flatten scene" in out
    assert "[meshes=2 primitives=3]" in out


def test_task_marks_failure_and_reraises():
    stream = io.StringIO()
    set_reporter(PlainReporter(stream=stream, use_color=False))
    with pytest.raises(RuntimeError):
        with task("load", "Load a.gltf"):
            raise RuntimeError("boom")
    assert "✖ Load a.gltf" in stream.getvalue()


def test_warnings_are_routed_to_reporter():
    stream = io.StringIO()
    set_reporter(PlainReporter(stream=stream, use_color=False))
    configure_logging(0)
    get_logger("resources").warning("Skipping buffer %d", 3)
    get_logger("resources").debug("hidden")
    out = stream.getvalue()
    assert "WARN: Skipping buffer 3" in out
    assert "hidden" not in out


def test_debug_needs_verbosity():
    stream = io.StringIO()
    set_reporter(PlainReporter(stream=stream, use_color=False))
    set_verbosity(1)
    configure_logging(1)
    try:
        get_logger("api").debug("details")
    finally:
        set_verbosity(0)
        configure_logging(0)
    assert "VERB1: details" in stream.getvalue()
    assert get_logger().level == logging.INFO
