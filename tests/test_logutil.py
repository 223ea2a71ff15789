import argparse
import io
from datetime import datetime, timedelta

import pytest

from bsdimage import logutil
from bsdimage import timing

START = datetime(2025, 1, 1)


@pytest.mark.parametrize("delta, text", [
    (timedelta(seconds=3, microseconds=400000), "3.4"),
    (timedelta(minutes=2, seconds=5), "2:05.0"),
    (timedelta(hours=1, minutes=2, seconds=3), "1:02:03.0"),
    (timedelta(days=1, seconds=1), "1 day, 0:00:01"),
])
def test_lapsed_format(delta, text):
    assert timing.Lapsed(START).format(START + delta) == text


def test_stamp():
    when = datetime(2025, 3, 4, 5, 6, 7)
    assert timing.stamp(now=when) == "20250304-050607"
    assert timing.stamp(timing.BACKUP_STAMP, now=when) == "20250304_050607"


def parse(*argv):
    parser = argparse.ArgumentParser()
    logutil.add_arguments(parser)
    return parser.parse_args(argv)


@pytest.fixture
def console():
    stream = io.StringIO()
    yield stream
    logutil.config(parse(), stream=io.StringIO())


def test_prefix_and_level(console):
    logutil.config(parse("--log-level", "WARNING"), stream=console)
    logger = logutil.getLogger("bsdbuild", "7.8")
    logger.info("hidden")
    logger.warning("shown %s", "here")
    line, = console.getvalue().splitlines()
    assert line.startswith("bsdbuild 7.8 ")
    assert line.endswith(": shown here")


def test_time_and_nest(console):
    logutil.config(parse(), stream=console)
    logger = logutil.getLogger("bsdbuild")
    with logger.time("installing"):
        logger.nest("installer").info("inside")
    start, inside, stop = console.getvalue().splitlines()
    assert "start installing" in start
    assert inside.startswith("bsdbuild installer ")
    assert inside.count("/") == 1
    assert "stop installing after" in stop


def test_debug_file(tmp_path, console):
    path = tmp_path / "debug.log"
    logutil.config(parse("--debug", str(path)), stream=console)
    logutil.getLogger("test").debug("detail")
    assert console.getvalue() == ""
    assert "DEBUG test " in path.read_text()
    logutil.config(parse(), stream=console)
