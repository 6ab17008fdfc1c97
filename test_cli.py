import json
import logging
import os
import zipfile
from unittest.mock import MagicMock, patch

import pytest

import cli
from bsky_client import Page
from conftest import FakeSource, make_post
from errors import TransportError
from utils import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "query": "eleições",
        "since": "2024-01-01T00:00:00-03:00",
        "until": "2024-01-01T23:59:59-03:00",
        "language": "pt",
        "limit": 100,
        "postsPerFile": 10,
        "baseFilesDir": "files",
        "minuteInterval": 720,
        "logFile": str(tmp_path / "runtime.log"),
    }), encoding="utf-8")
    return path


def _patched_client(source):
    return patch("crawler.BlueskySearchClient", return_value=source)


def test_successful_run(tmp_path, config_file):
    source = FakeSource(default_pages=[Page([make_post(1), make_post(2)])])
    source.close = lambda: None

    with _patched_client(source):
        code = cli.main(["-c", str(config_file)])

    assert code == 0
    archives = os.listdir(tmp_path / "files")
    assert len(archives) == 1
    with zipfile.ZipFile(tmp_path / "files" / archives[0]) as archive:
        assert archive.namelist() == [archives[0][:-len(".zip")]]

    log_lines = (tmp_path / "runtime.log").read_text(encoding="utf-8").splitlines()
    assert log_lines[-1].endswith(" - Processing completed. Total saved posts: 4")
    assert any("Processing interval: 2024-01-01T12:00:00-03:00 to 2024-01-01T23:59:59-03:00" in l for l in log_lines)
    assert log_lines[0].split(" - ")[0].endswith("Z")


def test_failure_exits_non_zero(tmp_path, config_file):
    source = MagicMock()
    source.fetch_page.side_effect = TransportError("network down")

    with _patched_client(source):
        code = cli.main(["-c", str(config_file)])

    assert code == 1
    log = (tmp_path / "runtime.log").read_text(encoding="utf-8")
    assert "Something went wrong: network down" in log


def test_overrides_win_over_config(config_file):
    config, verbose = cli.create_config_from_args(
        ["-c", str(config_file), "-q", "copa", "--minute-interval", "15", "-v"]
    )
    assert config.query == "copa"
    assert config.minute_interval == 15
    assert config.language == "pt"
    assert verbose is True


def test_bad_config_exits_with_2(tmp_path):
    code = cli.main(["-c", str(tmp_path / "absent.json"), "--since", "2024-01-01"])
    assert code == 2


def test_fractional_interval_in_config_exits_with_2(tmp_path, config_file):
    data = json.loads(config_file.read_text(encoding="utf-8"))
    data["minuteInterval"] = 30.0
    config_file.write_text(json.dumps(data), encoding="utf-8")

    assert cli.main(["-c", str(config_file)]) == 2


def test_unencodable_post_text_exits_non_zero(tmp_path, config_file):
    source = FakeSource(default_pages=[Page([make_post(1, text="broken \ud83d emoji")])])
    source.close = lambda: None

    with _patched_client(source):
        code = cli.main(["-c", str(config_file)])

    assert code == 1
    log = (tmp_path / "runtime.log").read_text(encoding="utf-8")
    assert "Something went wrong: Could not write to" in log


def test_unexpected_exception_is_logged_and_exits_non_zero(tmp_path, config_file):
    source = MagicMock()
    source.fetch_page.side_effect = RuntimeError("boom")

    with _patched_client(source):
        code = cli.main(["-c", str(config_file)])

    assert code == 1
    log = (tmp_path / "runtime.log").read_text(encoding="utf-8")
    assert "Something went wrong: boom" in log
    assert "Traceback" in log
