import logging

import pytest

from utils.core.log import get_logger, group_tool_logger, set_logger


@pytest.mark.parametrize("group_id", ["../escaped", "../../etc", "a/../../b", "nested/dir", "."])
def test_group_logger_refuses_paths_outside_process_logs(tmp_path, monkeypatch, group_id):
    monkeypatch.setenv("HOME", str(tmp_path))

    with pytest.raises(ValueError, match="escapes"):
        group_tool_logger(group_id, "parse_quote_main")

    assert [p.name for p in tmp_path.iterdir()] in ([], ["process_logs"])
    assert not (tmp_path / "escaped").exists()


def test_group_logger_writes_per_group_file(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))

    logger = group_tool_logger("0b7c1f7e-1111-4c4c-9d9d-123456789abc", "parse_quote_main")
    logger.error("boom")
    for handler in logger.handlers:
        handler.flush()

    log_file = tmp_path / "process_logs" / "0b7c1f7e-1111-4c4c-9d9d-123456789abc" / "parse_quote_main.log"
    assert "boom" in log_file.read_text()


def test_get_logger_returns_installed_adapter():
    set_logger(logging.getLogger("quote_engine.tests.log"), tool_name="parse_quote_main")
    assert get_logger().extra["tool_name"] == "parse_quote_main"
