import re
import json
import logging
import pathlib
import datetime
import logging.config
from typing import Union
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler


_logger_var: ContextVar[Union[logging.Logger, logging.LoggerAdapter]] = ContextVar(
    "group_tool_logger", default=None
)

CONFIG_FILE = pathlib.Path(__file__).resolve().parent.parent / "logging_config.json"
CONTEXT_FIELDS = {
    "tool_name": "N/A",
    "group_id": "N/A",
    "ip_address": "no_ip",
    "request_type": "N/A",
    "file_name": "-",
}

RED = "\033[31m"
GREEN = "\033[32m"
BLUE = "\033[34m"
ORANGE = "\033[33m"
GREY = "\033[90m"
WHITE = "\033[97m"
PURPLE = "\033[35m"
RESET = "\033[0m"


def set_logger(logger: logging.Logger, **extra):
    _logger_var.set(logging.LoggerAdapter(logger, extra))


def get_logger() -> logging.Logger:
    logger = _logger_var.get()
    if logger is None:
        raise RuntimeError("Tool-specific logger not set in this context")
    return logger


class NoDebugFilter(logging.Filter):
    """Filter that blocks DEBUG messages"""

    def filter(self, record):
        return record.levelno > logging.DEBUG


def setup_logging(config_file: pathlib.Path | None = None):
    with open(config_file or CONFIG_FILE) as f_in:
        config = json.load(f_in)

    # Expand ~ and make sure log directories exist
    for handler in config.get("handlers", {}).values():
        if "filename" in handler:
            path = pathlib.Path(handler["filename"]).expanduser()
            handler["filename"] = str(path)
            path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(config)
    noisy_libs = [
        "google_genai",
        "google_genai.models",
        "google.genai",
        "httpx",
        "pdfminer",
        "google",
    ]

    for name in noisy_libs:
        lib_logger = logging.getLogger(name)
        lib_logger.setLevel(logging.ERROR)
        lib_logger.propagate = False

    context_filter = ContextFilter()
    no_debug_filter = NoDebugFilter()
    root_logger = logging.getLogger()
    root_logger.addFilter(context_filter)
    for handler in root_logger.handlers:
        handler.addFilter(context_filter)
        handler.addFilter(no_debug_filter)


class ContextFilter(logging.Filter):
    def filter(self, record):
        current = _logger_var.get()
        if isinstance(current, logging.LoggerAdapter):
            extra = getattr(current, "extra", {}) or {}
            for k in CONTEXT_FIELDS:
                if not hasattr(record, k) and k in extra:
                    setattr(record, k, extra[k])

        for k, default in CONTEXT_FIELDS.items():
            if not hasattr(record, k):
                setattr(record, k, default)
        return True


class GroupToolHandlerFilter(logging.Filter):
    """Only DEBUG, ERROR and CRITICAL reach the per-group file."""

    def filter(self, record):
        return record.levelno == logging.DEBUG or record.levelno >= logging.ERROR


def group_tool_logger(group_id: str, tool_name: str):
    base_dir = (pathlib.Path.home() / "process_logs").resolve()
    log_dir = (base_dir / (group_id or "SYSTEM")).resolve()
    if log_dir.parent != base_dir:
        raise ValueError(f"Log directory for group {group_id!r} escapes {base_dir}")
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=log_dir / f"{tool_name}.log", maxBytes=5_000_000, backupCount=1
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    handler.addFilter(GroupToolHandlerFilter())

    logger = logging.getLogger(f"{group_id}.{tool_name}")
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if this is called multiple times
    for old in list(logger.handlers):
        old.close()
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = True

    return logger


class DynamicPrefixFormatter(logging.Formatter):
    """
    Color-aware formatter. Pass color=True/False from logging config.
    """

    GROUP_W = 36  # uuid
    IP_W = 15
    PROC_W = 6  # POST/GET/DELETE/CLI
    TOOL_W = 8
    FUNC_W = 20
    FILE_W = 24
    LEVEL_W = 7

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = bool(color)

    def _c(self, code: str) -> str:
        return code if self.color else ""

    @staticmethod
    def _derive_tool_base(record: logging.LogRecord) -> str:
        tb = getattr(record, "tool_base", None)
        if tb:
            return str(tb).upper()

        name = getattr(record, "name", "")
        if "." in name:
            tool = name.split(".", 1)[1].lower()
        else:
            tool = (getattr(record, "tool_name", "") or "").lower()

        tool = re.sub(r"(_main|_tool)$", "", tool)

        if "parse" in tool or "batch" in tool:
            return "PARSE"
        if "compar" in tool:
            return "COMPARE"
        if "group" in tool or "quote" in tool:
            return "CRUD"
        return "-"

    def format(self, record: logging.LogRecord) -> str:
        is_error_or_warn = record.levelno >= logging.WARNING
        is_error = record.levelno >= logging.ERROR
        process = (getattr(record, "request_type", "N/A") or "N/A").upper()[: self.PROC_W]
        is_get = process == "GET"
        group_id = (getattr(record, "group_id", "N/A") or "N/A")[: self.GROUP_W]
        ip_address = (getattr(record, "ip_address", "no_ip") or "no_ip")[: self.IP_W]
        file_name = (getattr(record, "file_name", "-") or "-")[: self.FILE_W]
        tool_base = self._derive_tool_base(record)
        func_name = (getattr(record, "tool_name", "N/A") or "N/A")[: self.FUNC_W]
        ts = datetime.datetime.fromtimestamp(record.created).strftime(
            "%Y-%m-%d %H:%M:%S"
        )

        prefix = "[-]" if is_error_or_warn else "[+]"
        if prefix == "[+]":
            prefix_colored = f"{self._c(GREY) if is_get else self._c(GREEN)}{prefix}"
        else:
            prefix_colored = f"{self._c(RED)}{prefix}"

        proc_color = GREEN if process == "POST" else WHITE
        level_color = RED if is_error else PURPLE
        dash = f"{self._c(RED)} - "

        line = (
            f"{prefix_colored} "
            f"{self._c(WHITE)}{ts} "
            f"{self._c(BLUE)}{group_id:<{self.GROUP_W}} "
            f"{self._c(ORANGE)}{ip_address:<{self.IP_W}} "
            f"{self._c(proc_color)}{process:<{self.PROC_W}}"
            f"{dash}"
            f"{self._c(level_color)}{record.levelname:<{self.LEVEL_W}}"
            f"{dash}"
            f"{self._c(GREY)}{tool_base:<{self.TOOL_W}}: {func_name:<{self.FUNC_W}} "
            f"{file_name:<{self.FILE_W}} "
            f"{record.getMessage()}"
        )
        if self.color:
            line += RESET

        if record.exc_info:
            line += "\n" + super().formatException(record.exc_info)
            if self.color:
                line += RESET
        if record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
            if self.color:
                line += RESET

        return line
