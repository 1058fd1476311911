import inspect
import logging
import os
import time
import uuid
from utils.core.log import setup_logging, group_tool_logger, set_logger, get_logger
from utils.core.warnings_config import configure_warning_filters
from utils.core.errors import QuoteEngineError
from utils.db import init_db
from flask import Flask, request, jsonify

configure_warning_filters()

from tools.quote.quote import (
    parse_quote_main,
    create_group_main,
    list_groups_main,
    delete_group_main,
    group_quotes_main,
    delete_quote_main,
    group_comparison_main,
)

app = Flask(__name__)
setup_logging()

set_logger(logging.getLogger("QuoteEngine"), tool_name="startup", request_type="INIT")
init_db()

"""
API for the quote comparison engine

pip install flask
"""


def handle(tool_func, group_id: str | None = None, **kwargs):
    """
    Universal wrapper for all endpoint tools.

    - Installs the per-request tool logger (activity.log + per-group file).
    - Returns the tool's dict as JSON with 200.
    - QuoteEngineError subclasses map to their status_code; anything else
      is a 500. Failures are always {"error": message}.
    """
    tool_name = tool_func.__name__
    method = request.method

    if group_id is not None and not is_uuid(group_id):
        return bad_request(f"Invalid groupId: {group_id}")

    set_logger(
        group_tool_logger(group_id or "SYSTEM", tool_name),
        tool_name=tool_name,
        group_id=group_id or "N/A",
        ip_address=request.remote_addr or "no_ip",
        request_type=method,
        file_name=kwargs.get("file_name") or "-",
    )
    log = get_logger()
    if method != "GET":
        log.info("Process started")

    call_kwargs = dict(kwargs)
    if "group_id" in inspect.signature(tool_func).parameters:
        call_kwargs["group_id"] = group_id

    t0 = time.perf_counter()
    try:
        result = tool_func(**call_kwargs)
    except QuoteEngineError as exc:
        if exc.status_code >= 500:
            log.exception(f"{tool_name} failed")
        else:
            log.warning(f"{tool_name} rejected: {exc}")
        return jsonify({"error": str(exc)}), exc.status_code
    except Exception as exc:
        log.exception(f"{tool_name} crashed")
        return jsonify({"error": str(exc)}), 500

    if method != "GET":
        log.info(f"Process finished in {time.perf_counter() - t0:.2f}s")
    return jsonify(result), 200


def is_uuid(value: str) -> bool:
    try:
        return str(uuid.UUID(value)) == value.lower()
    except (ValueError, AttributeError, TypeError):
        return False


def bad_request(msg: str):
    return jsonify({"error": msg}), 400


def ping_status_tool() -> dict:
    """Healthcheck tool. Logs an INFO line into activity.log."""
    get_logger().info("Ping received; replying with pong")
    return {"status": "pong"}


@app.route("/ping", methods=["GET", "POST"])
def PING():
    return handle(ping_status_tool)


@app.route("/api/parse-quote", methods=["POST"])
def PARSE_QUOTE():
    """
    Multipart upload: `file` + `groupId`. One file per request; the browser
    sends a batch as sequential requests.
    """
    upload = request.files.get("file")
    group_id = (request.form.get("groupId") or "").strip()

    if upload is None or not upload.filename:
        return bad_request("No file was uploaded")
    if not group_id:
        return bad_request("groupId is required")

    return handle(
        parse_quote_main,
        group_id=group_id,
        file_name=upload.filename,
        data=upload.read(),
        mime_type=upload.mimetype,
    )


@app.route("/api/groups", methods=["GET", "POST"])
def GROUPS():
    if request.method == "GET":
        return handle(list_groups_main)

    data = request.get_json(force=True, silent=True) or {}
    return handle(create_group_main, name=data.get("name"))


@app.route("/api/groups/<group_id>", methods=["DELETE"])
def GROUP(group_id: str):
    return handle(delete_group_main, group_id=group_id)


@app.route("/api/groups/<group_id>/quotes", methods=["GET"])
def GROUP_QUOTES(group_id: str):
    return handle(group_quotes_main, group_id=group_id)


@app.route("/api/groups/<group_id>/comparison", methods=["GET"])
def GROUP_COMPARISON(group_id: str):
    return handle(group_comparison_main, group_id=group_id)


@app.route("/api/quotes/<quote_id>", methods=["DELETE"])
def QUOTE(quote_id: str):
    if not is_uuid(quote_id):
        return bad_request(f"Invalid quote id: {quote_id}")
    return handle(delete_quote_main, quote_id=quote_id)


if __name__ == "__main__":
    if os.path.exists("crt.pem") and os.path.exists("key.pem"):
        app.run(host="0.0.0.0", port=5000, ssl_context=("crt.pem", "key.pem"))
    else:
        app.run(host="0.0.0.0", port=5000)
