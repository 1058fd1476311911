"""
Quote comparison orchestration.

- parse_quote_main: one uploaded file -> extract -> normalize -> store
- process_batch: several files, strictly one after another, with progress
- group / comparison helpers used by the HTTP layer

Run a batch from the command line:
    python -m tools.quote.quote <group_id> quote_a.xlsx quote_b.pdf
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from utils.core.errors import InputError, MissingFile, NotFound, _make_error_payload
from utils.core.log import get_logger, group_tool_logger, set_logger, setup_logging
from utils.db import quote_store
from utils.document.doc import extract_content
from tools.quote.quote_compare import build_comparison
from tools.quote.quote_normalize import CompletionFn, normalize_quote


ProgressCallback = Optional[Callable[[str], None]]
# (file name, raw bytes, declared MIME type or None)
UploadedFile = Tuple[str, bytes, Optional[str]]


def _emit_progress(progress_callback: ProgressCallback, message: str) -> None:
    get_logger().info(message)
    if progress_callback:
        progress_callback(message)


def parse_quote_main(
    *,
    group_id: str,
    file_name: str | None,
    data: bytes | None,
    mime_type: str | None = None,
    llm: CompletionFn | None = None,
) -> Dict[str, Any]:
    """
    Turn one uploaded quote file into a stored quote.

    Returns:
        {"success": True, "quote": {...stored quote, "items": [...]}}

    Raises:
        InputError: no file, no group, or an unsupported extension.
        ExtractionError / NormalizationError / StorageError: downstream failures.
    """
    logger = get_logger()
    if not file_name or data is None:
        raise MissingFile("No file was uploaded")
    if not group_id:
        raise InputError("groupId is required")

    t0 = time.perf_counter()
    content = extract_content(file_name, data, mime_type)
    parsed = normalize_quote(content, file_name, llm=llm)

    quote = quote_store.save_quote(
        group_id=group_id,
        file_name=file_name.lower(),
        company=parsed.company,
        total_amount=parsed.total_amount,
        items=[item.to_row() for item in parsed.items],
    )
    logger.info(f"Quote {file_name} processed in {time.perf_counter() - t0:.1f}s")
    return {"success": True, "quote": quote}


def process_batch(
    group_id: str,
    files: Iterable[UploadedFile],
    *,
    progress_callback: ProgressCallback = None,
    llm: CompletionFn | None = None,
) -> Dict[str, Any]:
    """
    Process uploads one at a time; a failing file is recorded and skipped.

    Returns:
        {"saved": [quote, ...], "failed": [error payload, ...]}
    """
    logger = get_logger()
    files = list(files)
    saved, failed = [], []

    for idx, (file_name, data, mime_type) in enumerate(files, start=1):
        _emit_progress(progress_callback, f"{file_name} 분석 중... ({idx}/{len(files)})")
        try:
            result = parse_quote_main(
                group_id=group_id,
                file_name=file_name,
                data=data,
                mime_type=mime_type,
                llm=llm,
            )
        except Exception as exc:
            logger.exception(f"{file_name} failed")
            failed.append(_make_error_payload("parse_quote", exc, {"file": file_name}))
            _emit_progress(progress_callback, f"{file_name} 처리 실패: {exc}")
            continue
        saved.append(result["quote"])

    logger.info(f"Batch done: {len(saved)} saved, {len(failed)} failed")
    return {"saved": saved, "failed": failed}


def create_group_main(*, name: str | None) -> Dict[str, Any]:
    name = (name or "").strip()
    if not name:
        raise InputError("name is required")
    return quote_store.create_group(name)


def list_groups_main() -> Dict[str, Any]:
    return {"groups": quote_store.list_groups()}


def delete_group_main(*, group_id: str) -> Dict[str, Any]:
    if not quote_store.delete_group(group_id):
        raise NotFound(f"Comparison group {group_id} not found")
    return {"success": True}


def _require_group(group_id: str) -> None:
    if quote_store.get_group(group_id) is None:
        raise NotFound(f"Comparison group {group_id} not found")


def group_quotes_main(*, group_id: str) -> Dict[str, Any]:
    _require_group(group_id)
    return {"groupId": group_id, "quotes": quote_store.load_group_quotes(group_id)}


def delete_quote_main(*, quote_id: str) -> Dict[str, Any]:
    if not quote_store.delete_quote(quote_id):
        raise NotFound(f"Quote {quote_id} not found")
    return {"success": True}


def group_comparison_main(*, group_id: str) -> Dict[str, Any]:
    """Quotes of a group plus the category comparison matrix."""
    _require_group(group_id)
    quotes = quote_store.load_group_quotes(group_id)
    report = build_comparison(quotes)
    return {"groupId": group_id, **report.to_dict()}


def _read_files(paths: list[str]) -> list[UploadedFile]:
    return [(Path(p).name, Path(p).read_bytes(), None) for p in paths]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Upload quote files into a comparison group")
    parser.add_argument("group_id", help="Comparison group id")
    parser.add_argument("files", nargs="+", help="Quote files (xlsx, xls, pdf, png, jpg, ...)")
    args = parser.parse_args(argv)

    setup_logging()
    set_logger(
        group_tool_logger(args.group_id, "batch_upload"),
        tool_name="batch_upload",
        group_id=args.group_id,
        request_type="CLI",
    )

    result = process_batch(args.group_id, _read_files(args.files), progress_callback=print)
    for failure in result["failed"]:
        print(f"FAILED {failure['file']}: {failure['error']}", file=sys.stderr)
    return 1 if result["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
