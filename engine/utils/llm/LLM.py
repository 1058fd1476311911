"""Gemini completion helper.

Single entrypoint for sending prompt parts to Google's Gemini models and
getting the reply text back.

- The client is created once per process. With `gemini_api_key` configured it
  talks to the Gemini Developer API; otherwise it goes through Vertex AI using
  application default credentials.
- `to_parts()` coerces strings, bytes, or `Part` instances into a list of
  `Part` objects.
- Every call is logged with latency and token usage. Calls are made exactly
  once: no retries and no client-side rate limiting.

Import pattern for tools:
```python
from utils.llm.LLM import Part, call_llm_sync, image_part
```
"""

from __future__ import annotations

import time
import httpx
import threading
from typing import Any, List, Mapping, Optional, Sequence

from google import genai
from google.genai import types
from google.genai.types import Part
from google.genai import errors as gerrors

from utils.vault import secrets
from utils.core.log import get_logger


__all__ = [
    "Part",
    "get_client",
    "to_parts",
    "image_part",
    "call_llm_sync",
]

MODEL_DEFAULT = secrets.get("gemini_model", default="gemini-2.5-flash")
_CLIENT = None
_LOCK = threading.Lock()


def _make_preview(parts, max_chars: int = 120) -> str:
    for p in parts:
        t = getattr(p, "text", None)
        if isinstance(t, str) and t.strip():
            s = " ".join(t.split())
            return (s[:max_chars] + "...") if len(s) > max_chars else s
    return ""


def _wrap_sdk_call(fn, *args, _log_model=None, _debug_meta: Mapping[str, str] | None = None, **kwargs):
    """Run an SDK call, classify errors, and emit structured logs."""
    logger = get_logger()
    t0 = time.perf_counter()
    meta = dict(_debug_meta or {})
    caller = meta.get("caller") or "unknown"
    preview = meta.get("preview", "")

    try:
        resp = fn(*args, **kwargs)
    except gerrors.ClientError as e:
        logger.error("LLM ClientError | caller=%s | model=%s | code=%s | err=%s | preview='%s'",
                     caller, _log_model, getattr(e, "code", None), e, preview)
        raise
    except gerrors.ServerError as e:
        logger.error("LLM ServerError | caller=%s | model=%s | err=%s | preview='%s'",
                     caller, _log_model, e, preview)
        raise

    latency_ms = int((time.perf_counter() - t0) * 1000)
    usage = getattr(resp, "usage_metadata", None)
    prompt_tok = getattr(usage, "prompt_token_count", -1) if usage else -1
    total_tok = getattr(usage, "total_token_count", -1) if usage else -1

    candidates = getattr(resp, "candidates", None) or []
    finish = getattr(candidates[0], "finish_reason", None) if candidates else None
    finish = str(getattr(finish, "name", finish) or "STOP").upper()

    base_msg = (
        f"LLM Call OK | caller={caller} | model={_log_model} | latency={latency_ms}ms | "
        f"prompt_tokens={prompt_tok} | total_tokens={total_tok}"
    )
    if finish != "STOP":  # safety-stop, max-tokens, etc.
        logger.warning(base_msg + f" | finish_reason={finish}")
    else:
        logger.info(base_msg)
    return resp


def _create_client() -> genai.Client:
    http_options = types.HttpOptions(
        client_args={
            "limits": httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=60.0,
            ),
        },
    )
    api_key = secrets.get("gemini_api_key", default="")
    if api_key:
        return genai.Client(api_key=api_key, http_options=http_options)
    return genai.Client(
        vertexai=True,
        project=secrets.get("google_cloud_project", default="") or None,
        location=secrets.get("vertex_location", default="us-central1"),
        http_options=http_options,
    )


def get_client() -> genai.Client:
    global _CLIENT
    if _CLIENT is None:
        with _LOCK:
            if _CLIENT is None:
                _CLIENT = _create_client()
    return _CLIENT


def to_parts(content: Sequence[Part | str | bytes]) -> List[Part]:
    "makes content gemini safe by converting to parts"
    parts: List[Part] = []
    for item in content:
        if isinstance(item, Part):
            parts.append(item)
        elif isinstance(item, str):
            parts.append(Part.from_text(text=item))
        elif isinstance(item, (bytes, bytearray)):
            parts.append(
                Part.from_bytes(data=bytes(item), mime_type="application/octet-stream")
            )
        else:
            raise TypeError(f"Unsupported Part type: {type(item)}")
    return parts


def image_part(data: bytes, mime_type: str) -> Part:
    return Part.from_bytes(data=data, mime_type=mime_type)


def call_llm_sync(
    prompt_parts: Sequence[Part | str | bytes],
    *,
    model: str | None = None,
    system_instruction: str | None = None,
    cfg: dict[str, Any] | None = None,
    debug_caller: Optional[str] = None,
) -> str:
    """
    Send `prompt_parts` to Gemini once and return the reply text.

    Args:
        prompt_parts: Text, raw bytes or `Part` objects, in prompt order.
        model: Model name; defaults to MODEL_DEFAULT.
        system_instruction: Optional system instruction.
        cfg: Generation config. Defaults to
            {"temperature": 0.0, "max_output_tokens": 8192}.
        debug_caller: Label used in log lines.

    Returns:
        The reply text ("" when the model produced none).
    """
    model = model or MODEL_DEFAULT
    config = dict(cfg or {"temperature": 0.0, "max_output_tokens": 8192})
    if system_instruction:
        config["system_instruction"] = system_instruction

    parts = to_parts(prompt_parts)
    meta = {"caller": debug_caller, "preview": _make_preview(parts)}

    client = get_client()
    resp = _wrap_sdk_call(
        client.models.generate_content,
        model=model,
        contents=parts,
        config=config,
        _log_model=model,
        _debug_meta=meta,
    )
    return resp.text or ""
