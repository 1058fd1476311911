from datetime import datetime, UTC


class QuoteEngineError(Exception):
    """Base class for failures the request boundary knows how to report."""

    status_code = 500


class InputError(QuoteEngineError):
    """Rejected before any extraction happens; reported to the caller verbatim."""

    status_code = 400


class MissingFile(InputError):
    pass


class UnsupportedFormat(InputError):
    def __init__(self, file_name: str, allowed: tuple[str, ...]):
        self.file_name = file_name
        self.allowed = allowed
        super().__init__(
            f"Unsupported file format: {file_name}. Allowed: {', '.join(allowed)}"
        )


class NotFound(QuoteEngineError):
    """Requested group or quote does not exist."""

    status_code = 404


class ExtractionError(QuoteEngineError):
    """Spreadsheet/PDF decoding failed."""


class NormalizationError(QuoteEngineError):
    """The completion reply could not be turned into a quote record."""


class NoStructuredPayload(NormalizationError):
    pass


class PayloadMalformed(NormalizationError):
    pass


class PayloadInvalid(NormalizationError):
    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Quote payload failed validation: " + "; ".join(problems))


class StorageError(QuoteEngineError):
    pass


def _make_error_payload(
    stage: str, err: Exception | str, extra: dict | None = None
) -> dict:
    msg = str(err)
    base = {
        "status": "error",
        "error": msg,
        "stage": stage,
        "timestamp": datetime.now(UTC)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z"),
    }
    if isinstance(err, Exception):
        base["errorType"] = type(err).__name__
    if extra:
        base.update(extra)
    return base
