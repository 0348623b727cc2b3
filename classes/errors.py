# classes/errors.py

from typing import Any, Optional


RAW_EXCERPT_CHARS = 4000


class RefineError(Exception):
    """
    Base class for failures that cross the refine boundary.
    Each subclass carries the HTTP status the server answers with.
    """

    status_code = 500

    def __init__(self, message: str, raw: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        if isinstance(raw, str):
            raw = raw[:RAW_EXCERPT_CHARS]
        self.raw = raw

    def to_payload(self) -> dict:
        payload = {"ok": False, "error": self.message}
        if self.raw is not None:
            payload["raw"] = self.raw
        return payload


class ConfigurationError(RefineError):
    status_code = 500


class InvalidRequestError(RefineError):
    status_code = 400


class UpstreamError(RefineError):
    status_code = 502

    def __init__(self, message: str, raw: Optional[Any] = None, upstream_status: Optional[int] = None):
        super().__init__(message, raw=raw)
        self.upstream_status = upstream_status


class ModelOutputError(UpstreamError):
    """The model answered with parseable JSON of the wrong shape."""
