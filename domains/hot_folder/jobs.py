"""
Job descriptor parsing.

Descriptors are JSON objects tagged by ``Kind``. Parsing happens in two
steps: the tag is read first, so an unknown kind can be reported as
unsupported instead of malformed; only a known tag is decoded and validated
against its model.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from app.models.schemas import ExportPanelAsObjJob, JobKind

JobDescriptor = ExportPanelAsObjJob

JOB_MODELS: dict[JobKind, type[BaseModel]] = {
    JobKind.EXPORT_PANEL_AS_OBJ: ExportPanelAsObjJob,
}


@dataclass(frozen=True)
class ParsedJob:
    """A valid descriptor of a supported kind."""
    job: JobDescriptor


@dataclass(frozen=True)
class UnsupportedJob:
    """Well-formed descriptor whose kind this add-in does not implement."""
    kind: Optional[str]


@dataclass(frozen=True)
class DecodeFailure:
    """Bytes are not a JSON object."""
    reason: str


@dataclass(frozen=True)
class ValidationFailure:
    """Known kind, but required fields are missing or malformed."""
    kind: JobKind
    errors: list[str]


JobParseResult = Union[ParsedJob, UnsupportedJob, DecodeFailure, ValidationFailure]


def _format_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        messages.append(f"{location}: {item['msg']}")
    return messages


def read_kind(payload: dict[str, Any]) -> Union[JobKind, UnsupportedJob]:
    """Resolve the ``Kind`` tag; anything unknown (or absent) is unsupported."""
    raw_kind = payload.get("Kind")
    if not isinstance(raw_kind, str):
        return UnsupportedJob(kind=None if raw_kind is None else str(raw_kind))
    try:
        return JobKind(raw_kind)
    except ValueError:
        return UnsupportedJob(kind=raw_kind)


def parse_job(raw: bytes) -> JobParseResult:
    """
    Parse a job descriptor file's contents.

    Args:
        raw: File bytes; UTF-8 with or without a byte-order mark

    Returns:
        ParsedJob, UnsupportedJob, DecodeFailure or ValidationFailure. Never raises.
    """
    try:
        payload = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        return DecodeFailure(reason=str(e))

    if not isinstance(payload, dict):
        return DecodeFailure(reason=f"expected a JSON object, got {type(payload).__name__}")

    kind = read_kind(payload)
    if isinstance(kind, UnsupportedJob):
        return kind

    try:
        job = JOB_MODELS[kind].model_validate(payload)
    except ValidationError as e:
        return ValidationFailure(kind=kind, errors=_format_errors(e))

    return ParsedJob(job=job)
