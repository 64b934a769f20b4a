"""Request body decoding for endpoints that accept JSON or multipart forms.

Learn: Each endpoint names its schema and its file fields up front:

    body = await decode_body(request, ThreadCreate, max_upload_bytes=...)
    body = await decode_body(request, ContactRequest, file_fields=("attachment",), ...)

Only fields the Pydantic schema declares are copied out of a form, and
Pydantic coerces them ("true" → True, "12" → 12). File fields come back
separately as Attachment objects — never mixed into the schema.
"""

import json
from dataclasses import dataclass
from typing import Generic, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from starlette.datastructures import UploadFile

from threadstocks.attachments import Attachment
from threadstocks.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


@dataclass
class DecodedBody(Generic[M]):
    data: M
    attachments: dict[str, Attachment]


async def decode_body(
    request: Request,
    schema: type[M],
    *,
    max_upload_bytes: int,
    file_fields: tuple[str, ...] = (),
) -> DecodedBody[M]:
    """Decode the request body into schema (+ declared file fields)."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            raw = json.loads(await request.body())
        except ValueError:
            raise ValidationError("malformed JSON body")
        return DecodedBody(_validate(schema, raw), {})

    if content_type.startswith("multipart/form-data"):
        return await _decode_form(request, schema, max_upload_bytes, file_fields)

    raise ValidationError(f"unsupported content type: {content_type or 'none'}")


async def _decode_form(
    request: Request,
    schema: type[M],
    max_upload_bytes: int,
    file_fields: tuple[str, ...],
) -> DecodedBody[M]:
    async with request.form() as form:
        values = {}
        for name in schema.model_fields:
            value = form.get(name)
            if isinstance(value, str):
                values[name] = value

        attachments = {}
        for name in file_fields:
            upload = form.get(name)
            if not isinstance(upload, UploadFile) or not upload.filename:
                continue
            data = await upload.read(max_upload_bytes + 1)
            if len(data) > max_upload_bytes:
                raise ValidationError(f"file '{name}' is too large")
            attachments[name] = Attachment(
                field=name,
                filename=upload.filename,
                content_type=upload.content_type or "application/octet-stream",
                data=data,
            )

    return DecodedBody(_validate(schema, values), attachments)


def _validate(schema: type[M], raw) -> M:
    try:
        return schema.model_validate(raw)
    except SchemaError as e:
        raise RequestValidationError(e.errors())
