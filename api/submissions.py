"""
Reading create/update submissions that may carry images.

Catalog and profile writes arrive either as multipart forms (fields plus image
files) or as plain JSON when no image changes.
"""

from typing import Any

from fastapi import Request
from starlette.datastructures import UploadFile

from shared.errors import ValidationError
from shared.image_host import ImageUpload


async def read_submission(request: Request, file_field: str) -> tuple[dict[str, Any], list[ImageUpload]]:
    """
    Split a request into plain fields and uploaded images.

    Returns:
        (fields, uploads) where uploads come from the `file_field` form part
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Malformed JSON body")
        if not isinstance(body, dict):
            raise ValidationError("Expected a JSON object")
        return body, []

    if not content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        return {}, []

    form = await request.form()
    fields: dict[str, Any] = {}
    uploads: list[ImageUpload] = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key != file_field or not value.filename:
                continue
            uploads.append(ImageUpload(
                content=await value.read(),
                filename=value.filename,
                content_type=value.content_type or "application/octet-stream",
            ))
        elif value != "":
            fields[key] = value
    return fields, uploads
