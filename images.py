"""
Product image handling.

Uploaded images are kept inline in the product document as base64 data
URLs, so nothing is ever written to local disk.
"""
import base64
import json
import os
from typing import List, Optional

from fastapi import UploadFile

from errors import ValidationError
from schemas import MAX_IMAGES

ALLOWED_TYPES = {"jpeg", "jpg", "png", "gif", "webp"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024
# room for MAX_IMAGES base64 data URLs in a single form field
MAX_FORM_PART_BYTES = MAX_IMAGES * (MAX_IMAGE_BYTES * 4 // 3 + 1024)


def to_data_url(content: bytes, mimetype: str) -> str:
    return f"data:{mimetype};base64,{base64.b64encode(content).decode('ascii')}"


def is_allowed_image(filename: str, content_type: Optional[str]) -> bool:
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".")
    mime = (content_type or "").lower()
    major, _, minor = mime.partition("/")
    return ext in ALLOWED_TYPES and major == "image" and minor in ALLOWED_TYPES


async def encode_uploads(files: Optional[List[UploadFile]]) -> List[str]:
    """Validate every upload and return their data URLs in upload order.

    One bad file fails the whole request.
    """
    # browsers send an empty part when the file input is left blank
    files = [f for f in files or [] if f.filename]
    if len(files) > MAX_IMAGES:
        raise ValidationError(f"At most {MAX_IMAGES} images can be uploaded")

    urls = []
    for upload in files:
        if not is_allowed_image(upload.filename, upload.content_type):
            raise ValidationError("Only image files are allowed", f"Rejected upload {upload.filename!r}")
        if upload.size is not None and upload.size > MAX_IMAGE_BYTES:
            raise ValidationError("Image file is too large", f"{upload.filename!r} exceeds 5 MB")
        content = await upload.read()
        if len(content) > MAX_IMAGE_BYTES:
            raise ValidationError("Image file is too large", f"{upload.filename!r} exceeds 5 MB")
        urls.append(to_data_url(content, upload.content_type.lower()))
    return urls


def normalize_string_list(values: Optional[List[str]], split_commas: bool = False) -> Optional[List[str]]:
    """Turn a form field into an ordered list of strings.

    Accepted encodings: the field repeated once per entry, or a single JSON
    array of strings. With `split_commas`, a single plain value is also read
    as a comma-separated list; otherwise it is one entry. Returns None when
    the field was not sent at all.
    """
    if values is None:
        return None
    if len(values) != 1:
        return [v.strip() for v in values if v.strip()]

    raw = values[0].strip()
    if not raw:
        return []
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError("Malformed list value", "Expected a JSON array of strings")
        if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
            raise ValidationError("Malformed list value", "Expected a JSON array of strings")
        return [v.strip() for v in parsed if v.strip()]
    if split_commas:
        return [v.strip() for v in raw.split(",") if v.strip()]
    return [raw]
