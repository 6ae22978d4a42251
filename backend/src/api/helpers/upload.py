"""Bounded reading of raw request bodies."""
from fastapi import Request

from services.exceptions import PayloadTooLargeError, ValidationError


async def read_upload_body(request: Request, max_size: int) -> bytes:
    """
    Read the raw request body, refusing anything larger than max_size bytes.

    A declared Content-Length over the limit is rejected before reading. The body
    is then streamed and cut off as soon as the limit is passed, so a missing or
    lying Content-Length cannot make the server buffer more than max_size.

    Raises:
        PayloadTooLargeError: If the body exceeds max_size.
        ValidationError: If the body is empty or Content-Length is malformed.
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_size = int(declared)
        except ValueError as e:
            raise ValidationError("Invalid Content-Length header.") from e
        if declared_size > max_size:
            raise PayloadTooLargeError(max_size)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_size:
            raise PayloadTooLargeError(max_size)

    if not body:
        raise ValidationError("Request body is empty; expected a ZIP archive.")
    return bytes(body)
