"""Wire format of the analysis endpoints."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import IO, Protocol
from urllib.parse import urlencode

from .errors import ProtocolError
from .results import AnalysisRequest, AnalysisResult, ResultType

logger = logging.getLogger(__name__)

ANALYZE_IMAGE_PATH = "/analyze_image"
ANALYZE_RAW_IMAGE_PATH = "/analyze_raw_image"
PING_PATH = "/ping"
STOP_PATH = "/stop"

CONTENT_TYPE = "application/octet-stream"
IMAGE_LENGTH_HEADER = "ImageLen"
CONTEXT_HEADER = "ContextBase64utf"


class HttpResponse(Protocol):
    """The subset of :class:`requests.Response` the decoder relies on."""

    status_code: int
    headers: Mapping[str, str]
    content: bytes


@dataclass(slots=True)
class EncodedRequest:
    url: str
    body: bytes | IO[bytes]
    headers: dict[str, str] = field(default_factory=dict)


def build_query(request: AnalysisRequest, *, api_key: str | None = None) -> list[tuple[str, str]]:
    query: list[tuple[str, str]] = [("response_type", request.result_type.value)]
    if api_key is not None:
        query.append(("api_key", api_key))
    if request.data is not None:
        query.append(("data", request.data))
    if request.is_raw:
        query.append(("width", str(request.width)))
        query.append(("height", str(request.height)))
    if request.context_in_body:
        query.append(("context_in_body", "1"))
    return query


def encode_request(
    base_url: str,
    request: AnalysisRequest,
    *,
    api_key: str | None = None,
) -> EncodedRequest:
    """Build the URL, headers and body for an analysis call.

    The content type is always ``application/octet-stream``; the server infers
    the image format from the payload itself.
    """
    query = urlencode(build_query(request, api_key=api_key))
    return EncodedRequest(
        url=f"{base_url}{request.path}?{query}",
        body=request.body,
        headers={"Content-Type": CONTENT_TYPE},
    )


def ensure_success(response: HttpResponse) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    detail = _decode_text(response.content or b"").strip()
    message = f"Server returned HTTP {status}"
    if detail:
        message = f"{message}: {detail}"
    raise ProtocolError(message, status_code=status)


def decode_response(
    result_type: ResultType,
    context_in_body: bool,
    response: HttpResponse,
) -> AnalysisResult:
    """Turn an HTTP response into an :class:`AnalysisResult`.

    Parameters
    ----------
    result_type:
        The result type that was requested.
    context_in_body:
        Whether the request asked for the context to be appended to the image
        bytes instead of being sent as a header.
    response:
        The server response. Header lookups must be case-insensitive.
    """

    ensure_success(response)
    body = response.content or b""

    if result_type is ResultType.CONTEXT:
        return AnalysisResult(result_type=result_type, context=_decode_text(body))

    if context_in_body:
        raw_length = response.headers.get(IMAGE_LENGTH_HEADER)
        if raw_length is None:
            # Compatibility fallback: any image bytes in the payload are dropped.
            logger.warning(
                "Response for '%s' has no %s header; treating the whole payload as context.",
                result_type.value,
                IMAGE_LENGTH_HEADER,
            )
            return AnalysisResult(result_type=result_type, context=_decode_text(body))
        image_length = _parse_image_length(raw_length)
        return AnalysisResult(
            result_type=result_type,
            context=_decode_text(body[image_length:]),
            image=bytes(body[:image_length]),
        )

    context: str | None = None
    encoded_context = response.headers.get(CONTEXT_HEADER)
    if encoded_context is not None:
        try:
            context = _decode_text(base64.b64decode(encoded_context, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise ProtocolError(f"Malformed {CONTEXT_HEADER} header: {exc}") from exc
    return AnalysisResult(result_type=result_type, context=context, image=bytes(body))


def _parse_image_length(value: str) -> int:
    try:
        length = int(value.strip())
    except ValueError as exc:
        raise ProtocolError(f"Malformed {IMAGE_LENGTH_HEADER} header: {value!r}") from exc
    if length < 0:
        raise ProtocolError(f"Negative {IMAGE_LENGTH_HEADER} header: {value!r}")
    return length


def _decode_text(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")
