"""Function-as-a-service entry point for translating uploaded presentations."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .configuration import SlidewarpConfig, configure_logging, get_settings
from .documents import PRESENTATION_MIME_TYPE
from .errors import BadRequestError
from .translator import DocumentTranslator, output_filename

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST,OPTIONS",
}


def handler(
    event: Mapping[str, Any],
    context: Any = None,
    *,
    settings: SlidewarpConfig | None = None,
    client: httpx.Client | None = None,
) -> Dict[str, Any]:
    """Translate the .pptx carried in ``event`` and return an HTTP-like response.

    ``event`` follows the Netlify/Lambda proxy shape: ``httpMethod``,
    ``queryStringParameters``, ``body`` and ``isBase64Encoded``.
    """

    try:
        return _handle(event, settings=settings, client=client)
    except BadRequestError as exc:
        return _text_response(exc.status_code, str(exc))
    except Exception as exc:
        logger.exception("Presentation translation failed")
        return _text_response(500, str(exc) or exc.__class__.__name__)


def _handle(
    event: Mapping[str, Any],
    *,
    settings: SlidewarpConfig | None,
    client: httpx.Client | None,
) -> Dict[str, Any]:
    method = str(event.get("httpMethod") or "").upper()
    if method == "OPTIONS":
        return {"statusCode": 204, "headers": dict(CORS_HEADERS)}
    if method != "POST":
        raise BadRequestError("Use POST with PPTX binary body.", status_code=405)

    data = decode_body(event)

    settings = settings or get_settings()
    configure_logging(
        settings.SLIDEWARP_LOG_LEVEL, debug=settings.SLIDEWARP_PROVIDER_DEBUG
    )

    params: Mapping[str, Optional[str]] = event.get("queryStringParameters") or {}
    source = params.get("source") or settings.SLIDEWARP_SOURCE_LANGUAGE
    target = params.get("target") or settings.SLIDEWARP_TARGET_LANGUAGE

    with DocumentTranslator.from_settings(
        settings,
        source_language=source,
        target_language=target,
        client=client,
    ) as translator:
        output, summary = translator.translate_package(data)

    logger.info(
        "Translated %d of %d runs in %d parts using %d batches (%s -> %s) in %.2fs",
        summary.translated_spans,
        summary.total_spans,
        len(summary.parts),
        summary.total_batches,
        source,
        target,
        summary.elapsed_seconds,
    )

    return {
        "statusCode": 200,
        "headers": {
            "Content-Type": PRESENTATION_MIME_TYPE,
            "Content-Disposition": f'attachment; filename="{output_filename(target)}"',
            "Access-Control-Allow-Origin": CORS_HEADERS["Access-Control-Allow-Origin"],
        },
        "body": base64.b64encode(output).decode("ascii"),
        "isBase64Encoded": True,
    }


def decode_body(event: Mapping[str, Any]) -> bytes:
    """Return the raw request body, decoding base64 when flagged."""

    body = event.get("body")
    if not body:
        raise BadRequestError("Empty body")

    if event.get("isBase64Encoded"):
        try:
            data = base64.b64decode(body)
        except (binascii.Error, ValueError) as exc:
            raise BadRequestError("Body is not valid base64.") from exc
    elif isinstance(body, (bytes, bytearray)):
        data = bytes(body)
    else:
        data = str(body).encode("utf-8")

    if not data:
        raise BadRequestError("Empty body")
    return data


def _text_response(status_code: int, message: str) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "text/plain; charset=utf-8"},
        "body": message,
    }
