"""Shared fixtures for the Slidewarp test suite."""

import io
import json
import zipfile

import httpx
import pytest

from slidewarp.configuration import SlidewarpConfig, clear_settings_cache
from slidewarp.providers import SEPARATOR

CONTENT_TYPES_XML = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="xml" ContentType="application/xml"/></Types>'
)

SLIDE_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<p:sld xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" '
    'xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main">'
    "<p:cSld><p:spTree><p:sp><p:txBody><a:bodyPr/><a:p><a:r>"
    '<a:rPr lang="en-US" dirty="0"/>{runs}'
    "</a:r></a:p></p:txBody></p:sp></p:spTree></p:cSld></p:sld>"
)


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def slide_xml():
    """Build slide XML around the given run markup."""

    def _build(runs: str) -> str:
        return SLIDE_TEMPLATE.format(runs=runs)

    return _build


@pytest.fixture
def make_package():
    """Build an in-memory .pptx-like zip from a mapping of part name to XML."""

    def _make(parts):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.writestr("[Content_Types].xml", CONTENT_TYPES_XML)
            for name, text in parts.items():
                archive.writestr(name, text)
        return buffer.getvalue()

    return _make


@pytest.fixture
def read_part():
    def _read(data: bytes, name: str) -> str:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return archive.read(name).decode("utf-8")

    return _read


@pytest.fixture
def settings():
    return SlidewarpConfig()


def dictionary_translate(text: str, dictionary) -> str:
    pieces = text.split(SEPARATOR)
    translated = []
    for piece in pieces:
        for source, target in dictionary.items():
            piece = piece.replace(source, target)
        translated.append(piece)
    return SEPARATOR.join(translated)


@pytest.fixture
def google_transport():
    """MockTransport answering like the gtx endpoint, using a word dictionary.

    Every request is recorded on ``transport.requests``.
    """

    def _build(dictionary):
        requests = []

        def handle(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            translated = dictionary_translate(request.url.params["q"], dictionary)
            # Split the answer over two sentence entries like the real service.
            middle = len(translated) // 2
            body = [
                [
                    [translated[:middle], "", None, None],
                    [translated[middle:], "", None, None],
                ],
                None,
                request.url.params["sl"],
            ]
            return httpx.Response(200, json=body)

        transport = httpx.MockTransport(handle)
        transport.requests = requests
        return transport

    return _build


@pytest.fixture
def libre_transport():
    """MockTransport answering like a LibreTranslate instance."""

    def _build(dictionary):
        requests = []

        def handle(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            payload = json.loads(request.content)
            translated = dictionary_translate(payload["q"], dictionary)
            return httpx.Response(200, json={"translatedText": translated})

        transport = httpx.MockTransport(handle)
        transport.requests = requests
        return transport

    return _build
