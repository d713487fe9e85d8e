"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from .configuration import SlidewarpConfig, normalise_provider_name
from .errors import (
    AllProvidersFailedError,
    ProviderError,
    TranslationProviderConfigurationError,
)

logger = logging.getLogger(__name__)

SEPARATOR = "|||SEP|||"
JOINER = f"\n{SEPARATOR}\n"
DEFAULT_TIMEOUT = 8.0
USER_AGENT = "slidewarp"


def split_translation(text: str) -> List[str]:
    """Split a joined translation back into pieces, dropping the join padding."""

    pieces = text.split(SEPARATOR)
    last = len(pieces) - 1
    result: List[str] = []
    for index, piece in enumerate(pieces):
        if index > 0 and piece.startswith("\n"):
            piece = piece[1:]
        if index < last and piece.endswith("\n"):
            piece = piece[:-1]
        result.append(piece)
    return result


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "provider"
    debug = False

    @abstractmethod
    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
    ) -> List[str]:
        """Translate the provided texts and return them in the same order."""

    def close(self) -> None:
        """Release any held network resources."""

    def _log_debug(self, label: str, payload: Any) -> None:
        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        else:
            message = str(payload)
        logger.debug("%s:\n%s", label, message)


class EchoTranslationProvider(TranslationProvider):
    """Returns every run unchanged; handy for dry runs and tests."""

    name = "echo"

    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
    ) -> List[str]:
        return list(texts)


class SeparatorJoinedProvider(TranslationProvider):
    """Sends a whole batch in one HTTP call by joining texts with a separator."""

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        strict_alignment: bool = False,
        debug: bool = False,
    ) -> None:
        self.timeout = timeout
        self.strict_alignment = strict_alignment
        self.debug = debug
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []

        joined = JOINER.join(texts)
        self._log_debug(
            f"{self.name}.request",
            {"source": source_language, "target": target_language, "q": joined},
        )
        translated = self._request_translation(
            joined,
            source_language=source_language,
            target_language=target_language,
        )
        self._log_debug(f"{self.name}.response", translated)

        pieces = split_translation(translated)
        if self.strict_alignment and len(pieces) != len(texts):
            raise ProviderError(
                f"{self.name} returned {len(pieces)} segments for {len(texts)} inputs."
            )
        return pieces

    @abstractmethod
    def _request_translation(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        """Perform one provider call and return the translated joined text."""

    def _fetch_json(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ProviderError(
                f"{self.name} timed out after {self.timeout:g} seconds"
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ProviderError(
                f"{self.name} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} request failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"Bad JSON from {self.name}") from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


class GoogleTranslateProvider(SeparatorJoinedProvider):
    """Unofficial Google Translate endpoint (``client=gtx``)."""

    name = "google"
    DEFAULT_URL = "https://translate.googleapis.com/translate_a/single"

    def __init__(self, *, url: str = DEFAULT_URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.url = url

    def _request_translation(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        params = {
            "client": "gtx",
            "sl": source_language.lower(),
            "tl": target_language.lower(),
            "dt": "t",
            "ie": "UTF-8",
            "oe": "UTF-8",
            "q": text,
        }
        data = self._fetch_json("GET", self.url, params=params)
        return self._extract_text(data)

    def _extract_text(self, data: Any) -> str:
        # Shape: [[["translated", "original", ...], ...], ...]
        if not isinstance(data, list) or not data:
            raise ProviderError(
                "Google Translate response malformed: expected a nested array."
            )
        sentences = data[0] or []
        if not isinstance(sentences, list):
            raise ProviderError(
                "Google Translate response malformed: expected a sentence list."
            )
        return "".join(
            sentence[0]
            for sentence in sentences
            if isinstance(sentence, list) and sentence and isinstance(sentence[0], str)
        )


class LibreTranslateProvider(SeparatorJoinedProvider):
    """LibreTranslate instances tried in a fixed priority order."""

    name = "libretranslate"
    DEFAULT_ENDPOINTS = (
        "https://libretranslate.de/translate",
        "https://translate.astian.org/translate",
    )

    def __init__(
        self,
        *,
        endpoints: Sequence[str] = DEFAULT_ENDPOINTS,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.endpoints = list(endpoints)
        self.api_key = api_key

    def _request_translation(
        self,
        text: str,
        *,
        source_language: str,
        target_language: str,
    ) -> str:
        payload: Dict[str, str] = {
            "q": text,
            "source": source_language.lower(),
            "target": target_language.lower(),
            "format": "text",
        }
        if self.api_key:
            payload["api_key"] = self.api_key

        last_error: ProviderError | None = None
        for endpoint in self.endpoints:
            try:
                data = self._fetch_json("POST", endpoint, json=payload)
                return self._extract_text(data)
            except ProviderError as exc:
                logger.debug("LibreTranslate endpoint %s failed: %s", endpoint, exc)
                last_error = exc

        raise last_error or ProviderError("All LibreTranslate endpoints failed")

    def _extract_text(self, data: Any) -> str:
        translated = data.get("translatedText") if isinstance(data, dict) else None
        if not isinstance(translated, str):
            raise ProviderError(
                "LibreTranslate response malformed: missing translatedText."
            )
        return translated


class OpenAITranslationProvider(TranslationProvider):
    """Sends a batch to an OpenAI model as numbered runs and maps answers back by id."""

    name = "openai"
    DEFAULT_MODEL = "gpt-5-mini"

    INSTRUCTIONS = (
        "Translate each presentation text run from the source language into the "
        "target language. Keep numbers, placeholders and surrounding spaces. "
        'Answer with JSON only: {"translations": [{"id": "<run id>", '
        '"translated": "<text>"}]} and nothing else.'
    )

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        self.debug = debug
        self.model = model or self.DEFAULT_MODEL
        self._client = client if client is not None else self._connect(api_key)

    @staticmethod
    def _connect(api_key: str | None) -> Any:
        if not api_key:
            raise TranslationProviderConfigurationError(
                "The openai provider needs OPENAI_API_KEY to be set."
            )
        try:
            from openai import OpenAI
        except ImportError as exc:  # pragma: no cover
            raise TranslationProviderConfigurationError(
                "The openai package is missing. Install slidewarp[openai]."
            ) from exc
        return OpenAI(api_key=api_key)

    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
    ) -> List[str]:
        if not texts:
            return []

        request = {
            "source_language": source_language,
            "target_language": target_language,
            "segments": [{"id": str(i), "text": text} for i, text in enumerate(texts)],
        }
        self._log_debug("openai.request", request)
        answer = self._ask(json.dumps(request, ensure_ascii=False))
        self._log_debug("openai.response", answer)

        by_id = self._index_answers(parse_model_json(answer))
        missing = [str(i) for i in range(len(texts)) if str(i) not in by_id]
        if missing:
            raise ProviderError(
                "openai answer is missing segments: " + ", ".join(missing)
            )
        return [by_id[str(i)] for i in range(len(texts))]

    def _ask(self, prompt: str) -> str:
        try:
            response = self._client.responses.create(
                model=self.model,
                instructions=self.INSTRUCTIONS,
                input=[
                    {"role": "user", "content": [{"type": "input_text", "text": prompt}]}
                ],
            )
        except Exception as exc:  # pragma: no cover - SDK errors vary by version
            raise ProviderError(f"openai request failed: {exc}") from exc

        text = getattr(response, "output_text", None)
        if not text:
            raise ProviderError("openai returned an empty answer.")
        return str(text)

    @staticmethod
    def _index_answers(payload: Any) -> Dict[str, str]:
        entries = payload.get("translations") if isinstance(payload, dict) else payload
        if not isinstance(entries, list):
            raise ProviderError("openai answer has no translations list.")

        by_id: Dict[str, str] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                raise ProviderError("openai answer entries must be objects.")
            key, value = entry.get("id"), entry.get("translated")
            if isinstance(key, int):
                key = str(key)
            if not isinstance(key, str) or not isinstance(value, str):
                raise ProviderError("openai answer entry lacks id or translated.")
            by_id[key] = value
        return by_id


CODE_FENCE = re.compile(r"^```[\w-]*\s*\n(?P<body>.*?)\n?```\s*$", re.DOTALL)


def parse_model_json(text: str) -> Any:
    """Decode a JSON answer, tolerating a surrounding markdown code fence."""

    text = text.strip()
    fenced = CODE_FENCE.match(text)
    if fenced:
        text = fenced.group("body")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProviderError(f"openai returned invalid JSON: {exc}") from exc


class FallbackTranslationProvider(TranslationProvider):
    """Tries providers strictly in order and returns the first success."""

    name = "fallback"

    def __init__(self, providers: Sequence[TranslationProvider]) -> None:
        if not providers:
            raise TranslationProviderConfigurationError(
                "At least one translation provider is required."
            )
        self.providers = list(providers)
        self.last_provider_name: Optional[str] = None

    def translate(
        self,
        texts: Sequence[str],
        *,
        source_language: str,
        target_language: str,
    ) -> List[str]:
        errors: List[Tuple[str, ProviderError]] = []
        for index, provider in enumerate(self.providers):
            try:
                result = provider.translate(
                    texts,
                    source_language=source_language,
                    target_language=target_language,
                )
            except ProviderError as exc:
                errors.append((provider.name, exc))
                if index + 1 < len(self.providers):
                    logger.warning(
                        "Provider %s failed (%s); falling back to %s.",
                        provider.name,
                        exc,
                        self.providers[index + 1].name,
                    )
                continue
            self.last_provider_name = provider.name
            return result

        _, last_error = errors[-1]
        raise AllProvidersFailedError(str(last_error), errors) from last_error

    def close(self) -> None:
        for provider in self.providers:
            provider.close()


def build_provider(
    name: str,
    settings: SlidewarpConfig,
    *,
    client: httpx.Client | None = None,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name."""

    debug = debug or settings.SLIDEWARP_PROVIDER_DEBUG
    normalized = normalise_provider_name(name)
    http_options: Dict[str, Any] = {
        "client": client,
        "timeout": settings.SLIDEWARP_PROVIDER_TIMEOUT,
        "strict_alignment": settings.SLIDEWARP_STRICT_ALIGNMENT,
        "debug": debug,
    }
    if normalized == "google":
        return GoogleTranslateProvider(url=settings.GOOGLE_TRANSLATE_URL, **http_options)
    if normalized == "libretranslate":
        return LibreTranslateProvider(
            endpoints=settings.LIBRETRANSLATE_ENDPOINTS,
            api_key=settings.LIBRETRANSLATE_API_KEY,
            **http_options,
        )
    if normalized == "openai":
        return OpenAITranslationProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            debug=debug,
        )
    if normalized == "echo":
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )


def build_provider_chain(
    names: Sequence[str],
    settings: SlidewarpConfig,
    *,
    client: httpx.Client | None = None,
    debug: bool = False,
) -> FallbackTranslationProvider:
    """Build the ordered fallback chain for the given provider names."""

    providers: List[TranslationProvider] = []
    try:
        for name in names:
            providers.append(build_provider(name, settings, client=client, debug=debug))
    except TranslationProviderConfigurationError:
        for provider in providers:
            provider.close()
        raise
    return FallbackTranslationProvider(providers)
