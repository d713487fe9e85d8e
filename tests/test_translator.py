"""End-to-end tests for translating presentation packages."""

import io
import logging
import zipfile

import httpx
import pytest

from slidewarp.errors import AllProvidersFailedError, ContainerError, ProviderError
from slidewarp.providers import (
    EchoTranslationProvider,
    FallbackTranslationProvider,
    GoogleTranslateProvider,
    TranslationProvider,
)
from slidewarp.translator import DocumentTranslator, output_filename

SLIDE = "ppt/slides/slide1.xml"
NOTES = "ppt/notesSlides/notesSlide1.xml"
LAYOUT = "ppt/slideLayouts/slideLayout1.xml"


class RecordingProvider(TranslationProvider):
    """Upper-cases every text and remembers each batch it saw."""

    name = "recording"

    def __init__(self):
        self.batches = []

    def translate(self, texts, *, source_language, target_language):
        self.batches.append(list(texts))
        return [text.upper() for text in texts]


class ShortFirstBatchProvider(TranslationProvider):
    """Drops the last answer of the first batch only."""

    name = "short"

    def __init__(self):
        self.calls = 0

    def translate(self, texts, *, source_language, target_language):
        self.calls += 1
        result = [f"<{text}>" for text in texts]
        return result[:-1] if self.calls == 1 else result


class ExplodingProvider(TranslationProvider):
    name = "exploding"

    def translate(self, texts, *, source_language, target_language):
        raise AssertionError("provider must not be called")


class AlwaysFailing(TranslationProvider):
    def __init__(self, name):
        self.name = name

    def translate(self, texts, *, source_language, target_language):
        raise ProviderError(f"{self.name} is down")


def make_translator(provider, batch_budget=600):
    return DocumentTranslator(
        provider=provider,
        source_language="EN",
        target_language="FR",
        batch_budget=batch_budget,
    )


class TestTranslatePackage:
    """The archive pipeline over slide and notes parts."""

    def test_hello_world_scenario(self, google_transport, make_package, read_part, slide_xml):
        transport = google_transport({"Hello": "Bonjour", "World": "Monde"})
        provider = GoogleTranslateProvider(client=httpx.Client(transport=transport))
        data = make_package({SLIDE: slide_xml("<a:t>Hello</a:t><a:t>World</a:t>")})

        with make_translator(provider) as translator:
            output, summary = translator.translate_package(data)

        assert read_part(output, SLIDE) == slide_xml("<a:t>Bonjour</a:t><a:t>Monde</a:t>")
        assert len(transport.requests) == 1
        assert summary.translated_spans == 2
        assert summary.total_batches == 1
        assert summary.provider_usage == {"google": 1}

    def test_part_without_runs_is_byte_identical(self, make_package, read_part, slide_xml):
        original = slide_xml("")
        data = make_package({SLIDE: original, NOTES: "<p:notes><a:p/></p:notes>"})

        output, summary = make_translator(ExplodingProvider()).translate_package(data)

        assert read_part(output, SLIDE) == original
        assert read_part(output, NOTES) == "<p:notes><a:p/></p:notes>"
        assert summary.total_spans == 0
        assert summary.parts == [SLIDE, NOTES]

    def test_notes_translated_and_other_parts_untouched(self, make_package, read_part):
        layout = "<p:sldLayout><a:t>Click to edit</a:t></p:sldLayout>"
        data = make_package(
            {
                SLIDE: "<a:t>slide</a:t>",
                NOTES: "<a:t>notes</a:t>",
                LAYOUT: layout,
            }
        )

        output, _ = make_translator(RecordingProvider()).translate_package(data)

        assert read_part(output, SLIDE) == "<a:t>SLIDE</a:t>"
        assert read_part(output, NOTES) == "<a:t>NOTES</a:t>"
        assert read_part(output, LAYOUT) == layout

    def test_invalid_container_raises(self):
        with pytest.raises(ContainerError):
            make_translator(EchoTranslationProvider()).translate_package(b"PK\x03\x04junk")

    def test_provider_failure_propagates(self, make_package):
        chain = FallbackTranslationProvider([AlwaysFailing("google"), AlwaysFailing("libre")])
        data = make_package({SLIDE: "<a:t>Hello</a:t>"})

        with pytest.raises(AllProvidersFailedError, match="libre is down"):
            make_translator(chain).translate_package(data)

    def test_entity_content_is_not_double_escaped(self, make_package, read_part):
        data = make_package({SLIDE: "<a:t>R&amp;D &lt;2024&gt;</a:t>"})

        output, _ = make_translator(EchoTranslationProvider()).translate_package(data)

        assert read_part(output, SLIDE) == "<a:t>R&amp;D &lt;2024&gt;</a:t>"


class TestTranslateMarkup:
    """Run selection, alignment and lenient handling within one part."""

    def test_runs_map_positionally(self):
        provider = RecordingProvider()
        xml = "".join(f"<a:r><a:t>run {index}</a:t></a:r>" for index in range(25))

        result = make_translator(provider, batch_budget=60).translate_markup(xml)

        expected = "".join(f"<a:r><a:t>RUN {index}</a:t></a:r>" for index in range(25))
        assert result == expected
        assert len(provider.batches) > 1

    def test_blank_runs_are_kept_and_not_sent(self):
        provider = RecordingProvider()
        xml = '<a:t>a</a:t><a:t xml:space="preserve">  </a:t><a:t></a:t><a:t>b</a:t>'

        result = make_translator(provider).translate_markup(xml)

        assert result == '<a:t>A</a:t><a:t xml:space="preserve">  </a:t><a:t></a:t><a:t>B</a:t>'
        assert provider.batches == [["a", "b"]]

    def test_short_batch_empties_only_its_own_runs(self):
        translator = make_translator(ShortFirstBatchProvider(), batch_budget=40)
        xml = "<a:t>one</a:t><a:t>two</a:t><a:t>three</a:t><a:t>four</a:t>"

        result = translator.translate_markup(xml)

        # Batches are [one, two] and [three, four]; the first answer lacks "two".
        assert result == (
            "<a:t>&lt;one&gt;</a:t><a:t></a:t>"
            "<a:t>&lt;three&gt;</a:t><a:t>&lt;four&gt;</a:t>"
        )
        assert translator.summary.missing_translations == 1
        assert translator.summary.translated_spans == 3

    def test_batches_are_logged_with_their_budgeted_size(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="slidewarp.translator"):
            make_translator(EchoTranslationProvider()).translate_markup(
                "<a:t>Hello</a:t><a:t>World</a:t>"
            )

        assert "Batch 1: 2 runs, 32 chars" in caplog.messages

    def test_extra_pieces_are_ignored(self):
        class Chatty(TranslationProvider):
            name = "chatty"

            def translate(self, texts, *, source_language, target_language):
                return list(texts) + ["surplus"]

        result = make_translator(Chatty()).translate_markup("<a:t>x</a:t>")
        assert result == "<a:t>x</a:t>"

    def test_translated_markup_characters_are_escaped(self):
        class Sneaky(TranslationProvider):
            name = "sneaky"

            def translate(self, texts, *, source_language, target_language):
                return ['</a:t><evil attr="1">&' for _ in texts]

        result = make_translator(Sneaky()).translate_markup("<a:p><a:t>x</a:t></a:p>")

        assert result == (
            "<a:p><a:t>&lt;/a:t&gt;&lt;evil attr=&quot;1&quot;&gt;&amp;</a:t></a:p>"
        )


class TestOutputFilename:
    def test_target_language_in_filename(self):
        assert output_filename("RU") == "translated_ru.pptx"

    def test_unsafe_characters_removed(self):
        assert output_filename("pt BR/../") == "translated_pt-br.pptx"


class TestRealPresentation:
    """Round trip through python-pptx generated decks."""

    def test_slide_and_notes_text_translated(self, google_transport):
        pptx = pytest.importorskip("pptx")

        deck = pptx.Presentation()
        slide = deck.slides.add_slide(deck.slide_layouts[1])
        slide.shapes.title.text = "Hello"
        slide.placeholders[1].text = "World"
        slide.notes_slide.notes_text_frame.text = "Thanks"
        buffer = io.BytesIO()
        deck.save(buffer)
        data = buffer.getvalue()

        transport = google_transport(
            {"Hello": "Bonjour", "World": "Monde", "Thanks": "Merci"}
        )
        provider = GoogleTranslateProvider(client=httpx.Client(transport=transport))
        with make_translator(provider) as translator:
            output, summary = translator.translate_package(data)

        result = pptx.Presentation(io.BytesIO(output))
        translated_slide = result.slides[0]
        assert translated_slide.shapes.title.text == "Bonjour"
        assert translated_slide.placeholders[1].text == "Monde"
        assert translated_slide.notes_slide.notes_text_frame.text == "Merci"

        with zipfile.ZipFile(io.BytesIO(data)) as before, zipfile.ZipFile(
            io.BytesIO(output)
        ) as after:
            assert before.namelist() == after.namelist()
        assert "ppt/notesSlides/notesSlide1.xml" in summary.parts
