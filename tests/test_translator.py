"""Unit tests for translators and the translation batcher."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from conftest import FakeTranslator, make_srt

from subtleai.exceptions import JobCancelledError, TranslationError
from subtleai.subtitle_formatter import parse_srt, split_entries
from subtleai.translator import HuggingFaceTranslator, OpenAIChatTranslator, TranslationBatcher


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestTranslationBatcher:
    def test_single_call_when_within_batch(self):
        translator = FakeTranslator()
        srt = make_srt(80)
        out = TranslationBatcher(translator, batch_size=80).translate(srt, "en", "es")
        assert len(translator.calls) == 1
        assert translator.calls[0]["text"] == srt
        assert out.endswith("\n") and not out.endswith("\n\n")
        assert len(split_entries(out)) == 80

    def test_batches_in_order(self):
        translator = FakeTranslator()
        out = TranslationBatcher(translator, batch_size=80).translate(make_srt(200), "en", "es")

        assert [len(split_entries(c["text"])) for c in translator.calls] == [80, 80, 40]
        assert split_entries(translator.calls[1]["text"])[0].startswith("81\n")
        blocks = split_entries(out)
        assert len(blocks) == 200
        assert [int(b.split("\n")[0]) for b in blocks] == list(range(1, 201))
        assert blocks[150].endswith("HELLO THERE 151")

    def test_passes_languages_through(self):
        translator = FakeTranslator()
        TranslationBatcher(translator).translate(make_srt(3), None, "fr")
        assert translator.calls[0]["source"] is None
        assert translator.calls[0]["target"] == "fr"

    def test_retries_on_entry_count_mismatch(self):
        good = make_srt(2, "Hola")
        translator = FakeTranslator(responses=[make_srt(1, "Hola"), good])
        out = TranslationBatcher(translator, max_retries=2).translate(make_srt(2), "en", "es")
        assert len(translator.calls) == 2
        assert out == good

    def test_mismatch_passed_through_after_retries(self):
        short = make_srt(1, "Hola")
        translator = FakeTranslator(responses=[short] * 3)
        out = TranslationBatcher(translator, max_retries=2).translate(make_srt(2), "en", "es")
        assert len(translator.calls) == 3
        assert out == short

    def test_cancel_between_batches(self, cancel_event):
        class CancellingTranslator(FakeTranslator):
            def translate(self, text, source_lang, target_lang):
                result = super().translate(text, source_lang, target_lang)
                cancel_event.set()
                return result

        translator = CancellingTranslator()
        with pytest.raises(JobCancelledError):
            TranslationBatcher(translator, batch_size=10).translate(make_srt(30), "en", "es", cancel_event)
        assert len(translator.calls) == 1

    def test_cancel_stops_mismatch_retries(self, cancel_event):
        class CancellingTranslator(FakeTranslator):
            def translate(self, text, source_lang, target_lang):
                result = super().translate(text, source_lang, target_lang)
                cancel_event.set()
                return result

        translator = CancellingTranslator(responses=[make_srt(1, "Hola")] * 3)
        with pytest.raises(JobCancelledError):
            TranslationBatcher(translator, max_retries=2).translate(make_srt(2), "en", "es", cancel_event)
        assert len(translator.calls) == 1

    def test_empty_input_untouched(self):
        translator = FakeTranslator()
        assert TranslationBatcher(translator).translate("\n", "en", "es") == "\n"
        assert translator.calls == []

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            TranslationBatcher(FakeTranslator(), batch_size=0)


class TestOpenAIChatTranslator:
    def test_request_and_response(self):
        client = MagicMock()
        client.chat.completions.create.return_value = chat_response("  1\n00:00:01,000 --> 00:00:02,000\nHola\n  ")
        out = OpenAIChatTranslator(client, model_name="test-model").translate(make_srt(1), "en", "es")

        assert out == "1\n00:00:01,000 --> 00:00:02,000\nHola"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0.3
        assert "Spanish" in kwargs["messages"][0]["content"]
        assert kwargs["messages"][1] == {"role": "user", "content": make_srt(1)}

    def test_service_error_wrapped(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = OpenAIError("rate limited")
        with pytest.raises(TranslationError, match="rate limited"):
            OpenAIChatTranslator(client).translate(make_srt(1), "en", "es")

    def test_empty_content(self):
        client = MagicMock()
        client.chat.completions.create.return_value = chat_response(None)
        with pytest.raises(TranslationError):
            OpenAIChatTranslator(client).translate(make_srt(1), "en", "es")

    def test_malformed_response(self):
        client = MagicMock()
        client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        with pytest.raises(TranslationError):
            OpenAIChatTranslator(client).translate(make_srt(1), "en", "es")


class TestHuggingFaceTranslator:
    def test_translates_text_keeps_timing(self):
        pipe = MagicMock(side_effect=lambda texts, batch_size: [{"translation_text": t[::-1]} for t in texts])
        translator = HuggingFaceTranslator(device="cpu", pipe=pipe)
        srt = "1\n00:00:01,000 --> 00:00:02,500\nab\ncd\n\n2\n00:00:03,000 --> 00:00:04,000\nxyz\n"

        out = parse_srt(translator.translate(srt, "en", "es"))
        assert [(s.start, s.end) for s in out] == [(1.0, 2.5), (3.0, 4.0)]
        assert [s.text for s in out] == ["dc ba", "zyx"]
        assert pipe.call_args.args[0] == ["ab cd", "xyz"]

    def test_count_mismatch_raises(self):
        translator = HuggingFaceTranslator(device="cpu", pipe=lambda texts, batch_size: [])
        with pytest.raises(TranslationError):
            translator.translate(make_srt(2), "en", "es")

    def test_invalid_device(self):
        with pytest.raises(ValueError):
            HuggingFaceTranslator(device="tpu", pipe=lambda *a, **k: [])
