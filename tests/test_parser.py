"""Tests for response channel parsing and control-token cleanup."""

import pytest

from chatrelay.parsing.channels import ParsedResponse, cleanup, parse_response


class TestChannelMarkup:
    """Explicit channel tokens take priority over everything else."""

    def test_analysis_then_final(self):
        raw = "<|channel|>analysis<|message|>check units<|end|><|channel|>final<|message|>42 km"
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["check units"]
        assert parsed.final_text == "42 km"
        assert parsed.rule == "channel"
        assert parsed.degraded is False

    def test_full_harmony_envelope(self):
        raw = (
            "<|start|>assistant<|channel|>analysis<|message|>User greets. Reply kindly.<|end|>"
            "<|start|>assistant<|channel|>final<|message|>Hello there!<|return|>"
        )
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["User greets. Reply kindly."]
        assert parsed.final_text == "Hello there!"

    def test_multiple_analysis_regions_kept_in_order(self):
        raw = (
            "<|channel|>analysis<|message|>first<|end|>"
            "<|channel|>analysis<|message|>second<|end|>"
            "<|channel|>final<|message|>answer"
        )
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["first", "second"]
        assert parsed.final_text == "answer"

    def test_analysis_without_final_uses_remainder(self):
        raw = "<|channel|>analysis<|message|>thinking<|end|>The answer is 7."
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["thinking"]
        assert parsed.final_text == "The answer is 7."

    def test_final_only_has_no_reasoning(self):
        parsed = parse_response("<|channel|>final<|message|>Just this.")

        assert parsed.reasoning_segments == []
        assert parsed.final_text == "Just this."
        assert parsed.rule == "channel"

    def test_constrain_metadata_between_name_and_message(self):
        raw = (
            "<|channel|>analysis<|message|>plan<|end|>"
            "<|channel|>final <|constrain|>text<|message|>done"
        )
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["plan"]
        assert parsed.final_text == "done"

    def test_legacy_analysis_tag(self):
        raw = "<|analysis|>weigh options<|message|>Pick option B."
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["weigh options"]
        assert parsed.final_text == "Pick option B."
        assert parsed.rule == "channel"

    def test_channel_rule_wins_over_preamble(self):
        raw = (
            "The user wants something.\n\nignored split"
            "<|channel|>analysis<|message|>real reasoning<|end|>"
            "<|channel|>final<|message|>real answer"
        )
        parsed = parse_response(raw)

        assert parsed.rule == "channel"
        assert parsed.reasoning_segments == ["real reasoning"]
        assert parsed.final_text == "real answer"


class TestPreambleHeuristic:
    """Unmarked leading reasoning is split off only when every check passes."""

    def test_bare_analysis_keyword(self):
        raw = "analysisThe user wants a joke.\n\nSure, here's one: ..."
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["The user wants a joke."]
        assert parsed.final_text == "Sure, here's one: ..."
        assert parsed.rule == "preamble"

    def test_reasoning_opener_with_blank_line(self):
        raw = (
            "The user says hello, so I should respond with a greeting.\n\n"
            "Hello! How can I help you today? Feel free to ask me anything at all."
        )
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == [
            "The user says hello, so I should respond with a greeting."
        ]
        assert parsed.final_text.startswith("Hello! How can I help")

    def test_single_newline_break(self):
        raw = (
            "We have a greeting from the user.\n"
            "Hi! Nice to meet you, what would you like to talk about today?"
        )
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["We have a greeting from the user."]
        assert parsed.final_text == "Hi! Nice to meet you, what would you like to talk about today?"

    def test_single_newline_followed_by_more_reasoning_is_not_split(self):
        raw = "The user asks about cats.\nThe user probably wants facts."
        parsed = parse_response(raw)

        assert parsed.degraded
        assert parsed.reasoning_segments == []

    def test_span_too_long_is_not_split(self):
        raw = "The user says a great many things and I should respond to all of them.\n\nOk."
        parsed = parse_response(raw)

        assert parsed.degraded
        assert parsed.final_text == raw

    def test_span_without_keyword_is_not_split(self):
        raw = "We have cake.\n\nCake is a baked dessert made from flour, sugar and eggs, often iced."
        parsed = parse_response(raw)

        assert parsed.degraded
        assert parsed.final_text == raw

    def test_bare_analysis_keyword_before_lowercase_text(self):
        raw = "analysisthe user says hi, respond warmly.\n\nHi there! Great to hear from you today."
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["the user says hi, respond warmly."]
        assert parsed.final_text == "Hi there! Great to hear from you today."
        assert parsed.rule == "preamble"

    def test_bare_analysis_keyword_before_non_latin_text(self):
        raw = "analysisユーザーは挨拶している。user greeting.\n\nこんにちは！今日はどのようなご用件でしょうか？何でも聞いてください。"
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == ["ユーザーは挨拶している。user greeting."]
        assert parsed.final_text.startswith("こんにちは")

    def test_no_break_point(self):
        raw = "analysisThe user wants a joke. Sure, here's one."
        parsed = parse_response(raw)

        assert parsed.degraded

    def test_capitalised_analysis_word_is_ordinary_text(self):
        raw = "Analysis of the data shows the user base grew.\n\nGrowth was 12% year over year overall."
        parsed = parse_response(raw)

        assert parsed.degraded


class TestFallback:
    """Plain content passes through as the final answer."""

    @pytest.mark.parametrize(
        "raw",
        [
            "Paris is the capital of France.",
            "  padded answer  ",
            "Line one\n\nLine two",
            "",
        ],
    )
    def test_plain_text_is_cleaned_final(self, raw):
        parsed = parse_response(raw)

        assert parsed.reasoning_segments == []
        assert parsed.final_text == cleanup(raw)
        assert parsed.degraded is True

    def test_none_input_does_not_raise(self):
        parsed = parse_response(None)  # type: ignore[arg-type]
        assert parsed.final_text == ""

    def test_stray_tokens_are_removed_in_fallback(self):
        parsed = parse_response("Hello<|end|>")
        assert parsed.final_text == "Hello"


class TestCleanup:
    """Tests for control-token cleanup."""

    def test_removes_pipe_tokens(self):
        assert cleanup("<|start|>Hi<|end|>") == "Hi"

    def test_removes_channel_names_after_tokens(self):
        assert cleanup("<|start|>assistant<|channel|>final<|message|>42 km") == "42 km"

    def test_removes_xml_like_tags(self):
        assert cleanup("<final>Answer</final>") == "Answer"
        assert cleanup("<Channel>x</CHANNEL>") == "x"

    def test_removes_known_artifacts(self):
        assert cleanup("**意味**こんにちは") == "こんにちは"

    def test_keeps_ordinary_text(self):
        text = "Use a < b and c | d in the final analysis."
        assert cleanup(text) == text

    def test_spliced_tokens_are_removed(self):
        assert cleanup("a<|<|x|>end|>b") == "ab"

    @pytest.mark.parametrize(
        "raw",
        [
            "<|<|x|>end|>",
            "<|channel|>analysis<|message|>x<|end|>",
            "  <final> text </final>  ",
            "<<|end|>|end|>>",
            "plain",
            "",
        ],
    )
    def test_idempotent_and_never_longer(self, raw):
        once = cleanup(raw)
        assert cleanup(once) == once
        assert len(once) <= len(raw)


class TestParsedResponse:
    """Tests for the ParsedResponse model."""

    def test_reasoning_text_joins_segments(self):
        parsed = ParsedResponse(reasoning_segments=["a", "b"], final_text="c", rule="channel")
        assert parsed.reasoning_text() == "a\n\nb"
        assert parsed.has_reasoning

    def test_is_frozen(self):
        parsed = ParsedResponse(final_text="x")
        with pytest.raises(Exception):
            parsed.final_text = "y"

    def test_parsing_is_deterministic(self):
        raw = "analysisThe user wants a joke.\n\nSure."
        assert parse_response(raw) == parse_response(raw)
