"""Tests for the inbound MIME decoder."""

import base64

import pytest

from mailterm.gmail.types import WireMessage, WirePart
from mailterm.mime.decoder import (
    DECODE_FAILED,
    NO_TEXT_CONTENT,
    decode_base64,
    decode_message,
    extract_body,
    find_attachments,
    format_date,
    strip_html,
    summarize,
)
from mailterm.mime.types import BodyStatus


# ── Helpers ────────────────────────────────────────────────────────────────────


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def _text(mime_type: str, body: str) -> WirePart:
    return WirePart(mime_type=mime_type, data=_b64(body))


def _attachment(filename: str, *, attachment_id: str = "", data: str = "", size: int = 10) -> WirePart:
    return WirePart(
        mime_type="application/pdf",
        filename=filename,
        attachment_id=attachment_id,
        data=data,
        size=size,
    )


def _multipart(*parts: WirePart, subtype: str = "mixed") -> WirePart:
    return WirePart(mime_type=f"multipart/{subtype}", parts=parts)


# ── summarize ──────────────────────────────────────────────────────────────────


class TestSummarize:
    def test_basic_fields(self, make_wire_message) -> None:
        summary = summarize(make_wire_message("msg_1", label_ids=("INBOX", "UNREAD")))
        assert summary.id == "msg_1"
        assert summary.thread_id == "thread_msg_1"
        assert summary.subject == "Budget review"
        assert summary.sender == "alice@example.com"
        assert summary.date == "Jan 02, 2006 15:04"
        assert summary.unread is True
        assert summary.label_ids == ("INBOX", "UNREAD")

    def test_read_when_unread_label_absent(self, make_wire_message) -> None:
        assert summarize(make_wire_message(label_ids=("INBOX",))).unread is False

    def test_snippet_of_81_chars_truncated(self, make_wire_message) -> None:
        snippet = "x" * 81
        summary = summarize(make_wire_message(snippet=snippet))
        assert summary.snippet == "x" * 77 + "..."
        assert len(summary.snippet) == 80

    def test_snippet_of_80_chars_unchanged(self, make_wire_message) -> None:
        snippet = "y" * 80
        assert summarize(make_wire_message(snippet=snippet)).snippet == snippet

    def test_header_match_is_case_sensitive(self) -> None:
        payload = WirePart(
            mime_type="text/plain",
            headers=(("subject", "lowercase"), ("From", "a@example.com")),
            data=_b64("hi"),
        )
        message = WireMessage(id="m", payload=payload)
        assert summarize(message).subject == ""

    def test_first_header_occurrence_wins(self) -> None:
        payload = WirePart(
            mime_type="text/plain",
            headers=(("Subject", "first"), ("Subject", "second")),
        )
        assert summarize(WireMessage(id="m", payload=payload)).subject == "first"

    def test_message_without_payload(self) -> None:
        summary = summarize(WireMessage(id="m", snippet="hello"))
        assert summary.subject == ""
        assert summary.sender == ""
        assert summary.date == ""
        assert summary.snippet == "hello"


# ── format_date ────────────────────────────────────────────────────────────────


class TestFormatDate:
    def test_rfc1123z(self) -> None:
        assert format_date("Mon, 02 Jan 2006 15:04:05 -0700") == "Jan 02, 2006 15:04"

    def test_named_zone(self) -> None:
        assert format_date("Mon, 02 Jan 2006 15:04:05 GMT") == "Jan 02, 2006 15:04"

    def test_without_weekday(self) -> None:
        assert format_date("02 Jan 2006 15:04:05 -0700") == "Jan 02, 2006 15:04"

    def test_two_digit_year(self) -> None:
        assert format_date("02 Jan 06 15:04 -0700") == "Jan 02, 2006 15:04"

    @pytest.mark.parametrize("zone", ["EST", "PDT", "CET", "AEST"])
    def test_other_zone_abbreviations_keep_wall_clock(self, zone: str) -> None:
        assert format_date(f"Mon, 02 Jan 2006 15:04:05 {zone}") == "Jan 02, 2006 15:04"

    def test_two_digit_year_with_zone_abbreviation(self) -> None:
        assert format_date("02 Jan 06 15:04 EST") == "Jan 02, 2006 15:04"

    def test_unknown_format_with_zone_suffix_unchanged(self) -> None:
        assert format_date("yesterday EST") == "yesterday EST"

    def test_unparseable_returned_unchanged(self) -> None:
        assert format_date("sometime last week") == "sometime last week"


# ── extract_body ───────────────────────────────────────────────────────────────


class TestExtractBody:
    def test_single_plain_part(self) -> None:
        assert extract_body(_text("text/plain", "hello")) == ("hello", BodyStatus.OK)

    def test_plain_preferred_over_html(self) -> None:
        tree = _multipart(
            _text("text/html", "<p>html</p>"),
            _text("text/plain", "plain"),
            subtype="alternative",
        )
        assert extract_body(tree) == ("plain", BodyStatus.OK)

    def test_nested_plain_found(self) -> None:
        tree = _multipart(
            _multipart(
                _text("text/plain", "nested body"),
                _text("text/html", "<b>nested</b>"),
                subtype="alternative",
            ),
            _attachment("report.pdf", attachment_id="att_1"),
        )
        assert extract_body(tree) == ("nested body", BodyStatus.OK)

    def test_plain_anywhere_beats_earlier_html(self) -> None:
        tree = _multipart(
            _text("text/html", "<p>first</p>"),
            _multipart(_text("text/plain", "deep plain"), subtype="alternative"),
        )
        assert extract_body(tree) == ("deep plain", BodyStatus.OK)

    def test_html_fallback_is_stripped(self) -> None:
        tree = _multipart(
            _text("text/html", "<p>Hello&nbsp;<b>World</b></p>\n\n  <div>Bye &amp; thanks</div>"),
        )
        assert extract_body(tree) == ("Hello World Bye & thanks", BodyStatus.OK)

    def test_empty_plain_falls_back_to_html(self) -> None:
        tree = _multipart(
            WirePart(mime_type="text/plain", data=""),
            _text("text/html", "<i>only html</i>"),
        )
        assert extract_body(tree) == ("only html", BodyStatus.OK)

    def test_named_text_part_is_not_a_body(self) -> None:
        notes = WirePart(mime_type="text/plain", filename="notes.txt", data=_b64("attached"))
        text, status = extract_body(_multipart(notes))
        assert text == NO_TEXT_CONTENT
        assert status is BodyStatus.EMPTY

    def test_no_text_part(self) -> None:
        text, status = extract_body(_multipart(_attachment("a.pdf", attachment_id="x")))
        assert text == NO_TEXT_CONTENT
        assert status is BodyStatus.EMPTY

    def test_garbage_payload_reports_decode_failure(self) -> None:
        text, status = extract_body(WirePart(mime_type="text/plain", data="!!!not base64!!!"))
        assert text == DECODE_FAILED
        assert status is BodyStatus.DECODE_FAILED


# ── decode_base64 ──────────────────────────────────────────────────────────────


class TestDecodeBase64:
    def test_urlsafe_without_padding(self) -> None:
        assert decode_base64("aGVsbG8") == b"hello"

    def test_urlsafe_alphabet(self) -> None:
        assert decode_base64("Pz4_") == b"?>?"

    def test_standard_alphabet_fallback(self) -> None:
        assert decode_base64("Pz4/") == b"?>?"

    def test_padded_input_accepted(self) -> None:
        assert decode_base64("aGVsbG8=") == b"hello"

    def test_invalid_returns_none(self) -> None:
        assert decode_base64("###") is None

    def test_mixed_alphabets_rejected(self) -> None:
        assert decode_base64("-_+/") is None


# ── strip_html ─────────────────────────────────────────────────────────────────


class TestStripHtml:
    def test_amp_decoded_last(self) -> None:
        assert strip_html("&amp;lt;") == "&lt;"

    def test_entities(self) -> None:
        assert strip_html("a &lt;b&gt; &quot;c&quot; &#39;d&#39;") == "a <b> \"c\" 'd'"

    def test_whitespace_collapsed_and_trimmed(self) -> None:
        assert strip_html("  <p>one</p>\n\t<p>two</p>  ") == "one two"


# ── find_attachments / decode_message ──────────────────────────────────────────


class TestAttachments:
    def test_numbered_depth_first(self) -> None:
        tree = _multipart(
            _text("text/plain", "body"),
            _multipart(
                _attachment("inner.pdf", attachment_id="att_inner"),
                subtype="related",
            ),
            _attachment("outer.pdf", attachment_id="att_outer"),
        )
        refs = find_attachments(tree, "msg_9")
        assert [(r.index, r.filename) for r in refs] == [(1, "inner.pdf"), (2, "outer.pdf")]
        assert all(r.message_id == "msg_9" for r in refs)
        assert refs[0].attachment_id == "att_inner"

    def test_inline_payload_kept_when_no_attachment_id(self) -> None:
        refs = find_attachments(_multipart(_attachment("tiny.txt", data=_b64("hi"))), "m")
        assert refs[0].attachment_id == ""
        assert refs[0].inline_data == _b64("hi")

    def test_no_attachments(self) -> None:
        assert find_attachments(_text("text/plain", "x"), "m") == ()


class TestDecodeMessage:
    def test_full_detail(self, make_wire_message) -> None:
        message = make_wire_message(
            "msg_7",
            extra_headers=(("Cc", "carol@example.com"), ("Bcc", "dave@example.com")),
            parts=(
                _text("text/plain", "Line one\nLine two"),
                _attachment("budget.xlsx", attachment_id="att_1", size=2048),
            ),
        )
        detail = decode_message(message)
        assert detail.id == "msg_7"
        assert detail.subject == "Budget review"
        assert detail.to == "bob@example.com"
        assert detail.cc == "carol@example.com"
        assert detail.bcc == "dave@example.com"
        assert detail.body == "Line one\nLine two"
        assert detail.body_status is BodyStatus.OK
        assert len(detail.attachments) == 1
        assert detail.attachments[0].size == 2048

    def test_undecodable_body_is_flagged_not_raised(self, make_wire_message) -> None:
        message = make_wire_message(parts=(WirePart(mime_type="text/plain", data="%%%"),))
        detail = decode_message(message)
        assert detail.body == DECODE_FAILED
        assert detail.body_status is BodyStatus.DECODE_FAILED

    def test_missing_payload(self) -> None:
        detail = decode_message(WireMessage(id="m"))
        assert detail.body == NO_TEXT_CONTENT
        assert detail.body_status is BodyStatus.EMPTY
        assert detail.attachments == ()
