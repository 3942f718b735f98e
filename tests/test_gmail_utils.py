"""Tests for Gmail utility functions."""

import base64
import binascii
from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from job_tracker.gmail_utils import (
    HTML_TEXT,
    PLAIN_TEXT,
    decode_body_data,
    fetch_message_page,
    find_text_part,
    get_message_payload,
    iter_message_parts,
)


def encode_body(text):
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def part(mime_type, text=None, parts=None):
    body = {"data": encode_body(text)} if text is not None else {}
    result = {"mimeType": mime_type, "body": body}
    if parts is not None:
        result["parts"] = parts
    return result


class TestFetchMessagePage:
    def test_requests_single_message_page(self, mock_gmail_client):
        messages, next_token = fetch_message_page(
            mock_gmail_client, query="is:unread", page_token="abc"
        )

        assert messages == [{"id": "msg1", "threadId": "thread1"}]
        assert next_token == "token-1"
        mock_gmail_client.users().messages().list.assert_called_with(
            userId="me", maxResults=1, includeSpamTrash=False, q="is:unread", pageToken="abc"
        )

    def test_first_page_has_no_token(self, mock_gmail_client):
        fetch_message_page(mock_gmail_client, query="is:unread")

        kwargs = mock_gmail_client.users().messages().list.call_args.kwargs
        assert "pageToken" not in kwargs

    def test_empty_listing(self, mock_gmail_client):
        mock_gmail_client.users().messages().list().execute.return_value = {}

        messages, next_token = fetch_message_page(mock_gmail_client)

        assert messages == []
        assert next_token is None

    def test_http_error_propagates(self, mock_gmail_client):
        error = HttpError(MagicMock(status=500), b"boom")
        mock_gmail_client.users().messages().list().execute.side_effect = error

        with pytest.raises(HttpError):
            fetch_message_page(mock_gmail_client)


class TestGetMessagePayload:
    def test_returns_payload(self, mock_gmail_client):
        payload = get_message_payload(mock_gmail_client, "msg1")

        assert payload["mimeType"] == PLAIN_TEXT
        mock_gmail_client.users().messages().get.assert_called_with(
            userId="me", id="msg1", format="full"
        )

    def test_missing_message(self, mock_gmail_client):
        mock_gmail_client.users().messages().get().execute.return_value = {}

        assert get_message_payload(mock_gmail_client, "msg1") is None


class TestDecodeBodyData:
    def test_url_safe_alphabet(self):
        data = base64.urlsafe_b64encode("Status??? >>> ok".encode()).decode()

        assert decode_body_data(data) == "Status??? >>> ok"

    def test_standard_alphabet(self):
        data = base64.b64encode("Status??? >>> ok".encode()).decode()

        assert decode_body_data(data) == "Status??? >>> ok"

    def test_falls_back_to_standard_decoder(self):
        data = base64.b64encode(b"fallback body").decode()

        with patch(
            "job_tracker.gmail_utils.base64.urlsafe_b64decode", side_effect=binascii.Error("bad")
        ):
            assert decode_body_data(data) == "fallback body"

    def test_unpadded_data(self):
        data = base64.urlsafe_b64encode(b"Interview on Monday").decode().rstrip("=")
        assert not data.endswith("=") and len(data) % 4

        assert decode_body_data(data) == "Interview on Monday"

    def test_invalid_utf8_is_dropped(self):
        data = base64.urlsafe_b64encode(b"ok\xff").decode()

        assert decode_body_data(data) == "ok"


class TestFindTextPart:
    def test_single_part_plain(self):
        assert find_text_part(part("text/plain", "hello")) == (PLAIN_TEXT, "hello")

    def test_nested_plain_text_wins_over_earlier_html(self):
        payload = part(
            "multipart/mixed",
            parts=[
                part("text/html", "<p>html first</p>"),
                part("multipart/alternative", parts=[part("text/plain", "nested plain")]),
            ],
        )

        assert find_text_part(payload) == (PLAIN_TEXT, "nested plain")

    def test_first_plain_part_in_depth_first_order(self):
        payload = part(
            "multipart/mixed",
            parts=[
                part("multipart/alternative", parts=[part("text/plain", "deep first")]),
                part("text/plain", "shallow second"),
            ],
        )

        assert find_text_part(payload) == (PLAIN_TEXT, "deep first")

    def test_html_only(self):
        payload = part(
            "multipart/alternative",
            parts=[part("text/html", "<b>one</b>"), part("text/html", "<b>two</b>")],
        )

        assert find_text_part(payload) == (HTML_TEXT, "<b>one</b>")

    def test_no_text_parts(self):
        payload = part("multipart/mixed", parts=[part("image/png", "not really")])

        assert find_text_part(payload) is None

    def test_parts_without_data_are_skipped(self):
        payload = part("multipart/mixed", parts=[part("text/plain"), part("text/html", "<i>x</i>")])

        assert find_text_part(payload) == (HTML_TEXT, "<i>x</i>")

    def test_empty_payload(self):
        assert find_text_part(None) is None
        assert find_text_part({}) is None

    def test_iter_message_parts_order(self):
        payload = {
            "mimeType": "root",
            "parts": [
                {"mimeType": "a", "parts": [{"mimeType": "a1"}]},
                {"mimeType": "b"},
            ],
        }

        assert [p["mimeType"] for p in iter_message_parts(payload)] == ["root", "a", "a1", "b"]
