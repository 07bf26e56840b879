"""
Tests for the Tavily and Gmail adapters.
"""

import base64

import pytest
import requests
from unittest.mock import Mock, patch

from core.errors import ProviderError
from providers.mail import GmailClient, MailFilter, extract_text
from providers.search import SearchOptions, TavilyClient


def response(status_code=200, payload=None, content=b"{}"):
    mock_response = Mock()
    mock_response.status_code = status_code
    mock_response.ok = status_code < 400
    mock_response.json.return_value = payload or {}
    mock_response.text = str(payload)
    mock_response.content = content
    return mock_response


def b64(text):
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


class TestTavily:
    @pytest.fixture
    def client(self):
        return TavilyClient(api_key="tvly-test", timeout=7)

    @patch("providers.search.requests.post")
    def test_search(self, mock_post, client):
        mock_post.return_value = response(
            payload={
                "results": [
                    {"title": "Engineer", "url": "https://linkedin.com/jobs/1", "content": "Hiring", "score": 0.8},
                    {"title": "Other", "url": "https://indeed.com/job/2"},
                ]
            }
        )

        hits = client.search("python engineer", SearchOptions(domain_allow_list=["linkedin.com"], max_results=3))

        assert [h.url for h in hits] == ["https://linkedin.com/jobs/1", "https://indeed.com/job/2"]
        assert hits[1].content == ""
        payload = mock_post.call_args[1]["json"]
        assert payload["include_domains"] == ["linkedin.com"]
        assert payload["max_results"] == 3
        assert mock_post.call_args[1]["timeout"] == 7

    @patch("providers.search.requests.post")
    def test_http_error(self, mock_post, client):
        mock_post.return_value = response(status_code=401, payload={"detail": "bad key"})

        with pytest.raises(ProviderError) as exc_info:
            client.search("x")
        assert exc_info.value.status_code == 401

    @patch("providers.search.requests.post")
    def test_connection_error(self, mock_post, client):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ProviderError):
            client.search("x")

    def test_requires_key(self):
        with pytest.raises(ValueError):
            TavilyClient(api_key=None)


class TestGmail:
    @pytest.fixture
    def client(self):
        return GmailClient(access_token="ya29.test", base_url="https://gmail.test/users/me")

    @patch("providers.mail.requests.request")
    def test_list_recent(self, mock_request, client):
        message = {
            "id": "m1",
            "internalDate": "1710000000000",
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [
                    {"name": "From", "value": "HR <hr@acme.com>"},
                    {"name": "Subject", "value": "Interview"},
                ],
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": b64("Let's talk")}},
                    {"mimeType": "text/html", "body": {"data": b64("<p>Let's talk</p>")}},
                ],
            },
        }
        mock_request.side_effect = [
            response(payload={"messages": [{"id": "m1"}]}),
            response(payload=message),
        ]

        messages = client.list_recent(MailFilter(query="in:inbox", max_results=5))

        assert len(messages) == 1
        assert messages[0].sender_address == "hr@acme.com"
        assert messages[0].subject == "Interview"
        assert messages[0].body == "Let's talk"
        assert messages[0].received_at.year == 2024

        method, url = mock_request.call_args_list[0][0]
        assert (method, url) == ("GET", "https://gmail.test/users/me/messages")
        assert mock_request.call_args_list[0][1]["params"] == {"q": "in:inbox", "maxResults": 5}
        assert mock_request.call_args_list[0][1]["headers"]["Authorization"] == "Bearer ya29.test"

    @patch("providers.mail.requests.request")
    def test_expired_token(self, mock_request, client):
        mock_request.return_value = response(status_code=401)

        with pytest.raises(ProviderError, match="expired"):
            client.get_own_address()

    @patch("providers.mail.requests.request")
    def test_mark_processed_creates_label_once(self, mock_request, client):
        mock_request.side_effect = [
            response(payload={"labels": [{"id": "L1", "name": "INBOX"}]}),
            response(payload={"id": "L2", "name": "processed"}),
            response(status_code=200, payload={}),
            response(status_code=200, payload={}),
        ]

        client.mark_processed("m1")
        client.mark_processed("m2")

        assert mock_request.call_count == 4
        assert mock_request.call_args[1]["json"] == {"addLabelIds": ["L2"]}

    @patch("providers.mail.requests.request")
    def test_send(self, mock_request, client):
        mock_request.side_effect = [
            response(payload={"emailAddress": "Me@Gmail.com"}),
            response(payload={"id": "sent_1"}),
        ]

        assert client.send("hr@acme.com", "Hello", "Body") == "sent_1"
        assert client.get_own_address() == "me@gmail.com"

        raw = mock_request.call_args[1]["json"]["raw"]
        decoded = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode()
        assert "To: hr@acme.com" in decoded
        assert "Subject: Hello" in decoded

    @patch("providers.mail.requests.request")
    def test_non_json_body(self, mock_request, client):
        html = response(content=b"<html>maintenance</html>")
        html.json.side_effect = ValueError("Expecting value")
        mock_request.return_value = html

        with pytest.raises(ProviderError, match="not JSON"):
            client.get_own_address()

    @patch("providers.mail.requests.request")
    def test_unreadable_message_does_not_abort_listing(self, mock_request, client):
        message = {
            "id": "m2",
            "payload": {
                "mimeType": "text/plain",
                "headers": [{"name": "From", "value": "hr@acme.com"}],
                "body": {"data": b64("Hello")},
            },
        }
        mock_request.side_effect = [
            response(payload={"messages": [{"id": "m1"}, {"id": "m2"}]}),
            response(status_code=500, payload={"error": "backend"}),
            response(payload=message),
        ]

        messages, failures = client.list_recent_with_report()

        assert [m.id for m in messages] == ["m2"]
        assert [message_id for message_id, _ in failures] == ["m1"]
        assert failures[0][1].status_code == 500

    @patch("providers.mail.requests.request")
    def test_list_recent_raises_on_unreadable_message(self, mock_request, client):
        mock_request.side_effect = [
            response(payload={"messages": [{"id": "m1"}]}),
            response(status_code=500, payload={"error": "backend"}),
        ]

        with pytest.raises(ProviderError):
            client.list_recent()

    @patch("providers.mail.requests.request")
    def test_timeout(self, mock_request, client):
        mock_request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(ProviderError):
            client.list_recent()


def test_extract_text_single_part():
    assert extract_text({"mimeType": "text/plain", "body": {"data": b64("hi")}}) == "hi"
    assert extract_text({"mimeType": "text/html", "body": {"data": b64("<b>hi</b>")}}) == ""
