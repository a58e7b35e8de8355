"""Tests for the ClickUp client and the shape-tolerant payload extractors."""

import io
import socket
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from clickup_client import (
    ClickUpClient,
    ClickUpError,
    extract_entry,
    extract_members,
    extract_time_entries,
    extract_user_id,
    normalize_member,
    parse_retry_after,
)


def _urlopen_returning(body: bytes):
    response = MagicMock()
    response.read.return_value = body
    opener = MagicMock()
    opener.return_value.__enter__.return_value = response
    return opener


class TestExtractMembers:
    def test_team_members_layout(self):
        data = {"team": {"members": [{"user": {"id": 1, "username": "Ann"}}]}}
        assert extract_members(data) == [
            {"id": "1", "name": "Ann", "email": None, "avatarUrl": None}
        ]

    def test_top_level_members_layout(self):
        data = {"members": [{"user": {"id": 2, "username": "Ben", "email": "ben@x.io"}}]}
        members = extract_members(data)
        assert members[0]["id"] == "2"
        assert members[0]["email"] == "ben@x.io"

    def test_teams_list_layout(self):
        data = {"teams": [{"members": [{"user": {"id": 3, "username": "Cy"}}]}]}
        assert [m["id"] for m in extract_members(data)] == ["3"]

    def test_priority_skips_empty_lists(self):
        data = {
            "team": {"members": []},
            "members": [{"user": {"id": 4, "username": "Di"}}],
            "teams": [{"members": [{"user": {"id": 5, "username": "Ed"}}]}],
        }
        assert [m["id"] for m in extract_members(data)] == ["4"]

    def test_unknown_layout_gives_no_members(self):
        assert extract_members({"something": "else"}) == []
        assert extract_members({}) == []
        assert extract_members(None) == []

    def test_members_without_id_are_skipped(self):
        data = {"members": [{"user": {"username": "ghost"}}, {"user": {"id": 6}}]}
        assert [m["id"] for m in extract_members(data)] == ["6"]


class TestNormalizeMember:
    def test_bare_record_is_the_user(self):
        member = normalize_member({"id": 9, "username": "Flo", "profilePicture": "https://a/p.png"})
        assert member == {"id": "9", "name": "Flo", "email": None, "avatarUrl": "https://a/p.png"}

    def test_name_falls_back_to_email(self):
        member = normalize_member({"user": {"id": 10, "email": "gil@x.io"}})
        assert member["name"] == "gil@x.io"

    def test_name_falls_back_to_id(self):
        member = normalize_member({"user": {"id": 11}})
        assert member["name"] == "11"

    def test_non_dict_record(self):
        assert normalize_member("nope") is None


class TestOtherExtractors:
    def test_time_entries_under_data(self):
        assert extract_time_entries({"data": [{"id": "a"}]}) == [{"id": "a"}]

    def test_time_entries_under_time_entries(self):
        assert extract_time_entries({"time_entries": [{"id": "b"}]}) == [{"id": "b"}]

    def test_time_entries_missing(self):
        assert extract_time_entries({}) == []
        assert extract_time_entries({"data": None}) == []

    def test_user_id_nested(self):
        assert extract_user_id({"user": {"id": 42}}) == "42"

    def test_user_id_top_level(self):
        assert extract_user_id({"id": 43}) == "43"

    def test_user_id_missing(self):
        assert extract_user_id({"user": {}}) is None

    def test_entry_unwraps_data(self):
        assert extract_entry({"data": {"id": "x"}}) == {"id": "x"}
        assert extract_entry({"data": None}) is None
        assert extract_entry({"id": "y"}) == {"id": "y"}


class TestParseRetryAfter:
    @pytest.mark.parametrize("value,expected", [
        ("30", 30000),
        ("1.5", 1500),
        (None, 0),
        ("soon", 0),
        ("0", 0),
        ("-4", 0),
    ])
    def test_seconds_to_millis(self, value, expected):
        assert parse_retry_after(value) == expected


class TestClickUpClient:
    def test_request_sends_token_and_decodes_json(self):
        client = ClickUpClient("pk_token", "123")
        opener = _urlopen_returning(b'{"user": {"id": 7}}')
        with patch("clickup_client.urllib.request.urlopen", opener):
            assert client.get_me() == {"user": {"id": 7}}

        req = opener.call_args[0][0]
        assert req.full_url == "https://api.clickup.com/api/v2/user"
        assert req.get_header("Authorization") == "pk_token"

    def test_time_entries_query(self):
        client = ClickUpClient("pk_token", "123")
        opener = _urlopen_returning(b'{"data": []}')
        with patch("clickup_client.urllib.request.urlopen", opener):
            client.get_time_entries("55", 1000, 2000)

        url = opener.call_args[0][0].full_url
        assert url.startswith("https://api.clickup.com/api/v2/team/123/time_entries?")
        assert "assignee=55" in url
        assert "start_date=1000" in url
        assert "end_date=2000" in url
        assert "include_task=true" in url

    def test_http_error_raises_with_retry_after(self):
        client = ClickUpClient("pk_token", "123")
        error = urllib.error.HTTPError(
            "https://api.clickup.com/api/v2/team/123", 429, "Too Many Requests",
            {"Retry-After": "12"}, io.BytesIO(b'{"err": "Rate limit"}'),
        )
        with patch("clickup_client.urllib.request.urlopen", side_effect=error):
            with pytest.raises(ClickUpError) as exc_info:
                client.get_team()

        assert exc_info.value.status == 429
        assert exc_info.value.retry_after_ms == 12000
        assert "Rate limit" in exc_info.value.body

    def test_network_error_raises(self):
        client = ClickUpClient("pk_token", "123")
        with patch("clickup_client.urllib.request.urlopen",
                   side_effect=urllib.error.URLError("connection refused")):
            with pytest.raises(ClickUpError) as exc_info:
                client.get_team()
        assert exc_info.value.status is None
        assert exc_info.value.retry_after_ms == 0

    def test_invalid_json_raises(self):
        client = ClickUpClient("pk_token", "123")
        with patch("clickup_client.urllib.request.urlopen", _urlopen_returning(b"<html>")):
            with pytest.raises(ClickUpError):
                client.get_team()

    def test_get_members_normalizes(self):
        client = ClickUpClient("pk_token", "123")
        body = b'{"team": {"members": [{"user": {"id": 1, "username": "Ann"}}]}}'
        with patch("clickup_client.urllib.request.urlopen", _urlopen_returning(body)):
            assert client.get_members() == [
                {"id": "1", "name": "Ann", "email": None, "avatarUrl": None}
            ]

    def test_read_timeout_raises(self):
        client = ClickUpClient("pk_token", "123")
        opener = _urlopen_returning(b"")
        opener.return_value.__enter__.return_value.read.side_effect = socket.timeout("timed out")
        with patch("clickup_client.urllib.request.urlopen", opener):
            with pytest.raises(ClickUpError) as exc_info:
                client.get_team()
        assert "timed out" in str(exc_info.value)

    def test_undecodable_body_raises(self):
        client = ClickUpClient("pk_token", "123")
        with patch("clickup_client.urllib.request.urlopen", _urlopen_returning(b"\xff\xfe\xfa")):
            with pytest.raises(ClickUpError):
                client.get_team()
