"""Tests for fcrp.discord.client module."""

from unittest.mock import patch

import httpx
import pytest
import respx

from fcrp.core.config import GuildCredentials
from fcrp.discord.client import DiscordClient, get_retry_after
from fcrp.roles.errors import (
    ExternalServiceRateLimitedError,
    ExternalServiceUnavailableError,
    NoExternalIdentityError,
)

MEMBER_URL = "https://discord.test/api/v10/guilds/G/members/U"


@pytest.fixture
def credentials():
    """Guild credentials for a fake guild."""
    return GuildCredentials(guild_id="G", bot_token="secret-token")


@pytest.fixture
def mock_sleep():
    """Stop tenacity from actually sleeping between retries."""
    with patch("time.sleep") as mock:
        yield mock


def _rate_limited(retry_after=2):
    return httpx.Response(
        429, json={"message": "You are being rate limited.", "retry_after": retry_after}
    )


def _member(roles):
    return httpx.Response(200, json={"user": {"id": "U"}, "roles": roles})


class TestDiscordClientContextManager:
    """Tests for context manager behavior."""

    def test_init_does_not_connect(self, credentials, settings):
        client = DiscordClient(credentials, settings)
        assert client.client is None
        assert client.guild_id == "G"

    def test_enter_and_exit(self, credentials, settings):
        with DiscordClient(credentials, settings) as discord:
            assert discord.client is not None
        assert discord.client is None

    def test_request_without_context_manager(self, credentials, settings):
        client = DiscordClient(credentials, settings)
        with pytest.raises(RuntimeError, match="context manager"):
            client.get_member_roles("U")

    @respx.mock
    def test_sends_bot_authorization(self, credentials, settings):
        route = respx.get(MEMBER_URL).mock(return_value=_member([]))

        with DiscordClient(credentials, settings) as discord:
            discord.get_member("U")

        assert route.calls.last.request.headers["Authorization"] == "Bot secret-token"


class TestGetMemberRoles:
    """Tests for fetching member roles."""

    @respx.mock
    def test_returns_roles_in_order(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=_member(["3", "1", "2"]))

        with DiscordClient(credentials, settings) as discord:
            roles = discord.get_member_roles("U")

        assert roles == ["3", "1", "2"]

    @respx.mock
    def test_missing_roles_field_is_empty(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=httpx.Response(200, json={"user": {}}))

        with DiscordClient(credentials, settings) as discord:
            assert discord.get_member_roles("U") == []

    def test_empty_user_id(self, credentials, settings):
        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(NoExternalIdentityError, match="no Discord ID"),
        ):
            discord.get_member_roles("")

    @respx.mock
    def test_not_a_member(self, credentials, settings):
        respx.get(MEMBER_URL).mock(
            return_value=httpx.Response(404, json={"message": "Unknown Member", "code": 10007})
        )

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(NoExternalIdentityError, match="not a member"),
        ):
            discord.get_member_roles("U")

    @respx.mock
    def test_unknown_guild(self, credentials, settings):
        respx.get(MEMBER_URL).mock(
            return_value=httpx.Response(404, json={"message": "Unknown Guild", "code": 10004})
        )

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceUnavailableError, match="guild not found"),
        ):
            discord.get_member_roles("U")

    @respx.mock
    def test_server_error(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=httpx.Response(500))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceUnavailableError),
        ):
            discord.get_member_roles("U")

    @respx.mock
    def test_non_json_body(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=httpx.Response(200, text="<html>"))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceUnavailableError, match="Malformed"),
        ):
            discord.get_member_roles("U")

    @respx.mock
    def test_roles_not_a_list(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=httpx.Response(200, json={"roles": "1,2"}))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceUnavailableError, match="Malformed"),
        ):
            discord.get_member_roles("U")

    @respx.mock
    def test_transport_error(self, credentials, settings):
        respx.get(MEMBER_URL).mock(side_effect=httpx.ConnectError("connection refused"))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceUnavailableError, match="unavailable"),
        ):
            discord.get_member_roles("U")


class TestRateLimiting:
    """Tests for 429 handling."""

    @respx.mock
    def test_waits_retry_after_plus_buffer_then_retries(self, credentials, settings, mock_sleep):
        route = respx.get(MEMBER_URL).mock(side_effect=[_rate_limited(2), _member(["1"])])

        with DiscordClient(credentials, settings) as discord:
            roles = discord.get_member_roles("U")

        assert roles == ["1"]
        assert route.call_count == 2
        mock_sleep.assert_called_once_with(2.5)
        assert discord.last_retry_after == 2

    @respx.mock
    def test_recovers_after_two_rate_limits(self, credentials, settings, mock_sleep):
        route = respx.get(MEMBER_URL).mock(
            side_effect=[_rate_limited(1), _rate_limited(1), _member(["7"])]
        )

        with DiscordClient(credentials, settings) as discord:
            assert discord.get_member_roles("U") == ["7"]

        assert route.call_count == 3
        assert mock_sleep.call_count == 2

    @respx.mock
    def test_gives_up_after_retries(self, credentials, settings, mock_sleep):
        route = respx.get(MEMBER_URL).mock(return_value=_rate_limited(2))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceRateLimitedError) as exc_info,
        ):
            discord.get_member_roles("U")

        assert route.call_count == settings.rate_limit_retries + 1
        assert mock_sleep.call_count == settings.rate_limit_retries
        assert exc_info.value.attempts == 4
        assert exc_info.value.retry_after == 2

    @respx.mock
    def test_rate_limited_is_unavailable(self, credentials, settings, mock_sleep):
        respx.get(MEMBER_URL).mock(return_value=_rate_limited(1))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceUnavailableError),
        ):
            discord.get_member_roles("U")

    @pytest.mark.parametrize("retry_after", [-1, "nan", "inf"])
    @respx.mock
    def test_unusable_retry_after_waits_default(
        self, credentials, settings, mock_sleep, retry_after
    ):
        respx.get(MEMBER_URL).mock(side_effect=[_rate_limited(retry_after), _member(["1"])])

        with DiscordClient(credentials, settings) as discord:
            assert discord.get_member_roles("U") == ["1"]

        # Default 5s wait plus the 0.5s buffer
        mock_sleep.assert_called_once_with(5.5)

    @respx.mock
    def test_no_retries_configured(self, credentials, settings, mock_sleep):
        settings = settings.model_copy(update={"rate_limit_retries": 0})
        route = respx.get(MEMBER_URL).mock(return_value=_rate_limited(1))

        with (
            DiscordClient(credentials, settings) as discord,
            pytest.raises(ExternalServiceRateLimitedError),
        ):
            discord.get_member_roles("U")

        assert route.call_count == 1
        mock_sleep.assert_not_called()

    @respx.mock
    def test_warns_when_few_requests_remain(self, credentials, settings, caplog):
        respx.get(MEMBER_URL).mock(
            return_value=httpx.Response(
                200,
                json={"roles": []},
                headers={"X-RateLimit-Remaining": "3", "X-RateLimit-Reset": "1700000000"},
            )
        )

        with DiscordClient(credentials, settings) as discord:
            discord.get_member_roles("U")

        assert "rate limit warning" in caplog.text

    @respx.mock
    def test_no_warning_with_plenty_remaining(self, credentials, settings, caplog):
        respx.get(MEMBER_URL).mock(
            return_value=httpx.Response(
                200, json={"roles": []}, headers={"X-RateLimit-Remaining": "40"}
            )
        )

        with DiscordClient(credentials, settings) as discord:
            discord.get_member_roles("U")

        assert "rate limit warning" not in caplog.text


class TestGetRetryAfter:
    """Tests for get_retry_after."""

    def test_from_json_body(self):
        assert get_retry_after(_rate_limited(1.25), default=5.0) == 1.25

    def test_from_header(self):
        response = httpx.Response(429, headers={"Retry-After": "3"})
        assert get_retry_after(response, default=5.0) == 3.0

    def test_default_when_missing(self):
        assert get_retry_after(httpx.Response(429), default=5.0) == 5.0

    @pytest.mark.parametrize("value", [-1, "-0.5", "nan", "inf", "-inf", "soon", None])
    def test_unusable_body_value_uses_default(self, value):
        assert get_retry_after(_rate_limited(value), default=5.0) == 5.0

    def test_unusable_body_value_falls_back_to_header(self):
        response = httpx.Response(429, json={"retry_after": -1}, headers={"Retry-After": "2"})
        assert get_retry_after(response, default=5.0) == 2.0

    @pytest.mark.parametrize("header", ["-3", "NaN", "Infinity"])
    def test_unusable_header_uses_default(self, header):
        response = httpx.Response(429, headers={"Retry-After": header})
        assert get_retry_after(response, default=5.0) == 5.0


class TestIsMember:
    """Tests for is_member."""

    @respx.mock
    def test_member(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=_member([]))

        with DiscordClient(credentials, settings) as discord:
            assert discord.is_member("U") is True

    @respx.mock
    def test_not_member(self, credentials, settings):
        respx.get(MEMBER_URL).mock(return_value=httpx.Response(404, json={"code": 10007}))

        with DiscordClient(credentials, settings) as discord:
            assert discord.is_member("U") is False
