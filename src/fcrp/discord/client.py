"""Discord guild member API client."""

import logging
import math
from datetime import datetime
from typing import Self

import httpx
from tenacity import Retrying, retry_if_result, stop_after_attempt

from fcrp.core.config import GuildCredentials
from fcrp.roles.errors import (
    ExternalServiceRateLimitedError,
    ExternalServiceUnavailableError,
    NoExternalIdentityError,
)
from fcrp.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Warn when fewer requests than this remain in the current bucket
RATE_LIMIT_WARNING_THRESHOLD = 10

# Discord JSON error codes on 404
UNKNOWN_GUILD = 10004
UNKNOWN_MEMBER = 10007


def _is_rate_limited(response: httpx.Response) -> bool:
    """Check if response indicates rate limiting (429)."""
    return response.status_code == 429


def _log_retry(retry_state) -> None:
    """Log retry attempts."""
    logger.warning(
        f"Retry attempt {retry_state.attempt_number + 1} after rate limiting "
        f"(sleeping {retry_state.upcoming_sleep:g}s)"
    )


def _last_response(retry_state) -> httpx.Response:
    """Hand back the final 429 instead of raising RetryError."""
    return retry_state.outcome.result()


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


def _as_delay(value) -> float | None:
    """Parse a wait in seconds, or None if it is not a usable sleep length."""
    try:
        delay = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(delay) or delay < 0:
        return None
    return delay


def get_retry_after(response: httpx.Response, default: float) -> float:
    """Seconds Discord asked us to wait, from the JSON body or Retry-After header.

    Negative, infinite or NaN values are ignored in favour of the next source.
    """
    data = _json_or_none(response)
    if isinstance(data, dict):
        delay = _as_delay(data.get("retry_after"))
        if delay is not None:
            return delay

    delay = _as_delay(response.headers.get("Retry-After"))
    if delay is not None:
        return delay

    return default


class DiscordClient:
    """Client for one guild of the Discord REST API.

    Usage::

        with DiscordClient(get_discord_credentials()) as discord:
            role_ids = discord.get_member_roles("123456789")
    """

    def __init__(self, credentials: GuildCredentials, settings: Settings | None = None) -> None:
        """Initialize the client for a guild. Call ``__enter__`` to connect."""
        self.settings = settings or get_settings()
        self.guild_id = credentials.guild_id
        self.bot_token = credentials.bot_token
        self.client: httpx.Client | None = None
        self.last_retry_after: float | None = None

    def __enter__(self) -> Self:
        """Enter context manager - create HTTP client."""
        self.client = httpx.Client(
            base_url=self.settings.discord_api_base,
            headers={"Authorization": f"Bot {self.bot_token}"},
            timeout=self.settings.request_timeout,
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - close HTTP client."""
        if self.client:
            self.client.close()
            self.client = None

    def _wait_for_retry_after(self, retry_state) -> float:
        response = retry_state.outcome.result()
        retry_after = get_retry_after(response, self.settings.default_retry_after)
        self.last_retry_after = retry_after
        return retry_after + self.settings.rate_limit_buffer

    def _send(self, method: str, path: str) -> httpx.Response:
        if not self.client:
            raise RuntimeError("Client must be used as context manager")

        try:
            response = self.client.request(method, path)
        except httpx.HTTPError as e:
            logger.error(f"Discord request failed: {method} {path}: {e}")
            raise ExternalServiceUnavailableError() from e

        if response.status_code == 429:
            retry_after = get_retry_after(response, self.settings.default_retry_after)
            logger.warning(f"Discord API rate limited. Retry after {retry_after:g} seconds.")

        return response

    def _request(self, method: str, path: str) -> httpx.Response:
        """Make a request, waiting out 429s.

        Each 429 is followed by a wait of Discord's ``retry_after`` plus a
        small buffer and a single retry of the same request, up to
        ``rate_limit_retries`` times.

        Raises:
            ExternalServiceRateLimitedError: If still rate limited after every retry
            ExternalServiceUnavailableError: If Discord cannot be reached
        """
        max_attempts = self.settings.rate_limit_retries + 1
        retrying = Retrying(
            retry=retry_if_result(_is_rate_limited),
            stop=stop_after_attempt(max_attempts),
            wait=self._wait_for_retry_after,
            before_sleep=_log_retry,
            retry_error_callback=_last_response,
        )
        response = retrying(self._send, method, path)

        if response.status_code == 429:
            retry_after = get_retry_after(response, self.settings.default_retry_after)
            logger.error(f"Giving up on {method} {path} after {max_attempts} rate-limited attempts")
            raise ExternalServiceRateLimitedError(retry_after, max_attempts)

        self._check_remaining(response)
        return response

    def _check_remaining(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        if not remaining or not remaining.isdecimal():
            return
        if int(remaining) < RATE_LIMIT_WARNING_THRESHOLD:
            reset = response.headers.get("X-RateLimit-Reset", "0")
            try:
                reset_at = datetime.fromtimestamp(float(reset)).strftime("%H:%M:%S")
            except (ValueError, OverflowError, OSError):
                reset_at = "unknown"
            logger.warning(
                f"Discord API rate limit warning: {remaining} requests remaining until {reset_at}"
            )

    def get_member(self, user_id: str) -> dict:
        """Fetch a guild member object.

        Args:
            user_id: Discord user ID

        Returns:
            Member JSON as returned by Discord

        Raises:
            NoExternalIdentityError: If user_id is empty or not a guild member
            ExternalServiceUnavailableError: If the guild is unknown, Discord
                errors, or the body is not a member object
        """
        if not user_id:
            raise NoExternalIdentityError()

        response = self._request("GET", f"/guilds/{self.guild_id}/members/{user_id}")

        if response.status_code == 404:
            data = _json_or_none(response)
            if isinstance(data, dict) and data.get("code") == UNKNOWN_GUILD:
                logger.error(f"Discord guild not found: {self.guild_id}")
                raise ExternalServiceUnavailableError("Discord guild not found")
            logger.debug(f"User {user_id} is not a member of guild {self.guild_id}")
            raise NoExternalIdentityError("User is not a member of the Discord server")

        if response.status_code != 200:
            logger.error(f"Discord API error: {response.status_code} {response.reason_phrase}")
            raise ExternalServiceUnavailableError()

        data = _json_or_none(response)
        if not isinstance(data, dict):
            logger.error(f"Malformed member response for {user_id}")
            raise ExternalServiceUnavailableError("Malformed response from Discord")
        return data

    def get_member_roles(self, user_id: str) -> list[str]:
        """Get the role IDs a member holds, in the order Discord returns them.

        Raises:
            Same as ``get_member``
        """
        roles = self.get_member(user_id).get("roles", [])
        if not isinstance(roles, list):
            logger.error(f"Malformed roles for {user_id}: {roles!r}")
            raise ExternalServiceUnavailableError("Malformed response from Discord")
        return [str(role_id) for role_id in roles]

    def is_member(self, user_id: str) -> bool:
        """Check whether the user is in this guild.

        Raises:
            ExternalServiceUnavailableError: If membership cannot be determined
        """
        try:
            self.get_member(user_id)
        except NoExternalIdentityError:
            return False
        return True
