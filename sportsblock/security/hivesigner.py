"""
HiveSigner token verification

HiveSigner cannot sign arbitrary messages, so its logins are proven by
asking the HiveSigner API who the access token belongs to.
"""

from typing import Any

import httpx
import structlog

from sportsblock.config import get_settings
from sportsblock.security.hive_challenge import ChallengeError

logger = structlog.get_logger(__name__)


def _token_username(data: dict[str, Any]) -> str:
    account = data.get("account")
    account_name = account.get("name") if isinstance(account, dict) else account
    name = data.get("user") or data.get("name") or account_name or ""
    return str(name).lower()


async def verify_hivesigner_token(
    token: str,
    username: str,
    client: httpx.AsyncClient | None = None,
) -> None:
    """
    Raises:
        ChallengeError: If the token is rejected or belongs to someone else
    """
    settings = get_settings()
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=settings.hive_request_timeout)
    try:
        response = await http.get(settings.hivesigner_api_url, headers={"Authorization": token})
    except httpx.HTTPError as e:
        raise ChallengeError(f"HiveSigner API request failed: {e}") from e
    finally:
        if owns_client:
            await http.aclose()

    if response.status_code >= 400:
        raise ChallengeError(f"HiveSigner API returned {response.status_code}")

    try:
        data = response.json()
    except ValueError:
        raise ChallengeError("HiveSigner API returned invalid JSON") from None

    token_username = _token_username(data if isinstance(data, dict) else {})
    if not token_username:
        raise ChallengeError("HiveSigner token did not return a username")
    if token_username != username.lower():
        logger.info("hivesigner_username_mismatch", expected=username)
        raise ChallengeError("HiveSigner token username mismatch")
