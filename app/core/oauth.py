import logging
from dataclasses import dataclass

import httpx

from app.core.errors import ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

GOOGLE_USER_INFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"

SUPPORTED_PROVIDERS = ("google", "github")


@dataclass
class OAuthProfile:
    provider: str
    email: str
    name: str
    picture: str = ""


def _oauth_failed(msg: str = "Could not sign in with this provider. Please try again.") -> ProviderError:
    return ProviderError(ProviderErrorKind.OAUTH_FAILED, msg)


async def _get_json(client: httpx.AsyncClient, url: str, headers: dict):
    try:
        r = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        logger.warning("OAuth profile request failed: %s", exc)
        raise _oauth_failed("Network error. Please check your internet connection.") from exc
    if r.status_code >= 400:
        logger.info("OAuth profile request rejected (%s) for %s", r.status_code, url)
        raise _oauth_failed()
    return r.json()


async def _google_profile(client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
    data = await _get_json(client, GOOGLE_USER_INFO_URL, {"Authorization": f"Bearer {access_token}"})
    email = data.get("email")
    if not email or data.get("verified_email") is False:
        raise _oauth_failed("Your Google account has no verified email address.")
    return OAuthProfile("google", email, data.get("name") or "", data.get("picture") or "")


async def _github_profile(client: httpx.AsyncClient, access_token: str) -> OAuthProfile:
    headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/vnd.github+json"}
    user = await _get_json(client, GITHUB_USER_URL, headers)
    email = user.get("email")
    if not email:
        # private email: pick the primary verified one
        emails = await _get_json(client, GITHUB_EMAILS_URL, headers)
        email = next(
            (e["email"] for e in emails if e.get("primary") and e.get("verified")),
            None,
        )
    if not email:
        raise _oauth_failed("Your GitHub account has no verified email address.")
    return OAuthProfile("github", email, user.get("name") or user.get("login") or "", user.get("avatar_url") or "")


async def fetch_oauth_profile(provider: str, access_token: str, timeout: float = 15) -> OAuthProfile:
    if provider not in SUPPORTED_PROVIDERS:
        raise ProviderError(ProviderErrorKind.UNSUPPORTED_PROVIDER, f"Unsupported sign-in provider: {provider}")
    async with httpx.AsyncClient(timeout=timeout) as client:
        if provider == "google":
            return await _google_profile(client, access_token)
        return await _github_profile(client, access_token)
