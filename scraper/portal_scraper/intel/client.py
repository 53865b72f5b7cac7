"""Intel client for looking up portal names and images.

Intel has no public API. The dashboard page embeds a versioned script,
``/jsc/gen_dashboard_<hash>.js``, whose hash must be echoed as ``v`` in every
``/r/`` call, together with the ``csrftoken`` cookie as ``X-CSRFToken``.

A session comes either from pre-authenticated cookies (COOKIES) or from a
Facebook login with USERNAME/PASSWORD; see ``login.py``.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse

import httpx

from ..logging import logger
from ..models import PortalDetails
from ..utils.cookies import parse_cookie_string
from .errors import IntelAuthError, IntelError
from .login import facebook_login

INTEL_BASE_URL = "https://intel.ingress.com"
INTEL_PAGE_PATH = "/intel"
PORTAL_DETAILS_PATH = "/r/getPortalDetails"

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

VERSION_PATTERN = re.compile(r"/jsc/gen_dashboard_([0-9a-f]+)\.js")

# Positions inside the portal details ``result`` array
PORTAL_IMAGE_INDEX = 7
PORTAL_TITLE_INDEX = 8


def extract_version(page: str) -> str | None:
    match = VERSION_PATTERN.search(page)
    return match.group(1) if match else None


def parse_portal_details(guid: str, payload: object) -> PortalDetails:
    """Build ``PortalDetails`` from a ``getPortalDetails`` response body."""
    if not isinstance(payload, dict):
        raise IntelError(f"Unexpected portal details payload for {guid!r}")
    if "error" in payload:
        raise IntelError(f"Intel returned an error for {guid!r}: {payload['error']}")
    result = payload.get("result")
    if not isinstance(result, list) or len(result) <= PORTAL_TITLE_INDEX:
        raise IntelError(f"Portal details for {guid!r} are missing the result array")
    name = result[PORTAL_TITLE_INDEX]
    url = result[PORTAL_IMAGE_INDEX]
    if not isinstance(name, str) or not isinstance(url, str):
        raise IntelError(f"Portal details for {guid!r} have no title or image")
    return PortalDetails(guid=guid, name=name, url=url)


class IntelClient:
    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        cookies: str | None = None,
        *,
        base_url: str = INTEL_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.username = username
        self.password = password
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        domain = urlparse(self.base_url).hostname or ""
        for name, value in parse_cookie_string(cookies):
            self.client.cookies.set(name, value, domain=domain)
        self._version: str | None = None
        self._auth_error: IntelAuthError | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> IntelClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Session helpers
    # -------------------------------------------------------------------------
    def _fetch_intel_page(self) -> httpx.Response:
        try:
            response = self.client.get(INTEL_PAGE_PATH)
        except httpx.HTTPError as exc:
            raise IntelError(f"Intel page request failed: {exc}") from exc
        if not response.is_success:
            raise IntelError(f"Intel page returned HTTP {response.status_code}")
        return response

    def _handshake(self) -> str:
        response = self._fetch_intel_page()
        version = extract_version(response.text)
        if version:
            return version

        if not self.has_credentials:
            raise IntelAuthError(
                "Intel session is not logged in and no USERNAME/PASSWORD are configured"
            )

        logger.info("intel_login_started", username=self.username)
        facebook_login(self.client, response, self.username, self.password)

        version = extract_version(self._fetch_intel_page().text)
        if not version:
            raise IntelAuthError("Intel login finished but the dashboard is still unavailable")
        logger.info("intel_login_completed", username=self.username)
        return version

    def ensure_session(self) -> str:
        """Return the dashboard version, logging in on first use.

        A failed login is remembered so later lookups fail fast instead of
        hammering the login form once per portal.
        """
        if self._version:
            return self._version
        if self._auth_error is not None:
            raise self._auth_error
        try:
            self._version = self._handshake()
        except IntelAuthError as exc:
            self._auth_error = exc
            logger.error("intel_auth_failed", error=str(exc))
            raise
        logger.debug("intel_session_ready", version=self._version)
        return self._version

    def _csrf_token(self) -> str | None:
        for cookie in self.client.cookies.jar:
            if cookie.name == "csrftoken":
                return cookie.value
        return None

    # -------------------------------------------------------------------------
    # API methods
    # -------------------------------------------------------------------------
    def get_portal_details(self, guid: str) -> PortalDetails:
        """Fetch name and image URL for one portal.

        Raises IntelError for throttling (429), server errors, error payloads
        and malformed responses alike.
        """
        version = self.ensure_session()

        headers = {
            "Origin": self.base_url,
            "Referer": f"{self.base_url}{INTEL_PAGE_PATH}",
        }
        csrf_token = self._csrf_token()
        if csrf_token:
            headers["X-CSRFToken"] = csrf_token

        try:
            response = self.client.post(
                PORTAL_DETAILS_PATH,
                json={"guid": guid, "v": version},
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise IntelError(f"Portal details request for {guid!r} failed: {exc}") from exc

        if not response.is_success:
            raise IntelError(f"Portal details for {guid!r} returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise IntelError(f"Portal details for {guid!r} were not JSON") from exc

        return parse_portal_details(guid, payload)
