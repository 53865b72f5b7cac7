"""Drive RDM's "clear memcache" utility so it picks up database changes.

RDM guards its forms with a CSRF token delivered as the ``CSRF-TOKEN``
cookie on the login page. The token is echoed as ``_csrf`` in the login
form and in the dashboard utilities form, with a matching ``Referer``.

    INIT --GET /login--> HAVE_COOKIES --token--> AUTHENTICATING
         --POST /login--> AUTHED --POST clear_memcache--> DONE
"""

from __future__ import annotations

from enum import Enum

import httpx

from ..logging import logger
from ..utils.cookies import find_cookie

CSRF_COOKIE_NAME = "CSRF-TOKEN"
LOGIN_PATH = "/login"
UTILITIES_PATH = "/dashboard/utilities"
CLEAR_MEMCACHE_ACTION = "clear_memcache"


class RdmError(Exception):
    """The cache flush could not be completed."""


class RdmState(str, Enum):
    INIT = "init"
    HAVE_COOKIES = "have_cookies"
    AUTHENTICATING = "authenticating"
    AUTHED = "authed"
    DONE = "done"


class RdmClient:
    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.username = username or ""
        self.password = password or ""
        self.login_url = f"{self.base_url}{LOGIN_PATH}"
        self.dashboard_url = f"{self.base_url}{UTILITIES_PATH}"
        # Fresh, empty cookie jar per flush
        self.client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        self.state = RdmState.INIT
        self.csrf_token: str | None = None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> RdmClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _advance(self, state: RdmState) -> None:
        logger.debug("rdm_state", previous=self.state.value, state=state.value)
        self.state = state

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RdmError(f"{method} {url} failed: {exc}") from exc
        if not response.is_success:
            raise RdmError(f"{method} {url} returned HTTP {response.status_code}")
        return response

    def cookie_header(self, url: str) -> str | None:
        """The Cookie header the jar would send with a request to ``url``."""
        request = httpx.Request("GET", url)
        self.client.cookies.set_cookie_header(request)
        return request.headers.get("cookie")

    def fetch_login_page(self) -> None:
        self._request("GET", self.login_url)
        self._advance(RdmState.HAVE_COOKIES)

    def extract_csrf_token(self) -> str:
        token = find_cookie(self.cookie_header(self.login_url), CSRF_COOKIE_NAME)
        if token is None:
            raise RdmError(f"RDM did not set a {CSRF_COOKIE_NAME} cookie on {self.login_url}")
        self.csrf_token = token
        self._advance(RdmState.AUTHENTICATING)
        return token

    def login(self) -> None:
        self._request(
            "POST",
            self.login_url,
            headers={"Referer": self.login_url},
            data={
                "username-email": self.username,
                "password": self.password,
                "_csrf": self.csrf_token or "",
            },
        )
        self._advance(RdmState.AUTHED)

    def clear_memcache(self) -> None:
        self._request(
            "POST",
            self.dashboard_url,
            headers={"Referer": self.dashboard_url},
            data={
                "action": CLEAR_MEMCACHE_ACTION,
                "_csrf": self.csrf_token or "",
            },
        )
        self._advance(RdmState.DONE)

    def flush(self) -> None:
        """Run the whole conversation; raises RdmError on any failed step."""
        self.fetch_login_page()
        self.extract_csrf_token()
        self.login()
        self.clear_memcache()


def flush_rdm_cache(
    base_url: str,
    username: str | None,
    password: str | None,
    *,
    timeout: float = 30.0,
    transport: httpx.BaseTransport | None = None,
) -> None:
    logger.info("rdm_flush_started", rdm_url=base_url)
    with RdmClient(base_url, username, password, timeout=timeout, transport=transport) as rdm:
        try:
            rdm.flush()
        except RdmError as exc:
            logger.error("rdm_flush_failed", rdm_url=base_url, state=rdm.state.value, error=str(exc))
            raise
    logger.info("rdm_cache_cleared", rdm_url=base_url)
