"""Facebook sign-in for Intel.

Intel's landing page links to a Facebook OAuth dialog. Following it yields
Facebook's login form; posting the account's email and password there
redirects back to Intel, which sets the session cookies on the shared
client. Only the cookies matter, so nothing is returned.
"""

from __future__ import annotations

from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from .errors import IntelAuthError

FACEBOOK_HOST_MARKER = "facebook.com"


def find_facebook_link(html: str, page_url: str) -> str | None:
    soup = BeautifulSoup(html, "html.parser")
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if FACEBOOK_HOST_MARKER in href:
            return urljoin(page_url, href)
    return None


def extract_login_form(html: str, page_url: str) -> tuple[str, dict[str, str]]:
    """Return the form's absolute action URL and its pre-filled fields.

    The login form is the one holding an ``email`` input. Submit buttons are
    left out so the post looks like a plain form submission.
    """
    soup = BeautifulSoup(html, "html.parser")
    form = None
    for candidate in soup.find_all("form"):
        if candidate.find("input", attrs={"name": "email"}) is not None:
            form = candidate
            break
    if form is None:
        raise IntelAuthError("Facebook login form not found")

    fields: dict[str, str] = {}
    for field in form.find_all("input"):
        name = field.get("name")
        if not name or field.get("type") == "submit":
            continue
        fields[name] = field.get("value", "")

    action = urljoin(page_url, form.get("action") or page_url)
    return action, fields


def facebook_login(
    client: httpx.Client,
    intel_page: httpx.Response,
    username: str | None,
    password: str | None,
) -> None:
    """Sign ``client`` into Intel through Facebook."""
    if not username or not password:
        raise IntelAuthError("Facebook login needs USERNAME and PASSWORD")

    link = find_facebook_link(intel_page.text, str(intel_page.url))
    if link is None:
        raise IntelAuthError("Intel page has no Facebook sign-in link")

    try:
        login_page = client.get(link)
        if not login_page.is_success:
            raise IntelAuthError(f"Facebook login page returned HTTP {login_page.status_code}")

        action, fields = extract_login_form(login_page.text, str(login_page.url))
        fields["email"] = username
        fields["pass"] = password

        response = client.post(action, data=fields, headers={"Referer": str(login_page.url)})
    except httpx.HTTPError as exc:
        raise IntelAuthError(f"Facebook login request failed: {exc}") from exc

    if not response.is_success:
        raise IntelAuthError(f"Facebook login returned HTTP {response.status_code}")
