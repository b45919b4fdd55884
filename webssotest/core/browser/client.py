"""Scripted web client used to drive login flows.

A synchronous, redirect-following HTTP client with just enough page model
(HTML forms and links, via BeautifulSoup) to replay a login sequence against
an arbitrary web UI. Pages that would be submitted by JavaScript in a real
browser (the HTTP-POST binding's self-posting form) are submitted
automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any
from urllib.parse import urlencode, urljoin

import httpx
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from webssotest.core.errors import InteractionError, InteractionNotFoundError, TransportError
from webssotest.core.logging import ProtocolLogger, get_protocol_logger
from webssotest.core.saml.bindings import PARAM_SAML_ARTIFACT, PARAM_SAML_REQUEST, PARAM_SAML_RESPONSE

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = frozenset({"text/html", "application/xhtml+xml"})

# Form fields that mark a page as an HTTP-POST binding hop
AUTO_POST_FIELDS = frozenset({PARAM_SAML_RESPONSE, PARAM_SAML_REQUEST, PARAM_SAML_ARTIFACT})

_SKIPPED_INPUT_TYPES = frozenset({"submit", "button", "image", "reset", "file"})
_USER_INPUT_TYPES = frozenset({"text", "password", "email", "search", "tel", "number"})
_SUBMIT_INPUT_TYPES = frozenset({"submit", "image"})

DEFAULT_USER_AGENT = "WebSSOTest/1.0"


@dataclass
class Page:
    """A page reached by the client."""

    url: str
    status_code: int
    headers: dict[str, str]
    text: str
    content: bytes = b""
    redirects: list[str] = field(default_factory=list)

    @classmethod
    def from_response(cls, response: httpx.Response) -> Page:
        """Build a page from the final response of a redirect chain."""
        return cls(
            url=str(response.url),
            status_code=response.status_code,
            headers={k.lower(): v for k, v in response.headers.items()},
            text=response.text,
            content=response.content,
            redirects=[str(r.url) for r in response.history],
        )

    @property
    def content_type(self) -> str:
        """Media type without parameters."""
        return self.headers.get("content-type", "").split(";")[0].strip().lower()

    @property
    def is_html(self) -> bool:
        """Whether the page can carry form and link semantics."""
        return self.content_type in HTML_CONTENT_TYPES

    @cached_property
    def soup(self) -> BeautifulSoup:
        """Parsed HTML document."""
        return BeautifulSoup(self.text, "html.parser")

    @property
    def title(self) -> str | None:
        """Document title, if any."""
        if not self.is_html or self.soup.title is None:
            return None
        return self.soup.title.get_text(strip=True)


def _select(node: Tag, selector: str) -> Tag | None:
    try:
        return node.select_one(selector)
    except SelectorSyntaxError as e:
        raise InteractionError(f"Invalid CSS selector {selector!r}: {e}") from e


def _require_html(page: Page) -> None:
    if not page.is_html:
        raise InteractionError(f"Page {page.url} is not an HTML page ({page.content_type or 'no content type'})")


def _enclosing_form(element: Tag) -> Tag | None:
    if element.name == "form":
        return element
    return element.find_parent("form")


def _control_names(form: Tag) -> set[str]:
    return {
        str(control["name"])
        for control in form.find_all(["input", "select", "textarea", "button"])
        if control.get("name")
    }


def collect_form_fields(form: Tag) -> list[tuple[str, str]]:
    """Collect a form's successful controls the way a browser does.

    Disabled controls and buttons are skipped, checkboxes and radio buttons
    contribute only when checked, and a single-choice select without a
    selected option submits its first option.
    """
    fields: list[tuple[str, str]] = []
    for control in form.find_all(["input", "select", "textarea"]):
        name = control.get("name")
        if not name or control.has_attr("disabled"):
            continue
        name = str(name)

        if control.name == "input":
            input_type = str(control.get("type") or "text").lower()
            if input_type in _SKIPPED_INPUT_TYPES:
                continue
            if input_type in ("checkbox", "radio"):
                if control.has_attr("checked"):
                    fields.append((name, str(control.get("value", "on"))))
                continue
            fields.append((name, str(control.get("value", ""))))
        elif control.name == "textarea":
            fields.append((name, control.get_text()))
        else:
            options = control.find_all("option")
            selected = [o for o in options if o.has_attr("selected")]
            if not selected and options and not control.has_attr("multiple"):
                selected = options[:1]
            for option in selected:
                fields.append((name, str(option.get("value", option.get_text(strip=True)))))
    return fields


def _apply_values(fields: list[tuple[str, str]], values: dict[str, str]) -> list[tuple[str, str]]:
    result = list(fields)
    for name, value in values.items():
        positions = [i for i, (key, _) in enumerate(result) if key == name]
        if positions:
            result[positions[0]] = (name, value)
            for i in reversed(positions[1:]):
                del result[i]
        else:
            result.append((name, value))
    return result


def _is_submit_control(element: Tag) -> bool:
    if element.name == "button":
        return str(element.get("type") or "submit").lower() == "submit"
    if element.name == "input":
        return str(element.get("type") or "text").lower() in _SUBMIT_INPUT_TYPES
    return False


def find_auto_post_form(page: Page) -> Tag | None:
    """Find an HTTP-POST binding form on a page.

    Such a form carries a SAML message field and no user-editable controls;
    browsers submit it through an onload script.
    """
    if not page.is_html:
        return None
    for form in page.soup.find_all("form"):
        names = _control_names(form)
        if not names & AUTO_POST_FIELDS:
            continue
        editable = [
            control
            for control in form.find_all("input")
            if str(control.get("type") or "text").lower() in _USER_INPUT_TYPES
        ]
        if not editable and not form.find("textarea"):
            return form
    return None


class WebClient:
    """Synchronous scripted browser.

    Args:
        verify: Verify TLS certificates.
        timeout: Request timeout in seconds.
        max_auto_posts: Maximum consecutive HTTP-POST binding forms submitted
            automatically after one navigation.
        mounts: Transports per URL pattern (e.g. ``"https://idp.test"``),
            used to route traffic into in-process applications.
        protocol_logger: Logger receiving every HTTP exchange.
    """

    def __init__(
        self,
        verify: bool = True,
        timeout: float = 30.0,
        max_auto_posts: int = 5,
        mounts: dict[str, httpx.BaseTransport] | None = None,
        protocol_logger: ProtocolLogger | None = None,
    ) -> None:
        self.max_auto_posts = max_auto_posts
        self.protocol_logger = protocol_logger or get_protocol_logger()
        self._client = httpx.Client(
            transport=self.protocol_logger.create_transport(httpx.HTTPTransport(verify=verify)),
            mounts={
                pattern: self.protocol_logger.create_transport(transport)
                for pattern, transport in (mounts or {}).items()
            },
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": DEFAULT_USER_AGENT},
        )

    @property
    def cookies(self) -> httpx.Cookies:
        """Cookies held by the client."""
        return self._client.cookies

    def _navigate(
        self,
        method: str,
        url: str,
        params: list[tuple[str, str]] | None = None,
        data: list[tuple[str, str]] | None = None,
    ) -> Page:
        logger.debug(f"{method} {url}")
        kwargs: dict[str, Any] = {}
        if params is not None:
            kwargs["params"] = params
        if data is not None:
            # Repeated field names need pairs, which data= does not accept
            kwargs["content"] = urlencode(data).encode("ascii")
            kwargs["headers"] = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            raise TransportError(f"{method} {response.url} returned HTTP {response.status_code}")
        return Page.from_response(response)

    def _auto_post(self, page: Page) -> Page:
        hops = 0
        while (form := find_auto_post_form(page)) is not None:
            if hops >= self.max_auto_posts:
                logger.warning(f"Stopped after {hops} automatic form submissions at {page.url}")
                break
            hops += 1
            logger.debug(f"Submitting HTTP-POST binding form found on {page.url}")
            page = self._submit(page, form, collect_form_fields(form), None)
        return page

    def _submit(
        self,
        page: Page,
        form: Tag,
        fields: list[tuple[str, str]],
        submitter: Tag | None,
    ) -> Page:
        action = str(form.get("action") or "")
        method = str(form.get("method") or "GET").upper()
        if submitter is not None:
            if submitter.get("name"):
                fields = [*fields, (str(submitter["name"]), str(submitter.get("value", "")))]
            action = str(submitter.get("formaction") or action)
            method = str(submitter.get("formmethod") or method).upper()

        target = urljoin(page.url, action) if action else page.url
        if method == "POST":
            return self._navigate("POST", target, data=fields)
        # A GET submission replaces the action's query string
        return self._navigate("GET", target.split("?", 1)[0], params=fields)

    def fetch(self, url: str) -> Page:
        """Load a URL, following redirects and HTTP-POST binding forms.

        Raises:
            TransportError: On network failure or an HTTP error status.
        """
        return self._auto_post(self._navigate("GET", url))

    def submit_form(
        self,
        page: Page,
        selector: str,
        values: dict[str, str] | None = None,
        submit: str | None = None,
    ) -> Page:
        """Fill in and submit a form.

        Args:
            page: Page holding the form.
            selector: CSS selector of the form or of an element inside it.
            values: Field values by control name.
            submit: CSS selector or name of the submit control to activate.

        Raises:
            InteractionNotFoundError: If the form, a named field or the
                submit control does not exist.
            TransportError: If the submission fails.
        """
        _require_html(page)
        element = _select(page.soup, selector)
        if element is None:
            raise InteractionNotFoundError(f"No element matches {selector!r} on {page.url}")
        form = _enclosing_form(element)
        if form is None:
            raise InteractionNotFoundError(f"Element matching {selector!r} is not inside a form")

        values = values or {}
        missing = sorted(set(values) - _control_names(form))
        if missing:
            raise InteractionNotFoundError(f"Form {selector!r} has no field named {', '.join(missing)}")

        submitter = None
        if submit:
            submitter = form.find(["input", "button"], attrs={"name": submit}) or _select(form, submit)
            if submitter is None:
                raise InteractionNotFoundError(f"Form {selector!r} has no submit control {submit!r}")

        fields = _apply_values(collect_form_fields(form), values)
        return self._auto_post(self._submit(page, form, fields, submitter))

    def click_link(self, page: Page, selector: str | None = None, text: str | None = None) -> Page:
        """Follow the first link matching a CSS selector and/or text.

        Raises:
            InteractionNotFoundError: If no link matches.
        """
        _require_html(page)
        try:
            candidates = page.soup.select(selector) if selector else page.soup.find_all("a")
        except SelectorSyntaxError as e:
            raise InteractionError(f"Invalid CSS selector {selector!r}: {e}") from e
        for link in candidates:
            if link.name != "a" or not link.get("href"):
                continue
            if text is not None and text not in link.get_text(" ", strip=True):
                continue
            return self.fetch(urljoin(page.url, str(link["href"])))
        criteria = []
        if selector:
            criteria.append(f"selector {selector!r}")
        if text:
            criteria.append(f"text {text!r}")
        raise InteractionNotFoundError(f"No link matching {' and '.join(criteria) or 'any'} on {page.url}")

    def click(self, page: Page, selector: str) -> Page:
        """Activate an element: follow a link or press a submit control.

        Raises:
            InteractionNotFoundError: If nothing matches the selector.
            InteractionError: If the element cannot be activated without
                script support.
        """
        _require_html(page)
        element = _select(page.soup, selector)
        if element is None:
            raise InteractionNotFoundError(f"No element matches {selector!r} on {page.url}")

        if element.name == "a" and element.get("href"):
            return self.fetch(urljoin(page.url, str(element["href"])))
        if _is_submit_control(element):
            form = _enclosing_form(element)
            if form is None:
                raise InteractionError(f"Submit control {selector!r} is not inside a form")
            return self._auto_post(self._submit(page, form, collect_form_fields(form), element))
        raise InteractionError(f"Element <{element.name}> matching {selector!r} cannot be activated")

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> WebClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
