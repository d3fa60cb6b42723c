"""
Authenticated REST request execution.

The transfer engine only talks to the service through a ``RequestExecutor``. Executors classify failures:
network problems raise ``TransientNetworkError`` (retryable), rejected requests raise
``PermanentRemoteError`` (not retryable).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import posixpath
from email.utils import formatdate
from typing import Any, Protocol
from urllib.parse import quote

import requests
from requests.auth import AuthBase

from .exceptions import PermanentRemoteError, TransientNetworkError
from .models.config import RestOptions

log = logging.getLogger(__name__)


class RequestExecutor(Protocol):
    """Contract for sending a signed request to the storage service."""

    def execute(
        self,
        method: str,
        uri: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
        query: str | None = None,
        stream: bool = False,
    ) -> requests.Response:
        """
        Send a request for the object at ``uri`` (relative to the bucket).

        :param method: HTTP method
        :param uri: path of the object or directory within the bucket
        :param headers: additional request headers
        :param body: request body (bytes or binary file object)
        :param query: raw query string without leading '?'
        :param stream: do not read the response body eagerly
        :raises TransientNetworkError: on connection errors and timeouts, also when a response body is cut off
        :raises PermanentRemoteError: if the service answers with an error status or the request is invalid
        """
        ...


def escape_uri(uri: str) -> str:
    """Percent-encode a path, keeping the separators."""
    return quote(uri, safe="/~")


def make_rfc1123_date() -> str:
    return formatdate(usegmt=True)


class UpYunAuth(AuthBase):
    """
    Sign requests with the REST API's HMAC-SHA1 scheme.

    The signature covers method, path, date and the optional Content-MD5 header,
    keyed with the hex MD5 of the operator password.
    """

    def __init__(self, operator: str, password: str):
        self.operator = operator
        self._key = hashlib.md5(password.encode("utf-8")).hexdigest().encode("utf-8")

    def sign(self, method: str, uri: str, date: str, content_md5: str | None = None) -> str:
        parts = [method.upper(), uri, date]
        if content_md5:
            parts.append(content_md5)
        digest = hmac.new(self._key, "&".join(parts).encode("utf-8"), hashlib.sha1).digest()
        return f"UPYUN {self.operator}:{base64.b64encode(digest).decode('ascii')}"

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        r.headers["Authorization"] = self.sign(
            r.method or "GET",
            r.path_url,
            r.headers["Date"],
            r.headers.get("Content-MD5"),
        )
        return r


class RestRequestExecutor:
    """Request executor using a shared ``requests.Session``."""

    __log = log.getChild("RestRequestExecutor")

    def __init__(self, options: RestOptions, session: requests.Session | None = None):
        self._options = options
        self._session = session or requests.Session()
        self._session.auth = UpYunAuth(options.operator, options.password)
        if options.proxy_url is not None:
            self._session.proxies = {"http": str(options.proxy_url), "https": str(options.proxy_url)}
        if options.user_agent:
            self._session.headers["User-Agent"] = options.user_agent

    @property
    def bucket(self) -> str:
        return self._options.bucket

    def build_uri(self, uri: str, query: str | None = None) -> str:
        """Path of an object on the REST endpoint, including bucket and query."""
        esc_uri = posixpath.join("/", self._options.bucket, escape_uri(uri.lstrip("/")))
        if uri.endswith("/") and not esc_uri.endswith("/"):
            esc_uri += "/"
        if query:
            esc_uri += "?" + query
        return esc_uri

    def execute(
        self,
        method: str,
        uri: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
        query: str | None = None,
        stream: bool = False,
    ) -> requests.Response:
        scheme = "https" if self._options.use_ssl else "http"
        url = f"{scheme}://{self._options.endpoint}{self.build_uri(uri, query)}"

        request_headers = dict(headers or {})
        request_headers["Date"] = make_rfc1123_date()

        self.__log.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                headers=request_headers,
                data=body,
                stream=stream,
                timeout=self._options.timeout,
            )
        except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
            raise TransientNetworkError(f"{method} {uri} failed: {e}") from e
        except requests.RequestException as e:
            raise PermanentRemoteError(f"{method} {uri} failed: {e}") from e

        if not response.ok:
            content = response.text
            response.close()
            raise PermanentRemoteError(
                f"{method} {uri} failed with status {response.status_code}: {content.strip()}",
                status_code=response.status_code,
                body=content,
            )

        return response

    def close(self):
        self._session.close()
