import logging
from typing import Dict, Mapping, Optional
from urllib.parse import urljoin

from webnav.services.cookies import CookieJar
from webnav.services.storage import PropertyStore, SqlPropertyStore
from webnav.services.transport import HttpxTransport, Payload, RequestOptions, Transport, TransportResponse

logger = logging.getLogger(__name__)

# set by the navigator itself on every hop
_MANAGED_HEADERS = {"cookie", "referer"}


class InvalidBaseUrlError(ValueError):
    def __init__(self, base_url: str):
        super().__init__(f"Invalid base URL {base_url!r}. Must be in the format protocol://host")
        self.base_url = base_url


class Navigator:
    """Cookie-authenticated browsing session against a single site.

    Every request carries the accumulated cookie and a referer, redirects are
    followed hop by hop so Set-Cookie headers on intermediate responses are
    never lost, and a response body containing ``logout_indicator`` triggers
    an automatic POST of ``login_payload`` to ``login_path``. With
    ``refetch_on_login`` the original request is replayed once after that
    login; without it the logged-out body is returned as is.

    One instance per site and account. Not safe for concurrent use.
    """

    def __init__(
        self,
        base_url: str,
        login_path: str = "",
        login_payload: Payload = None,
        logout_indicator: str = "",
        headers: Optional[Mapping[str, str]] = None,
        persist_cookies: bool = False,
        account: Optional[str] = None,
        refetch_on_login: bool = False,
        debug: bool = False,
        transport: Optional[Transport] = None,
        store: Optional[PropertyStore] = None,
    ):
        host_start = base_url.find("//") + 2
        if host_start < 2:
            raise InvalidBaseUrlError(base_url)
        host_end = base_url.find("/", host_start)
        if host_end < 0:
            host_end = len(base_url)
            base_url += "/"

        self.base_url = base_url
        self.host = base_url[host_start:host_end]
        self.login_path = login_path
        self.login_payload = login_payload
        self.logout_indicator = logout_indicator
        self.headers: Dict[str, str] = dict(headers or {})
        self.persist_cookies = persist_cookies
        self.account = account
        self.refetch_on_login = refetch_on_login
        self.debug = debug

        self.jar = CookieJar()
        self.referer: Optional[str] = None
        self.last_headers: Dict[str, object] = {}
        self.transport = transport or HttpxTransport()
        self._store = store
        self._hydrated = False

    @property
    def cookies(self) -> str:
        return self.jar.cookie

    @property
    def store(self) -> PropertyStore:
        if self._store is None:
            self._store = SqlPropertyStore()
        return self._store

    @property
    def cookie_key(self) -> str:
        return f"{self.host}_cookie_{self.account or ''}"

    @property
    def paths_key(self) -> str:
        return f"{self.cookie_key}_paths"

    @property
    def login_url(self) -> str:
        return self.resolve(self.login_path)

    def resolve(self, path: str) -> str:
        return path if path.find("//") > 0 else self.base_url + path

    def get(self, path: str) -> str:
        return self.request(path, RequestOptions())

    def post(self, path: str, payload: Payload = None, headers: Optional[Mapping[str, str]] = None) -> str:
        options = RequestOptions(method="POST", headers=dict(headers or {}), payload=payload)
        return self.request(path, options)

    def request(self, path: str, options: Optional[RequestOptions] = None) -> str:
        original = (options or RequestOptions()).copy()
        original.follow_redirects = False
        page_url = self.resolve(path)
        self._hydrate()

        body = self._navigate(page_url, original.copy())

        if self._is_logged_out(body):
            logger.info("Logout indicator found at %s, logging in again", page_url)
            self.login()
            if self.refetch_on_login:
                body = self._fetch_once(page_url, original.copy()).text
        return body

    def login(self) -> str:
        """POST the login payload and absorb the cookies it sets."""
        login_url = self.login_url
        self._hydrate()
        options = RequestOptions(
            method="POST",
            headers=self._outgoing_headers({}),
            payload=self.login_payload,
        )
        self._trace_request(login_url, options)
        response = self.transport.fetch(login_url, options)
        self._absorb(login_url, response)

        if self.persist_cookies:
            self.store.set(self.cookie_key, self.jar.cookie)
            self.store.set(self.paths_key, self.jar.dump_paths())
        return response.text

    def _navigate(self, url: str, options: RequestOptions) -> str:
        response = None
        while url:
            options.headers = self._outgoing_headers(options.headers)
            self._trace_request(url, options)
            response = self.transport.fetch(url, options)
            self._absorb(url, response)

            # every hop after the first is a GET, whatever the original method
            options.method = "GET"
            options.payload = None
            location = response.header("Location")
            url = urljoin(url, location) if location else None
        return response.text

    def _fetch_once(self, url: str, options: RequestOptions) -> TransportResponse:
        options.headers = self._outgoing_headers(options.headers)
        self._trace_request(url, options)
        response = self.transport.fetch(url, options)
        self._absorb(url, response)
        return response

    def _outgoing_headers(self, extra: Mapping[str, str]) -> Dict[str, str]:
        headers = {
            key: value
            for key, value in list(self.headers.items()) + list(extra.items())
            if key.lower() not in _MANAGED_HEADERS
        }
        if self.jar.cookie:
            headers["Cookie"] = self.jar.cookie
        headers["Referer"] = self.referer or self.login_url
        return headers

    def _absorb(self, url: str, response: TransportResponse) -> None:
        self.last_headers = response.header_map()
        if self.debug:
            logger.info("Response headers from %s: %s", url, self.last_headers)
        self.jar.update(self.jar.cookie, response.header_values("Set-Cookie"))
        if self.debug:
            logger.info("Cookie after %s: %s", url, self.jar.cookie)
        self.referer = url

    def _is_logged_out(self, body: str) -> bool:
        # a match at offset 0 is deliberately ignored
        return bool(self.logout_indicator) and body.find(self.logout_indicator) > 0

    def _hydrate(self) -> None:
        if self._hydrated:
            return
        self._hydrated = True
        if not self.persist_cookies or self.jar.cookie:
            return
        cookie = self.store.get(self.cookie_key) or ""
        paths = CookieJar.load_paths(self.store.get(self.paths_key))
        self.jar = CookieJar(cookie, paths)
        if cookie:
            logger.info("Restored persisted cookies for %s", self.cookie_key)

    def _trace_request(self, url: str, options: RequestOptions) -> None:
        if self.debug:
            logger.info("%s %s headers=%s payload=%r", options.method, url, options.headers, options.payload)
