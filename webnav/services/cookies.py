import json
import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

_DOMAIN_RE = re.compile(r"Domain=([^;]*)", re.IGNORECASE)
_PATH_RE = re.compile(r"Path=([^;]*)", re.IGNORECASE)

SCOPE_SEPARATOR = "|"

RawSetCookie = Union[str, Iterable[str], None]


def cookie_pair(raw: str) -> str:
    """The leading ``name=value`` of a Set-Cookie string, attributes dropped."""
    return raw.split(";", 1)[0].strip()


def cookie_name(raw: str) -> str:
    return raw.split("=", 1)[0].strip()


def scope_token(raw: str) -> str:
    """Domain and Path attributes glued together, ``*`` for each one missing.

    Only the attribute section is inspected so a cookie value containing
    ``Path=`` cannot leak into the scope.
    """
    attributes = raw.split(";", 1)[1] if ";" in raw else ""
    domain = _DOMAIN_RE.search(attributes)
    path = _PATH_RE.search(attributes)
    return (domain.group(1).strip() if domain else "*") + (path.group(1).strip() if path else "*")


def _segment_bounds(cookie: str, name: str) -> List[Tuple[int, int]]:
    """Start/end offsets of every ``name=`` segment, in header order."""
    prefix = f"{name}="
    bounds = []
    pos = 0
    while pos < len(cookie):
        end = cookie.find(";", pos)
        if end < 0:
            end = len(cookie)
        start = pos
        while start < end and cookie[start] == " ":
            start += 1
        if cookie.startswith(prefix, start):
            bounds.append((start, end))
        pos = end + 1
    return bounds


class CookieJar:
    """Composite ``Cookie`` header plus the scopes seen for every cookie name.

    A Set-Cookie for a name already recorded under the same Domain+Path
    scope replaces the value in place; any other scope is appended next to
    the existing entries. Recorded scopes are never pruned.
    """

    def __init__(self, cookie: str = "", paths: Optional[Dict[str, str]] = None):
        self.cookie = cookie or ""
        self.paths: Dict[str, str] = dict(paths or {})

    def __bool__(self) -> bool:
        return bool(self.cookie)

    def update(self, cookie: Optional[str], raw_set_cookie: RawSetCookie) -> Optional[str]:
        if not raw_set_cookie:
            return cookie
        if isinstance(raw_set_cookie, str):
            raw_set_cookie = [raw_set_cookie]

        cookie = cookie or ""
        for raw in raw_set_cookie:
            if "=" not in raw:
                logger.warning("Ignoring malformed Set-Cookie value: %r", raw)
                continue
            name = cookie_name(raw)
            token = scope_token(raw)
            recorded = self.paths.setdefault(name, "")

            # the k-th recorded scope of a name owns its k-th segment
            scopes = recorded.split(SCOPE_SEPARATOR)[:-1]
            bounds = _segment_bounds(cookie, name)
            slot = scopes.index(token) if token in scopes else -1
            if 0 <= slot < len(bounds):
                start, end = bounds[slot]
                cookie = cookie[:start] + cookie_pair(raw) + cookie[end:]
            else:
                if cookie:
                    cookie += "; "
                cookie += cookie_pair(raw)
                self.paths[name] = recorded + token + SCOPE_SEPARATOR

        self.cookie = cookie
        return cookie

    def dump_paths(self) -> str:
        return json.dumps(self.paths, ensure_ascii=False)

    @staticmethod
    def load_paths(raw: Optional[str]) -> Dict[str, str]:
        if not raw:
            return {}
        try:
            loaded = json.loads(raw)
        except ValueError:
            logger.warning("Persisted cookie scopes are not valid JSON, starting empty")
            return {}
        if not isinstance(loaded, dict):
            return {}
        return {str(name): str(scopes) for name, scopes in loaded.items()}
