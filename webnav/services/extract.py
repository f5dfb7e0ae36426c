"""Attribute scraping from raw HTML by locator substring.

These helpers do not parse markup. They look for ``key="value"`` (or the
single-quoted form) near a known piece of text and return the value.
"""


class MissingFieldError(LookupError):
    def __init__(self, key: str, locator: str):
        super().__init__(f"Missing {key} near {locator!r}")
        self.key = key
        self.locator = locator


def _value_after(body: str, key: str, key_pos: int, locator: str) -> str:
    if key_pos < 0:
        raise MissingFieldError(key, locator)
    start = key_pos + len(key) + 2  # skip '="'
    quote = body[start - 1:start]
    if not quote:
        raise MissingFieldError(key, locator)
    end = body.find(quote, start)
    if end < 0:
        raise MissingFieldError(key, locator)
    return body[start:end]


def extract(body: str, key: str, locator: str) -> str:
    """Value of the first ``key`` attribute at or after ``locator``."""
    anchor = max(body.find(locator), 0)
    return _value_after(body, key, body.find(key, anchor), locator)


def extract_reverse(body: str, key: str, locator: str) -> str:
    """Like :func:`extract` for markup where the attribute precedes the locator."""
    anchor = body.find(locator)
    if anchor < 0:
        raise MissingFieldError(key, locator)
    return _value_after(body, key, body.rfind(key, 0, anchor + len(key)), locator)


def get_form_param(body: str, locator: str) -> str:
    return extract(body, "value", locator)
