import logging

import pytest

from webnav.services.navigator import InvalidBaseUrlError, Navigator
from webnav.services.transport import RequestOptions, TransportResponse


def make_response(text="", status_code=200, headers=None):
    return TransportResponse(status_code=status_code, headers=list(headers or []), text=text)


class ScriptedTransport:
    """Replies from a per-URL queue and records every call."""

    def __init__(self, routes):
        self.routes = {url: list(responses) for url, responses in routes.items()}
        self.calls = []

    def fetch(self, url, options):
        self.calls.append((url, options.method, dict(options.headers), options.payload))
        queue = self.routes.get(url)
        if not queue:
            raise AssertionError(f"Unexpected URL: {url}")
        return queue.pop(0) if len(queue) > 1 else queue[0]


LOGGED_OUT = "<html>Please log in to continue</html>"
LOGGED_IN = "<html>Welcome back</html>"


def make_navigator(routes, **kwargs):
    transport = ScriptedTransport(routes)
    navigator = Navigator(
        "http://example.com/app",
        login_path="/login",
        login_payload={"user": "alice", "password": "secret"},
        logout_indicator="Please log in",
        transport=transport,
        **kwargs,
    )
    return navigator, transport


def test_base_url_without_scheme_is_rejected():
    with pytest.raises(InvalidBaseUrlError):
        Navigator("example.com/app", transport=ScriptedTransport({}))


def test_base_url_without_path_gets_trailing_slash():
    navigator = Navigator("https://example.com", transport=ScriptedTransport({}))

    assert navigator.base_url == "https://example.com/"
    assert navigator.host == "example.com"
    assert navigator.resolve("home") == "https://example.com/home"


def test_absolute_paths_are_not_prefixed():
    navigator, _ = make_navigator({})

    assert navigator.resolve("https://other.test/x") == "https://other.test/x"
    assert navigator.resolve("/home") == "http://example.com/app/home"
    assert navigator.login_url == "http://example.com/app/login"


def test_get_sends_cookie_and_login_referer_first():
    navigator, transport = make_navigator(
        {"http://example.com/app/home": [make_response(LOGGED_IN, headers=[("Set-Cookie", "sid=1; Path=/")])]}
    )

    assert navigator.get("/home") == LOGGED_IN
    assert navigator.get("/home") == LOGGED_IN

    first_headers = transport.calls[0][2]
    second_headers = transport.calls[1][2]
    assert "Cookie" not in first_headers
    assert first_headers["Referer"] == "http://example.com/app/login"
    assert second_headers["Cookie"] == "sid=1"
    assert second_headers["Referer"] == "http://example.com/app/home"
    assert navigator.referer == "http://example.com/app/home"


def test_redirect_chain_returns_last_body_and_switches_to_get():
    navigator, transport = make_navigator(
        {
            "http://example.com/app/submit": [
                make_response("r1", status_code=302, headers=[("Location", "http://example.com/app/step2")])
            ],
            "http://example.com/app/step2": [
                make_response(
                    "r2",
                    status_code=302,
                    headers=[("Set-Cookie", "step=2; Path=/"), ("location", "/app/done")],
                )
            ],
            "http://example.com/app/done": [make_response("r3")],
        }
    )

    body = navigator.post("/submit", {"a": "1"}, {"X-Test": "yes"})

    assert body == "r3"
    urls = [call[0] for call in transport.calls]
    methods = [call[1] for call in transport.calls]
    assert urls == [
        "http://example.com/app/submit",
        "http://example.com/app/step2",
        "http://example.com/app/done",
    ]
    assert methods == ["POST", "GET", "GET"]
    assert transport.calls[0][3] == {"a": "1"}
    assert transport.calls[1][3] is None
    assert transport.calls[2][2]["Referer"] == "http://example.com/app/step2"
    assert transport.calls[2][2]["Cookie"] == "step=2"
    assert transport.calls[2][2]["X-Test"] == "yes"


def test_cookies_from_every_redirect_hop_accumulate():
    navigator, _ = make_navigator(
        {
            "http://example.com/app/a": [
                make_response(
                    status_code=302,
                    headers=[
                        ("Set-Cookie", "one=1; Path=/"),
                        ("Set-Cookie", "two=2; Path=/"),
                        ("Location", "http://example.com/app/b"),
                    ],
                )
            ],
            "http://example.com/app/b": [make_response("ok", headers=[("Set-Cookie", "one=3; Path=/")])],
        }
    )

    navigator.get("/a")

    assert navigator.cookies == "one=3; two=2"
    assert navigator.last_headers == {"Set-Cookie": "one=3; Path=/"}


def test_logout_indicator_triggers_login_and_refetch():
    navigator, transport = make_navigator(
        {
            "http://example.com/app/home": [make_response(LOGGED_OUT), make_response(LOGGED_IN)],
            "http://example.com/app/login": [
                make_response("logged in", headers=[("Set-Cookie", "sid=fresh; Path=/")])
            ],
        },
        refetch_on_login=True,
    )

    body = navigator.get("/home")

    assert body == LOGGED_IN
    urls = [call[0] for call in transport.calls]
    assert urls == [
        "http://example.com/app/home",
        "http://example.com/app/login",
        "http://example.com/app/home",
    ]
    login_call = transport.calls[1]
    assert login_call[1] == "POST"
    assert login_call[3] == {"user": "alice", "password": "secret"}
    assert login_call[2]["Referer"] == "http://example.com/app/home"
    refetch_call = transport.calls[2]
    assert refetch_call[1] == "GET"
    assert refetch_call[2]["Cookie"] == "sid=fresh"
    assert refetch_call[2]["Referer"] == "http://example.com/app/login"
    assert navigator.referer == "http://example.com/app/home"


def test_logout_without_refetch_returns_original_body():
    navigator, transport = make_navigator(
        {
            "http://example.com/app/home": [make_response(LOGGED_OUT)],
            "http://example.com/app/login": [make_response("", headers=[("Set-Cookie", "sid=fresh; Path=/")])],
        }
    )

    body = navigator.get("/home")

    assert body == LOGGED_OUT
    assert [call[0] for call in transport.calls] == [
        "http://example.com/app/home",
        "http://example.com/app/login",
    ]
    assert navigator.cookies == "sid=fresh"
    assert navigator.referer == "http://example.com/app/login"


def test_logout_indicator_at_offset_zero_is_ignored():
    navigator, transport = make_navigator(
        {"http://example.com/app/home": [make_response("Please log in")]},
        refetch_on_login=True,
    )

    assert navigator.get("/home") == "Please log in"
    assert len(transport.calls) == 1


def test_empty_logout_indicator_never_triggers_login():
    transport = ScriptedTransport({"http://example.com/app/home": [make_response(LOGGED_OUT)]})
    navigator = Navigator("http://example.com/app", login_path="/login", transport=transport)

    assert navigator.get("/home") == LOGGED_OUT
    assert len(transport.calls) == 1


def test_refetched_body_is_not_checked_again():
    navigator, transport = make_navigator(
        {
            "http://example.com/app/home": [make_response(LOGGED_OUT)],
            "http://example.com/app/login": [make_response("")],
        },
        refetch_on_login=True,
    )

    assert navigator.get("/home") == LOGGED_OUT
    assert len(transport.calls) == 3


def test_refetch_replays_original_post():
    navigator, transport = make_navigator(
        {
            "http://example.com/app/save": [make_response(LOGGED_OUT), make_response("saved")],
            "http://example.com/app/login": [make_response("")],
        },
        refetch_on_login=True,
    )

    assert navigator.request("/save", RequestOptions(method="POST", payload="a=1")) == "saved"
    assert transport.calls[2][1] == "POST"
    assert transport.calls[2][3] == "a=1"


def test_transport_errors_propagate():
    class FailingTransport:
        def fetch(self, url, options):
            raise ConnectionError("boom")

    navigator = Navigator("http://example.com/", transport=FailingTransport())

    with pytest.raises(ConnectionError):
        navigator.get("home")


def test_default_headers_are_sent_on_every_request():
    transport = ScriptedTransport({"http://example.com/home": [make_response("ok")]})
    navigator = Navigator("http://example.com/", headers={"Accept-Language": "en"}, transport=transport)

    navigator.get("home")

    assert transport.calls[0][2]["Accept-Language"] == "en"


def test_debug_mode_logs_each_hop(caplog):
    navigator, _ = make_navigator(
        {"http://example.com/app/home": [make_response("ok", headers=[("Set-Cookie", "sid=1")])]},
        debug=True,
    )

    with caplog.at_level(logging.INFO, logger="webnav.services.navigator"):
        assert navigator.get("/home") == "ok"

    messages = [record.getMessage() for record in caplog.records]
    assert any("GET http://example.com/app/home" in message for message in messages)
    assert any("payload=None" in message for message in messages)
    assert any("Cookie after http://example.com/app/home: sid=1" in message for message in messages)


def test_caller_cookie_and_referer_headers_are_replaced_whatever_their_case():
    navigator, transport = make_navigator(
        {"http://example.com/app/home": [make_response("ok", headers=[("Set-Cookie", "sid=1")])]}
    )
    navigator.get("/home")

    navigator.post("/home", "a=1", {"cookie": "forged=1", "REFERER": "http://evil.test/", "X-Test": "yes"})

    sent = transport.calls[1][2]
    assert sorted(key for key in sent if key.lower() in {"cookie", "referer"}) == ["Cookie", "Referer"]
    assert sent["Cookie"] == "sid=1"
    assert sent["Referer"] == "http://example.com/app/home"
    assert sent["X-Test"] == "yes"


def test_debug_mode_logs_outgoing_payload(caplog):
    navigator, _ = make_navigator({"http://example.com/app/save": [make_response("ok")]}, debug=True)

    with caplog.at_level(logging.INFO, logger="webnav.services.navigator"):
        navigator.post("/save", {"field": "value"})

    messages = [record.getMessage() for record in caplog.records]
    assert any("POST http://example.com/app/save" in m and "payload={'field': 'value'}" in m for m in messages)
