import threading

import pytest
import requests

from rss_watch.config import WatchOptions
from rss_watch.exceptions import NetworkError
from rss_watch.fetcher import Fetcher, add_cache_buster, downgrade_scheme


def _response(status=200, body=b"<rss/>", content_type="application/rss+xml; charset=utf-8"):
    resp = requests.Response()
    resp.status_code = status
    resp._content = body
    resp.headers["Content-Type"] = content_type
    resp.encoding = "utf-8" if "charset" in content_type else None
    resp.url = "https://a.example/rss"
    return resp


class FakeSession:
    def __init__(self, outcome):
        self.headers = {}
        self.outcome = outcome
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append((url, headers, timeout))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def close(self):
        pass


def test_fetch_returns_text():
    session = FakeSession(_response(body="<rss>café</rss>".encode("utf-8")))
    fetcher = Fetcher(WatchOptions(timeout_sec=5, user_agent="ua/1"), session=session)

    assert fetcher.fetch("https://a.example/rss", bypass_cache=False) == "<rss>café</rss>"
    url, headers, timeout = session.requests[0]
    assert url == "https://a.example/rss"
    assert headers == {}
    assert timeout == 5
    assert session.headers["User-Agent"] == "ua/1"


def test_bypass_cache_adds_headers_and_buster():
    session = FakeSession(_response())
    Fetcher(session=session).fetch("https://a.example/rss?x=1", bypass_cache=True)

    url, headers, _ = session.requests[0]
    assert url.startswith("https://a.example/rss?x=1&rsswatch=")
    assert headers["Cache-Control"] == "no-cache"
    assert headers["Pragma"] == "no-cache"


def test_http_error_is_network_error():
    fetcher = Fetcher(session=FakeSession(_response(status=503)))
    with pytest.raises(NetworkError):
        fetcher.fetch("https://a.example/rss", bypass_cache=False)


def test_transport_error_is_network_error():
    fetcher = Fetcher(session=FakeSession(requests.ConnectionError("refused")))
    with pytest.raises(NetworkError) as excinfo:
        fetcher.fetch("https://a.example/rss", bypass_cache=True)
    assert "https://a.example/rss" in str(excinfo.value)


def test_timeout_is_network_error():
    fetcher = Fetcher(session=FakeSession(requests.Timeout("slow")))
    with pytest.raises(NetworkError):
        fetcher.fetch("https://a.example/rss", bypass_cache=False)


def test_downgrade_scheme():
    assert downgrade_scheme("https://a.example/rss") == "http://a.example/rss"
    assert downgrade_scheme("http://a.example/rss") == "http://a.example/rss"


def test_cache_buster_keeps_query():
    assert add_cache_buster("https://a.example/rss?x=1", token="42") == "https://a.example/rss?x=1&rsswatch=42"


def test_each_thread_gets_its_own_session():
    fetcher = Fetcher(WatchOptions(user_agent="ua/2"))
    main_session = fetcher._session()
    other = []
    worker = threading.Thread(target=lambda: other.append(fetcher._session()))
    worker.start()
    worker.join()

    assert fetcher._session() is main_session
    assert other[0] is not main_session
    assert other[0].headers["User-Agent"] == "ua/2"
    fetcher.close()
