from datetime import datetime, timezone

from conftest import make_rss
from rss_watch.models import FeedItem
from rss_watch.parser import render_items_document
from rss_watch.redirect import resolve_redirect

ATOM = """<feed xmlns="http://www.w3.org/2005/Atom">
<title>Atom example</title>
<link href="https://atom.example/"/>
<updated>2021-09-07T10:00:00Z</updated>
<id>urn:example:feed</id>
<entry><title>Entry one</title><link href="https://atom.example/1"/><id>urn:example:1</id>
<updated>2021-09-07T10:00:00Z</updated><summary>Hello</summary></entry>
</feed>"""


def test_validate_accepts_rss_and_atom(parser):
    assert parser.validate(make_rss()) is None
    assert parser.validate(ATOM) is None


def test_validate_rejects_non_feeds(parser):
    assert parser.validate("") == "Empty document"
    assert parser.validate("just some text") is not None
    assert parser.validate("<html><body><p>Hi</p></body></html>") is not None


def test_pub_date(parser):
    assert parser.parse_pub_date(make_rss()) == datetime(2021, 9, 6, 16, 45, tzinfo=timezone.utc)
    assert parser.parse_pub_date(ATOM) == datetime(2021, 9, 7, 10, 0, tzinfo=timezone.utc)
    assert parser.parse_pub_date(make_rss(pub_date=None)) is None


def test_extract_body_starts_at_first_item(parser):
    body = parser.extract_body(make_rss())
    assert body.startswith("<item>")
    assert "<title>Example</title>" not in body
    assert parser.extract_body(ATOM).startswith("<entry>")


def test_extract_body_without_items_is_whole_document(parser):
    text = make_rss(items=())
    assert parser.extract_body(text) == text.strip()


def test_extract_items(parser):
    text = make_rss(items=(("One", "https://example.com/1"), ("Two", "https://example.com/2")))
    items = parser.extract_items(text, source="Example")
    assert [i.title for i in items] == ["One", "Two"]
    assert items[0].link == "https://example.com/1"
    assert items[0].guid == "https://example.com/1"
    assert items[0].source == "Example"


def test_channel_link(parser):
    assert parser.channel_link(make_rss()) == "https://example.com/"


def test_renderable_document_escapes_title(parser):
    doc = parser.to_renderable_document(make_rss(), "News & Views")
    assert "<title>News &amp; Views</title>" in doc
    assert 'href="https://example.com/1"' in doc


def test_unified_document_lists_sources():
    items = [
        FeedItem("One", "https://a.example/1", source="Feed A"),
        FeedItem("Two", "https://b.example/2", source="Feed B",
                 published_at=datetime(2021, 9, 6, 16, 45, tzinfo=timezone.utc)),
    ]
    doc = render_items_document(items, "News", show_source=True)
    assert doc.count('<article class="item">') == 2
    assert "Feed B - 2021-09-06 16:45" in doc


class TestResolveRedirect:
    def test_marker_pair(self):
        body = "<rss><redirect><newLocation>\n  https://new.example/feed \n</newLocation></redirect></rss>"
        assert resolve_redirect(body) == "https://new.example/feed"

    def test_requires_redirect_close(self):
        assert resolve_redirect("<newLocation>https://new.example/feed</newLocation>") is None

    def test_no_markers(self):
        assert resolve_redirect(make_rss()) is None
        assert resolve_redirect(None) is None

    def test_empty_location(self):
        assert resolve_redirect("<redirect><newLocation>  </newLocation></redirect>") is None
