"""
Tests for the structured endpoint client and the markup parsers.
"""
import asyncio

import httpx
import pytest

from . import reddit
from .models import RateLimitedError, UpstreamError

LISTING_HTML = """
<html><body>
<div id="siteTable">
  <div class="thing link" data-fullname="t3_abc123" data-author="opUser"
       data-permalink="/r/FashionReps/comments/abc123/nike_hoodie/" data-timestamp="1700000000000">
    <a class="title" href="/r/FashionReps/comments/abc123/nike_hoodie/">Nike hoodie W2C $120</a>
    <span class="linkflairlabel">W2C</span>
  </div>
  <div class="thing link promoted" data-fullname="t3_promo1" data-promoted="true"
       data-permalink="/r/ad/comments/promo1/">
    <a class="title" href="https://ads.example.com">Buy now</a>
  </div>
  <div class="thing link" data-fullname="t3_def456"
       data-permalink="https://old.reddit.com/r/FashionReps/comments/def456/qc/">
    <a class="title" href="/r/FashionReps/comments/def456/qc/">QC Jordan 4</a>
    <a class="author" href="/user/other">other</a>
    <time datetime="2023-11-14T22:13:20+00:00">1 day ago</time>
  </div>
</div>
</body></html>
"""

POST_HTML = """
<html><body>
<div class="thing link">
  <a class="title" href="https://old.reddit.com/r/FashionReps/comments/abc123/nike_hoodie/">Nike hoodie W2C $120</a>
  <span class="linkflairlabel">W2C</span>
  <a class="author" href="/user/opUser">opUser</a>
  <time datetime="2023-11-14T22:13:20+00:00">1 day ago</time>
  <div class="expando"><div class="usertext-body"><p>Check
    <a href="https://seller.com/nike/hoodie">this</a></p>
    <img src="https://i.redd.it/photo.jpg"></div></div>
</div>
<div class="commentarea">
  <div class="comment" data-fullname="t1_c1" data-author="someone">
    <div class="usertext-body"><p>Where? https://other-seller.com/item/9</p></div>
    <div class="child">
      <div class="comment" data-fullname="t1_c2" data-author="opUser">
        <div class="usertext-body"><p>Here https://seller.com/nike/hoodie</p></div>
        <div class="child">
          <div class="comment" data-fullname="t1_c3" data-author="opUser">
            <div class="usertext-body"><p>deep reply</p></div>
          </div>
        </div>
      </div>
      <div class="comment" data-fullname="t1_c4" data-author="stranger">
        <div class="usertext-body"><p>not the op</p></div>
      </div>
    </div>
  </div>
  <div class="comment">
    <a class="author" href="/user/late">late</a>
    <div class="usertext-body"><p>no fullname</p></div>
  </div>
</div>
</body></html>
"""


def _comment(cid, author, body, replies=None):
    return {
        "kind": "t1",
        "data": {
            "id": cid,
            "author": author,
            "body": body,
            "replies": {"kind": "Listing", "data": {"children": replies or []}} if replies else "",
        },
    }


def test_parse_listing_html_skips_promoted():
    entries = reddit.parse_listing_html(LISTING_HTML)
    assert [e.id for e in entries] == ["abc123", "def456"]

    first = entries[0]
    assert first.permalink == "/r/FashionReps/comments/abc123/nike_hoodie/"
    assert first.author == "opUser"
    assert first.created_utc == 1700000000
    assert first.flair == "W2C"
    assert first.title == "Nike hoodie W2C $120"
    assert first.raw is None

    second = entries[1]
    assert second.permalink == "/r/FashionReps/comments/def456/qc/"
    assert second.author == "other"
    assert second.created_utc == 1700000000


def test_parse_post_html_fields():
    assert reddit.parse_html_title(POST_HTML) == "Nike hoodie W2C $120"
    assert reddit.parse_html_author(POST_HTML) == "opUser"
    assert reddit.parse_html_created_utc(POST_HTML) == 1700000000
    assert reddit.parse_html_permalink(POST_HTML) == "/r/FashionReps/comments/abc123/nike_hoodie/"
    assert reddit.parse_html_flair(POST_HTML) == "W2C"
    assert "Check" in reddit.parse_html_body(POST_HTML)


def test_parse_html_comments_top_level_and_op_replies():
    comments = reddit.parse_html_comments(POST_HTML, "opUser")
    assert [c.id for c in comments] == ["c1", "c2", "html-4"]
    assert comments[1].is_op
    assert not comments[0].is_op
    assert comments[2].author == "late"


def test_parse_html_media_and_links():
    media = reddit.parse_html_media(POST_HTML)
    assert [m.url for m in media] == ["https://i.redd.it/photo.jpg"]

    links = reddit.extract_html_links(POST_HTML)
    assert "https://seller.com/nike/hoodie" in links
    assert "https://other-seller.com/item/9" in links


def test_flatten_comments_keeps_op_direct_replies():
    payload = [
        {"data": {"children": [{"data": {"id": "abc123"}}]}},
        {"data": {"children": [
            _comment("c1", "someone", "W2C?", replies=[
                _comment("c2", "opUser", "https://seller.com/x"),
                _comment("c3", "stranger", "me too"),
            ]),
            _comment("c4", "opUser", "QC pics"),
            {"kind": "more", "data": {"children": ["c9"]}},
            _comment("c5", "ghost", ""),
        ]}},
    ]
    comments = reddit.flatten_comments(payload, "opUser")
    assert [c.id for c in comments] == ["c1", "c2", "c4"]
    assert [c.is_op for c in comments] == [False, True, True]


def test_extract_media_kinds():
    post = {
        "preview": {"images": [{"source": {"url": "https://preview.redd.it/a.png?width=640&amp;s=1"}}]},
        "gallery_data": {"items": [{"media_id": "m1"}, {"media_id": "m2"}]},
        "media_metadata": {
            "m1": {"e": "Image", "s": {"u": "https://preview.redd.it/b.jpg"}},
            "m2": {"e": "AnimatedImage", "s": {"gif": "https://i.redd.it/c.gif"}},
        },
        "secure_media": {"reddit_video": {"fallback_url": "https://v.redd.it/d/DASH_720.mp4"}},
        "url_overridden_by_dest": "https://i.redd.it/e.jpeg",
    }
    media = reddit.extract_media(post)
    assert [(m.url, m.kind) for m in media] == [
        ("https://preview.redd.it/a.png?width=640&s=1", "image"),
        ("https://preview.redd.it/b.jpg", "image"),
        ("https://i.redd.it/c.gif", "gif"),
        ("https://v.redd.it/d/DASH_720.mp4", "video"),
        ("https://i.redd.it/e.jpeg", "image"),
    ]


def test_extract_media_handles_missing_fields():
    assert reddit.extract_media({}) == []
    assert reddit.extract_media({"preview": None, "media_metadata": None}) == []


def test_fetch_listing_json_retries_rate_limits(cfg):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(429)
        return httpx.Response(200, json={"data": {"children": [
            {"kind": "t3", "data": {"id": "abc123", "permalink": "/r/x/comments/abc123/"}},
        ]}})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await reddit.fetch_listing_json(client, cfg)

    posts = asyncio.run(run())
    assert len(calls) == 3
    assert [p["id"] for p in posts] == ["abc123"]
    assert calls[0].headers["User-Agent"] == cfg.USER_AGENT


def test_fetch_listing_json_gives_up_after_three_attempts(cfg):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await reddit.fetch_listing_json(client, cfg)

    with pytest.raises(RateLimitedError):
        asyncio.run(run())
    assert len(calls) == 3


def test_fetch_listing_json_does_not_retry_server_errors(cfg):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await reddit.fetch_listing_json(client, cfg)

    with pytest.raises(UpstreamError):
        asyncio.run(run())
    assert len(calls) == 1


def test_fetch_post_json_rejects_bad_shape(cfg):
    def handler(request):
        return httpx.Response(200, json={"data": {}})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await reddit.fetch_post_json(client, "/r/x/comments/abc123/", cfg)

    with pytest.raises(UpstreamError):
        asyncio.run(run())


def test_listing_retry_waits_grow_with_attempts(cfg):
    """The wait before retry n is n x backoff."""
    from tenacity import RetryCallState as RetryState

    cfg.LISTING_RETRY_BACKOFF_S = 2.0
    retrying = reddit.listing_retrying(cfg)
    waits = []
    for attempt_number in (1, 2):
        state = RetryState(retrying, None, (), {})
        state.attempt_number = attempt_number
        waits.append(retrying.wait(state))
    assert waits == [2.0, 4.0]
    assert retrying.stop(RetryState(retrying, None, (), {})) is False


def test_rate_limit_is_an_upstream_error():
    from .models import ScraperError

    assert issubclass(RateLimitedError, UpstreamError)
    assert issubclass(UpstreamError, ScraperError)


def test_parse_html_comments_keeps_anchor_targets():
    markup = """
    <div class="comment" data-fullname="t1_c1" data-author="opUser">
      <div class="usertext-body"><p>Got it <a href="https://seller.com/nike/hoodie">here</a>
      and <a href="/r/FashionReps/wiki">wiki</a></p></div>
    </div>
    """
    comments = reddit.parse_html_comments(markup, "opUser")
    assert comments[0].body.startswith("Got it here")
    assert comments[0].links == ["https://seller.com/nike/hoodie"]


def test_parse_html_permalink_ignores_outbound_title_link():
    link_post = """
    <a class="title" href="https://i.imgur.com/abcd.jpg">Nike hoodie</a>
    <a class="bylink comments" href="https://old.reddit.com/r/FashionReps/comments/abc123/nike_hoodie/">5 comments</a>
    """
    assert reddit.parse_html_permalink(link_post) == "/r/FashionReps/comments/abc123/nike_hoodie/"

    thing = '<div class="thing" data-permalink="/r/FashionReps/comments/abc123/x/"><a class="title" href="https://i.imgur.com/a.jpg">t</a></div>'
    assert reddit.parse_html_permalink(thing) == "/r/FashionReps/comments/abc123/x/"

    assert reddit.parse_html_permalink('<a class="title" href="https://i.imgur.com/abcd.jpg">t</a>') is None
