# newsdesk/tests/test_cover_image.py
import random
import time

import pytest
import requests

from newsdesk.errors import ImageError, ObjectStoreError
from newsdesk.images.cover_image import (
    CoverImageResolver,
    declared_charset,
    extract_markdown_images,
    extract_og_images,
    is_likely_logo,
    select_candidate,
)
from newsdesk.images.object_store import S3ObjectStore, build_object_key
from newsdesk.tests.fakes import FakeObjectStore, FakeResponse, FakeSession

PLACEHOLDER = "https://cdn.test/placeholder.jpg"
PAGE = "https://site.test/noticias/show"
PHOTO = "https://site.test/uploads/foto-palco.jpg"
JPEG = b"\xff\xd8\xff" + b"0" * 2048


def _html(*images):
    metas = "".join(f'<meta property="og:image" content="{u}">' for u in images)
    return f"<html><head>{metas}</head><body></body></html>".encode()


def _image_response(body=JPEG, content_type="image/jpeg", headers=None):
    return FakeResponse(body=body, headers={"content-type": content_type, **(headers or {})})


def _resolver(routes, **kw):
    store = FakeObjectStore()
    resolver = CoverImageResolver(store, PLACEHOLDER, session=FakeSession(routes), **kw)
    return resolver, store


# ---------- Heurística de logo ----------
@pytest.mark.parametrize("url", [
    "https://s.test/wp-content/uploads/logo-site.png",
    "https://s.test/favicon.ico",
    "https://s.test/img/brand-header.jpg",
    "https://s.test/uploads/cropped-marca-removebg-preview.png",
    "https://s.test/uploads/banner-300x40.jpg",
    "https://s.test/uploads/foto-100x100.jpg",
    "",
    None,
])
def test_is_likely_logo_true(url):
    assert is_likely_logo(url)


@pytest.mark.parametrize("url", [
    PHOTO,
    "https://s.test/uploads/foto-1200x630.jpg",
    "https://s.test/2025/01/festival.webp",
])
def test_is_likely_logo_false(url):
    assert not is_likely_logo(url)


def test_select_candidate_rules():
    logo = "https://s.test/logo.png"
    assert select_candidate([]) is None
    assert select_candidate([logo]) == logo                       # única: usada mesmo sendo logo
    assert select_candidate([logo, PHOTO]) == PHOTO                # primeira que não é logo
    assert select_candidate([logo, "https://s.test/favicon.png"]) == logo
    assert select_candidate([logo, "https://s.test/favicon.png"], fallback_to_logo=False) is None


def test_select_candidate_never_returns_logo_when_alternative_exists():
    rnd = random.Random(7)
    logos = ["https://s.test/logo-%d.png" % i for i in range(5)]
    photos = ["https://s.test/uploads/foto-%d.jpg" % i for i in range(5)]
    for _ in range(50):
        pool = rnd.sample(logos, rnd.randint(1, 5)) + rnd.sample(photos, rnd.randint(1, 5))
        rnd.shuffle(pool)
        assert not is_likely_logo(select_candidate(pool))


# ---------- Parsing ----------
def test_extract_og_images_both_attribute_orders():
    html = ('<meta content="/a.jpg" property="og:image" />'
            "<meta name='og:image' content='https://cdn.test/b.jpg'>"
            '<meta property="og:title" content="x">'
            '<meta property="og:image" content="javascript:alert(1)">')
    assert extract_og_images(html, PAGE) == ["https://site.test/a.jpg", "https://cdn.test/b.jpg"]


def test_extract_markdown_images():
    md = ('Texto ![capa](/img/capa.jpg "Título") e ![](<https://cdn.test/x.png>)\n'
          '<img class="a" src="//cdn.test/y.webp">')
    assert extract_markdown_images(md, PAGE) == [
        "https://site.test/img/capa.jpg",
        "https://cdn.test/x.png",
        "https://cdn.test/y.webp",
    ]


# ---------- Pipeline ----------
def test_resolve_uses_og_image_and_uploads():
    resolver, store = _resolver({
        PAGE: FakeResponse(body=_html("https://site.test/logo.png", PHOTO)),
        PHOTO: _image_response(),
    })
    url = resolver.resolve(PAGE)
    assert url.startswith("https://bucket.s3.")
    assert store.uploads == [(JPEG, "image/jpeg")]


def test_resolve_falls_back_to_markdown_image():
    resolver, store = _resolver({
        PAGE: FakeResponse(body=b"<html>sem meta</html>"),
        PHOTO: _image_response(content_type="image/jpeg; charset=binary"),
    })
    url = resolver.resolve(PAGE, markdown=f"# Notícia\n![foto]({PHOTO})")
    assert url != PLACEHOLDER
    assert store.uploads[0][1] == "image/jpeg"


def test_resolve_html_error_still_tries_markdown():
    resolver, store = _resolver({
        PAGE: requests.ConnectionError("boom"),
        PHOTO: _image_response(),
    })
    assert resolver.resolve(PAGE, markdown=f"![x]({PHOTO})") != PLACEHOLDER


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=403),
    _image_response(content_type="text/html"),
    _image_response(headers={"content-length": str(10 * 1024 * 1024)}),
    _image_response(body=b"0" * 4096),
    requests.Timeout("lento"),
])
def test_resolve_invalid_download_returns_placeholder(response):
    resolver, store = _resolver({PAGE: FakeResponse(body=_html(PHOTO)), PHOTO: response}, max_image_bytes=3000)
    assert resolver.resolve(PAGE) == PLACEHOLDER
    assert store.uploads == []


def test_resolve_upload_failure_returns_placeholder():
    class BrokenStore(FakeObjectStore):
        def upload(self, data, content_type):
            raise ObjectStoreError("sem bucket")

    resolver = CoverImageResolver(BrokenStore(), PLACEHOLDER, session=FakeSession({
        PAGE: FakeResponse(body=_html(PHOTO)), PHOTO: _image_response(),
    }))
    assert resolver.resolve(PAGE) == PLACEHOLDER


def test_resolve_without_page_or_image_returns_placeholder():
    resolver, _ = _resolver({PAGE: FakeResponse(body=b"<html></html>")})
    assert resolver.resolve(None) == PLACEHOLDER
    assert resolver.resolve(PAGE, markdown="sem imagens") == PLACEHOLDER


def test_fetch_html_size_cap():
    resolver, _ = _resolver({PAGE: FakeResponse(body=b"x" * 5000)}, max_html_bytes=1000)
    with pytest.raises(ImageError):
        resolver.fetch_html(PAGE)


# ---------- Object store ----------
def test_build_object_key_format():
    key = build_object_key("image/webp", prefix="posts/", now_ms=1700000000000, rng=random.Random(1))
    assert key.startswith("posts/auto-1700000000000-")
    assert key.endswith(".webp")
    assert build_object_key("application/octet-stream", now_ms=1).endswith(".jpg")


def test_s3_object_store_uploads_with_public_url():
    class FakeS3:
        def __init__(self):
            self.calls = []

        def put_object(self, **kwargs):
            self.calls.append(kwargs)

    s3 = FakeS3()
    store = S3ObjectStore("meu-bucket", region="sa-east-1", client=s3)
    url = store.upload(b"data", "image/png")
    key = s3.calls[0]["Key"]
    assert url == f"https://meu-bucket.s3.sa-east-1.amazonaws.com/{key}"
    assert s3.calls[0]["ContentType"] == "image/png"
    assert key.endswith(".png")


def test_s3_object_store_without_bucket_raises():
    with pytest.raises(ObjectStoreError):
        S3ObjectStore(None).upload(b"x", "image/png")


# ---------- Charset / entidades / prazo total ----------
def test_fetch_html_without_charset_decodes_utf8():
    page = '<meta property="og:image" content="https://cdn.test/ação.jpg">'.encode("utf-8")
    resolver, _ = _resolver({PAGE: FakeResponse(body=page, headers={"content-type": "text/html"})})
    assert extract_og_images(resolver.fetch_html(PAGE), PAGE) == ["https://cdn.test/ação.jpg"]


def test_fetch_html_honours_declared_charset():
    page = '<meta property="og:image" content="https://cdn.test/ação.jpg">'.encode("latin-1")
    resolver, _ = _resolver({PAGE: FakeResponse(body=page, headers={"content-type": "text/html; charset=ISO-8859-1"})})
    assert extract_og_images(resolver.fetch_html(PAGE), PAGE) == ["https://cdn.test/ação.jpg"]


@pytest.mark.parametrize("header,expected", [
    (None, "utf-8"),
    ("text/html", "utf-8"),
    ('text/html; charset="windows-1252"', "cp1252"),
    ("text/html; charset=nao-existe", "utf-8"),
])
def test_declared_charset(header, expected):
    assert declared_charset(header) == expected


def test_og_image_html_entities_are_unescaped():
    html = '<meta property="og:image" content="https://cdn.test/foto.jpg?w=1200&amp;h=630">'
    assert extract_og_images(html, PAGE) == ["https://cdn.test/foto.jpg?w=1200&h=630"]


def test_download_deadline_does_not_wait_for_next_chunk():
    stalled = FakeResponse(body=JPEG, headers={"content-type": "image/jpeg"}, chunk_size=512, stall=10.0)
    resolver, _ = _resolver({PHOTO: stalled}, download_timeout=0.3)

    started = time.monotonic()
    with pytest.raises(ImageError, match="Timeout"):
        resolver.download_image(PHOTO)
    assert time.monotonic() - started < 2.0
    assert stalled.closed.is_set()


def test_html_deadline_falls_back_to_placeholder():
    stalled = FakeResponse(body=_html(PHOTO) * 10, chunk_size=64, stall=10.0)
    resolver, store = _resolver({PAGE: stalled}, html_timeout=0.3)

    started = time.monotonic()
    assert resolver.resolve(PAGE) == PLACEHOLDER
    assert time.monotonic() - started < 2.0
    assert store.uploads == []
