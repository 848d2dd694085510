"""
SitemapIterator tests: traversal order, filters, sitemap indexes, reset and
error propagation.
"""

from datetime import datetime, timezone

import pytest

from sitemap_iterator import InvalidSitemapError, SitemapIterator, iter_sitemap

from sitemap_samples import sitemap, sitemapindex, url, urlset


def collect(path, options=None, fetcher=None):
    it = SitemapIterator(fetcher=fetcher)
    assert it.open(path, options) is True
    with it:
        return list(it)


# =============================================================================
# 1. URL SETS
# =============================================================================

def test_yields_every_url_in_document_order(write_sitemap):
    locs = [f"https://example.com/page-{i}" for i in range(5)]
    path = write_sitemap("urls.xml", urlset(*(url(loc) for loc in locs)))

    records = collect(path)

    assert [key for key, _ in records] == locs


def test_record_shape(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url("https://example.com/", lastmod="2024-05-01T12:00:00+00:00", priority="0.8", changefreq="daily"),
        url("https://example.com/bare"),
    ))

    (key1, data1), (key2, data2) = collect(path)

    assert key1 == "https://example.com/"
    assert data1["priority"] == 0.8
    assert data1["changefreq"] == "daily"
    assert data1["lastmod"] == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert data1["lastmod"].tzinfo is not None

    assert key2 == "https://example.com/bare"
    assert data2 == {"priority": None, "lastmod": None, "changefreq": None}


def test_extension_elements_are_reduced(write_sitemap):
    image = "<image:image><image:loc>https://example.com/a.png</image:loc></image:image>"
    path = write_sitemap("images.xml", urlset(url("https://example.com/", extra=image)))

    [(_, data)] = collect(path)

    assert data["image"] == {"loc": "https://example.com/a.png"}


def test_url_without_loc_is_skipped(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url(priority="0.9"),
        url("https://example.com/kept"),
    ))

    assert [key for key, _ in collect(path)] == ["https://example.com/kept"]


def test_empty_urlset(write_sitemap):
    path = write_sitemap("empty.xml", urlset())

    it = SitemapIterator()
    assert it.open(path)
    it.reset()

    assert it.valid() is False
    it.close()


# =============================================================================
# 2. FILTERS
# =============================================================================

def test_minimum_priority(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url("https://example.com/low", priority="0.3"),
        url("https://example.com/none"),
        url("https://example.com/equal", priority="0.5"),
        url("https://example.com/high", priority="0.9"),
        url("https://example.com/zero", priority="0.0"),
    ))

    records = collect(path, {"minimum_priority": 0.5})

    assert [key for key, _ in records] == [
        "https://example.com/none",
        "https://example.com/equal",
        "https://example.com/high",
    ]


def test_priority_filter_uses_priority_not_lastmod(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url("https://example.com/old-low", lastmod="2001-01-01", priority="0.1"),
    ))

    assert collect(path, {"minimum_priority": 0.5}) == []


def test_modified_date_time(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url("https://example.com/equal", lastmod="2024-01-01T00:00:00+00:00"),
        url("https://example.com/before", lastmod="2023-12-31T23:59:59+00:00"),
        url("https://example.com/after", lastmod="2024-01-01T00:00:01+00:00"),
        url("https://example.com/offset-after", lastmod="2024-01-01T02:00:00+01:00"),
        url("https://example.com/offset-before", lastmod="2024-01-01T00:30:00+01:00"),
        url("https://example.com/undated"),
    ))

    records = collect(path, {"modified_date_time": "2024-01-01T00:00:00+00:00"})

    assert [key for key, _ in records] == [
        "https://example.com/after",
        "https://example.com/offset-after",
        "https://example.com/undated",
    ]


def test_filters_combined(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url("https://example.com/new-high", lastmod="2024-02-01T00:00:00Z", priority="0.9"),
        url("https://example.com/new-low", lastmod="2024-02-01T00:00:00Z", priority="0.1"),
        url("https://example.com/old-high", lastmod="2023-02-01T00:00:00Z", priority="0.9"),
    ))

    records = collect(path, {
        "modified_date_time": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "minimum_priority": 0.5,
    })

    assert [key for key, _ in records] == ["https://example.com/new-high"]


# =============================================================================
# 3. SITEMAP INDEXES
# =============================================================================

def test_index_yields_sub_sitemaps_in_reference_order(write_sitemap):
    first = write_sitemap("first.xml", urlset(url("https://example.com/a"), url("https://example.com/b")))
    second = write_sitemap("second.xml", urlset(url("https://example.com/c")))
    index = write_sitemap("index.xml", sitemapindex(sitemap(first), sitemap(second)))

    assert [key for key, _ in collect(index)] == [
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/c",
    ]


def test_index_lastmod_filter_prunes_without_opening(write_sitemap, recording_fetcher):
    old = write_sitemap("old.xml", urlset(url("https://example.com/old")))
    new = write_sitemap("new.xml", urlset(url("https://example.com/new", lastmod="2024-03-01T00:00:00Z")))
    index = write_sitemap("index.xml", sitemapindex(
        sitemap(old, lastmod="2023-06-01T00:00:00+00:00"),
        sitemap(new, lastmod="2024-03-01T00:00:00+00:00"),
    ))

    records = collect(index, {"modified_date_time": "2024-01-01T00:00:00Z"}, fetcher=recording_fetcher)

    assert [key for key, _ in records] == ["https://example.com/new"]
    assert old not in recording_fetcher.opened
    assert recording_fetcher.opened == [index, new]


def test_nested_indexes(write_sitemap):
    leaf = write_sitemap("leaf.xml", urlset(url("https://example.com/deep")))
    middle = write_sitemap("middle.xml", sitemapindex(sitemap(leaf)))
    top_urls = write_sitemap("top-urls.xml", urlset(url("https://example.com/shallow")))
    index = write_sitemap("index.xml", sitemapindex(sitemap(middle), sitemap(top_urls)))

    assert [key for key, _ in collect(index)] == ["https://example.com/deep", "https://example.com/shallow"]


def test_unreachable_sub_sitemap_is_skipped(write_sitemap, tmp_path):
    good = write_sitemap("good.xml", urlset(url("https://example.com/ok")))
    index = write_sitemap("index.xml", sitemapindex(
        sitemap(str(tmp_path / "missing.xml")),
        sitemap(),
        sitemap(good),
    ))

    assert [key for key, _ in collect(index)] == ["https://example.com/ok"]


def test_gzipped_sub_sitemap(write_sitemap):
    packed = write_sitemap("packed.xml.gz", urlset(url("https://example.com/gz")), compress=True)
    index = write_sitemap("index.xml", sitemapindex(sitemap(packed)))

    assert [key for key, _ in collect(index)] == ["https://example.com/gz"]


def test_max_depth_bounds_self_reference(write_sitemap, tmp_path):
    index_path = str(tmp_path / "loop.xml")
    leaf = write_sitemap("leaf.xml", urlset(url("https://example.com/x")))
    write_sitemap("loop.xml", sitemapindex(sitemap(index_path), sitemap(leaf)))

    records = collect(index_path, {"max_depth": 3})

    # Depth 3 frame can open nothing; depths 2 and 1 each reach the leaf
    assert [key for key, _ in records] == ["https://example.com/x", "https://example.com/x"]


# =============================================================================
# 4. CURSOR PROTOCOL
# =============================================================================

def test_cursor_protocol(write_sitemap):
    path = write_sitemap("urls.xml", urlset(url("https://example.com/1"), url("https://example.com/2")))
    it = SitemapIterator()
    assert it.open(path)

    it.reset()
    assert it.valid() and it.key() == "https://example.com/1"
    it.advance()
    assert it.valid() and it.key() == "https://example.com/2"
    assert it.current()["changefreq"] is None
    it.advance()
    assert it.valid() is False
    # Key and value are stale after the end
    assert it.key() == "https://example.com/2"

    assert it.close() is True


def test_second_reset_restarts_from_root(write_sitemap, recording_fetcher):
    first = write_sitemap("first.xml", urlset(url("https://example.com/a")))
    second = write_sitemap("second.xml", urlset(url("https://example.com/b"), url("https://example.com/c")))
    index = write_sitemap("index.xml", sitemapindex(sitemap(first), sitemap(second)))

    it = SitemapIterator(fetcher=recording_fetcher)
    assert it.open(index)

    first_pass = list(it)
    second_pass = list(it)

    it.reset()
    it.advance()
    assert it.key() == "https://example.com/b"
    it.reset()
    assert it.key() == "https://example.com/a"
    it.close()

    assert [key for key, _ in first_pass] == ["https://example.com/a", "https://example.com/b", "https://example.com/c"]
    assert second_pass == first_pass
    assert recording_fetcher.opened.count(index) == 4


def test_first_reset_does_not_reopen(write_sitemap, recording_fetcher):
    path = write_sitemap("urls.xml", urlset(url("https://example.com/a")))
    it = SitemapIterator(fetcher=recording_fetcher)
    it.open(path)

    it.reset()

    assert recording_fetcher.opened == [path]
    it.close()


def test_open_missing_root_returns_false(tmp_path):
    it = SitemapIterator()

    assert it.open(str(tmp_path / "missing.xml")) is False
    assert it.valid() is False
    it.reset()
    assert it.valid() is False
    assert it.close() is True


def test_unopened_iterator_raises():
    it = SitemapIterator()
    with pytest.raises(RuntimeError):
        it.advance()
    with pytest.raises(RuntimeError):
        it.reset()
    assert it.close() is True


def test_close_is_idempotent(write_sitemap):
    path = write_sitemap("urls.xml", urlset(url("https://example.com/a"), url("https://example.com/b")))
    it = SitemapIterator()
    it.open(path)
    it.reset()

    assert it.close() is True
    assert it.close() is True


def test_close_releases_own_fetcher(write_sitemap, monkeypatch):
    path = write_sitemap("urls.xml", urlset(url("https://example.com/a")))
    it = SitemapIterator()
    it.open(path)
    closed = []
    monkeypatch.setattr(it._stack.fetcher, "close", lambda: closed.append(True))

    it.reset()
    assert it.close() is True
    assert it.close() is True

    assert closed == [True]


def test_close_leaves_injected_fetcher_open(write_sitemap, recording_fetcher, monkeypatch):
    path = write_sitemap("urls.xml", urlset(url("https://example.com/a")))
    closed = []
    monkeypatch.setattr(recording_fetcher, "close", lambda: closed.append(True))

    it = SitemapIterator(fetcher=recording_fetcher)
    it.open(path)
    it.close()

    assert closed == []


def test_invalid_options_raise(write_sitemap):
    path = write_sitemap("urls.xml", urlset())
    with pytest.raises(ValueError):
        SitemapIterator().open(path, {"minimum_priority": "high"})


def test_iter_sitemap(write_sitemap):
    path = write_sitemap("urls.xml", urlset(
        url("https://example.com/a", priority="0.2"),
        url("https://example.com/b", priority="0.7"),
    ))

    assert [key for key, _ in iter_sitemap(path, minimum_priority=0.5)] == ["https://example.com/b"]


def test_iter_sitemap_missing_root(tmp_path):
    assert list(iter_sitemap(str(tmp_path / "missing.xml"))) == []


# =============================================================================
# 5. ERRORS
# =============================================================================

def test_truncated_document_raises(write_sitemap):
    path = write_sitemap("broken.xml", urlset(url("https://example.com/a"))[:-40])
    it = SitemapIterator()
    it.open(path)

    with pytest.raises(InvalidSitemapError):
        it.reset()
        while it.valid():
            it.advance()
    it.close()


def test_malformed_sub_sitemap_raises(write_sitemap):
    broken = write_sitemap("broken.xml", "<urlset><url><loc>https://example.com/a</loc></badurl></urlset>")
    index = write_sitemap("index.xml", sitemapindex(sitemap(broken)))

    with pytest.raises(InvalidSitemapError) as excinfo:
        collect(index)

    assert excinfo.value.uri == broken


def test_empty_document_raises(write_sitemap):
    path = write_sitemap("empty.xml", "")
    it = SitemapIterator()
    assert it.open(path) is True

    with pytest.raises(InvalidSitemapError):
        it.reset()
    it.close()
