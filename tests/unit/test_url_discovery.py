from __future__ import annotations

import asyncio

from fakes import NoSitemapDiscoverer

from siteintel.crawler.url_discovery import (
    cluster_urls,
    extract_child_sitemaps,
    extract_locs,
    is_sitemap_document,
    pick_samples,
)
from siteintel.domain.models import PageType

ORIGIN = "https://shop.example.com"

URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://shop.example.com/</loc></url>
  <url><loc>https://shop.example.com/sofas</loc></url>
  <url><loc>https://shop.example.com/beds</loc></url>
  <url><loc>https://shop.example.com/sofas/3-seater/SF1001</loc></url>
  <url><loc>https://shop.example.com/beds/king/BD2002</loc></url>
  <url><loc>https://shop.example.com/pages/privacy-policy</loc></url>
  <url><loc>https://other.example.org/sofas</loc></url>
</urlset>"""

INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://shop.example.com/sitemap_products_1.xml</loc></sitemap>
  <sitemap><loc>https://shop.example.com/sitemap_missing.xml</loc></sitemap>
</sitemapindex>"""


def test_extracts_locs_and_child_sitemaps() -> None:
    assert len(extract_locs(URLSET)) == 7
    assert extract_child_sitemaps(URLSET) == []
    assert extract_child_sitemaps(INDEX) == [
        "https://shop.example.com/sitemap_products_1.xml",
        "https://shop.example.com/sitemap_missing.xml",
    ]


def test_cluster_drops_foreign_and_utility_urls() -> None:
    buckets = cluster_urls(extract_locs(URLSET), "shop.example.com")

    assert buckets[PageType.HOME] == [f"{ORIGIN}/"]
    assert buckets[PageType.CATEGORY] == [f"{ORIGIN}/sofas", f"{ORIGIN}/beds"]
    assert len(buckets[PageType.PRODUCT]) == 2
    assert PageType.OTHER not in buckets


def test_pick_samples_spreads_across_subtrees() -> None:
    urls = [f"{ORIGIN}/sofas/{i}/SF100{i}" for i in range(5)] + [f"{ORIGIN}/beds/{i}/BD200{i}" for i in range(5)]

    picked = pick_samples(urls, 3)

    assert picked == [urls[0], urls[5], urls[1]]
    assert pick_samples(urls[:2], 3) == urls[:2]


def test_discover_follows_sitemap_index() -> None:
    discoverer = NoSitemapDiscoverer(
        sitemaps={
            f"{ORIGIN}/sitemap.xml": INDEX,
            f"{ORIGIN}/sitemap_products_1.xml": URLSET,
        },
        samples_per_type=1,
    )
    lines: list[str] = []

    found = asyncio.run(discoverer.discover(ORIGIN, "shop.example.com", log=lines.append))

    assert found.sitemap_found
    assert found.samples[PageType.CATEGORY] == [f"{ORIGIN}/sofas"]
    assert len(found.samples[PageType.PRODUCT]) == 1
    assert f"{ORIGIN}/sitemap_missing.xml" in discoverer.fetched
    assert any("sitemap index with 2 child sitemaps" in line for line in lines)


def test_discover_falls_back_to_seed_urls() -> None:
    discoverer = NoSitemapDiscoverer()

    found = asyncio.run(
        discoverer.discover(ORIGIN, "shop.example.com", seed_urls=[f"{ORIGIN}/sofas", f"{ORIGIN}/beds/king/BD2002"])
    )

    assert not found.sitemap_found
    assert found.buckets[PageType.CATEGORY] == [f"{ORIGIN}/sofas"]
    assert found.buckets[PageType.PRODUCT] == [f"{ORIGIN}/beds/king/BD2002"]
    assert found.total == 2


SOFT_404 = """<!DOCTYPE html>
<html><head><title>Page not found</title></head>
<body><a href="https://shop.example.com/sofas"><loc>https://shop.example.com/sofas</loc></a></body></html>"""


def test_only_urlset_and_index_roots_count_as_sitemaps() -> None:
    assert is_sitemap_document(URLSET)
    assert is_sitemap_document(INDEX)
    assert not is_sitemap_document(SOFT_404)
    assert not is_sitemap_document("User-agent: *\nDisallow:")


def test_discover_skips_html_served_at_a_sitemap_path() -> None:
    discoverer = NoSitemapDiscoverer(
        sitemaps={
            f"{ORIGIN}/sitemap.xml": SOFT_404,
            f"{ORIGIN}/sitemap_index.xml": URLSET,
        },
    )
    lines: list[str] = []

    found = asyncio.run(discoverer.discover(ORIGIN, "shop.example.com", log=lines.append))

    assert found.sitemap_found
    assert f"{ORIGIN}/sitemap_index.xml" in discoverer.fetched
    assert len(found.buckets[PageType.PRODUCT]) == 2
    assert any("not a sitemap document" in line for line in lines)
