"""
Metadata Extractor.

Maps a snapshot of a rendered page to a PreviewRecord using ordered
fallback chains over Open Graph, Twitter Card, app-link and plain meta
tags. Extraction is a pure function of the snapshot so it can be tested
without a browser.
"""

import base64
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from ..models import PreviewRecord

logger = logging.getLogger("link_preview.metadata_extractor")

TITLE_KEYS = ("og:title",)

SITE_NAME_KEYS = (
    "og:site_name",
    "application-name",
    "al:android:app_name",
    "al:ios:app_name",
    "twitter:app:name:iphone",
    "twitter:app:name:ipad",
    "twitter:app:name:googleplay",
)

DESCRIPTION_KEYS = (
    "description",
    "og:description",
    "twitter:description",
    "dc.description",
    "Description",
)

IMAGE_KEYS = (
    "og:image",
    "twitter:image",
    "image",
    "twitter:image:src",
    "og:image:url",
    "og:image:secure_url",
)

ICON_RELS = (
    "icon",
    "shortcut icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
)

_WHITESPACE_RE = re.compile(r"[ \t\n\f\r]+")


@dataclass
class PageSnapshot:
    """
    State of a rendered page needed for extraction.

    Attributes:
        url: Final location of the page (after redirects)
        title: Document title, whitespace-collapsed
        meta: Meta tag content keyed by ``name``/``property``; the first
            element in document order wins, as with querySelector
        links: Absolute ``href`` of the first ``<link>`` per exact ``rel`` value
    """

    url: str
    title: str = ""
    meta: Dict[str, str] = field(default_factory=dict)
    links: Dict[str, str] = field(default_factory=dict)

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @classmethod
    def from_html(cls, html: str, url: str) -> "PageSnapshot":
        """
        Build a snapshot from serialized DOM.

        Args:
            html: Rendered HTML (e.g. from ``page.content()``)
            url: Final page URL, used to resolve relative links

        Returns:
            PageSnapshot
        """
        # Keep rel as the raw attribute string so matching is exact
        soup = BeautifulSoup(html, "lxml", multi_valued_attributes=None)

        base_url = url
        base_tag = soup.find("base", href=True)
        if base_tag:
            base_url = urljoin(url, base_tag["href"].strip())

        meta: Dict[str, str] = {}
        for tag in soup.find_all("meta"):
            content = tag.get("content") or ""
            for attr in ("name", "property"):
                key = tag.get(attr)
                if key and key not in meta:
                    meta[key] = content

        links: Dict[str, str] = {}
        for tag in soup.find_all("link"):
            rel = tag.get("rel")
            if rel is None:
                continue
            # rel values compare ASCII case-insensitively in HTML
            rel = rel.lower()
            if rel in links:
                continue
            href = tag.get("href")
            links[rel] = urljoin(base_url, href.strip()) if href is not None else ""

        title = ""
        title_tag = soup.find("title")
        if title_tag:
            title = _WHITESPACE_RE.sub(" ", title_tag.get_text()).strip()

        return cls(url=url, title=title, meta=meta, links=links)


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def extract_preview(snapshot: PageSnapshot) -> PreviewRecord:
    """
    Extract preview metadata from a page snapshot.

    Each field takes the first non-empty candidate of its fallback chain.
    ``image`` may come back empty; the caller substitutes a screenshot.
    """
    meta = snapshot.meta.get

    hostname = re.sub(r"^www\.", "", snapshot.hostname)
    image = _first(*(meta(key) for key in IMAGE_KEYS))
    if image and not image.startswith("data:"):
        image = urljoin(snapshot.url, image)

    record = PreviewRecord(
        title=_first(*(meta(key) for key in TITLE_KEYS), snapshot.title),
        site_name=_first(*(meta(key) for key in SITE_NAME_KEYS), hostname),
        description=_first(*(meta(key) for key in DESCRIPTION_KEYS)),
        url=snapshot.url,
        icon=_first(*(snapshot.links.get(rel) for rel in ICON_RELS)),
        image=image,
        is_screenshot=False,
    )
    logger.debug(f"Extracted metadata for {snapshot.url}: {record.model_dump_json(by_alias=True)}")
    return record


def with_screenshot(record: PreviewRecord, png: bytes) -> PreviewRecord:
    """Use a captured screenshot as the preview image."""
    encoded = base64.b64encode(png).decode("ascii")
    return record.model_copy(update={
        "image": f"data:image/png;base64,{encoded}",
        "is_screenshot": True,
    })
