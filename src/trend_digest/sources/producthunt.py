"""Newly launched products from the public Product Hunt Atom feed."""

from __future__ import annotations

import html
import re
import xml.etree.ElementTree as ET

import httpx

from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import (
    SourceCategory,
    TrendingSource,
    iso_date_from_string,
)

_FEED_URL = "https://www.producthunt.com/feed"
_NS = {"atom": "http://www.w3.org/2005/Atom"}
_TAG_RE = re.compile(r"<[^>]+>")


def _strip_html(markup: str) -> str:
    return " ".join(html.unescape(_TAG_RE.sub(" ", markup)).split())


class ProductHuntAdapter(SourceAdapter):
    category = SourceCategory.PRODUCTHUNT
    name = "producthunt"

    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        xml_text = await self._get_text(
            client,
            _FEED_URL,
            headers={"User-Agent": self.settings.user_agent},
        )
        return self.parse_feed(xml_text)[: self.settings.producthunt_max_items]

    def parse_feed(self, xml_text: str) -> list[TrendingSource]:
        root = ET.fromstring(xml_text)
        products: list[TrendingSource] = []

        for entry in root.findall("atom:entry", _NS):
            title = (entry.findtext("atom:title", default="", namespaces=_NS) or "").strip()
            link_node = entry.find("atom:link", _NS)
            link = link_node.attrib.get("href", "") if link_node is not None else ""
            if not title or not link:
                continue

            entry_id = (entry.findtext("atom:id", default="", namespaces=_NS) or link).strip()
            slug = entry_id.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
            content = entry.findtext("atom:content", default="", namespaces=_NS) or ""

            products.append(
                TrendingSource(
                    id=f"producthunt-{slug}",
                    title=title,
                    url=link,
                    category=self.category,
                    author=(
                        entry.findtext("atom:author/atom:name", default="", namespaces=_NS)
                        or None
                    ),
                    publication="Product Hunt",
                    date=iso_date_from_string(
                        entry.findtext("atom:published", default="", namespaces=_NS)
                        or entry.findtext("atom:updated", default="", namespaces=_NS)
                    ),
                    summary=_strip_html(content)[:300],
                )
            )
        return products
