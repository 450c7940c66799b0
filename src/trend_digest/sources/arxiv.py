"""Recent AI/ML papers from the arXiv Atom API."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import UTC, datetime, timedelta

import httpx

from trend_digest.sources.base import SourceAdapter
from trend_digest.sources.models import (
    SourceCategory,
    TrendingSource,
    iso_date_from_string,
)

_ENDPOINT = "https://export.arxiv.org/api/query"
_NS = {"atom": "http://www.w3.org/2005/Atom"}


class ArxivAdapter(SourceAdapter):
    """Papers submitted within the lookback window in the configured categories."""

    category = SourceCategory.ARXIV
    name = "arxiv"

    def build_query(self, now: datetime | None = None) -> str:
        now = now or datetime.now(tz=UTC)
        start = now - timedelta(days=self.settings.lookback_days)
        categories = " OR ".join(f"cat:{cat}" for cat in self.settings.arxiv_categories)
        window = f"submittedDate:[{start:%Y%m%d}0000 TO {now:%Y%m%d}2359]"
        return f"({categories}) AND {window}"

    async def _fetch(self, client: httpx.AsyncClient) -> list[TrendingSource]:
        xml_text = await self._get_text(
            client,
            _ENDPOINT,
            params={
                "search_query": self.build_query(),
                "start": 0,
                "max_results": self.settings.arxiv_max_items * 2,
                "sortBy": "submittedDate",
                "sortOrder": "descending",
            },
        )
        return self.parse_feed(xml_text)[: self.settings.arxiv_max_items]

    def parse_feed(self, xml_text: str) -> list[TrendingSource]:
        root = ET.fromstring(xml_text)
        papers: list[TrendingSource] = []

        for entry in root.findall("atom:entry", _NS):
            title = " ".join(
                (entry.findtext("atom:title", default="", namespaces=_NS) or "").split()
            )
            abs_url = (entry.findtext("atom:id", default="", namespaces=_NS) or "").strip()
            if not title or not abs_url:
                continue

            authors = [
                (author.findtext("atom:name", default="", namespaces=_NS) or "").strip()
                for author in entry.findall("atom:author", _NS)
            ]
            authors = [name for name in authors if name]
            if len(authors) > 3:
                byline = f"{', '.join(authors[:3])} et al."
            else:
                byline = ", ".join(authors) or None

            abstract = " ".join(
                (entry.findtext("atom:summary", default="", namespaces=_NS) or "").split()
            )
            paper_id = abs_url.rstrip("/").rsplit("/", 1)[-1]

            papers.append(
                TrendingSource(
                    id=f"arxiv-{paper_id}",
                    title=title,
                    url=abs_url,
                    category=self.category,
                    author=byline,
                    publication="ArXiv",
                    date=iso_date_from_string(
                        entry.findtext("atom:published", default="", namespaces=_NS)
                    ),
                    summary=abstract[:400] or "AI/ML research paper",
                )
            )
        return papers
