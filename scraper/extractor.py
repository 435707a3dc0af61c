"""
HTML extraction: title, meta description, H1 presence, image alt coverage,
plus the fixed list of structure recommendations.
"""

import logging
from typing import Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

REC_META_DESCRIPTION = "Add a meta description tag"
REC_TITLE = "Add a title tag"
REC_H1 = "Add an H1 tag"
REC_IMAGE_ALTS = "Add alt tags to all images"


def _meta_description(soup: BeautifulSoup) -> Optional[str]:
    for tag in soup.find_all("meta"):
        if (tag.get("name") or "").strip().lower() == "description":
            content = tag.get("content")
            return content.strip() if content is not None else None
    return None


def extract_structure(html: str) -> dict:
    """
    Parse raw HTML and return the structure signals.

    Returns:
        h1_tags_found    (bool)
        image_alts_good  (bool)         True when there are no images
        meta_description (str | None)
        title_tag        (str)          "" when absent
        recommendations  (list[str])    meta, title, H1, alt order
    """
    soup = BeautifulSoup(html or "", "lxml")

    # ── Title ─────────────────────────────────────────────────────────────────
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    # ── Meta description ──────────────────────────────────────────────────────
    meta_desc = _meta_description(soup)

    # ── Headings / images ─────────────────────────────────────────────────────
    has_h1 = soup.find("h1") is not None
    images = soup.find_all("img")
    alts_good = all((img.get("alt") or "").strip() for img in images)

    recommendations = []
    if not meta_desc:
        recommendations.append(REC_META_DESCRIPTION)
    if not title:
        recommendations.append(REC_TITLE)
    if not has_h1:
        recommendations.append(REC_H1)
    if not alts_good:
        recommendations.append(REC_IMAGE_ALTS)

    logger.debug(
        "Structure: title=%r, h1=%s, %d images (alts ok=%s), %d recommendations",
        title[:60], has_h1, len(images), alts_good, len(recommendations),
    )

    return {
        "h1_tags_found":    has_h1,
        "image_alts_good":  alts_good,
        "meta_description": meta_desc,
        "title_tag":        title,
        "recommendations":  recommendations,
    }
