"""
Structure prober: one fetch of the page plus tolerant robots.txt and
sitemap.xml checks.

Only the primary page fetch can fail the probe. The two side checks report
False for any non-200 answer or network error.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

import requests

from analysis.errors import FetchError
from analysis.models import StructureReport
from scraper.extractor import extract_structure

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-GB,en;q=0.9",
}


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _resource_exists(session: requests.Session, url: str, timeout: float) -> bool:
    try:
        resp = session.get(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        logger.debug("Probe of %s failed: %s", url, exc)
        return False
    return resp.status_code == 200


def fetch_html(session: requests.Session, url: str, timeout: float) -> str:
    try:
        resp = session.get(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
    except requests.RequestException as exc:
        raise FetchError(f"Could not fetch {url}: {exc}") from exc
    if not 200 <= resp.status_code < 300:
        raise FetchError(f"Fetching {url} returned HTTP {resp.status_code}")
    return resp.text


def probe(url: str, timeout: float = 30.0, session: Optional[requests.Session] = None) -> StructureReport:
    """
    Fetch `url` once and derive the structure report.
    Raises FetchError when the page itself cannot be fetched.
    """
    own_session = session is None
    session = session or requests.Session()
    try:
        html = fetch_html(session, url, timeout)
        origin = _origin(url)
        robots = _resource_exists(session, f"{origin}/robots.txt", timeout)
        sitemap = _resource_exists(session, f"{origin}/sitemap.xml", timeout)
    finally:
        if own_session:
            session.close()

    signals = extract_structure(html)
    logger.info(
        "Probed %s (%d chars): robots=%s sitemap=%s, %d recommendations",
        url, len(html), robots, sitemap, len(signals["recommendations"]),
    )

    return StructureReport(
        robots_txt_found=robots,
        sitemap_xml_found=sitemap,
        h1_tags_found=signals["h1_tags_found"],
        image_alts_good=signals["image_alts_good"],
        meta_description=signals["meta_description"],
        title_tag=signals["title_tag"],
        recommendations=signals["recommendations"],
    )
