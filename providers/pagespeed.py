"""
PageSpeed Insights metrics provider.

Runs one Lighthouse request per strategy (mobile, desktop) and keeps only
the headline performance numbers.
"""

import logging

from analysis.errors import Malformed
from providers.base import MetricsProvider, request_json

logger = logging.getLogger(__name__)

API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"

_AUDITS = {
    "firstContentfulPaint":   "first-contentful-paint",
    "largestContentfulPaint": "largest-contentful-paint",
    "cumulativeLayoutShift":  "cumulative-layout-shift",
    "speedIndex":             "speed-index",
    "totalBlockingTime":      "total-blocking-time",
}


def summarise_lighthouse(data: dict) -> dict:
    """Reduce a raw runPagespeed response to score + key metrics."""
    result = data.get("lighthouseResult")
    if not isinstance(result, dict):
        raise Malformed(PageSpeedProvider.provider_id, "Response has no lighthouseResult")

    try:
        score = result["categories"]["performance"]["score"]
    except (KeyError, TypeError) as exc:
        raise Malformed(PageSpeedProvider.provider_id, "Response has no performance score") from exc

    audits = result.get("audits") or {}
    return {
        "score": round(score * 100) if score is not None else None,
        "metrics": {
            name: (audits.get(audit_id) or {}).get("displayValue")
            for name, audit_id in _AUDITS.items()
        },
        "lighthouseVersion": result.get("lighthouseVersion"),
        "fetchTime": result.get("fetchTime"),
    }


class PageSpeedProvider(MetricsProvider):
    provider_id = "pagespeed"

    def __init__(self, api_key, timeout=120.0, strategies=("mobile", "desktop")):
        super().__init__(api_key, timeout)
        self.strategies = tuple(strategies)

    def fetch_metrics(self, url: str) -> dict:
        api_key = self.require_key()
        metrics = {}
        for strategy in self.strategies:
            logger.info("PageSpeed %s run for %s", strategy, url)
            data = request_json(
                self.provider_id,
                "GET",
                API_URL,
                self.timeout,
                params={"url": url, "strategy": strategy, "key": api_key},
            )
            metrics[strategy] = summarise_lighthouse(data)
        return {"metrics": metrics}
