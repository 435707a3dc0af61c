"""
Domain records: report requests, sub-analysis outcomes and structure reports.

Stored and served JSON uses camelCase keys because the report document is
consumed as-is by the front end.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from analysis.errors import InvalidRequest
from settings import AI_PROVIDERS

# ── Sub-analysis ids and queue topics ────────────────────────────────────────

PAGESPEED = "pagespeed"
STRUCTURE = "structure"
SUB_ANALYSES = AI_PROVIDERS + (PAGESPEED, STRUCTURE)

TOPIC_AI_ANALYSIS = "ai-analysis"
TOPIC_PAGESPEED = "pagespeed-analysis"
TOPIC_STRUCTURE = "website-structure"
TOPIC_GENERATE_PDF = "generate-pdf-report"

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

RESULT_COMPLETED = "completed"
RESULT_ERROR = "error"
RESULT_SKIPPED = "skipped"
DONE_STATES = frozenset({RESULT_COMPLETED, RESULT_ERROR, RESULT_SKIPPED})


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _optional_str(body: dict, key: str) -> Optional[str]:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{key} must be a string")
    return value.strip() or None


@dataclass(frozen=True)
class ReportRequest:
    website_url: str
    email: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    company_name: Optional[str] = None
    enabled_services: Optional[list] = None

    @classmethod
    def from_json(cls, body) -> "ReportRequest":
        """Decode a POST /analyze body. Raises InvalidRequest on wrong types."""
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise InvalidRequest("Request body must be a JSON object")
        return cls(
            website_url=_optional_str(body, "websiteUrl") or "",
            email=_optional_str(body, "email"),
            industry=_optional_str(body, "industry"),
            location=_optional_str(body, "location"),
            company_name=_optional_str(body, "companyName"),
            enabled_services=body.get("enabledServices"),
        )


@dataclass(frozen=True)
class SubResult:
    """Outcome of one sub-analysis: completed, error or skipped."""
    status: str
    timestamp: str
    provider: Optional[str] = None
    model: Optional[str] = None
    payload: Optional[dict] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def completed(cls, provider: str, payload: dict, model: Optional[str] = None) -> "SubResult":
        return cls(status=RESULT_COMPLETED, timestamp=utc_now(),
                   provider=provider, model=model, payload=payload)

    @classmethod
    def failed(cls, message: str) -> "SubResult":
        return cls(status=RESULT_ERROR, timestamp=utc_now(), error=message)

    @classmethod
    def skipped(cls, reason: str) -> "SubResult":
        return cls(status=RESULT_SKIPPED, timestamp=utc_now(), reason=reason)

    @property
    def is_done(self) -> bool:
        return self.status in DONE_STATES

    def to_dict(self) -> dict:
        d = {"status": self.status, "timestamp": self.timestamp}
        if self.status == RESULT_COMPLETED:
            d["provider"] = self.provider
            d["payload"] = self.payload
            if self.model:
                d["model"] = self.model
        elif self.status == RESULT_ERROR:
            d["error"] = self.error
        else:
            d["reason"] = self.reason
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "SubResult":
        return cls(
            status=data.get("status", ""),
            timestamp=data.get("timestamp", ""),
            provider=data.get("provider"),
            model=data.get("model"),
            payload=data.get("payload"),
            error=data.get("error"),
            reason=data.get("reason"),
        )


@dataclass(frozen=True)
class StructureReport:
    robots_txt_found: bool
    sitemap_xml_found: bool
    h1_tags_found: bool
    image_alts_good: bool
    meta_description: Optional[str]
    title_tag: str
    recommendations: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "robotsTxtFound":  self.robots_txt_found,
            "sitemapXmlFound": self.sitemap_xml_found,
            "h1TagsFound":     self.h1_tags_found,
            "imageAltsGood":   self.image_alts_good,
            "metaDescription": self.meta_description,
            "titleTag":        self.title_tag,
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class Report:
    id: str
    website_url: str
    expected: tuple
    enabled_services: tuple
    status: str
    submitted_at: str
    ai_config: dict
    email: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    company_name: Optional[str] = None
    result: Optional[dict] = None
    error: Optional[str] = None
    completed_at: Optional[str] = None

    def to_dict(self) -> dict:
        d = {
            "reportId":        self.id,
            "websiteUrl":      self.website_url,
            "email":           self.email,
            "industry":        self.industry,
            "location":        self.location,
            "companyName":     self.company_name,
            "enabledServices": list(self.enabled_services),
            "expected":        list(self.expected),
            "status":          self.status,
            "submittedAt":     self.submitted_at,
            "completedAt":     self.completed_at,
        }
        if self.result:
            d.update(self.result)
        if self.error:
            d["error"] = self.error
        return d
