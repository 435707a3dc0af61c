"""
Prompt templates for the two AI passes run per provider.

Both templates ask for "## SECTION N: NAME" headers so the answers can be
split into sections for display (see analysis/sections.py).
"""

import re
from typing import Optional
from urllib.parse import urlparse

NOT_SPECIFIED = "not specified"

COMPANY_ANALYSIS_PROMPT = """Company Analysis
Do not invent facts. If you have no knowledge of the company, say so plainly.

Put each section header on its own line, exactly as written below, with the
content starting on the next line.

Analyzing: {company} | Industry: {industry} | Location: {location}

## SECTION 1: STATIC KNOWLEDGE ASSESSMENT
What do you know about {company} from your training data? Background,
products or services, reputation, notable news, leadership. If you know
little or nothing, state: "I have no/limited knowledge of {company}."

## SECTION 2: INDUSTRY COMPETITIVE LANDSCAPE
Name up to 3 prominent {industry} companies in {location} that you actually
know, with one line each on their market position. Do not invent names.

## SECTION 3: MARKET RECOGNITION ASSESSMENT
How likely is {company} to be mentioned when discussing {industry} leaders
in {location}? Answer High, Medium, Low or Unknown, then explain briefly."""

SEO_ANALYSIS_PROMPT = """SEO Analysis
Analyze the actual website content only. Do not force mentions of {company}
where they would be unnatural.

Put each section header on its own line, exactly as written below, with the
content starting on the next line.

Analyzing: {url} | Industry: {industry} | Location: {location}

## SECTION 1: WEBSITE CONTENT ANALYSIS
Primary services, target customers, value propositions, service areas,
content quality, trust signals and technical SEO factors of {url}.

## SECTION 2: AI DISCOVERABILITY TEST
Write 3 realistic customer queries about {industry} in {location}, answer each
naturally, and state whether {company} would be mentioned and why.

## SECTION 3: SEO OPTIMIZATION ASSESSMENT
AI discoverability score (High/Medium/Low), content strengths, critical gaps,
top 3 prioritized recommendations and a one-line bottom line."""

PROMPTS = {
    "seoAnalysis":     SEO_ANALYSIS_PROMPT,
    "companyAnalysis": COMPANY_ANALYSIS_PROMPT,
}


def extract_company_name(url: str) -> str:
    """example.co -> 'example'; www.acme.com -> 'acme'."""
    try:
        host = urlparse(url if "://" in url else f"https://{url}").hostname or ""
    except ValueError:
        host = ""
    host = re.sub(r"^www\.", "", host)
    name = re.sub(r"\.[^.]+$", "", host)
    return name or "the company"


def format_prompt(
    template: str,
    url: str,
    industry: Optional[str] = None,
    location: Optional[str] = None,
    company: Optional[str] = None,
) -> str:
    values = {
        "url":      url,
        "industry": industry or NOT_SPECIFIED,
        "location": location or NOT_SPECIFIED,
        "company":  company or extract_company_name(url),
    }
    out = template
    for key, value in values.items():
        out = out.replace("{" + key + "}", value)
    return out
