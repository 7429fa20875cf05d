"""
Candidate CSV import and scorecard CSV export
"""

import csv
import io
import re
from typing import Optional, Dict, List, Any

from pydantic import BaseModel, Field

from .utils import strip_zero_width


NAME_ALIASES = ["name", "company", "company name", "candidate", "brand"]
WEBSITE_ALIASES = ["website", "url", "site", "homepage", "company url", "company website", "web"]
NOTES_ALIASES = ["notes", "note", "description", "comments", "comment", "details", "info"]
LINKS_ALIASES = ["links", "link", "source", "sources", "evidence", "references", "reference"]

EXPORT_COLUMNS = [
    "tier",
    "totalScore",
    "confidence",
    "companyName",
    "website",
    "provenance",
    "rationaleBullets",
    "proofPoints",
    "flags",
    "disqualifiers",
    "nextStep",
    "outreachSubject",
]


class ParsedCandidateRow(BaseModel):
    name: str
    website: Optional[str] = None
    notes: Optional[str] = None
    links: List[str] = Field(default_factory=list)
    extra_columns: Optional[Dict[str, str]] = None


def _find_col(header: List[str], aliases: List[str]) -> int:
    """First header index matching any alias, in alias order."""
    for alias in aliases:
        if alias in header:
            return header.index(alias)
    return -1


def _cell(row: List[str], idx: int) -> str:
    if idx < 0 or idx >= len(row):
        return ""
    return row[idx].strip()


def parse_csv_candidates(text: str) -> List[ParsedCandidateRow]:
    """
    Parse a candidate CSV with flexible column names.

    The name column falls back to the first column. Columns that are not
    name/website/notes/links are kept as extra columns under their
    original header.
    """
    text = text.lstrip("\ufeff")
    rows = [row for row in csv.reader(io.StringIO(text)) if any(c.strip() for c in row)]
    if not rows:
        return []

    original_headers = [h.strip() for h in rows[0]]
    header = [h.lower() for h in original_headers]

    name_idx = max(0, _find_col(header, NAME_ALIASES))
    website_idx = _find_col(header, WEBSITE_ALIASES)
    notes_idx = _find_col(header, NOTES_ALIASES)
    links_idx = _find_col(header, LINKS_ALIASES)

    known = {i for i in (name_idx, website_idx, notes_idx, links_idx) if i >= 0}
    extra_idx = [i for i in range(len(header)) if i not in known]

    parsed = []
    for row in rows[1:]:
        name = _cell(row, name_idx)
        if not strip_zero_width(name).strip():
            continue

        links_raw = _cell(row, links_idx)
        links = [u for u in re.split(r"[;\s]+", links_raw) if u] if links_raw else []

        extra = {}
        for i in extra_idx:
            value = _cell(row, i)
            if value:
                extra[original_headers[i]] = value

        parsed.append(ParsedCandidateRow(
            name=name,
            website=_cell(row, website_idx) or None,
            notes=_cell(row, notes_idx) or None,
            links=links,
            extra_columns=extra or None,
        ))

    return parsed


def scorecard_export_row(candidate, score_card, draft=None) -> Dict[str, Any]:
    return {
        "tier": score_card.tier.value,
        "totalScore": score_card.total_score,
        "confidence": score_card.confidence.value,
        "companyName": candidate.name,
        "website": candidate.website or "",
        "provenance": candidate.provenance.value,
        "rationaleBullets": " | ".join(score_card.rationale_bullets),
        "proofPoints": " | ".join(
            f"{p.text} ({p.support_type.value})" for p in score_card.proof_points
        ),
        "flags": " | ".join(score_card.flags),
        "disqualifiers": " | ".join(score_card.disqualifiers),
        "nextStep": score_card.next_step,
        "outreachSubject": draft.subject if draft else "",
    }


def to_csv(rows: List[Dict[str, Any]], columns: Optional[List[str]] = None) -> str:
    """Fields containing a comma, quote, CR or LF are quoted."""
    if not rows and not columns:
        return ""
    columns = columns or list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore", lineterminator="\r\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in columns})
    return buffer.getvalue()


def export_filename(project_name: str, project_id: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", project_name, flags=re.IGNORECASE).lower()
    return f"license-finder-{slug}-{project_id[:6]}.csv"
