import asyncio
import html
import logging
import re
from typing import Any, Optional

import httpx

from clearpolicy_core.instruments import InstrumentRef, congress_for_year
from clearpolicy_core.models import PolicyRecord

logger = logging.getLogger(__name__)

CONGRESS_BASE_URL: str = "https://api.congress.gov/v3"
CONGRESS_WEB_URL: str = "https://www.congress.gov/bill"
API_TIMEOUT: float = 15.0

BILL_URL_SLUGS: dict[str, str] = {
    "hr": "house-bill",
    "s": "senate-bill",
    "hres": "house-resolution",
    "sres": "senate-resolution",
    "hjres": "house-joint-resolution",
    "sjres": "senate-joint-resolution",
    "hconres": "house-concurrent-resolution",
    "sconres": "senate-concurrent-resolution",
}

# Simple and concurrent resolutions state a position; they do not become law
RESOLUTION_TYPES: frozenset[str] = frozenset({"hres", "sres", "hconres", "sconres"})

_TAG = re.compile(r"<[^>]+>")


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _clean_html(text: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(_TAG.sub(" ", text or ""))).strip()


def congress_bill_url(congress: str, bill_type: str, number: str) -> str:
    slug = BILL_URL_SLUGS.get(bill_type, "house-bill")
    return f"{CONGRESS_WEB_URL}/{_ordinal(int(congress))}-congress/{slug}/{number}"


def _latest_summary(summaries: Optional[dict[str, Any]]) -> str:
    items = (summaries or {}).get("summaries") or []
    items = [s for s in items if isinstance(s, dict) and s.get("text")]
    if not items:
        return ""
    latest = max(items, key=lambda s: s.get("updateDate") or s.get("actionDate") or "")
    return _clean_html(latest["text"])


def _subject_names(subjects: Optional[dict[str, Any]]) -> tuple[list[str], str]:
    data = (subjects or {}).get("subjects") or {}
    if not isinstance(data, dict):
        return [], ""
    names = [
        s.get("name", "").strip()
        for s in data.get("legislativeSubjects") or []
        if isinstance(s, dict) and s.get("name")
    ]
    policy_area = (data.get("policyArea") or {}).get("name", "") if isinstance(data.get("policyArea"), dict) else ""
    return list(dict.fromkeys(names)), policy_area


class CongressRegistry:
    """
    Federal bill lookups against the Congress.gov v3 API.

    Every failure (missing key, HTTP error, timeout, malformed payload) is
    logged and reported as None; nothing is raised to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str],
        congress_number: str = "119",
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or ""
        self.congress_number = str(congress_number)
        self.timeout = timeout
        self.transport = transport

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def _get(self, http: httpx.AsyncClient, url: str) -> Optional[dict[str, Any]]:
        try:
            response = await http.get(url, params={"api_key": self.api_key, "format": "json"})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Congress.gov returned HTTP %s for %s", e.response.status_code, url)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Congress.gov request failed for %s: %s", url, e)
            return None
        return data if isinstance(data, dict) else None

    async def lookup(self, ref: InstrumentRef, year: Optional[str] = None) -> Optional[PolicyRecord]:
        """
        Fetch one federal bill by structural reference.

        Args:
            ref: Federal instrument reference (H.R., S., resolutions)
            year: Optional year; selects the Congress in session that year

        Returns:
            Normalized PolicyRecord, or None when unavailable
        """
        if not self.api_key:
            logger.info("Congress.gov API key not configured; skipping federal lookup")
            return None
        if not ref.is_federal:
            return None

        congress = congress_for_year(year) if year else self.congress_number
        bill_type = ref.congress_type
        base = f"{CONGRESS_BASE_URL}/bill/{congress}/{bill_type}/{ref.number}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as http:
            detail, summaries, subjects = await asyncio.gather(
                self._get(http, base),
                self._get(http, f"{base}/summaries"),
                self._get(http, f"{base}/subjects"),
            )

        bill = (detail or {}).get("bill")
        if not isinstance(bill, dict):
            logger.info("No Congress.gov record for %s (%s Congress)", ref.label, congress)
            return None

        summary_text = _latest_summary(summaries)
        subject_names, subject_area = _subject_names(subjects)
        latest_action = bill.get("latestAction") if isinstance(bill.get("latestAction"), dict) else {}
        policy_area = bill.get("policyArea") if isinstance(bill.get("policyArea"), dict) else {}
        title = str(bill.get("title") or ref.label).strip()

        return PolicyRecord(
            source="Congress.gov",
            jurisdiction="US",
            identifier=ref.label,
            title=title,
            abstract=summary_text,
            summary=summary_text,
            latest_action=str(latest_action.get("text", "")).strip(),
            subjects=subject_names,
            policy_area=policy_area.get("name", "") or subject_area,
            url=congress_bill_url(congress, bill_type, ref.number),
            year=str(bill.get("introducedDate") or "")[:4] or None,
            is_resolution=bill_type in RESOLUTION_TYPES or title.lower().startswith("a resolution"),
        )
