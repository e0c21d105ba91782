import logging
import re
from typing import Any, Optional

import httpx

from clearpolicy_core.instruments import InstrumentRef, parse_instrument_refs
from clearpolicy_core.models import PolicyRecord

logger = logging.getLogger(__name__)

OPENSTATES_BASE_URL: str = "https://v3.openstates.org"
API_TIMEOUT: float = 15.0
USER_AGENT: str = "ClearPolicy/1.0"
MAX_ACTIONS: int = 4

_JURISDICTION_CODE = re.compile(r"/(?:state|territory|district):([a-z]{2})", re.IGNORECASE)


def _jurisdiction_code(result: dict[str, Any], fallback: str) -> str:
    jurisdiction = result.get("jurisdiction")
    ocd_id = jurisdiction.get("id", "") if isinstance(jurisdiction, dict) else ""
    if "country:us/government" in ocd_id:
        return "US"
    match = _JURISDICTION_CODE.search(ocd_id)
    return (match.group(1) if match else fallback).upper()


def _dict_items(value: Any) -> list[dict[str, Any]]:
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def _normalize_result(result: dict[str, Any], fallback_jurisdiction: str) -> Optional[PolicyRecord]:
    identifier = str(result.get("identifier") or "").strip()
    title = str(result.get("title") or "").strip()
    if not identifier and not title:
        return None

    abstracts = _dict_items(result.get("abstracts"))
    actions = _dict_items(result.get("actions"))
    sources = _dict_items(result.get("sources"))
    extras = result.get("extras") if isinstance(result.get("extras"), dict) else {}

    action_texts = [str(a.get("description", "")).strip() for a in actions if a.get("description")]
    latest_action = str(result.get("latest_action_description") or "").strip()
    if not latest_action and action_texts:
        latest_action = action_texts[-1]

    subjects = [str(s).strip() for s in result.get("subject") or [] if str(s).strip()]
    classification = [str(c).strip() for c in result.get("classification") or [] if str(c).strip()]
    url = (sources[0].get("url") if sources else "") or result.get("openstates_url") or ""
    first_action_date = str(result.get("first_action_date") or result.get("created_at") or "")

    return PolicyRecord(
        source="Open States",
        jurisdiction=_jurisdiction_code(result, fallback_jurisdiction),
        identifier=identifier or title,
        title=title or identifier,
        abstract=str(abstracts[0].get("abstract", "")).strip() if abstracts else "",
        summary=str(extras.get("summary") or "").strip(),
        latest_action=latest_action,
        impact_clause=str(extras.get("impact_clause") or "").strip(),
        subjects=list(dict.fromkeys(subjects + classification)),
        actions=action_texts[:MAX_ACTIONS],
        url=str(url),
        year=first_action_date[:4] or None,
        is_resolution="resolution" in classification,
    )


def _same_instrument(record: PolicyRecord, ref: InstrumentRef) -> bool:
    if ref.kind == "proposition":
        return ref in parse_instrument_refs(record.title) or ref in parse_instrument_refs(record.identifier)
    return ref in parse_instrument_refs(record.identifier)


class OpenStatesRegistry:
    """
    State (and U.S.) bill lookups against the Open States v3 API.

    Only records whose identifier is structurally the requested instrument
    are returned. Failures are logged and reported as None.
    """

    def __init__(
        self,
        api_key: Optional[str],
        default_jurisdiction: str = "ca",
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or ""
        self.default_jurisdiction = default_jurisdiction
        self.timeout = timeout
        self.transport = transport

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        return {"X-API-KEY": self.api_key, "User-Agent": USER_AGENT}

    async def find(self, ref: InstrumentRef, jurisdiction: Optional[str] = None) -> Optional[PolicyRecord]:
        """
        Search one jurisdiction for the referenced bill or proposition.

        Args:
            ref: Instrument reference
            jurisdiction: Two-letter state code or "us" (default: configured state)

        Returns:
            Normalized PolicyRecord, or None when unavailable or not found
        """
        if not self.api_key:
            logger.info("Open States API key not configured; skipping state lookup")
            return None

        jurisdiction = (jurisdiction or self.default_jurisdiction).upper()
        params: dict[str, Any] = {
            "jurisdiction": jurisdiction,
            "include": ["abstracts", "actions", "sources"],
            "per_page": 10,
        }
        if ref.kind == "proposition":
            params["q"] = f"Proposition {ref.number}"
        else:
            params["identifier"] = f"{ref.prefix} {ref.number}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as http:
                response = await http.get(f"{OPENSTATES_BASE_URL}/bills", params=params, headers=self._headers())
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Open States returned HTTP %s for %s", e.response.status_code, ref.label)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Open States request failed for %s: %s", ref.label, e)
            return None

        results = data.get("results") if isinstance(data, dict) else None
        for result in _dict_items(results):
            record = _normalize_result(result, jurisdiction)
            if record and _same_instrument(record, ref):
                return record

        logger.info("No Open States record for %s in %s", ref.label, jurisdiction)
        return None
