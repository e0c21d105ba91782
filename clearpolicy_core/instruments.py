"""
Structural parsing of legal instrument references.

Turns "Prop 47", "Proposition 47", "Assembly Bill 5", "S.B. 1383", "H.R. 50"
or "S. 1789" into a normalized InstrumentRef so lookups compare identity
(type + number), never wording.
"""
import re
from dataclasses import dataclass
from typing import Literal, Optional

US_STATES: dict[str, str] = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
    "district of columbia": "DC", "florida": "FL", "georgia": "GA", "hawaii": "HI",
    "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI",
    "south carolina": "SC", "south dakota": "SD", "tennessee": "TN", "texas": "TX",
    "utah": "UT", "vermont": "VT", "virginia": "VA", "washington": "WA",
    "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
}

# Longest names first so "west virginia" wins over "virginia"
_STATE_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(n) for n in sorted(US_STATES, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)

# Congress.gov bill type codes
FEDERAL_TYPES: dict[str, str] = {
    "HR": "hr", "S": "s", "HRES": "hres", "SRES": "sres",
    "HJRES": "hjres", "SJRES": "sjres", "HCONRES": "hconres", "SCONRES": "sconres",
}

_WORD_PREFIXES = {"assembly bill": "AB", "senate bill": "SB", "house bill": "HB"}

_REFERENCE = re.compile(
    r"""
    (?<![\w.])
    (?P<prefix>
        prop(?:osition)?
      | assembly\s+bill | senate\s+bill | house\s+bill
      | h\.?\s?con\.?\s?res | s\.?\s?con\.?\s?res
      | h\.?\s?j\.?\s?res | s\.?\s?j\.?\s?res
      | h\.?\s?res | s\.?\s?res
      | h\.?\s?r | h\.?\s?b | s\.?\s?b | a\.?\s?b
      | s(?=\.)
    )
    \s*\.?\s*(?:no\.?\s*)?
    (?P<number>\d{1,5})\b
    """,
    re.IGNORECASE | re.VERBOSE,
)

_YEAR = re.compile(r"\b(?:19|20)\d{2}\b")


@dataclass(frozen=True)
class InstrumentRef:
    kind: Literal["proposition", "bill"]
    prefix: str
    number: str

    @property
    def is_federal(self) -> bool:
        return self.prefix in FEDERAL_TYPES

    @property
    def congress_type(self) -> Optional[str]:
        return FEDERAL_TYPES.get(self.prefix)

    @property
    def label(self) -> str:
        if self.kind == "proposition":
            return f"Prop {self.number}"
        if self.prefix == "HR":
            return f"H.R. {self.number}"
        if self.prefix == "S":
            return f"S. {self.number}"
        return f"{self.prefix} {self.number}"


def _normalize_prefix(raw: str) -> str:
    words = re.sub(r"\s+", " ", raw.strip().lower())
    if words in _WORD_PREFIXES:
        return _WORD_PREFIXES[words]
    if words.startswith("prop"):
        return "PROP"
    return re.sub(r"[^a-z]", "", words).upper()


def parse_instrument_refs(text: str) -> list[InstrumentRef]:
    """All distinct instrument references in `text`, in order of appearance."""
    refs: list[InstrumentRef] = []
    for match in _REFERENCE.finditer(text or ""):
        prefix = _normalize_prefix(match.group("prefix"))
        ref = InstrumentRef(
            kind="proposition" if prefix == "PROP" else "bill",
            prefix=prefix,
            number=str(int(match.group("number"))),
        )
        if ref not in refs:
            refs.append(ref)
    return refs


def parse_identifier(identifier: Optional[str], instrument_type: str = "bill") -> Optional[InstrumentRef]:
    """Parse a registry identifier; a bare number is read using `instrument_type`."""
    if not identifier or not identifier.strip():
        return None
    refs = parse_instrument_refs(identifier)
    if refs:
        return refs[0]
    bare = identifier.strip()
    if bare.isdigit() and instrument_type == "proposition":
        return InstrumentRef(kind="proposition", prefix="PROP", number=str(int(bare)))
    return None


def extract_year(text: str) -> Optional[str]:
    """First 1900-2099 year in `text` that is not an instrument number."""
    stripped = _REFERENCE.sub(" ", text or "")
    match = _YEAR.search(stripped)
    return match.group(0) if match else None


def contains_year(text: str) -> bool:
    return bool(_YEAR.search(text or ""))


def detect_state(text: str) -> Optional[str]:
    """Two-letter code of the first U.S. state named in `text`."""
    match = _STATE_PATTERN.search(text or "")
    return US_STATES[match.group(1).lower()] if match else None


def congress_for_year(year: str) -> str:
    """Congress number in session during `year` (the 1st Congress convened in 1789)."""
    return str((int(year) - 1789) // 2 + 1)
