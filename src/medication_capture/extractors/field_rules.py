# ============================================================================
# src/medication_capture/extractors/field_rules.py
# ============================================================================
"""
Label Field Rules

Ordered rule table for free-text medication label extraction. Each rule is
(field, priority, pattern, normalize). For a given field the rules are tried
lowest priority first and the first match that normalizes to a value wins.
Rules for different fields never interact.

Rule values are human-readable: "BID" -> "Twice daily", "PO" -> "Oral",
"10 MG" -> "10mg".
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import re


@dataclass(frozen=True)
class RuleMatch:
    field: str
    value: str
    start: int
    end: int
    priority: int


@dataclass(frozen=True)
class FieldRule:
    field: str
    priority: int
    pattern: re.Pattern
    normalize: Callable[[re.Match], Optional[str]]
    # Group whose span counts as consumed text (removed from instructions)
    claim_group: object = 0

    def apply(self, text: str) -> Optional[RuleMatch]:
        for match in self.pattern.finditer(text):
            value = self.normalize(match)
            if value:
                start, end = match.span(self.claim_group)
                return RuleMatch(self.field, value, start, end, self.priority)
        return None


# ----------------------------------------------------------------------------
# Vocabularies
# ----------------------------------------------------------------------------

DOSAGE_UNITS = {
    "mg": "mg",
    "mcg": "mcg",
    "ml": "mL",
    "g": "g",
    "iu": "IU",
    "unit": "units",
    "units": "units",
    "%": "%",
}
UNIT_PATTERN = r"(?:mcg|mg|ml|g|iu|units?|%)(?![A-Za-z])"

DOSAGE_FORM_WORDS = frozenset({
    "tablet", "tablets", "tab", "tabs", "capsule", "capsules", "cap", "caps",
    "pill", "pills", "softgel", "softgels", "caplet", "caplets",
    "solution", "suspension", "syrup", "liquid", "cream", "ointment", "gel",
    "lotion", "patch", "patches", "drops", "spray", "film", "coated",
    "chewable", "oral", "usp",
})

# Tokens that surround a drug name on labels but are never part of it
NON_NAME_WORDS = frozenset({
    "rx", "take", "use", "apply", "give", "inject", "inhale", "insert", "place",
    "dissolve", "chew", "qty", "quantity", "disp", "dispense", "sig",
    "medication", "medicine", "drug", "name", "patient", "generic", "brand",
    "for", "each", "contains", "strength", "dose", "per", "of", "and",
    "qd", "bid", "tid", "qid", "qhs", "prn", "po", "iv", "im", "sl", "sc",
    "daily", "weekly", "monthly", "once", "twice",
}) | DOSAGE_FORM_WORDS

ROUTE_TERMS = {
    "by mouth": "Oral",
    "orally": "Oral",
    "oral": "Oral",
    "topically": "Topical",
    "topical": "Topical",
    "injection": "Injection",
    "inject": "Injection",
    "intravenously": "Intravenous",
    "intravenous": "Intravenous",
    "intramuscularly": "Intramuscular",
    "intramuscular": "Intramuscular",
    "subcutaneously": "Subcutaneous",
    "subcutaneous": "Subcutaneous",
    "sublingually": "Sublingual",
    "sublingual": "Sublingual",
    "under the tongue": "Sublingual",
    "inhalation": "Inhalation",
    "inhaled": "Inhalation",
    "inhale": "Inhalation",
    "transdermal": "Transdermal",
    "rectally": "Rectal",
    "rectal": "Rectal",
    "ophthalmic": "Ophthalmic",
    "in the eye": "Ophthalmic",
    "otic": "Otic",
    "intranasal": "Nasal",
    "nasal": "Nasal",
}

# Matched case-sensitively: lowercase "im"/"po" occur inside ordinary words
ROUTE_ABBREVIATIONS = {
    "PO": "Oral",
    "IV": "Intravenous",
    "IM": "Intramuscular",
    "SL": "Sublingual",
    "SC": "Subcutaneous",
    "SQ": "Subcutaneous",
}

FREQUENCY_ABBREVIATIONS = {
    "qd": "Once daily",
    "bid": "Twice daily",
    "tid": "Three times daily",
    "qid": "Four times daily",
    "qhs": "At bedtime",
    "qam": "Every morning",
    "qpm": "Every evening",
    "prn": "As needed",
}

FREQUENCY_COUNTS = {
    "once": "Once",
    "one time": "Once",
    "1": "Once",
    "twice": "Twice",
    "two times": "Twice",
    "2": "Twice",
    "three times": "Three times",
    "3": "Three times",
    "four times": "Four times",
    "4": "Four times",
}

FREQUENCY_WORDS = {
    "daily": "Once daily",
    "weekly": "Once weekly",
    "monthly": "Once monthly",
    "nightly": "At bedtime",
}

QUANTITY_UNITS = r"(?:tablets|capsules|tabs|caps|pills|softgels|caplets|patches|lozenges)"

PRESCRIBER_REJECT = frozenset({"auth", "required", "refill", "refills", "none", "date", "qty"})
PRESCRIBER_CREDENTIALS = frozenset({"md", "do", "np", "pa", "rn", "dds", "dmd", "phd"})

# Common generic-name stems, for labels where the name has no adjacent strength
DRUG_SUFFIXES = (
    "pril", "sartan", "olol", "statin", "dipine", "formin", "cillin", "mycin",
    "cycline", "prazole", "oxetine", "triptan", "profen", "tidine", "gliptin",
    "azepam", "zolam", "floxacin", "lukast",
)

_NAME_HEAD = r"[A-Z][A-Za-z\-]+"
_NAME_TAIL = r"(?:[ \t]+[A-Z][A-Za-z0-9\-]*)*"
_PERSON = r"[A-Z][A-Za-z'\-]+(?:[ \t]+[A-Z]\.?(?![A-Za-z]))?(?:[ \t]+[A-Z][A-Za-z'\-]+)*"

# Capitalized token sequence directly followed by a strength ("Lisinopril 10mg",
# "Vitamin D3 (1000 IU)"). Also drives single-vs-multiple record detection.
ANCHOR_PATTERN = re.compile(
    rf"\b(?P<name>{_NAME_HEAD}{_NAME_TAIL})[ \t]+\(?[ \t]*"
    rf"(?P<value>\d+(?:\.\d+)?)[ \t]*(?P<unit>(?i:{UNIT_PATTERN}))"
)


# ----------------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------------

def _bare(token: str) -> str:
    return re.sub(r"[^a-z0-9]", "", token.lower())


def trim_name_span(raw: str) -> Optional[Tuple[int, int]]:
    """
    Span of the drug name inside `raw` once label words are dropped from
    both ends ("Take Lisinopril Tablets" -> "Lisinopril"). None when nothing
    is left.
    """
    tokens = [(m.start(), m.end(), _bare(m.group())) for m in re.finditer(r"\S+", raw)]
    while tokens and (tokens[0][2] in NON_NAME_WORDS or not tokens[0][2]):
        tokens.pop(0)
    while tokens and (tokens[-1][2] in NON_NAME_WORDS or not tokens[-1][2]):
        tokens.pop()
    if not tokens:
        return None
    return tokens[0][0], tokens[-1][1]


def display_name(raw: str) -> str:
    name = re.sub(r"\s+", " ", raw).strip()
    if name.isupper() and len(name) > 3:
        name = " ".join(word if len(word) <= 3 else word.capitalize() for word in name.split())
    return name


def anchor_names(text: str) -> Iterator[Tuple[Tuple[str, str], int]]:
    """
    Yield ((name, strength) key, start offset) for every medication anchor.

    The same drug at a different strength is a different medication, so
    "Metformin 500mg" and "Metformin 1000mg" get different keys while
    "LISINOPRIL 10 MG" and "Lisinopril 10mg" share one.
    """
    for match in ANCHOR_PATTERN.finditer(text):
        span = trim_name_span(match.group("name"))
        if span is None:
            continue
        name = match.group("name")[span[0]:span[1]]
        strength = _format_dosage(match.group("value"), match.group("unit"))
        yield (name.lower(), strength.lower()), match.start("name") + span[0]


def _format_dosage(value: str, unit: str) -> str:
    unit = DOSAGE_UNITS[unit.lower()]
    if unit in ("IU", "units"):
        return f"{value} {unit}"
    return f"{value}{unit}"


# ----------------------------------------------------------------------------
# Normalizers
# ----------------------------------------------------------------------------

def _anchor_name(match: re.Match) -> Optional[str]:
    raw = match.group("name")
    span = trim_name_span(raw)
    if span is None:
        return None
    return display_name(raw[span[0]:span[1]])


def _plain_name(match: re.Match) -> Optional[str]:
    name = match.group("name")
    if _bare(name) in NON_NAME_WORDS:
        return None
    if name.islower() or name.isupper() or re.search(r"[a-z][A-Z]", name):
        return " ".join(word.capitalize() for word in name.split())
    return name


def _dosage(match: re.Match) -> Optional[str]:
    return _format_dosage(match.group("value"), match.group("unit"))


def _route_term(match: re.Match) -> Optional[str]:
    return ROUTE_TERMS.get(re.sub(r"\s+", " ", match.group(0).lower()))


def _route_abbreviation(match: re.Match) -> Optional[str]:
    return ROUTE_ABBREVIATIONS.get(match.group(0))


def _counted_frequency(match: re.Match) -> Optional[str]:
    count = re.sub(r"\s+", " ", match.group("count").lower())
    count = FREQUENCY_COUNTS.get(count[0] if count[0].isdigit() else count)
    if count is None:
        return None
    period = "weekly" if match.group("period").lower().startswith("week") else "daily"
    return f"{count} {period}"


def _hourly_frequency(match: re.Match) -> Optional[str]:
    low, high = match.group("low"), match.group("high")
    if high:
        return f"Every {low}-{high} hours"
    return f"Every {low} hours"


def _part_of_day(match: re.Match) -> Optional[str]:
    part = match.group("part").lower()
    if part == "day":
        return "Once daily"
    if part == "night":
        return "At bedtime"
    return f"Every {part}"


def _frequency_abbreviation(match: re.Match) -> Optional[str]:
    if match.group("hours"):
        return f"Every {int(match.group('hours'))} hours"
    return FREQUENCY_ABBREVIATIONS.get(match.group(0).lower())


def _fixed(value: str) -> Callable[[re.Match], Optional[str]]:
    return lambda match: value


def _frequency_word(match: re.Match) -> Optional[str]:
    return FREQUENCY_WORDS.get(match.group(0).lower())


def _quantity(match: re.Match) -> Optional[str]:
    count = match.group("count")
    unit = match.group("unit")
    return f"{int(count)} {unit.lower()}" if unit else str(int(count))


def _refills(match: re.Match) -> Optional[str]:
    return str(int(match.group("count")))


def _prescriber(match: re.Match) -> Optional[str]:
    words = match.group("name").split()
    while words and _bare(words[-1]) in PRESCRIBER_CREDENTIALS:
        words.pop()
    if not words or any(_bare(word) in PRESCRIBER_REJECT for word in words):
        return None
    return " ".join(words)


# ----------------------------------------------------------------------------
# Rule table
# ----------------------------------------------------------------------------

def _route_term_pattern() -> re.Pattern:
    terms = sorted(ROUTE_TERMS, key=len, reverse=True)
    alternation = "|".join(r"\s+".join(map(re.escape, term.split())) for term in terms)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


FIELD_RULES: List[FieldRule] = [
    # name
    FieldRule("name", 10, ANCHOR_PATTERN, _anchor_name, claim_group="name"),
    FieldRule(
        "name", 20,
        re.compile(r"(?i:commonly[ \t]+known[ \t]+as)[ \t]+(?P<name>[A-Za-z][A-Za-z\-]+)"),
        _plain_name, claim_group=0,
    ),
    # Tall-man lettering: amLODIPine, hydrOXYzine
    FieldRule(
        "name", 30,
        re.compile(r"\b(?P<name>[a-z]{2,}[A-Z]{3,}[A-Za-z]*)\b"),
        _plain_name, claim_group="name",
    ),
    FieldRule(
        "name", 40,
        re.compile(rf"\b(?P<name>[A-Za-z]+(?:{'|'.join(DRUG_SUFFIXES)}))\b", re.IGNORECASE),
        _plain_name, claim_group="name",
    ),

    # dosage
    FieldRule(
        "dosage", 10,
        re.compile(
            rf"\(\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>{UNIT_PATTERN})\s*\)",
            re.IGNORECASE,
        ),
        _dosage,
    ),
    FieldRule(
        "dosage", 20,
        re.compile(
            rf"(?<![\w.])(?P<value>\d+(?:\.\d+)?)[ \t]*(?P<unit>{UNIT_PATTERN})",
            re.IGNORECASE,
        ),
        _dosage,
    ),

    # route
    FieldRule("route", 10, _route_term_pattern(), _route_term),
    FieldRule(
        "route", 20,
        re.compile(rf"\b(?:{'|'.join(ROUTE_ABBREVIATIONS)})\b"),
        _route_abbreviation,
    ),

    # frequency
    FieldRule(
        "frequency", 10,
        re.compile(
            r"\b(?P<count>once|twice|one\s+time|two\s+times|three\s+times|four\s+times"
            r"|[1-4]\s*(?:x|times?))\s+(?:(?:a|per|each)\s+)?"
            r"(?P<period>daily|day|weekly|week)\b",
            re.IGNORECASE,
        ),
        _counted_frequency,
    ),
    FieldRule(
        "frequency", 20,
        re.compile(
            r"\bevery\s+(?P<low>\d{1,2})\s*(?:(?:to|-)\s*(?P<high>\d{1,2})\s*)?(?:hours?|hrs?)\b",
            re.IGNORECASE,
        ),
        _hourly_frequency,
    ),
    FieldRule(
        "frequency", 25,
        re.compile(r"\bevery\s+(?P<part>day|morning|evening|night)\b", re.IGNORECASE),
        _part_of_day,
    ),
    FieldRule(
        "frequency", 30,
        re.compile(r"\b(?:qd|bid|tid|qid|qhs|qam|qpm|prn|q\s?(?P<hours>\d{1,2})\s?h)\b", re.IGNORECASE),
        _frequency_abbreviation,
    ),
    FieldRule("frequency", 40, re.compile(r"\bas\s+needed\b", re.IGNORECASE), _fixed("As needed")),
    FieldRule("frequency", 45, re.compile(r"\bat\s+bedtime\b", re.IGNORECASE), _fixed("At bedtime")),
    FieldRule(
        "frequency", 50,
        re.compile(r"\b(?:daily|weekly|monthly|nightly)\b", re.IGNORECASE),
        _frequency_word,
    ),

    # quantity
    FieldRule(
        "quantity", 10,
        re.compile(
            rf"\b(?:qty|quantity|disp(?:ense)?)\.?[ \t]*[:#]?[ \t]*(?P<count>\d+)"
            rf"(?:[ \t]+(?P<unit>{QUANTITY_UNITS}))?\b",
            re.IGNORECASE,
        ),
        _quantity,
    ),
    FieldRule(
        "quantity", 20,
        re.compile(rf"\b(?P<count>\d+)[ \t]+(?P<unit>{QUANTITY_UNITS})\b", re.IGNORECASE),
        _quantity,
    ),

    # prescriber
    FieldRule(
        "prescriber", 10,
        re.compile(
            rf"(?i:prescriber|prescribed[ \t]+by|doctor|physician)[ \t]*:?[ \t]*"
            rf"(?:(?i:dr)\.?[ \t]+)?(?P<name>{_PERSON})"
        ),
        _prescriber,
    ),
    FieldRule(
        "prescriber", 20,
        re.compile(rf"\b(?i:dr)\.?[ \t]+(?P<name>{_PERSON})"),
        _prescriber,
    ),
    FieldRule(
        "prescriber", 30,
        re.compile(rf"(?P<name>{_PERSON}),?[ \t]+(?:MD|M\.D\.|DO|NP|PA-C)\b"),
        _prescriber,
    ),

    # refills
    FieldRule(
        "refills", 10,
        re.compile(r"\brefills?(?:[ \t]+(?:remaining|left))?[ \t]*[:#]?[ \t]*(?P<count>\d+)\b", re.IGNORECASE),
        _refills,
    ),
    FieldRule("refills", 20, re.compile(r"\bno\s+refills?\b", re.IGNORECASE), _fixed("0")),
    FieldRule(
        "refills", 30,
        re.compile(r"\b(?P<count>\d+)[ \t]+refills?\b", re.IGNORECASE),
        _refills,
    ),
]


def rules_by_field(rules: List[FieldRule] = None) -> Dict[str, List[FieldRule]]:
    """Group rules per field, each list sorted by priority."""
    grouped: Dict[str, List[FieldRule]] = {}
    for rule in rules if rules is not None else FIELD_RULES:
        grouped.setdefault(rule.field, []).append(rule)
    for field_rules in grouped.values():
        field_rules.sort(key=lambda rule: rule.priority)
    return grouped
