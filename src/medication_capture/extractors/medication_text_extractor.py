# ============================================================================
# src/medication_capture/extractors/medication_text_extractor.py
# ============================================================================
"""
Medication Label Text Extractor

Turns recognized label text into one partial medication record per
detected medication:

1. Count distinct medication anchors (capitalized name + strength, keyed
   by both) and distinct Rx numbers. One anchor (or none) and at most one
   Rx number means the whole text is a single label.
2. Otherwise split into segments at blank lines, rule lines, bullets and
   numbered items, then cut segments holding several anchors at each
   anchor (and at each Rx line). Anchorless segments stay with the
   medication above them.
3. Run the field rule table per block. Fields without a match are left
   out of the record entirely.
4. Instructions are whatever text no other field claimed, minus label
   noise (pharmacy, Rx number, phone, MRN).
"""

from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import re

from .field_rules import (
    DOSAGE_FORM_WORDS,
    FIELD_RULES,
    FieldRule,
    RuleMatch,
    anchor_names,
    rules_by_field,
)
from ..core.context.medication_draft import DRAFT_FIELDS

logger = logging.getLogger(__name__)

# A block is only a medication if one of these was found
IDENTIFYING_FIELDS = ("name", "dosage", "route", "frequency")

RULE_LINE = re.compile(r"^\s*[-=_*~]{3,}\s*$")
LIST_ITEM = re.compile(r"^\s*(?:[•*\-]|\d{1,2}[.)])\s+")

RX_NUMBER = re.compile(r"\brx\s*(?:#|no\.?|number)?\s*:?\s*(?P<number>\d{4,})", re.IGNORECASE)

NOISE_LINES = [
    re.compile(r"\bpharmacy\b", re.IGNORECASE),
    RX_NUMBER,
    re.compile(r"\(?\b\d{3}\)?[\s.\-]\d{3}[\s.\-]\d{4}\b"),
    re.compile(r"\bMRN\b", re.IGNORECASE),
    re.compile(r"\bauth(?:orization)?\s+required\b", re.IGNORECASE),
    re.compile(r"\bNDC\b", re.IGNORECASE),
]

# Label words left behind once their values are claimed
FILLER_WORDS = frozenset({
    "qty", "quantity", "disp", "dispense", "prescriber", "prescribed", "by",
    "dr", "doctor", "physician", "md", "refill", "refills", "sig", "rx",
    "of", "and", "no",
}) | DOSAGE_FORM_WORDS


def rx_numbers_in(text: str) -> Iterator[Tuple[str, int]]:
    """Yield (prescription number, start offset) for every Rx number in text."""
    for match in RX_NUMBER.finditer(text):
        yield match.group("number"), match.start()


class TextFieldExtractor:
    """
    Rule-table extraction of medication fields from label text.

    Stateless; one instance can serve concurrent scans.
    """

    def __init__(self, rules: Optional[Sequence[FieldRule]] = None):
        self.rules = rules_by_field(list(rules) if rules is not None else FIELD_RULES)

    def extract(self, raw_text: str) -> List[Dict[str, str]]:
        """
        Extract medication records from recognized text.

        Args:
            raw_text: Full text from the recognition engine

        Returns:
            List of field dicts, one per detected medication. Empty when the
            text is blank or nothing medication-like was found.
        """
        return [fields for fields, _ in self.extract_with_sources(raw_text)]

    def extract_with_sources(self, raw_text: str) -> List[Tuple[Dict[str, str], Dict[str, str]]]:
        """
        Like `extract`, paired with the label text each field was read from.

        Returns:
            (fields, sources) per detected medication. sources maps a field
            to the exact text its rule claimed ("PO" for route "Oral");
            instructions have no source entry.
        """
        if not raw_text or not raw_text.strip():
            return []

        records = []
        for block in self.split_blocks(raw_text):
            fields, sources = self._extract_block(block)
            if any(name in fields for name in IDENTIFYING_FIELDS):
                records.append((fields, sources))

        logger.debug(f"Extracted {len(records)} medication record(s) from label text")
        return records

    def extract_field(self, field: str, text: str) -> Optional[RuleMatch]:
        """First accepted match for one field, by rule priority."""
        for rule in self.rules.get(field, []):
            match = rule.apply(text)
            if match is not None:
                return match
        return None

    def extract_block(self, block: str) -> Dict[str, str]:
        return self._extract_block(block)[0]

    def _extract_block(self, block: str) -> Tuple[Dict[str, str], Dict[str, str]]:
        fields: Dict[str, str] = {}
        sources: Dict[str, str] = {}
        claimed: List[Tuple[int, int]] = []

        for field in DRAFT_FIELDS:
            if field == "instructions":
                continue
            match = self.extract_field(field, block)
            if match is None:
                continue
            fields[field] = match.value
            sources[field] = block[match.start:match.end]
            claimed.append((match.start, match.end))

        instructions = self._remainder(block, claimed)
        if instructions:
            fields["instructions"] = instructions

        ordered = {field: fields[field] for field in DRAFT_FIELDS if field in fields}
        return ordered, sources

    # ------------------------------------------------------------------
    # Block detection
    # ------------------------------------------------------------------

    def split_blocks(self, text: str) -> List[str]:
        """
        Split text into one block per medication.

        A new block starts at an anchor whose (name, strength) differs from
        the current block's, and, when the text carries more than one Rx
        number, at each line introducing a different Rx number.
        """
        distinct = {key for key, _ in anchor_names(text)}
        rx_numbers = {number for number, _ in rx_numbers_in(text)}
        split_rx = len(rx_numbers) > 1
        if len(distinct) <= 1 and not split_rx:
            return [text.strip()]

        blocks: List[str] = []
        current: List[str] = []
        current_key = None
        current_rx = None

        for segment in self._segments(text):
            for piece in self._split_at_anchors(segment, split_rx):
                keys = [key for key, _ in anchor_names(piece)]
                key = keys[0] if keys else None
                numbers = [number for number, _ in rx_numbers_in(piece)] if split_rx else []
                rx = numbers[0] if numbers else None

                new_medication = key and current_key and key != current_key
                new_label = rx and current_rx and rx != current_rx
                if current and (new_medication or new_label):
                    blocks.append("\n".join(current))
                    current, current_key, current_rx = [], None, None

                current.append(piece)
                if key and current_key is None:
                    current_key = key
                if rx and current_rx is None:
                    current_rx = rx

        if current:
            blocks.append("\n".join(current))

        logger.debug(
            f"Detected {len(distinct)} medication anchors and {len(rx_numbers)} Rx number(s), "
            f"{len(blocks)} block(s)"
        )
        return blocks

    @staticmethod
    def _segments(text: str) -> List[str]:
        segments: List[str] = []
        lines: List[str] = []

        def flush():
            if lines:
                segments.append("\n".join(lines))
                lines.clear()

        for line in text.splitlines():
            if not line.strip() or RULE_LINE.match(line):
                flush()
                continue
            item = LIST_ITEM.match(line)
            if item:
                flush()
                line = line[item.end():]
            lines.append(line.strip())

        flush()
        return segments

    @staticmethod
    def _split_at_anchors(segment: str, split_rx: bool = False) -> List[str]:
        cuts = []
        previous = None
        for key, start in anchor_names(segment):
            if previous is not None and key != previous:
                cuts.append(start)
            previous = key

        if split_rx:
            for _, start in rx_numbers_in(segment):
                line_start = segment.rfind("\n", 0, start) + 1
                if line_start > 0:
                    cuts.append(line_start)

        if not cuts:
            return [segment]

        pieces = []
        begin = 0
        for cut in sorted(set(cuts)):
            pieces.append(segment[begin:cut].strip())
            begin = cut
        pieces.append(segment[begin:].strip())
        return [piece for piece in pieces if piece]

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    @staticmethod
    def _remainder(block: str, claimed: List[Tuple[int, int]]) -> Optional[str]:
        chars = list(block)
        for start, end in claimed:
            for i in range(start, end):
                if chars[i] != "\n":
                    chars[i] = " "
        remaining = "".join(chars).split("\n")

        kept = []
        for original, line in zip(block.split("\n"), remaining):
            if any(pattern.search(original) for pattern in NOISE_LINES):
                continue
            line = re.sub(r"\s+", " ", line).strip(" \t,;:.-()")
            words = [re.sub(r"[^a-z0-9]", "", word.lower()) for word in line.split()]
            if all(not word or word in FILLER_WORDS or word.isdigit() for word in words):
                continue
            kept.append(line)

        text = " ".join(kept)
        if not re.search(r"[A-Za-z]{2,}", text):
            return None
        return text
