# ============================================================================
# src/medication_capture/normalizers/ndc.py
# ============================================================================
"""
NDC Candidate Normalization

Turns a raw scanned barcode string into an ordered, de-duplicated list of
National Drug Code product strings (labeler-product, e.g. "0071-0155") to
try against the drug registry.

NDCs are printed in 4-4-2, 5-3-2 and 5-4-1 layouts and are re-encoded by
retailers and vendors in several ways (UPC-A wrapping, zero padding, leading
zero loss). We cannot tell which layout a given code used, so every
plausible labeler-product split is emitted. Earlier candidates are more
likely to be correct and are tried first.

Pure string transformation: no I/O.
"""

import re
import logging
from typing import List

logger = logging.getLogger(__name__)

# (labeler digits, product digits)
SPLIT_4_4 = (4, 4)
SPLIT_5_3 = (5, 3)
SPLIT_5_4 = (5, 4)
STANDARD_SPLITS = (SPLIT_4_4, SPLIT_5_3, SPLIT_5_4)

# Below this many digits (after stripping leading zeros) a code is too
# short to carry a labeler-product pair
MIN_STRIPPED_LENGTH = 8
MIN_CANDIDATE_DIGITS = 4


def digits_only(code: str) -> str:
    """Strip every non-digit character."""
    return re.sub(r"\D", "", code or "")


def segment(digits: str, first: int, second: int) -> str:
    """Hyphenate `digits` into a first-second labeler-product string."""
    return f"{digits[:first]}-{digits[first:first + second]}"


class CodeNormalizer:
    """
    Enumerates NDC candidates for a scanned code.

    Stateless; one instance can be shared across scans.
    """

    def normalize(self, raw_code: str) -> List[str]:
        """
        Produce candidate NDC strings, most likely first.

        Args:
            raw_code: Barcode text exactly as decoded

        Returns:
            Ordered unique candidates; empty when the code has no digits
        """
        raw_code = (raw_code or "").strip()
        digits = digits_only(raw_code)
        if not digits:
            return []

        candidates: List[str] = []

        # Already hyphenated: trust the printed labeler-product segments first
        if "-" in raw_code:
            segments = raw_code.split("-")
            if len(segments) >= 2 and segments[0].strip() and segments[1].strip():
                candidates.append(f"{segments[0].strip()}-{segments[1].strip()}")

        length = len(digits)

        if length == 12:
            # UPC-A: leading number-system digit, 10-digit NDC, check digit
            ndc11 = digits[1:12]
            ndc10 = digits[1:11]
            candidates.extend(self._splits(ndc11))
            candidates.extend(self._splits(ndc10))
            # Vendor quirk: labeler re-padded with a leading zero
            candidates.append(f"0{segment(ndc10, 4, 4)}")
            candidates.append(f"0{segment(ndc10, 3, 4)}")

        elif length == 11:
            candidates.extend(self._splits(digits))
            # Same code read with its final check digit dropped
            candidates.extend(self._splits(digits[:10]))

        elif length == 10:
            candidates.extend(self._splits("0" + digits))
            candidates.extend(self._splits(digits))

        elif length == 9:
            candidates.append(segment(digits, *SPLIT_5_4))

        elif length == 8:
            candidates.append(segment(digits, *SPLIT_4_4))

        # Retailers re-encode short NDCs with extra leading zeros
        stripped = digits.lstrip("0")
        if len(stripped) >= MIN_STRIPPED_LENGTH:
            candidates.append(segment(stripped, *SPLIT_4_4))
            candidates.append(segment(stripped, *SPLIT_5_3))

        # Unresolvable lengths still get one split so the caller can report
        # "not found" instead of "nothing detected"
        if not candidates and length >= MIN_CANDIDATE_DIGITS:
            candidates.append(segment(digits, 4, length - 4) if length > 4 else digits)

        unique = list(dict.fromkeys(candidates))
        logger.debug(f"Generated {len(unique)} NDC candidate(s) for {raw_code!r}: {unique}")
        return unique

    @staticmethod
    def _splits(digits: str) -> List[str]:
        return [segment(digits, first, second) for first, second in STANDARD_SPLITS]


# Default normalizer instance
default_normalizer = CodeNormalizer()


def normalize_code(raw_code: str) -> List[str]:
    """Convenience wrapper around the default normalizer."""
    return default_normalizer.normalize(raw_code)
