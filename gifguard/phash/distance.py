"""Symbol-wise Hamming distance for hex fingerprints."""

import math
from typing import Union

from .const import FINGERPRINT_RADIX

# Set bits in each 4-bit value
ONE_BITS = tuple(bin(value).count("1") for value in range(FINGERPRINT_RADIX))


def hamming_distance(fp1: str, fp2: str) -> Union[int, float]:
    """Count differing bits between two hex fingerprints.

    Fingerprints of different lengths, or containing non-hex symbols, are not
    comparable and get an infinite distance.
    """
    if len(fp1) != len(fp2):
        return math.inf
    try:
        return sum(
            ONE_BITS[int(a, FINGERPRINT_RADIX) ^ int(b, FINGERPRINT_RADIX)]
            for a, b in zip(fp1, fp2)
        )
    except ValueError:
        return math.inf


def is_match(fp1: str, fp2: str, threshold: int) -> bool:
    """True if the fingerprints are closer than ``threshold`` bits."""
    return hamming_distance(fp1, fp2) < threshold
