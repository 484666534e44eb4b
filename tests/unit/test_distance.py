"""Unit tests for fingerprint distance."""

import math

import pytest

from gifguard.phash.distance import ONE_BITS, hamming_distance, is_match
from ..test_const import FP_A, FP_A_FAR, FP_A_NEAR, FP_SHORT, FP_ZERO


class TestHammingDistance:
    """Test symbol-wise Hamming distance."""

    def test_one_bits_table(self):
        assert len(ONE_BITS) == 16
        assert ONE_BITS[0x0] == 0
        assert ONE_BITS[0x7] == 3
        assert ONE_BITS[0xF] == 4

    @pytest.mark.parametrize("fingerprint", [FP_A, FP_ZERO, "0123456789abcdef", "aaaa"])
    def test_identity(self, fingerprint):
        assert hamming_distance(fingerprint, fingerprint) == 0

    @pytest.mark.parametrize("fp1,fp2", [(FP_A, FP_A_NEAR), (FP_A, FP_ZERO), ("1234", "fedc")])
    def test_symmetry(self, fp1, fp2):
        assert hamming_distance(fp1, fp2) == hamming_distance(fp2, fp1)

    def test_single_low_bit_difference(self):
        assert hamming_distance("aaaa", "aaab") == 1

    def test_known_distances(self):
        assert hamming_distance(FP_A, FP_A_NEAR) == 1
        assert hamming_distance(FP_A, FP_A_FAR) == 16
        assert hamming_distance(FP_A, FP_ZERO) == 128
        assert hamming_distance("0", "f") == 4

    def test_case_insensitive_symbols(self):
        assert hamming_distance("ABCD", "abcd") == 0

    def test_different_lengths_never_match(self):
        assert hamming_distance(FP_A, FP_SHORT) == math.inf
        assert not is_match(FP_A, FP_SHORT, threshold=10**6)

    def test_non_hex_symbols_are_not_comparable(self):
        assert hamming_distance("zzzz", "aaaa") == math.inf


class TestIsMatch:
    """Test the strict threshold predicate."""

    def test_below_threshold(self):
        assert is_match(FP_A, FP_A_NEAR, threshold=12)

    def test_at_threshold_is_not_a_match(self):
        assert hamming_distance("0000", "0fff") == 12
        assert not is_match("0000", "0fff", threshold=12)

    def test_far_apart(self):
        assert not is_match(FP_A, FP_A_FAR, threshold=12)
