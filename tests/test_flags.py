"""Tests for FlagKind and FlagsWithData."""

import pytest
from annotext import FlagKind, FlagsWithData
from annotext.flags import NO_PAYLOAD, iter_kinds, kind_from_bits, pack_single, unpack_single

H = FlagKind.HIGHLIGHT
U = FlagKind.UNDERLINE
I = FlagKind.ITALICIZE  # noqa: E741
N = FlagKind.NOTE


class TestFlagKind:
    """The bit values are part of the save format."""

    def test_bit_values(self):
        """Test each kind keeps its on-disk bit."""
        assert int(I) == 1
        assert int(H) == 2
        assert int(U) == 4
        assert int(N) == 8
        assert FlagKind.ALL == I | H | U | N

    def test_iter_kinds_lowest_first(self):
        """Test single kinds come out in bit order."""
        assert list(iter_kinds(N | I | U)) == [I, U, N]

    def test_kind_from_bits_rejects_combinations(self):
        """Test only single kinds convert from raw bits."""
        assert kind_from_bits(4) == U
        with pytest.raises(ValueError):
            kind_from_bits(3)
        with pytest.raises(ValueError):
            kind_from_bits(0)

    def test_pack_single(self):
        """Test packing a kind and payload id into a u64."""
        value = pack_single(H, 3)
        assert value == (2 << 32) | 3
        assert unpack_single(value) == (H, 3)


class TestFlagsWithData:
    """Tests for the kind -> payload id mapping."""

    def test_bitset_is_derived(self):
        """Test the bitset is exactly the kinds present."""
        flags = FlagsWithData(H | U, [(H, 7)])
        assert flags.bitset == H | U
        assert flags.data == [(H, 7)]
        assert flags.payload_for(U) is None

    def test_empty(self):
        """Test an empty value is falsy and has no bits."""
        flags = FlagsWithData.empty()
        assert flags.is_empty()
        assert not flags
        assert flags.bitset == FlagKind(0)

    def test_equality_needs_matching_payloads(self):
        """Test equality compares payload ids as well as kinds."""
        assert FlagsWithData.of(H, 3) == FlagsWithData.of(H, 3)
        assert FlagsWithData.of(H, 3) != FlagsWithData.of(H, 4)
        assert FlagsWithData.of(H) != FlagsWithData.of(H, 3)
        assert FlagsWithData(H | U) == FlagsWithData(U | H)

    def test_insert(self):
        """Test inserting unions the kinds."""
        flags = FlagsWithData.of(H)
        flags.insert(FlagsWithData.of(U))
        assert flags.bitset == H | U

    def test_insert_payload_replaces(self):
        """Test an inserted payload id wins over the existing one."""
        flags = FlagsWithData.of(H, 1)
        flags.insert(FlagsWithData.of(H, 5))
        assert flags.payload_for(H) == 5

    def test_insert_without_payload_keeps_existing(self):
        """Test inserting a bare kind keeps the payload already held."""
        flags = FlagsWithData.of(H, 2)
        flags.insert(FlagsWithData.of(H))
        assert flags.payload_for(H) == 2

    def test_remove_ignores_payload(self):
        """Test removal drops kinds whatever their payload."""
        flags = FlagsWithData(H | U, [(H, 2)])
        flags.remove(FlagsWithData.of(H, 9))
        assert flags == FlagsWithData.of(U)
        flags.remove(U)
        assert flags.is_empty()

    def test_copy_is_independent(self):
        """Test a copy doesn't share state with the original."""
        flags = FlagsWithData.of(H, 1)
        other = flags.copy()
        other.insert(FlagsWithData.of(U))
        assert flags.bitset == H

    def test_contains_pair(self):
        """Test pair containment checks kinds and payload ids."""
        flags = FlagsWithData(H | U, [(H, 2)])
        assert flags.contains_pair(FlagsWithData.of(H, 2))
        assert flags.contains_pair(FlagsWithData.of(H))
        assert not flags.contains_pair(FlagsWithData.of(H, 3))
        assert not flags.contains_pair(FlagsWithData.of(N))

    def test_rewrite_payload(self):
        """Test rewriting only touches the matching old id."""
        flags = FlagsWithData.of(H, 2)
        assert not flags.rewrite_payload(H, 1, 0)
        assert flags.rewrite_payload(H, 2, 0)
        assert flags == FlagsWithData.of(H, 0)

    def test_singles(self):
        """Test the packed form, with NO_PAYLOAD for bare kinds."""
        flags = FlagsWithData(H | U, [(H, 3)])
        singles = flags.to_singles()
        assert singles == [(2 << 32) | 3, (4 << 32) | NO_PAYLOAD]
        assert FlagsWithData.from_singles(singles) == flags

    def test_unhashable(self):
        """Test the mutable value can't be hashed."""
        with pytest.raises(TypeError):
            hash(FlagsWithData.of(H))
