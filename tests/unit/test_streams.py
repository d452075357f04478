"""
Tests for per-path random streams.

Tests correctness of:
- Determinism per (seed, path index)
- Independence of neighbouring streams
- Uniform range and normal moments
- Stream-local Box-Muller spare
- Agreement between RandomStream and StreamBatch
"""

import numpy as np
import pytest

from sde_pricing.errors import InvalidParameterError
from sde_pricing.options.simulation.streams import RandomStream, StreamBatch, stream_for


class TestRandomStream:
    """Tests for the scalar stream."""

    def test_same_seed_and_index_reproduce(self):
        """Two streams for the same (seed, index) draw the same numbers."""
        a = stream_for(42, 7)
        b = stream_for(42, 7)
        assert [a.normal() for _ in range(10)] == [b.normal() for _ in range(10)]

    def test_different_indices_differ(self):
        a = stream_for(42, 0)
        b = stream_for(42, 1)
        assert [a.next_u64() for _ in range(5)] != [b.next_u64() for _ in range(5)]

    def test_different_seeds_differ(self):
        a = stream_for(1, 0)
        b = stream_for(2, 0)
        assert [a.uniform() for _ in range(5)] != [b.uniform() for _ in range(5)]

    def test_neighbouring_streams_are_not_shifted_copies(self):
        """Stream i+1 must not replay stream i offset by one draw."""
        s0 = stream_for(99, 0)
        s1 = stream_for(99, 1)
        draws0 = [s0.next_u64() for _ in range(20)]
        draws1 = [s1.next_u64() for _ in range(20)]
        assert not set(draws0) & set(draws1)

    def test_uniform_open_interval(self):
        stream = stream_for(2024, 3)
        draws = np.array([stream.uniform() for _ in range(10_000)])
        assert np.all(draws > 0.0)
        assert np.all(draws < 1.0)
        assert abs(draws.mean() - 0.5) < 0.02

    def test_normal_moments(self):
        """[T1] Box-Muller draws are standard normal."""
        stream = stream_for(7, 0)
        draws = np.array([stream.normal() for _ in range(20_000)])
        assert abs(draws.mean()) < 0.05
        assert abs(draws.var() - 1.0) < 0.05

    def test_spare_is_stream_local(self):
        """Interleaving two streams does not change either sequence."""
        solo_a = stream_for(5, 0)
        solo_b = stream_for(5, 1)
        expected_a = [solo_a.normal() for _ in range(6)]
        expected_b = [solo_b.normal() for _ in range(6)]

        a = stream_for(5, 0)
        b = stream_for(5, 1)
        got_a, got_b = [], []
        for _ in range(6):
            got_a.append(a.normal())
            got_b.append(b.normal())

        assert got_a == expected_a
        assert got_b == expected_b

    def test_normal_uses_one_uniform_pair_per_two_draws(self):
        stream = stream_for(11, 4)
        stream.normal()
        stream.normal()
        reference = stream_for(11, 4)
        reference.uniform()
        reference.uniform()
        assert stream.next_u64() == reference.next_u64()

    def test_invalid_seed(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(-1, 0)
        with pytest.raises(InvalidParameterError):
            RandomStream(2**64, 0)

    def test_max_seed_accepted(self):
        assert 0.0 < RandomStream(2**64 - 1, 0).uniform() < 1.0

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError, match="path_index"):
            RandomStream(1, -1)


class TestStreamBatch:
    """Tests for the vectorized stream view."""

    def test_uniform_rows_match_scalar_streams_exactly(self):
        batch = StreamBatch(seed=31, start=10, stop=15)
        block = batch.uniform(7)
        for row in range(5):
            stream = stream_for(31, 10 + row)
            expected = np.array([stream.uniform() for _ in range(7)])
            np.testing.assert_array_equal(block[row], expected)

    def test_raw_rows_match_scalar_streams(self):
        batch = StreamBatch(seed=2**63 + 5, start=0, stop=3)
        raw = batch.raw(4)
        for row in range(3):
            stream = stream_for(2**63 + 5, row)
            assert [int(x) for x in raw[row]] == [stream.next_u64() for _ in range(4)]

    @pytest.mark.parametrize("count", [1, 2, 5, 8])
    def test_normal_rows_match_scalar_streams(self, count):
        batch = StreamBatch(seed=8, start=100, stop=104)
        block = batch.standard_normal(count)
        assert block.shape == (4, count)
        for row in range(4):
            stream = stream_for(8, 100 + row)
            expected = np.array([stream.normal() for _ in range(count)])
            np.testing.assert_allclose(block[row], expected, rtol=1e-12, atol=1e-12)

    def test_batch_is_deterministic(self):
        a = StreamBatch(3, 0, 50).standard_normal(4)
        b = StreamBatch(3, 0, 50).standard_normal(4)
        np.testing.assert_array_equal(a, b)

    def test_overlapping_batches_agree(self):
        """Path i draws the same numbers whatever batch it belongs to."""
        wide = StreamBatch(3, 0, 20).standard_normal(3)
        narrow = StreamBatch(3, 5, 9).standard_normal(3)
        np.testing.assert_allclose(wide[5:9], narrow, rtol=1e-14, atol=1e-14)

    def test_empty_batch(self):
        assert StreamBatch(1, 4, 4).uniform(3).shape == (0, 3)

    def test_invalid_range(self):
        with pytest.raises(ValueError, match="invalid path range"):
            StreamBatch(1, 5, 2)
