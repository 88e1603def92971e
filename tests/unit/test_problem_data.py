"""Tests for problem data storage."""

import numpy as np
import pytest

from eqlib.core.assembly.problem_data import ProblemData


SIZES = (4, 3, 7, 6, 3, 2)


@pytest.fixture
def data():
    return ProblemData.with_sizes(*SIZES)


class TestResize:
    """Test layout and zeroing."""

    def test_lengths(self, data):
        """Test views have the requested sizes."""
        n, m, nnz_dg, nnz_hm, _, _ = SIZES

        assert len(data.g()) == m
        assert len(data.df()) == n
        assert len(data.dg_values()) == nnz_dg
        assert len(data.hm_values()) == nnz_hm
        assert len(data) == 1 + m + n + nnz_dg + nnz_hm
        assert data.sizes == SIZES

    def test_zeroed(self, data):
        """Test all values start at zero."""
        assert data.f == 0.0
        assert np.all(data.values() == 0.0)
        assert np.all(data.buffer == 0.0)
        assert data.computation_time == 0.0
        assert data.assemble_time == 0.0

    def test_buffer_size(self, data):
        """Test scratch buffer holds one element Jacobian and Hessian."""
        _, _, _, _, element_n, element_m = SIZES

        assert len(data.buffer) == element_m * element_n + element_m * element_n * element_n

    def test_buffer_size_without_equations(self):
        """Test buffer is sized for at least one equation."""
        data = ProblemData.with_sizes(2, 0, 0, 3, 2, 0)

        assert len(data.buffer) == 2 + 4

    def test_negative_size(self):
        """Test error for negative sizes."""
        with pytest.raises(ValueError):
            ProblemData.with_sizes(-1, 3, 0, 0, 1, 1)

    def test_resize_zeroes_values(self, data):
        """Test resize clears previous contents."""
        data.f = 3.0
        data.df()[:] = 1.0

        data.resize(2, 2, 1, 1, 1, 1)

        assert data.f == 0.0
        assert np.all(data.values() == 0.0)
        assert len(data) == 1 + 2 + 2 + 1 + 1

    def test_views_follow_reallocation(self, data):
        """Test views taken after resize refer to the new storage."""
        old = data.g()

        data.resize(5, 5, 5, 5, 2, 2)

        assert not np.shares_memory(old, data.values())
        assert np.shares_memory(data.g(), data.values())


class TestAccess:
    """Test views and element accessors."""

    def test_views_write_through(self, data):
        """Test views write into the flat buffer at their offsets."""
        n, m, nnz_dg, _, _, _ = SIZES

        data.f = 1.5
        data.g()[1] = 2.0
        data.df()[0] = 3.0
        data.dg_values()[2] = 4.0
        data.hm_values()[-1] = 5.0

        values = data.values()

        assert values[0] == 1.5
        assert values[1 + 1] == 2.0
        assert values[1 + m] == 3.0
        assert values[1 + m + n + 2] == 4.0
        assert values[-1] == 5.0

    def test_element_accessors(self, data):
        """Test scalar accessors match views."""
        data.g()[:] = [1.0, 2.0, 3.0]
        data.df()[:] = [4.0, 5.0, 6.0, 7.0]
        data.dg_values()[:] = np.arange(7.0)
        data.hm_values()[:] = np.arange(6.0) + 10

        assert data.g(2) == 3.0
        assert data.df(3) == 7.0
        assert data.dg_value(5) == 5.0
        assert data.hm_value(0) == 10.0

    @pytest.mark.parametrize("accessor, index", [
        ("g", 3),
        ("g", -1),
        ("df", 4),
        ("df", -1),
        ("dg_value", 7),
        ("hm_value", 6),
        ("hm_value", -1),
    ])
    def test_element_accessor_bounds(self, data, accessor, index):
        """Test scalar accessors do not read into neighbouring views."""
        data.values()[:] = 1.0

        with pytest.raises(IndexError):
            getattr(data, accessor)(index)

    def test_set_zero(self, data):
        """Test set_zero resets values and timers."""
        data.values()[:] = 1.0
        data.buffer[:] = 1.0
        data.computation_time = 2.0
        data.assemble_time = 3.0

        data.set_zero()

        assert np.all(data.values() == 0.0)
        assert np.all(data.buffer == 0.0)
        assert data.computation_time == 0.0
        assert data.assemble_time == 0.0


class TestAccumulate:
    """Test reduction of partial results."""

    def test_iadd(self):
        """Test values and timers are summed."""
        a = ProblemData.with_sizes(*SIZES)
        b = ProblemData.with_sizes(*SIZES)

        a.values()[:] = np.arange(len(a), dtype=float)
        b.values()[:] = 1.0
        a.computation_time = 0.5
        b.computation_time = 0.25
        a.assemble_time = 1.0
        b.assemble_time = 2.0

        result = a
        result += b

        assert result is a
        np.testing.assert_array_equal(a.values(), np.arange(len(a)) + 1.0)
        np.testing.assert_array_equal(b.values(), np.ones(len(b)))
        assert a.computation_time == pytest.approx(0.75)
        assert a.assemble_time == pytest.approx(3.0)

    def test_iadd_order_independent(self):
        """Test reduction order does not change the sum."""
        rng = np.random.default_rng(0)
        parts = []

        for _ in range(3):
            part = ProblemData.with_sizes(*SIZES)
            part.values()[:] = rng.integers(-5, 5, len(part))
            parts.append(part)

        forward = ProblemData.with_sizes(*SIZES)
        for part in parts:
            forward += part

        backward = ProblemData.with_sizes(*SIZES)
        for part in reversed(parts):
            backward += part

        np.testing.assert_array_equal(forward.values(), backward.values())

    def test_iadd_size_mismatch(self):
        """Test error for different layouts."""
        a = ProblemData.with_sizes(*SIZES)
        b = ProblemData.with_sizes(1, 1, 1, 1, 1, 1)

        with pytest.raises(ValueError):
            a += b
