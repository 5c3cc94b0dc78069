"""Tests for velocity-moment kernels."""

import numpy as np
import pytest
from Vlasov import NumPyKernel, NumbaKernel, create_kernel


def random_block(n_rows=7, nv=33, seed=0):
    rng = np.random.default_rng(seed)
    return rng.standard_normal((n_rows, nv)), np.linspace(-3.0, 3.0, nv)


def test_kernels_produce_identical_results():
    """NumPy and Numba kernels should agree to round-off."""
    f, v = random_block()
    dv = v[1] - v[0]

    numpy_kernel = NumPyKernel()
    numba_kernel = NumbaKernel(specified_numba_threads=1)
    numba_kernel.warmup()

    out_numpy, out_numba = np.empty(f.shape[0]), np.empty(f.shape[0])
    numpy_kernel.trapezoid_rows(f, dv, out_numpy)
    numba_kernel.trapezoid_rows(f, dv, out_numba)

    assert np.allclose(out_numpy, out_numba, atol=1e-12)
    assert numpy_kernel.second_moment(f, v) == pytest.approx(numba_kernel.second_moment(f, v), rel=1e-12)


@pytest.mark.parametrize("use_numba", [False, True])
def test_trapezoid_exact_for_linear_rows(use_numba):
    """Trapezoidal rule integrates a + b v exactly."""
    v = np.linspace(-2.0, 3.0, 11)
    a = np.array([1.0, -0.5, 2.0])
    b = np.array([0.0, 2.0, -1.0])
    f = a[:, np.newaxis] + b[:, np.newaxis] * v[np.newaxis, :]

    out = np.empty(3)
    create_kernel(use_numba).trapezoid_rows(f, v[1] - v[0], out)

    expected = a * (3.0 - -2.0) + b * (3.0**2 - (-2.0) ** 2) / 2
    assert np.allclose(out, expected, atol=1e-12)


def test_second_moment_weights_by_velocity():
    f = np.ones((2, 3))
    v = np.array([-1.0, 0.0, 2.0])

    # 2 rows * (1 + 0 + 4)
    assert NumPyKernel().second_moment(f, v) == pytest.approx(10.0)


def test_empty_block():
    """A rank owning no rows produces nothing and sums to zero."""
    f = np.empty((0, 5))
    v = np.linspace(-1.0, 1.0, 5)
    out = np.empty(0)

    NumPyKernel().trapezoid_rows(f, 0.5, out)
    assert NumPyKernel().second_moment(f, v) == 0.0


def test_factory():
    assert isinstance(create_kernel(), NumPyKernel)
    assert isinstance(create_kernel(use_numba=True), NumbaKernel)
    assert create_kernel(use_numba=True, numba_threads=1).observed_numba_threads >= 1
