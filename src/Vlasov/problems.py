"""Initial conditions and analytic fields for diagnostics runs and tests.

Distribution functions are written as ``func(x, v)`` callables accepting
broadcastable arrays, the form expected by ``DistributedField.fill``.
"""

import numpy as np


def maxwellian(v, v0: float = 0.0, vth: float = 1.0):
    """Normalized Maxwellian in velocity."""
    return np.exp(-0.5 * ((v - v0) / vth) ** 2) / (np.sqrt(2.0 * np.pi) * vth)


def landau_distribution(eps: float = 0.01, k: float = 0.5):
    """Linear Landau damping: ``(1 + eps cos(k x)) M(v)``."""

    def func(x, v):
        return (1.0 + eps * np.cos(k * x)) * maxwellian(v)

    return func


def two_stream_distribution(eps: float = 0.01, k: float = 0.2, v0: float = 2.4):
    """Two counter-streaming Maxwellians with a cosine perturbation."""

    def func(x, v):
        beams = 0.5 * (maxwellian(v, v0) + maxwellian(v, -v0))
        return (1.0 + eps * np.cos(k * x)) * beams

    return func


def constant_distribution(c: float = 1.0):
    """Uniform ``f(x, v) = c``."""

    def func(x, v):
        return np.full(np.broadcast(x, v).shape, c, dtype=np.float64)

    return func


def index_distribution(nv: int):
    """``f = i_x * nv + i_v`` on a unit-spaced grid, for reconstruction checks."""

    def func(x, v):
        return x * nv + v

    return func


def sinusoidal_field(x, length: float = None, amplitude: float = 1.0):
    """``E(x) = amplitude * sin(2 pi x / length)``; one period over the mesh by default."""
    x = np.asarray(x, dtype=np.float64)
    if length is None:
        length = x[-1] - x[0]
    return amplitude * np.sin(2.0 * np.pi * x / length)


def make_distribution(name: str, **kwargs):
    """Factory for the initial conditions selectable from the config."""
    if name == "landau":
        return landau_distribution(eps=kwargs.get("eps", 0.01), k=kwargs.get("k", 0.5))
    elif name == "two_stream":
        return two_stream_distribution(eps=kwargs.get("eps", 0.01), k=kwargs.get("k", 0.2))
    elif name == "constant":
        return constant_distribution(kwargs.get("c", 1.0))
    else:
        raise ValueError(f"Unknown problem: {name}")


def free_streaming(func, time: float):
    """Exact collisionless, force-free evolution: ``f(x, v, t) = f0(x - v t, v)``."""

    def shifted(x, v):
        return func(x - v * time, v)

    return shifted


def periodic_gauss_field(rho, x):
    """Periodic 1-D field with ``dE/dx = rho - <rho>`` and zero mean.

    Uses the first ``N - 1`` samples (the last is the periodic image of the
    first) and returns a field on all ``N`` samples.
    """
    rho = np.asarray(rho, dtype=np.float64)
    x = np.asarray(x, dtype=np.float64)
    n = x.size - 1
    length = x[-1] - x[0]
    rho_hat = np.fft.rfft(rho[:n] - np.mean(rho[:n]))
    k = 2.0 * np.pi * np.fft.rfftfreq(n, d=length / n)
    E_hat = np.zeros_like(rho_hat)
    E_hat[1:] = rho_hat[1:] / (1j * k[1:])
    E = np.fft.irfft(E_hat, n=n)
    return np.append(E, E[0])
