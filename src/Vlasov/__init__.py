"""Vlasov diagnostics package.

Distributed diagnostic reductions for a 1D1V Vlasov simulation whose
distribution function is decomposed across MPI ranks, either by position
(PAR_X) or by velocity (PAR_V).

Diagnostics
-----------
Scalar:
- kinetic_energy: all-reduced ``factor/2 * int v^2 f``
- diag_energy: L2 norm of a replicated 1-D field

Gathered:
- update_spatial_density: velocity integral on the full position mesh
- diag_f: full (x, v) snapshot, written from rank 0

Output:
- diag_1d: two-column text profile
"""

from .datastructures import (
    Mesh,
    DiagnosticParams,
    DiagnosticSeries,
    LocalParams,
)
from .decomposition import (
    LayoutMode,
    RankBox,
    DecompositionTable,
    DomainDecomposition,
)
from .kernels import NumPyKernel, NumbaKernel, create_kernel
from .mpi import (
    DistributedField,
    create_reconciler,
    all_gather_varlen,
    all_reduce_sum,
)
from .diagnostics import (
    kinetic_energy,
    kinetic_energy_local,
    update_spatial_density,
    diag_energy,
    total_mass,
    diag_1d,
    diag_f,
    gather_distribution,
    reconstruct_rows,
)
from .io import (
    write_profile,
    read_profile,
    write_snapshot,
    read_snapshot,
    save_series,
    load_series,
)
from .problems import (
    maxwellian,
    landau_distribution,
    two_stream_distribution,
    constant_distribution,
    index_distribution,
    sinusoidal_field,
    free_streaming,
    periodic_gauss_field,
    make_distribution,
)
from .runner import run_diagnostics

__all__ = [
    # Data structures
    "Mesh",
    "DiagnosticParams",
    "DiagnosticSeries",
    "LocalParams",
    # Decomposition
    "LayoutMode",
    "RankBox",
    "DecompositionTable",
    "DomainDecomposition",
    # Kernels
    "NumPyKernel",
    "NumbaKernel",
    "create_kernel",
    # MPI
    "DistributedField",
    "create_reconciler",
    "all_gather_varlen",
    "all_reduce_sum",
    # Diagnostics
    "kinetic_energy",
    "kinetic_energy_local",
    "update_spatial_density",
    "diag_energy",
    "total_mass",
    "diag_1d",
    "diag_f",
    "gather_distribution",
    "reconstruct_rows",
    # Output
    "write_profile",
    "read_profile",
    "write_snapshot",
    "read_snapshot",
    "save_series",
    "load_series",
    # Problem setup
    "maxwellian",
    "landau_distribution",
    "two_stream_distribution",
    "constant_distribution",
    "index_distribution",
    "sinusoidal_field",
    "free_streaming",
    "periodic_gauss_field",
    "make_distribution",
    # Runner
    "run_diagnostics",
]
