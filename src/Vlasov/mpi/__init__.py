"""MPI layout handling and collectives.

This package provides:
- DistributedField: Per-rank distribution function with layout tracking
- LayoutReconciler: Strategies for switching layouts (numpy/object)
- all_gather_varlen / all_reduce_sum: Collective primitives
"""

from .field import DistributedField
from .layout import LayoutReconciler, NumpyReconciler, ObjectReconciler, create_reconciler
from .collectives import all_gather_varlen, all_reduce_sum

__all__ = [
    "DistributedField",
    "LayoutReconciler",
    "NumpyReconciler",
    "ObjectReconciler",
    "create_reconciler",
    "all_gather_varlen",
    "all_reduce_sum",
]
