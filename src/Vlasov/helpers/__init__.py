"""Helpers for MPI worker processes."""
