"""MPI worker - invoked via: mpiexec -n X python -m Vlasov.helpers.runner_helper '{config}'"""

import json
import logging
import sys

import h5py
import numpy as np
from mpi4py import MPI

from Vlasov import (
    DistributedField,
    Mesh,
    create_kernel,
    diag_1d,
    diag_energy,
    diag_f,
    kinetic_energy,
    make_distribution,
    sinusoidal_field,
    update_spatial_density,
    write_snapshot,
)
from Vlasov.runner import LAYOUTS

log = logging.getLogger(__name__)


def run_layout(config: dict, meshx: Mesh, meshv: Mesh, start_layout: str, comm) -> dict:
    """Run every diagnostic with the field parked in ``start_layout`` before each call."""
    func = make_distribution(
        config.get("problem", "landau"),
        eps=config.get("eps", 0.01),
        k=config.get("k", 0.5),
        c=config.get("c", 1.0),
    )
    kernel = create_kernel(config.get("use_numba", False))
    folder = config.get("folder")
    tag = config.get("tag", "f")

    field = DistributedField(
        meshx, meshv, comm, layout=start_layout, reconciler=config.get("reconciler", "numpy")
    )
    field.fill(func)

    rho = update_spatial_density(field, kernel=kernel)

    field.ensure_layout(start_layout)
    ke = kinetic_energy(field, factor=config.get("factor", 1.0), kernel=kernel)

    field.ensure_layout(start_layout)
    f = diag_f(
        field,
        0,
        0.0,
        f"{tag}_{start_layout}_",
        folder,
        is_periodic=config.get("is_periodic", False),
        writer=write_snapshot if folder else None,
    )

    if folder and comm.Get_rank() == 0:
        diag_1d(rho, meshx.samples, f"rho_{start_layout}_", folder, 0, 0.0)

    return {"rho": rho, "f": f, "kinetic_energy": ke}


def main():
    logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(message)s")

    config = json.loads(sys.argv[1])
    comm = MPI.COMM_WORLD
    rank = comm.Get_rank()

    meshx = Mesh.uniform(config.get("x_min", 0.0), config.get("x_max", 4.0 * np.pi), config["nx"])
    meshv = Mesh.uniform(config.get("v_min", -6.0), config.get("v_max", 6.0), config["nv"])

    results = {layout: run_layout(config, meshx, meshv, layout, comm) for layout in LAYOUTS}
    field_energy = diag_energy(sinusoidal_field(meshx.samples), meshx.samples)

    # Save results to HDF5 (rank 0 only)
    output_path = config.get("output")
    if rank == 0 and output_path:
        with h5py.File(output_path, "w") as f:
            f.attrs["n_ranks"] = comm.Get_size()
            f.attrs["field_energy"] = field_energy
            for layout, res in results.items():
                grp = f.create_group(layout)
                grp.create_dataset("rho", data=res["rho"])
                grp.create_dataset("f", data=res["f"])
                grp.attrs["kinetic_energy"] = res["kinetic_energy"]

    if rank == 0:
        # Just print the path - runner.py will load the HDF5
        print(f"RESULT:{output_path}")


if __name__ == "__main__":
    main()
