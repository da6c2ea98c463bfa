"""Consistency of face transport across partition boundaries.

A face on a processor patch exists once on each side, each copy oriented out
of its own cell, so the two copies of a face-integrated quantity must be
negatives of each other. Faces whose transport was computed or corrected on
this side are registered during a round; a sync sends them to the other side,
which overwrites its copy with the negated value.

Messages are exchanged per processor patch: all sends are posted before any
receive, so every partition must call the same sequence of sync methods.
"""

import logging

import numpy as np

from geometry.iso_cut_face import SMALL
from utilities.comm import SerialCommunicator

log = logging.getLogger(__name__)

TAG_FACE_TRANSPORT = 101
TAG_CELL_VALUES = 102
TAG_POINT_VALUES = 103
TAG_CHECK = 104


class ProcessorChannel:
    """Point-to-point link to one neighbouring partition.

    One channel serves a processor patch; partitions that share only points
    get a channel of their own for the point sums.
    """

    def __init__(self, comm, neighbour_rank, name=""):
        self.comm = comm
        self.neighbour_rank = neighbour_rank
        self.name = name

    def send(self, tag, payload):
        self.comm.send(self.neighbour_rank, tag, payload)

    def recv(self, tag):
        return self.comm.recv(self.neighbour_rank, tag)


class ParallelFluxSynchronizer:
    """Processor face registry and halo exchanges of one partition.

    Parameters
    ----------
    mesh : MeshData
        Local partition mesh
    comm : Communicator, optional
        Defaults to a SerialCommunicator, for which all exchanges are no-ops
    debug : bool
        Log every received face value
    """

    def __init__(self, mesh, comm=None, debug=False):
        self.mesh = mesh
        self.comm = comm if comm is not None else SerialCommunicator()
        self.debug = debug
        self.proc_patches = mesh.processor_patches()
        self.channels = {
            patchi: ProcessorChannel(self.comm, mesh.patches[patchi].neighbour_rank, mesh.patches[patchi].name)
            for patchi in self.proc_patches
        }
        self.point_channels = {
            rank: ProcessorChannel(self.comm, rank, f"points{self.comm.rank}to{rank}")
            for rank in sorted(mesh.shared_points)
        }
        self.registry = {patchi: [] for patchi in self.proc_patches}
        self.n_inconsistent = 0

    @property
    def parallel(self) -> bool:
        return self.comm.parallel

    # ------------------------------------------------------------------
    # Face transport
    # ------------------------------------------------------------------

    def register_face(self, facei):
        """Mark a face whose value must be sent, if it lies on a processor patch."""
        if self.mesh.is_internal_face(facei):
            return
        patchi = self.mesh.which_patch(facei)
        if patchi in self.registry:
            self.registry[patchi].append(self.mesh.patch_face_index(facei))

    def clear(self):
        for faces in self.registry.values():
            faces.clear()

    def sync_face_transport(self, dVf):
        """Send registered processor face values and write the negated remote values.

        dVf is modified in place. The registry is cleared afterwards.
        """
        if not self.parallel:
            self.clear()
            return

        for patchi in self.proc_patches:
            start = self.mesh.patches[patchi].start
            ids = np.array(self.registry[patchi], dtype=np.int64)
            self.channels[patchi].send(TAG_FACE_TRANSPORT, (ids, dVf[start + ids]))

        for patchi in self.proc_patches:
            start = self.mesh.patches[patchi].start
            ids, values = self.channels[patchi].recv(TAG_FACE_TRANSPORT)
            if ids.size == 0:
                continue

            # A face registered on both sides must already agree
            both = np.isin(ids, self.registry[patchi])
            if both.any():
                diff = np.abs(dVf[start + ids[both]] + values[both])
                bad = diff > 10 * SMALL * np.maximum(1.0, np.abs(values[both]))
                if bad.any():
                    self.n_inconsistent += int(bad.sum())
                    log.warning(
                        f"Rank {self.comm.rank}: {int(bad.sum())} faces on {self.mesh.patches[patchi].name} "
                        f"differ from the negated remote transport (max {diff.max():.3e})"
                    )

            dVf[start + ids] = -values
            if self.debug:
                log.debug(f"Rank {self.comm.rank}: received {ids.size} face values on "
                          f"{self.mesh.patches[patchi].name}: {values}")

        self.comm.wait_all()
        self.clear()

    def check_antisymmetry(self, dVf) -> float:
        """Largest |local + remote| over all processor faces of all partitions."""
        if not self.parallel:
            return 0.0

        for patchi in self.proc_patches:
            self.channels[patchi].send(TAG_CHECK, dVf[self.mesh.patches[patchi].faces()])

        err = 0.0
        for patchi in self.proc_patches:
            remote = self.channels[patchi].recv(TAG_CHECK)
            local = dVf[self.mesh.patches[patchi].faces()]
            err = max(err, float(np.abs(local + remote).max()))
        self.comm.wait_all()

        return self.global_max(err)

    # ------------------------------------------------------------------
    # Halo exchanges
    # ------------------------------------------------------------------

    def exchange_patch_cell_values(self, values):
        """Cell values across every processor patch, face by face.

        Returns
        -------
        dict
            Processor patch index -> values of the remote cells adjacent to its faces
        """
        if not self.parallel:
            return {}

        owner = self.mesh.owner_cells
        for patchi in self.proc_patches:
            faces = self.mesh.patches[patchi].faces()
            self.channels[patchi].send(TAG_CELL_VALUES, np.asarray(values)[owner[faces]])

        remote = {patchi: self.channels[patchi].recv(TAG_CELL_VALUES) for patchi in self.proc_patches}
        self.comm.wait_all()
        return remote

    def sync_point_values(self, sums, weights):
        """Add the remote weighted sums and weights on points shared with other partitions.

        Used as the sync hook of interpolate_to_points. Every partition whose
        cells touch a point contributes, including partitions that meet this
        one only along an edge or at a corner. Only local contributions are
        sent, so each cell is counted once.
        """
        if not self.parallel:
            return

        shared = self.mesh.shared_points
        for rank, channel in self.point_channels.items():
            pts = shared[rank]
            channel.send(TAG_POINT_VALUES, (sums[pts], weights[pts]))

        received = [(rank, channel.recv(TAG_POINT_VALUES)) for rank, channel in self.point_channels.items()]
        self.comm.wait_all()

        for rank, (remote_sums, remote_weights) in received:
            pts = shared[rank]
            sums[pts] += remote_sums
            weights[pts] += remote_weights

    # ------------------------------------------------------------------
    # Reductions
    # ------------------------------------------------------------------

    def global_sum(self, value):
        return self.comm.allreduce(value, "sum")

    def global_max(self, value):
        return self.comm.allreduce(value, "max")

    def global_min(self, value):
        return self.comm.allreduce(value, "min")

    def gather(self, obj, root=0):
        return self.comm.gather(obj, root)
