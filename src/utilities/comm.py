"""Point-to-point messages and reductions between mesh partitions.

Three implementations share one interface:
- SerialCommunicator : single partition, reductions are the identity
- ThreadCommunicator : one partition per thread in this process
- MPICommunicator    : one partition per MPI rank (mpi4py)

Sends are non-blocking and must be completed with wait_all; receives block.
"""

import copy
import queue
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor

try:
    from mpi4py import MPI
except ImportError:
    MPI = None

REDUCTIONS = {
    "sum": sum,
    "max": max,
    "min": min,
}


class Communicator(ABC):
    rank = 0
    size = 1

    @property
    def parallel(self) -> bool:
        return self.size > 1

    @abstractmethod
    def send(self, dest: int, tag: int, payload) -> None:
        """Post a non-blocking send."""
        pass

    @abstractmethod
    def recv(self, source: int, tag: int):
        """Blocking receive of one message."""
        pass

    @abstractmethod
    def wait_all(self) -> None:
        """Complete all posted sends."""
        pass

    @abstractmethod
    def allreduce(self, value, op: str = "sum"):
        """Reduce a scalar over all partitions ("sum", "max" or "min")."""
        pass

    @abstractmethod
    def gather(self, obj, root: int = 0):
        """List of obj from every partition on root, None elsewhere."""
        pass

    @abstractmethod
    def barrier(self) -> None:
        pass


def _check_op(op):
    if op not in REDUCTIONS:
        raise ValueError(f"Unknown reduction '{op}', expected one of {sorted(REDUCTIONS)}")


# =============================================================================
# Serial
# =============================================================================


class SerialCommunicator(Communicator):
    def send(self, dest, tag, payload):
        raise RuntimeError("SerialCommunicator has no other partitions to send to")

    def recv(self, source, tag):
        raise RuntimeError("SerialCommunicator has no other partitions to receive from")

    def wait_all(self):
        pass

    def allreduce(self, value, op="sum"):
        _check_op(op)
        return value

    def gather(self, obj, root=0):
        return [obj]

    def barrier(self):
        pass


# =============================================================================
# Threads (in-process decomposed runs)
# =============================================================================


class _ThreadGroup:
    """State shared by the communicators of one group of threads."""

    def __init__(self, size, timeout):
        self.size = size
        self.timeout = timeout
        self.barrier = threading.Barrier(size)
        self.slots = [None] * size
        self._queues = {}
        self._lock = threading.Lock()

    def channel(self, source, dest, tag):
        key = (source, dest, tag)
        with self._lock:
            if key not in self._queues:
                self._queues[key] = queue.Queue()
            return self._queues[key]

    def wait(self):
        try:
            self.barrier.wait(self.timeout)
        except threading.BrokenBarrierError as e:
            raise RuntimeError(f"Partition synchronisation timed out after {self.timeout}s") from e


class ThreadCommunicator(Communicator):
    """Communicator for one partition of a group running in threads of one process.

    Messages travel through one queue per (source, dest, tag); payloads are
    deep-copied on send so that partitions never share arrays. Reductions use
    a shared slot list between two barrier waits.
    """

    def __init__(self, group, rank):
        self.group = group
        self.rank = rank
        self.size = group.size

    def send(self, dest, tag, payload):
        self.group.channel(self.rank, dest, tag).put(copy.deepcopy(payload))

    def recv(self, source, tag):
        try:
            return self.group.channel(source, self.rank, tag).get(timeout=self.group.timeout)
        except queue.Empty as e:
            raise RuntimeError(
                f"Rank {self.rank}: no message from rank {source} (tag {tag}) after {self.group.timeout}s"
            ) from e

    def wait_all(self):
        # Queue puts complete immediately
        pass

    def _exchange(self, obj):
        self.group.slots[self.rank] = obj
        self.group.wait()
        values = list(self.group.slots)
        self.group.wait()
        return values

    def allreduce(self, value, op="sum"):
        _check_op(op)
        return REDUCTIONS[op](self._exchange(value))

    def gather(self, obj, root=0):
        values = self._exchange(obj)
        return values if self.rank == root else None

    def barrier(self):
        self.group.wait()


def create_thread_communicators(size, timeout=60.0):
    """One ThreadCommunicator per partition, sharing a group."""
    group = _ThreadGroup(size, timeout)
    return [ThreadCommunicator(group, rank) for rank in range(size)]


def run_threaded(target, comms):
    """Call target(comm) for every communicator in its own thread.

    Returns the results in rank order. An exception raised in a partition
    aborts pending reductions of the others and is re-raised here.
    """
    def _run(comm):
        try:
            return target(comm)
        except Exception:
            # Release partitions waiting on a reduction with this one
            comm.group.barrier.abort()
            raise

    with ThreadPoolExecutor(max_workers=len(comms)) as pool:
        futures = [pool.submit(_run, comm) for comm in comms]
        return [f.result() for f in futures]


# =============================================================================
# MPI
# =============================================================================


class MPICommunicator(Communicator):
    def __init__(self, comm=None):
        if MPI is None:
            raise RuntimeError("mpi4py required for MPICommunicator")
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()
        self._requests = []

    def send(self, dest, tag, payload):
        self._requests.append(self.comm.isend(payload, dest=dest, tag=tag))

    def recv(self, source, tag):
        return self.comm.recv(source=source, tag=tag)

    def wait_all(self):
        if self._requests:
            MPI.Request.waitall(self._requests)
            self._requests = []

    def allreduce(self, value, op="sum"):
        _check_op(op)
        mpi_op = {"sum": MPI.SUM, "max": MPI.MAX, "min": MPI.MIN}[op]
        return self.comm.allreduce(value, op=mpi_op)

    def gather(self, obj, root=0):
        return self.comm.gather(obj, root=root)

    def barrier(self):
        self.comm.Barrier()
