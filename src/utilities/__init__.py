"""Cross-project utilities (partition communication, MLflow IO)."""

# Keep __init__ lightweight, MLflow helpers are imported from utilities.mlflow where needed.
from utilities.comm import (  # noqa: F401
    Communicator,
    MPICommunicator,
    SerialCommunicator,
    ThreadCommunicator,
    create_thread_communicators,
    run_threaded,
)

__all__ = [
    "Communicator",
    "SerialCommunicator",
    "ThreadCommunicator",
    "MPICommunicator",
    "create_thread_communicators",
    "run_threaded",
]
