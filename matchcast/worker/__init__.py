"""Off-thread computation worker."""

from matchcast.worker.messages import RequestType, ResponseType, WorkerRequest, WorkerResponse
from matchcast.worker.computation import ComputationWorker, handle_message

__all__ = [
    "RequestType",
    "ResponseType",
    "WorkerRequest",
    "WorkerResponse",
    "ComputationWorker",
    "handle_message",
]
