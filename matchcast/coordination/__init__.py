"""Request coordination: in-flight guard, cooldown gate and UI session."""

from matchcast.coordination.inflight import InFlightTracker
from matchcast.coordination.coordinator import RequestCoordinator, RequestResult, RequestStatus
from matchcast.coordination.session import PredictionSession

__all__ = [
    "InFlightTracker",
    "RequestCoordinator",
    "RequestResult",
    "RequestStatus",
    "PredictionSession",
]
