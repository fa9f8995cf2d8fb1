"""Tagged request/response messages exchanged with the computation worker."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional
import uuid


class RequestType(str, Enum):
    CALCULATE_PREDICTIONS = "CALCULATE_PREDICTIONS"
    CALCULATE_ENSEMBLE = "CALCULATE_ENSEMBLE"
    CALCULATE_STATISTICS = "CALCULATE_STATISTICS"
    CALCULATE_LEGEND_MODE = "CALCULATE_LEGEND_MODE"
    SORT_MATCHES = "SORT_MATCHES"


class ResponseType(str, Enum):
    CALCULATE_PREDICTIONS_RESULT = "CALCULATE_PREDICTIONS_RESULT"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class WorkerRequest:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> Dict[str, Any]:
        kind = self.type.value if isinstance(self.type, RequestType) else str(self.type)
        return {"id": self.id, "type": kind, "payload": self.payload}

    @classmethod
    def from_dict(cls, message: Mapping[str, Any]) -> "WorkerRequest":
        return cls(
            type=str(message.get("type", "")),
            payload=dict(message.get("payload") or {}),
            id=str(message.get("id") or _new_id()),
        )


@dataclass
class WorkerResponse:
    type: str
    id: Optional[str] = None
    result: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.type != ResponseType.ERROR.value

    def to_dict(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"id": self.id, "type": self.type}
        if self.ok:
            message["result"] = self.result
        else:
            message["error"] = self.error
        return message

    @classmethod
    def from_dict(cls, message: Mapping[str, Any]) -> "WorkerResponse":
        return cls(
            type=str(message["type"]),
            id=message.get("id"),
            result=message.get("result"),
            error=message.get("error"),
        )

    @classmethod
    def failure(cls, request_id: Optional[str], error: str) -> "WorkerResponse":
        return cls(type=ResponseType.ERROR.value, id=request_id, error=error)
