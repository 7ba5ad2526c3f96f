import base64
import json
from dataclasses import dataclass
from enum import Enum
from typing import Union


class EventKind(str, Enum):
    STATUS = "status"
    RESULT = "result"
    VIDEO = "video"
    ERROR = "error"


@dataclass(frozen=True)
class WeatherResult:
    """Terminal payload of the image stage."""

    city: str
    image_data: bytes

    @property
    def image_base64(self) -> str:
        return base64.b64encode(self.image_data).decode("ascii")

    def to_json(self) -> str:
        return json.dumps({"city": self.city, "image_base64": self.image_base64})


@dataclass(frozen=True)
class ProgressEvent:
    kind: EventKind
    payload: Union[str, WeatherResult]

    @classmethod
    def status(cls, message: str) -> "ProgressEvent":
        return cls(EventKind.STATUS, message)

    @classmethod
    def result(cls, result: WeatherResult) -> "ProgressEvent":
        return cls(EventKind.RESULT, result)

    @classmethod
    def video(cls, url: str) -> "ProgressEvent":
        return cls(EventKind.VIDEO, url)

    @classmethod
    def error(cls, message: str) -> "ProgressEvent":
        return cls(EventKind.ERROR, message)

    @property
    def data(self) -> str:
        """Wire representation of the payload."""
        if isinstance(self.payload, WeatherResult):
            return self.payload.to_json()
        return self.payload
