from typing import List, Optional

from pydantic import BaseModel, Field


class Preset(BaseModel):
    id: str = Field(..., description="Unique preset identifier")
    name: str
    category: str = ""
    image_url: str = ""
    video_url: str = ""


class StreamedEvent(BaseModel):
    event: str
    data: str


class WeatherSummary(BaseModel):
    """Single-response body for clients that cannot consume an event stream."""

    city: Optional[str] = None
    image_base64: Optional[str] = None
    video_url: Optional[str] = None
    error: Optional[str] = None
    events: List[StreamedEvent] = Field(default_factory=list)
