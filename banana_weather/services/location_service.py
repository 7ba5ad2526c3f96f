import logging
from typing import Any, List, Mapping

from botocore.exceptions import BotoCoreError, ClientError

from banana_weather.errors import ResolutionError

logger = logging.getLogger(__name__)


# Amazon Location reports full region names; US states are shown by postal code.
US_STATE_CODES = {
    "Alabama": "AL", "Alaska": "AK", "Arizona": "AZ", "Arkansas": "AR", "California": "CA",
    "Colorado": "CO", "Connecticut": "CT", "Delaware": "DE", "District of Columbia": "DC",
    "Florida": "FL", "Georgia": "GA", "Hawaii": "HI", "Idaho": "ID", "Illinois": "IL",
    "Indiana": "IN", "Iowa": "IA", "Kansas": "KS", "Kentucky": "KY", "Louisiana": "LA",
    "Maine": "ME", "Maryland": "MD", "Massachusetts": "MA", "Michigan": "MI", "Minnesota": "MN",
    "Mississippi": "MS", "Missouri": "MO", "Montana": "MT", "Nebraska": "NE", "Nevada": "NV",
    "New Hampshire": "NH", "New Jersey": "NJ", "New Mexico": "NM", "New York": "NY",
    "North Carolina": "NC", "North Dakota": "ND", "Ohio": "OH", "Oklahoma": "OK", "Oregon": "OR",
    "Pennsylvania": "PA", "Puerto Rico": "PR", "Rhode Island": "RI", "South Carolina": "SC",
    "South Dakota": "SD", "Tennessee": "TN", "Texas": "TX", "Utah": "UT", "Vermont": "VT",
    "Virginia": "VA", "Washington": "WA", "West Virginia": "WV", "Wisconsin": "WI", "Wyoming": "WY",
}


def short_region(place: Mapping[str, Any]) -> str:
    region = place.get("Region") or ""
    if place.get("Country") == "USA":
        return US_STATE_CODES.get(region, region)
    return region


def friendly_name(places: List[Mapping[str, Any]]) -> str:
    """Build "City, Region" from the first reverse-geocoding match.

    Falls back to the label of any match that names a municipality, then to the
    label of the first match.
    """
    first = places[0]
    city = first.get("Municipality") or ""
    region = short_region(first)
    country = first.get("Country") or ""

    if city:
        if region:
            return f"{city}, {region}"
        if country:
            return f"{city}, {country}"
        return city

    for place in places:
        if place.get("Municipality") and place.get("Label"):
            return place["Label"]

    return first.get("Label") or ""


class LocationService:
    """Resolves city names and coordinates with an Amazon Location place index."""

    def __init__(self, location_client, place_index: str):
        self.client = location_client
        self.place_index = place_index

    def resolve_city(self, city: str) -> str:
        logger.info("Geocoding city: %s", city)
        try:
            response = self.client.search_place_index_for_text(
                IndexName=self.place_index, Text=city, MaxResults=1
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Geocoding failed for %s", city)
            raise ResolutionError(str(exc)) from exc

        results = response.get("Results") or []
        if not results:
            logger.info("Geocoding found no results for: %s", city)
            raise ResolutionError("city not found")

        place = results[0].get("Place") or {}
        label = place.get("Label")
        if not label:
            raise ResolutionError("city not found")
        point = (place.get("Geometry") or {}).get("Point") or [None, None]
        logger.info("Geocoding success: %s (Lng/Lat: %s)", label, point)
        return label

    def resolve_coordinates(self, lat: float, lng: float) -> str:
        logger.info("Reverse geocoding lat: %f, lng: %f", lat, lng)
        try:
            response = self.client.search_place_index_for_position(
                IndexName=self.place_index, Position=[lng, lat], MaxResults=5
            )
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Reverse geocoding failed")
            raise ResolutionError(str(exc)) from exc

        places = [r.get("Place") or {} for r in response.get("Results") or []]
        if not places:
            raise ResolutionError("location not found")

        name = friendly_name(places)
        if not name:
            raise ResolutionError("location not found")
        logger.info("Reverse geocoding success: %s", name)
        return name
