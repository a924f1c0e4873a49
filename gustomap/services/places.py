import os
import logging
import requests
from typing import Any, Dict, List, Optional, Tuple
from ..models import PlaceCategory
from ..schemas.place import PlaceCandidate

logger = logging.getLogger(__name__)

SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
PHOTO_URL = "https://places.googleapis.com/v1/{name}/media?maxWidthPx=800&key={key}"
FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.types",
    "places.primaryType",
    "places.primaryTypeDisplayName",
    "places.photos",
    "places.addressComponents",
])
LANGUAGE_CODE = "it"
MAX_RESULTS = 8
MIN_QUERY_LENGTH = 2
REQUEST_TIMEOUT = 10

BAR_TYPES = {"bar", "night_club"}
CAFE_TYPES = {"cafe", "coffee_shop"}

DRAFT_FIELDS = ("name", "latitude", "longitude", "category", "city", "province", "region")


class PlacesSearchError(Exception):
    pass


class PlacesConfigurationError(PlacesSearchError):
    pass


def _post(api_key: str, body: Dict[str, Any]) -> requests.Response:
    return requests.post(
        SEARCH_URL,
        json=body,
        headers={
            "Content-Type": "application/json",
            "X-Goog-Api-Key": api_key,
            "X-Goog-FieldMask": FIELD_MASK,
        },
        timeout=REQUEST_TIMEOUT,
    )


def search_places(query: str) -> List[PlaceCandidate]:
    """
    Text search for venues matching ``query``.

    Restaurants are searched first; if Google rejects that request the search
    is repeated once without the type restriction.
    """
    query = (query or "").strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    api_key = os.environ.get("GOOGLE_PLACES_API_KEY")
    if not api_key:
        raise PlacesConfigurationError("Google Places API key not configured")

    body = {"textQuery": query, "languageCode": LANGUAGE_CODE, "maxResultCount": MAX_RESULTS}
    try:
        response = _post(api_key, {**body, "includedType": "restaurant"})
        if not response.ok:
            logger.error(f"Google Places API error: {response.text}")
            response = _post(api_key, body)
            if not response.ok:
                logger.error(f"Google Places API retry error: {response.text}")
                raise PlacesSearchError(f"Google Places API error: {response.status_code}")
    except requests.RequestException as e:
        logger.error(f"Google Places request failed: {str(e)}")
        raise PlacesSearchError(str(e)) from e

    places = response.json().get("places") or []
    logger.debug(f"Place search for {query!r} returned {len(places)} results")
    return map_places(places, api_key)


def _address_component(components: List[dict], kind: str) -> Optional[str]:
    for component in components:
        if kind in (component.get("types") or []):
            return component.get("longText") or component.get("shortText") or None
    return None


def _photo_url(photos: List[dict], api_key: str) -> Optional[str]:
    if not photos or not photos[0].get("name"):
        return None
    return PHOTO_URL.format(name=photos[0]["name"], key=api_key)


def guess_category(types: List[str], primary_type: str) -> PlaceCategory:
    if BAR_TYPES & set(types) or primary_type == "bar":
        return PlaceCategory.BAR
    if CAFE_TYPES & set(types) or primary_type == "cafe":
        return PlaceCategory.CAFE
    return PlaceCategory.RESTAURANT


def map_places(places: List[dict], api_key: str) -> List[PlaceCandidate]:
    candidates = []
    for place in places:
        components = place.get("addressComponents") or []
        location = place.get("location") or {}
        candidates.append(PlaceCandidate(
            place_id=place.get("id", ""),
            name=(place.get("displayName") or {}).get("text", ""),
            address=place.get("formattedAddress", ""),
            latitude=location.get("latitude"),
            longitude=location.get("longitude"),
            category=guess_category(place.get("types") or [], place.get("primaryType") or ""),
            primary_type=(place.get("primaryTypeDisplayName") or {}).get("text", ""),
            city=_address_component(components, "locality")
                or _address_component(components, "administrative_area_level_3"),
            province=_address_component(components, "administrative_area_level_2"),
            region=_address_component(components, "administrative_area_level_1"),
            photo_url=_photo_url(place.get("photos") or [], api_key),
        ))
    return candidates


def apply_place_to_draft(draft: Dict[str, Any], candidate: PlaceCandidate) -> Dict[str, Any]:
    """Copy the venue fields of a search result onto a review draft."""
    merged = dict(draft)
    for field in DRAFT_FIELDS:
        value = getattr(candidate, field)
        if value is not None and value != "":
            merged[field] = value
    if candidate.address:
        merged["location"] = candidate.address
    if candidate.photo_url and not merged.get("image_refs"):
        merged["image_refs"] = [candidate.photo_url]
    return merged


def apply_coordinates(draft: Dict[str, Any], coords: Optional[Tuple[float, float]]) -> Dict[str, Any]:
    """Set the device position on a draft; no position leaves it as it was."""
    if coords is None:
        return dict(draft)
    latitude, longitude = coords
    return {**draft, "latitude": latitude, "longitude": longitude}
