from fastapi import APIRouter, Depends, HTTPException, status
from ..schemas.place import PlaceSearchQuery, PlaceSearchResponse
from ..services.auth import get_current_user
from ..services.places import PlacesConfigurationError, PlacesSearchError, search_places

router = APIRouter()


@router.post("/search", response_model=PlaceSearchResponse)
def search(
    search_query: PlaceSearchQuery,
    current_user = Depends(get_current_user)
):
    try:
        results = search_places(search_query.query)
    except PlacesConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    except PlacesSearchError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e)
        )
    return PlaceSearchResponse(results=results)
