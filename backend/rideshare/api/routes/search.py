"""
Trip search routes.
"""
from fastapi import APIRouter, Depends, Query
from typing import List, Optional
from rideshare.api.dependencies import get_container
from rideshare.schemas.search import TripSearchResultResponse
from rideshare.services.container import ServiceContainer
from rideshare.services.search import AreaQuery, SearchQuery, SearchFilters, SortOption

router = APIRouter(prefix="/search", tags=["search"])


def _to_responses(results) -> List[TripSearchResultResponse]:
    return [TripSearchResultResponse.model_validate(result, from_attributes=True) for result in results]


def _search(container: ServiceContainer, query: SearchQuery, amenities: List[str]):
    results = container.search.search(query)
    if amenities:
        results = container.search.apply_filters(
            results, SearchFilters(amenities=amenities, sort_by=query.sort_by)
        )
    return results


@router.get("", response_model=List[TripSearchResultResponse])
async def search_trips(
    from_query: Optional[str] = None,
    to_query: Optional[str] = None,
    departure_date: Optional[int] = None,
    seats: int = 1,
    max_price: Optional[float] = None,
    min_rating: Optional[float] = None,
    sort_by: SortOption = SortOption.DEPARTURE_TIME,
    amenities: List[str] = Query(default=[]),
    container: ServiceContainer = Depends(get_container)
):
    """Search trips by origin and destination text."""
    query = SearchQuery(
        from_query=from_query,
        to_query=to_query,
        departure_date=departure_date,
        required_seats=seats,
        max_price=max_price,
        min_rating=min_rating,
        sort_by=sort_by,
    )
    results = await container.executor.run(_search, container, query, amenities)
    return _to_responses(results)


@router.get("/area", response_model=List[TripSearchResultResponse])
async def search_trips_by_area(
    start_lat: float,
    start_lng: float,
    end_lat: float,
    end_lng: float,
    radius_km: Optional[float] = None,
    departure_date: Optional[int] = None,
    seats: int = 1,
    max_price: Optional[float] = None,
    min_rating: Optional[float] = None,
    sort_by: SortOption = SortOption.DEPARTURE_TIME,
    amenities: List[str] = Query(default=[]),
    container: ServiceContainer = Depends(get_container)
):
    """Search trips starting and ending near the given points."""
    if radius_km is None:
        radius_km = container.settings.DEFAULT_SEARCH_RADIUS_KM
    query = SearchQuery(
        area=AreaQuery(start_lat, start_lng, end_lat, end_lng, radius_km),
        departure_date=departure_date,
        required_seats=seats,
        max_price=max_price,
        min_rating=min_rating,
        sort_by=sort_by,
    )
    results = await container.executor.run(_search, container, query, amenities)
    return _to_responses(results)


@router.get("/popular", response_model=List[TripSearchResultResponse])
async def popular_trips(
    limit: Optional[int] = None,
    container: ServiceContainer = Depends(get_container)
):
    """Next upcoming trips."""
    results = await container.executor.run(container.search.popular_trips, limit)
    return _to_responses(results)
