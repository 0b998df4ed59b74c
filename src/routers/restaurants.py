from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from src.core.deps import get_current_caller
from src.db.session import get_db
from src.schemas.sync import RestaurantCreate, RestaurantResponse
from src.services.access import Caller
from src.services.restaurants import create_restaurant_with_owner

router = APIRouter(prefix="/restaurants", tags=["restaurants"])


@router.post("", response_model=RestaurantResponse, status_code=status.HTTP_201_CREATED)
def create_restaurant(
    request: RestaurantCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_caller),
):
    """
    Create a restaurant owned by the caller.

    A duplicate submission within a few seconds returns the restaurant
    created by the first one.
    """
    restaurant = create_restaurant_with_owner(db, caller, request.name, request.timezone)
    return RestaurantResponse.model_validate(restaurant)
