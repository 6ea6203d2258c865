"""
Hotel catalog entries.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class HotelRef(BaseModel):
    """A read-only hotel from the site catalog."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    price: int = Field(..., ge=0)
    location: str
    rating: float = Field(..., ge=0.0, le=5.0)

    @property
    def short_name(self) -> str:
        """Name without the city suffix, e.g. 'The Langham'."""
        return self.name.split(",")[0].strip()

    def formatted_price(self) -> str:
        """Nightly price with space-grouped thousands, e.g. '1 240 000 DH/nuit'."""
        return f"{self.price:,}".replace(",", " ") + " DH/nuit"


DEFAULT_CATALOG: List[HotelRef] = [
    HotelRef(id=1, name="The Ritz-Carlton, Melbourne", price=1240000,
             location="Mabbin, Australia", rating=5.0),
    HotelRef(id=2, name="The Langham, Gold Coast", price=1240000,
             location="Mabbin, Australia", rating=5.0),
    HotelRef(id=3, name="Longitude 131°, Uluru", price=1240000,
             location="Mabbin, Australia", rating=5.0),
    HotelRef(id=4, name="Qualia Resort, Hamilton Island", price=1450000,
             location="Whitsundays, Australia", rating=5.0),
    HotelRef(id=5, name="The Peninsula, Sydney", price=1680000,
             location="Sydney, Australia", rating=5.0),
]


def find_hotel(catalog: List[HotelRef], hotel_id: int) -> Optional[HotelRef]:
    """Return the catalog entry with the given id, or None."""
    for hotel in catalog:
        if hotel.id == hotel_id:
            return hotel
    return None
