"""
Car Domain Entities

- Car: a rentable vehicle with its aggregate statistics
- CarSearch: filters accepted by the catalogue search
- Review: a customer rating of a car
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from shared.domain.base import Aggregate, Entity
from shared.domain.value_objects import Money


@dataclass(kw_only=True, eq=False)
class Car(Aggregate):
    """
    Car Aggregate Root

    ``available`` says whether the car is currently free to hand out;
    the booking lifecycle clears it on confirmed payment and sets it again
    when the rental ends or is cancelled. Date-level availability is
    decided by the reservation index, not by this flag.
    """

    name: str
    category: str
    price_per_day: Money
    available: bool = True

    model: str = ''
    year: int | None = None
    transmission: str = ''
    fuel: str = ''
    seats: int | None = None
    location: str = ''
    description: str = ''
    features: list[str] = field(default_factory=list)

    total_bookings: int = 0
    total_revenue: Decimal = Decimal('0')
    average_rating: float = 0.0
    review_count: int = 0

    def __post_init__(self):
        if not self.name:
            raise ValueError("Car name is required")
        if not self.category:
            raise ValueError("Car category is required")
        if self.price_per_day.amount <= 0:
            raise ValueError("Price per day must be positive")
        if self.year is not None and not 1950 <= self.year <= 2100:
            raise ValueError(f"Implausible model year: {self.year}")

    @property
    def currency(self) -> str:
        return self.price_per_day.currency

    def __str__(self):
        return f"{self.name} ({self.category})"


@dataclass(kw_only=True, eq=False)
class Review(Entity):
    car_id: str
    user_id: str
    rating: int
    comment: str = ''

    def __post_init__(self):
        if not 1 <= self.rating <= 5:
            raise ValueError("Rating must be between 1 and 5")


@dataclass
class CarSearch:
    """Catalogue search filters; every field is optional."""
    category: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    transmission: str | None = None
    fuel: str | None = None
    model: str | None = None
    min_year: int | None = None
    max_year: int | None = None
    available_only: bool = True
    sort_by: str | None = None  # price-low | price-high | rating | year | popular | name


SORT_KEYS = {
    'price-low': (lambda car: car.price_per_day.amount, False),
    'price-high': (lambda car: car.price_per_day.amount, True),
    'rating': (lambda car: car.average_rating, True),
    'year': (lambda car: car.year or 0, True),
    'popular': (lambda car: car.total_bookings, True),
    'name': (lambda car: car.name.lower(), False),
}


def matches_search(car: Car, search: CarSearch) -> bool:
    if search.available_only and not car.available:
        return False
    if search.category and search.category != 'all' and car.category != search.category:
        return False
    if search.min_price is not None and car.price_per_day.amount < search.min_price:
        return False
    if search.max_price is not None and car.price_per_day.amount > search.max_price:
        return False
    if search.transmission and car.transmission != search.transmission:
        return False
    if search.fuel and car.fuel != search.fuel:
        return False
    if search.model:
        needle = search.model.lower()
        if needle not in car.name.lower() and needle not in car.model.lower():
            return False
    if search.min_year is not None and (car.year or 0) < search.min_year:
        return False
    if search.max_year is not None and (car.year or 0) > search.max_year:
        return False
    return True


def sort_cars(cars: list[Car], sort_by: str | None) -> list[Car]:
    if not sort_by:
        return cars
    key, reverse = SORT_KEYS.get(sort_by, SORT_KEYS['name'])
    return sorted(cars, key=key, reverse=reverse)


def rating_after(car: Car, new_rating: int) -> tuple[float, int]:
    """Average rating and count once ``new_rating`` is added."""
    count = car.review_count + 1
    average = (car.average_rating * car.review_count + new_rating) / count
    return round(average, 2), count
