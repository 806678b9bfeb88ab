"""
Car catalogue service

CRUD over car listings, search, reviews and per-car statistics.
Mutations other than reviews are admin-only.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from apps.store.backend import get_document_store
from apps.users.identity import Actor, require_actor, require_admin
from shared.application.result import returns_result
from shared.application.uow import DocumentStoreUnitOfWork, retry_on_conflict
from shared.conf import rental_setting
from shared.domain.base import new_id, utcnow
from shared.domain.errors import NotFound, ValidationFailed
from shared.domain.value_objects import Money
from shared.infrastructure.document_store import DocumentStore
from shared.infrastructure.mapping import to_decimal

from .domain import Car, CarSearch, Review, matches_search, rating_after, sort_cars
from .repository import CarRepository

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'name', 'category', 'price_per_day', 'available', 'model', 'year', 'transmission',
    'fuel', 'seats', 'location', 'description', 'features',
)


class CarCatalog:
    def __init__(self, store: DocumentStore, clock: Callable = utcnow, retries: int | None = None):
        self.store = store
        self.clock = clock
        self.retries = retries if retries is not None else rental_setting('CONCURRENCY_RETRIES')
        self.cars = CarRepository(store)

    def _get(self, car_id: str) -> Car:
        car = self.cars.get(car_id)
        if car is None:
            raise NotFound('car', car_id)
        return car

    @staticmethod
    def _build(car_id: str, data: dict[str, Any], base: Car | None = None) -> Car:
        fields = {name: getattr(base, name) for name in EDITABLE_FIELDS} if base else {}
        fields.update({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        currency = data.get('currency') or (base.currency if base else rental_setting('CURRENCY'))
        price = fields.get('price_per_day')

        try:
            if price is not None and not isinstance(price, Money):
                fields['price_per_day'] = Money(to_decimal(price), currency)
            car = Car(id=car_id, **fields)
        except (TypeError, ValueError) as e:
            raise ValidationFailed(str(e)) from e

        if base is not None:
            car.version = base.version
            car.created_at = base.created_at
            car.total_bookings = base.total_bookings
            car.total_revenue = base.total_revenue
            car.average_rating = base.average_rating
            car.review_count = base.review_count
        return car

    @returns_result
    def add_car(self, data: dict[str, Any], actor: Actor | None) -> Car:
        require_admin(actor)
        car = self._build(new_id(), data)
        batch = self.store.batch()
        self.cars.stage_create(batch, car)
        self.store.commit(batch)
        logger.info(f"Car {car.id} added: {car}")
        return self._get(car.id)

    @returns_result
    def get_car(self, car_id: str) -> Car:
        return self._get(car_id)

    @returns_result
    def update_car(self, car_id: str, data: dict[str, Any], actor: Actor | None) -> Car:
        require_admin(actor)

        def attempt() -> Car:
            car = self._build(car_id, data, base=self._get(car_id))
            batch = self.store.batch()
            self.cars.stage_save(batch, car)
            self.store.commit(batch)
            return car

        retry_on_conflict(attempt, self.retries)
        logger.info(f"Car {car_id} updated: {sorted(data)}")
        return self._get(car_id)

    @returns_result
    def delete_car(self, car_id: str, actor: Actor | None) -> None:
        require_admin(actor)
        self._get(car_id)
        batch = self.store.batch()
        self.cars.stage_delete(batch, car_id)
        self.store.commit(batch)
        logger.info(f"Car {car_id} deleted")

    @returns_result
    def set_availability(self, car_id: str, available: bool, actor: Actor | None) -> Car:
        require_admin(actor)
        self._get(car_id)
        batch = self.store.batch()
        self.cars.stage_availability(batch, car_id, available)
        self.store.commit(batch)
        return self._get(car_id)

    @returns_result
    def list_cars(self, category: str | None = None) -> list[Car]:
        return self.cars.list(category)

    @returns_result
    def search_cars(self, search: CarSearch) -> list[Car]:
        found = [car for car in self.cars.list() if matches_search(car, search)]
        return sort_cars(found, search.sort_by)

    @returns_result
    def add_review(self, car_id: str, rating: int, comment: str, actor: Actor | None) -> Car:
        """Store a review and fold it into the car's average rating."""
        require_actor(actor, "Authentication required to review a car")
        try:
            review = Review(car_id=car_id, user_id=actor.id, rating=int(rating), comment=comment or '')
        except (TypeError, ValueError) as e:
            raise ValidationFailed(str(e)) from e

        def attempt() -> Car:
            car = self._get(car_id)
            car.average_rating, car.review_count = rating_after(car, review.rating)
            with DocumentStoreUnitOfWork(self.store) as uow:
                self.cars.stage_review(uow.batch, review)
                self.cars.stage_save(uow.batch, car)
            return car

        retry_on_conflict(attempt, self.retries)
        logger.info(f"Review {review.id} added to car {car_id} ({review.rating}/5)")
        return self._get(car_id)

    @returns_result
    def get_reviews(self, car_id: str) -> list[dict]:
        self._get(car_id)
        return self.cars.reviews_for(car_id)

    @returns_result
    def get_car_statistics(self, car_id: str) -> dict[str, Any]:
        car = self._get(car_id)
        return {
            'total_bookings': car.total_bookings,
            'total_revenue': car.total_revenue,
            'average_rating': car.average_rating,
            'review_count': car.review_count,
            'available': car.available,
        }


def get_car_catalog() -> CarCatalog:
    return CarCatalog(get_document_store())
