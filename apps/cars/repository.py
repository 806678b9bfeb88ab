"""Car persistence in the ``cars`` and ``reviews`` collections."""

from __future__ import annotations

import logging
from decimal import Decimal

from shared.domain.value_objects import Money
from shared.infrastructure.document_store import (
    SERVER_TIMESTAMP,
    Document,
    DocumentStore,
    Increment,
    WriteBatch,
    where,
)
from shared.infrastructure.mapping import decimal_str, to_decimal

from .domain import Car, Review

logger = logging.getLogger(__name__)

CARS = 'cars'
REVIEWS = 'reviews'


def car_to_document(car: Car) -> dict:
    return {
        'name': car.name,
        'category': car.category,
        'pricePerDay': decimal_str(car.price_per_day.amount),
        'currency': car.currency,
        'available': car.available,
        'model': car.model,
        'year': car.year,
        'transmission': car.transmission,
        'fuel': car.fuel,
        'seats': car.seats,
        'location': car.location,
        'description': car.description,
        'features': list(car.features),
        'totalBookings': car.total_bookings,
        'totalRevenue': decimal_str(car.total_revenue),
        'averageRating': car.average_rating,
        'reviewCount': car.review_count,
    }


def car_from_document(document: Document) -> Car:
    data = document.data
    return Car(
        id=document.id,
        version=document.version,
        created_at=document.create_time,
        updated_at=document.update_time,
        name=data.get('name', ''),
        category=data.get('category', ''),
        price_per_day=Money(to_decimal(data.get('pricePerDay')), data.get('currency') or 'KES'),
        available=bool(data.get('available', True)),
        model=data.get('model') or '',
        year=data.get('year'),
        transmission=data.get('transmission') or '',
        fuel=data.get('fuel') or '',
        seats=data.get('seats'),
        location=data.get('location') or '',
        description=data.get('description') or '',
        features=list(data.get('features') or []),
        total_bookings=int(data.get('totalBookings') or 0),
        total_revenue=to_decimal(data.get('totalRevenue')),
        average_rating=float(data.get('averageRating') or 0),
        review_count=int(data.get('reviewCount') or 0),
    )


class CarRepository:
    """
    Reads cars and stages car writes into a batch

    The booking lifecycle never rewrites a whole car: it stages
    availability and statistics updates only.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, car_id: str) -> Car | None:
        document = self.store.get(CARS, car_id)
        return car_from_document(document) if document else None

    def list(self, category: str | None = None) -> list[Car]:
        filters = [where('category', '==', category)] if category else []
        return [car_from_document(d) for d in self.store.query(CARS, filters, order_by='name')]

    def stage_create(self, batch: WriteBatch, car: Car) -> None:
        data = car_to_document(car)
        data.update(createdAt=SERVER_TIMESTAMP, updatedAt=SERVER_TIMESTAMP)
        batch.create(CARS, car.id, data)

    def stage_save(self, batch: WriteBatch, car: Car) -> None:
        data = car_to_document(car)
        data['updatedAt'] = SERVER_TIMESTAMP
        batch.update(CARS, car.id, data, expected_version=car.version)

    def stage_availability(self, batch: WriteBatch, car_id: str, available: bool) -> None:
        batch.update(CARS, car_id, {'available': available, 'updatedAt': SERVER_TIMESTAMP})

    def stage_paid_booking(self, batch: WriteBatch, car_id: str, amount: Decimal) -> None:
        batch.update(CARS, car_id, {
            'totalBookings': Increment(1),
            'totalRevenue': Increment(amount),
            'updatedAt': SERVER_TIMESTAMP,
        })

    def stage_delete(self, batch: WriteBatch, car_id: str) -> None:
        batch.delete(CARS, car_id)

    # ===== Reviews =====

    def stage_review(self, batch: WriteBatch, review: Review) -> None:
        batch.create(REVIEWS, review.id, {
            'carId': review.car_id,
            'userId': review.user_id,
            'rating': review.rating,
            'comment': review.comment,
            'createdAt': SERVER_TIMESTAMP,
        })

    def reviews_for(self, car_id: str) -> list[dict]:
        documents = self.store.query(
            REVIEWS, [where('carId', '==', car_id)], order_by='createdAt', descending=True,
        )
        return [dict(d.data, id=d.id) for d in documents]
