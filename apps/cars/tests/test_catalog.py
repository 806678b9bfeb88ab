from __future__ import annotations

from decimal import Decimal

import pytest

from apps.cars.domain import Car, CarSearch, rating_after
from apps.cars.services import CarCatalog
from shared.domain.value_objects import Money


@pytest.fixture
def catalog(store, clock):
    return CarCatalog(store, clock=clock, retries=3)


@pytest.fixture
def fleet(catalog, admin):
    listings = [
        {"name": "Toyota Prado", "category": "suv", "price_per_day": Decimal("9000"), "year": 2021,
         "transmission": "automatic", "fuel": "diesel", "model": "TX"},
        {"name": "Mazda Demio", "category": "economy", "price_per_day": Decimal("3000"), "year": 2016,
         "transmission": "automatic", "fuel": "petrol"},
        {"name": "Nissan Note", "category": "economy", "price_per_day": Decimal("2800"), "year": 2018,
         "transmission": "manual", "fuel": "petrol", "available": False},
    ]
    return [catalog.add_car(data, admin).unwrap() for data in listings]


def test_add_car_is_admin_only(catalog, customer):
    data = {"name": "Subaru Forester", "category": "suv", "price_per_day": Decimal("7000")}

    assert catalog.add_car(data, None).code == "auth_required"
    assert catalog.add_car(data, customer).code == "admin_required"


def test_add_car_validates_fields(catalog, admin):
    result = catalog.add_car({"name": "Broken", "category": "suv", "price_per_day": Decimal("0")}, admin)
    assert result.code == "validation_failed"

    for price in (Decimal("-1"), "cheap"):
        bad = catalog.add_car({"name": "Broken", "category": "suv", "price_per_day": price}, admin)
        assert bad.code == "validation_failed"
    odd_currency = {"name": "Broken", "category": "suv", "price_per_day": "100", "currency": "XYZ"}
    assert catalog.add_car(odd_currency, admin).code == "validation_failed"


def test_added_car_round_trips_through_store(catalog, admin):
    car = catalog.add_car(
        {"name": "Subaru Forester", "category": "suv", "price_per_day": Decimal("7000"), "features": ["AWD"]},
        admin,
    ).unwrap()

    loaded = catalog.get_car(car.id).unwrap()
    assert loaded.name == "Subaru Forester"
    assert loaded.price_per_day == Money(Decimal("7000"), "KES")
    assert loaded.features == ["AWD"]
    assert loaded.available is True
    assert loaded.version == 1


def test_update_keeps_statistics(catalog, store, admin, fleet):
    prado = fleet[0]
    store.update("cars", prado.id, {"totalBookings": 4, "totalRevenue": "46400.00"})

    updated = catalog.update_car(prado.id, {"price_per_day": Decimal("9500")}, admin).unwrap()

    assert updated.price_per_day.amount == Decimal("9500")
    assert updated.name == "Toyota Prado"
    assert updated.total_bookings == 4
    assert updated.total_revenue == Decimal("46400.00")


def test_missing_car(catalog, admin):
    assert catalog.get_car("nope").code == "not_found"
    assert catalog.update_car("nope", {"name": "x"}, admin).code == "not_found"
    assert catalog.delete_car("nope", admin).code == "not_found"


def test_delete_and_set_availability(catalog, admin, customer, fleet):
    demio = fleet[1]

    assert catalog.set_availability(demio.id, False, customer).code == "admin_required"
    assert catalog.set_availability(demio.id, False, admin).unwrap().available is False

    catalog.delete_car(demio.id, admin).unwrap()
    assert catalog.get_car(demio.id).code == "not_found"


def test_list_by_category(catalog, fleet):
    economy = catalog.list_cars("economy").unwrap()
    assert [c.name for c in economy] == ["Mazda Demio", "Nissan Note"]
    assert len(catalog.list_cars().unwrap()) == 3


@pytest.mark.parametrize("search,expected", [
    (CarSearch(), ["Toyota Prado", "Mazda Demio"]),
    (CarSearch(available_only=False, sort_by="price-low"), ["Nissan Note", "Mazda Demio", "Toyota Prado"]),
    (CarSearch(category="economy", available_only=False, sort_by="year"), ["Nissan Note", "Mazda Demio"]),
    (CarSearch(max_price=Decimal("5000")), ["Mazda Demio"]),
    (CarSearch(min_year=2019), ["Toyota Prado"]),
    (CarSearch(model="tx"), ["Toyota Prado"]),
    (CarSearch(transmission="manual", available_only=False), ["Nissan Note"]),
    (CarSearch(category="all", sort_by="price-high"), ["Toyota Prado", "Mazda Demio"]),
])
def test_search(catalog, fleet, search, expected):
    found = catalog.search_cars(search).unwrap()
    names = [c.name for c in found]
    if search.sort_by:
        assert names == expected
    else:
        assert sorted(names) == sorted(expected)


def test_reviews_update_average_rating(catalog, customer, other_customer, fleet):
    prado = fleet[0]

    catalog.add_review(prado.id, 5, "Smooth ride", customer).unwrap()
    rated = catalog.add_review(prado.id, 4, "", other_customer).unwrap()

    assert rated.review_count == 2
    assert rated.average_rating == 4.5
    reviews = catalog.get_reviews(prado.id).unwrap()
    assert {r["rating"] for r in reviews} == {4, 5}
    assert all(r["carId"] == prado.id for r in reviews)


def test_review_validation(catalog, customer, fleet):
    prado = fleet[0]

    assert catalog.add_review(prado.id, 6, "", customer).code == "validation_failed"
    assert catalog.add_review(prado.id, 3, "", None).code == "auth_required"
    assert catalog.add_review("nope", 3, "", customer).code == "not_found"


def test_car_statistics(catalog, fleet):
    stats = catalog.get_car_statistics(fleet[0].id).unwrap()
    assert stats == {
        "total_bookings": 0,
        "total_revenue": Decimal("0"),
        "average_rating": 0.0,
        "review_count": 0,
        "available": True,
    }


def test_rating_after_rounds_to_two_places():
    car = Car(name="Vitz", category="economy", price_per_day=Money("2500"), average_rating=4.0, review_count=2)
    assert rating_after(car, 5) == (4.33, 3)
