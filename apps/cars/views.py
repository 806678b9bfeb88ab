"""API views for the car catalogue."""

from __future__ import annotations

from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore

from apps.users.identity import actor_from_user
from shared.infrastructure.api import result_response

from .serializers import (
    AvailabilitySerializer,
    CarSearchSerializer,
    CarSerializer,
    CarWriteSerializer,
    ReviewSerializer,
)
from .services import get_car_catalog


def render_car(car):
    return CarSerializer(car).data


def render_cars(cars):
    return CarSerializer(cars, many=True).data


class CarViewSet(viewsets.ViewSet):
    """
    Car listings.

    Reads are public; the catalogue service rejects writes from anyone
    but admins.
    """

    permission_classes = [permissions.AllowAny]

    def list(self, request):  # type: ignore
        # A plain dict keeps omitted booleans at their defaults
        query = CarSearchSerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)
        return result_response(get_car_catalog().search_cars(query.to_search()), render_cars)

    def retrieve(self, request, pk=None):  # type: ignore
        return result_response(get_car_catalog().get_car(pk), render_car)

    def create(self, request):  # type: ignore
        payload = CarWriteSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = get_car_catalog().add_car(payload.validated_data, actor_from_user(request.user))
        return result_response(result, render_car, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):  # type: ignore
        payload = CarWriteSerializer(data=request.data, partial=True)
        payload.is_valid(raise_exception=True)
        result = get_car_catalog().update_car(pk, payload.validated_data, actor_from_user(request.user))
        return result_response(result, render_car)

    def destroy(self, request, pk=None):  # type: ignore
        result = get_car_catalog().delete_car(pk, actor_from_user(request.user))
        return result_response(result, lambda _: None, status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"])
    def availability(self, request, pk=None):  # type: ignore
        payload = AvailabilitySerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = get_car_catalog().set_availability(
            pk, payload.validated_data["available"], actor_from_user(request.user)
        )
        return result_response(result, render_car)

    @action(detail=True, methods=["get", "post"])
    def reviews(self, request, pk=None):  # type: ignore
        catalog = get_car_catalog()
        if request.method == "GET":
            return result_response(catalog.get_reviews(pk))

        payload = ReviewSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        result = catalog.add_review(
            pk,
            payload.validated_data["rating"],
            payload.validated_data["comment"],
            actor_from_user(request.user),
        )
        return result_response(result, render_car, status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"])
    def statistics(self, request, pk=None):  # type: ignore
        return result_response(get_car_catalog().get_car_statistics(pk))
