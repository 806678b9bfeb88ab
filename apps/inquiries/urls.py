"""URL routing for contact requests."""

from django.urls import include, path  # type: ignore
from rest_framework.routers import SimpleRouter  # type: ignore

from .views import ContactRequestViewSet

router = SimpleRouter()
router.register(r'', ContactRequestViewSet, basename='contact-request')

urlpatterns = [path('', include(router.urls))]
