"""Top-level package for Django configuration.

Contains the settings modules for each environment and the WSGI, ASGI
and Celery entry points of the PaperCar service.
"""

# Import the Celery application as soon as Django starts. Without this
# the shared task registry will not be populated.
from .celery import app as celery_app  # noqa: F401
