"""Store app package.

Persists the rental core's document collections (cars, bookings,
reservation index, notifications, requests, reviews) as JSON documents
in the relational database, behind the ``DocumentStore`` interface.
"""
