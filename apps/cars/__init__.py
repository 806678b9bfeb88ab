"""Cars app package.

Owns the car catalogue: listings, availability flag, aggregate booking
and rating statistics, reviews and search. The booking lifecycle only
changes a car through the repository's availability and statistics
writes.
"""
