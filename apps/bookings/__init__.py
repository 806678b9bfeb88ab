"""Bookings app package.

Holds the booking conflict and availability engine: the booking
aggregate and its status machine, the per-car reservation index, the
lifecycle manager and the payment reconciler.
"""
