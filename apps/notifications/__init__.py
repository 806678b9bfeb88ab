"""Notifications app package.

Stores in-app notifications for customers and admins and sends booking
e-mails. Subscribes to booking events on the message bus.
"""
