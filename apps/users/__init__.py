"""Users app package.

Accounts are plain Django auth users; this app adapts them to the
actor/role pair the rental core checks, and holds the admin-only
permission class used by the API.
"""
