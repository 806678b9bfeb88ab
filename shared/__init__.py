"""
Shared kernel: aggregate and value object bases, the error taxonomy,
Result helpers, the event bus and the document store contract used by
every rental app.
"""
