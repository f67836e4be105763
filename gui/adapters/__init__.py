"""GUI adapter layer.

This package provides thin Qt-shaped adapters over the dispatch loop.

Notes
-----
Adapters exist to:
- keep widgets free of storage details,
- keep task execution off the UI thread,
- deliver task results back to the UI thread as messages.
"""
