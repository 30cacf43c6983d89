"""Module database routing.

Submodules are imported directly (``churchapi.db.registry``,
``churchapi.db.context``) so configuration can import ``churchapi.db.modules``
without pulling in the engine layer.
"""
