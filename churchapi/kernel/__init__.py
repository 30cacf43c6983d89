"""Kernel utilities shared across modules.

Rules:
- Kernel code must not import from db, repositories or jobs.
- Kernel utilities should stay small and stable; avoid business logic here.
"""
