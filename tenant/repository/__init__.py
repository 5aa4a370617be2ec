"""Repository layer: DB access for tenant tables (SQLite).

Statements are assembled from composable SqlOption fragments, so services
never hand-write WHERE/SET clauses.
"""
from __future__ import annotations
