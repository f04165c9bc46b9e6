"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries and patterns for each domain area.
They assume the provided AsyncSession belongs to a unit of work started by
vendorhub.db.scoped.ScopedExecutor, i.e. the connection carries the tenant
stamp that the row-level security policies read.
"""
