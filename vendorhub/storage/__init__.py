"""
Storage abstraction, its two backing stores (memory, database) and the router
that assigns each entity kind to one of them.

Import concrete pieces from their modules: vendorhub.storage.base,
vendorhub.storage.memory, vendorhub.storage.relational,
vendorhub.storage.router and vendorhub.storage.factory.
"""
