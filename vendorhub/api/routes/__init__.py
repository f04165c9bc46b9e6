"""
API route modules.

This package contains subrouters for:
- Customers: vendor-scoped CRUD and search
- Admin: cross-vendor aggregation and the vendor registry

Routers are included from vendorhub.api.main (under the /api/v1 prefix).
"""
