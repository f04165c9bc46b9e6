"""
HTTP adapter over the data-access core.

`vendorhub.api.main.create_app` builds the FastAPI application; routers live in
`vendorhub.api.routes`.
"""
