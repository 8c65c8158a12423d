"""
HTTP layer

Thin FastAPI routers: parse the request, call a manager, translate domain
exceptions into HTTP errors.
"""
