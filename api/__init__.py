"""
HTTP layer: FastAPI routers

Routers translate requests into manager calls; no business rules here.
"""
