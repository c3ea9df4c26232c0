# app/api/v1/router.py
# Master router -- registers all endpoint routers under /api/v1
# Each endpoint module registers its own router with its own prefix and tags

from fastapi import APIRouter

from app.api.v1.endpoints import engagements, rates, requests

api_router = APIRouter()

# Request board, request desk, applications
api_router.include_router(requests.router, prefix="/requests", tags=["Requests"])

# Registration gate & engagement views
api_router.include_router(engagements.router, prefix="/engagements", tags=["Engagements"])

# Teacher rates
api_router.include_router(rates.router, prefix="/rates", tags=["Teacher Rates"])
