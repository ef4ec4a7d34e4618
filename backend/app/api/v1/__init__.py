from fastapi import APIRouter

# public
from .routes_health import router as health_router

# user bearer token (organization resolved per request)
from .ml_orders import router as ml_orders_router
from .ml_claims import router as ml_claims_router

# service token (cron / admin)
from .ml_sync import router as ml_sync_router


api_v1 = APIRouter()
api_v1.include_router(health_router)      # /health needs no auth

api_v1.include_router(ml_orders_router)
api_v1.include_router(ml_claims_router)
api_v1.include_router(ml_sync_router)
