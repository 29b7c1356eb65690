from fastapi import APIRouter

from app.api.v1 import audit, data_exchange

api_router = APIRouter()

api_router.include_router(data_exchange.router, prefix="/data", tags=["data-exchange"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["audit"])
