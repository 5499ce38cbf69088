from fastapi import APIRouter

from .ingest import router as ingest_router
from .metrics import router as metrics_router

router = APIRouter()
router.include_router(ingest_router)
router.include_router(metrics_router)
