from __future__ import annotations

from fastapi import APIRouter, Depends

from ahaar.core.config import API_PREFIX
from ahaar.core.metrics import request_metrics
from ahaar.deps import require_operation
from ahaar.services.access_control import Principal

router = APIRouter(prefix=f"{API_PREFIX}/internal/metrics", tags=["internal-metrics"])


@router.get("")
def metrics(_principal: Principal = Depends(require_operation("metrics.read"))):
    return {
        "success": True,
        "message": "Metrics retrieved successfully",
        "data": {
            "endpoints": request_metrics.snapshot(),
            "status_codes": request_metrics.status_counts(),
        },
    }


@router.get("/brands")
def brand_metrics(_principal: Principal = Depends(require_operation("metrics.read"))):
    return {
        "success": True,
        "message": "Metrics retrieved successfully",
        "data": request_metrics.snapshot_per_brand(),
    }
