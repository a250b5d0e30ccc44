from __future__ import annotations

from fastapi import APIRouter, Depends

from storefront.core.metrics import request_metrics
from storefront.deps import require_admin
from storefront.models.user import User

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def endpoint_metrics(_user: User = Depends(require_admin)):
    return {
        "endpoints": request_metrics.snapshot(),
        "status_codes": request_metrics.status_counts(),
    }
