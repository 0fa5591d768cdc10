from typing import Any

from fastapi import APIRouter, Depends

from addressiq.api.deps import get_build_info
from addressiq.core.build_info import BuildInfo

SERVICE_NAME = "addressiq-backend"
API_VERSION = "2.0"

router = APIRouter()


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/build-info")
def build_info(info: BuildInfo = Depends(get_build_info)) -> dict[str, dict[str, str]]:
    return info.as_dict()


@router.get("/")
def root() -> dict[str, Any]:
    return {
        "service": "AddressIQ API",
        "version": API_VERSION,
        "endpoints": {
            "GET /healthz": "Health check",
            "GET /build-info": "Build information",
            "GET /search": "Legacy search endpoint",
            "GET /api/property": "Get comprehensive property data",
            "GET /api/property/scores": "Get property scores (ESG, Profit, Opportunity)",
            "GET /api/property/recommendations": "Get smart recommendations",
            "GET /api/property/analysis": "Get full analysis (data + scores + recommendations)",
            "GET /api/search/stream": "Stream search progress as server-sent events",
            "POST /admin/cache/flush": "Flush the response cache (requires X-Admin-Secret)",
        },
        "query_parameters": {
            "postcode": "Dutch postcode (e.g., 3541ED)",
            "houseNumber": "House number (e.g., 53)",
        },
    }
