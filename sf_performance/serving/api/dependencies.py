"""
Shared FastAPI dependencies for the dashboard routes.
"""

from typing import List, Optional

from fastapi import Depends, Header, HTTPException, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from sf_performance.analytics.aggregator import AccessScope, PerformanceFilters
from sf_performance.config import get_settings
from sf_performance.database.connection import get_db_dependency
from sf_performance.database.store import OrderStore
from sf_performance.domain import OrderRecord, ProductivityLevel, Tier
from sf_performance.ingestion.upload_pipeline import UploadPipeline


def get_scope(
    x_user_role: Optional[str] = Header(default=None),
    x_user_code: Optional[str] = Header(default=None),
) -> AccessScope:
    """
    Viewer scope as asserted by the upstream authentication layer.

    Without headers the viewer is treated as admin unless scope headers are
    required by configuration.
    """
    if x_user_role is None:
        if get_settings().security.require_scope_headers:
            raise HTTPException(status_code=403, detail="Missing X-User-Role header")
        return AccessScope()

    try:
        return AccessScope(role=x_user_role.lower(), code=x_user_code)
    except PydanticValidationError as e:
        raise HTTPException(status_code=403, detail=f"Invalid viewer scope: {e.errors()[0]['msg']}")


def get_filters(
    regional: Optional[str] = None,
    branch: Optional[str] = None,
    work_area: Optional[str] = Query(default=None, alias="wok"),
    category: Optional[Tier] = None,
    productivity: Optional[ProductivityLevel] = None,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=1900, le=9999),
) -> PerformanceFilters:
    """Dashboard filter controls; empty strings mean "any" """
    return PerformanceFilters(
        regional=regional or None,
        branch=branch or None,
        work_area=work_area or None,
        tier=category,
        productivity=productivity,
        month=month,
        year=year,
    )


async def get_records(db: AsyncSession = Depends(get_db_dependency)) -> List[OrderRecord]:
    """One consistent snapshot of the store per request"""
    return await OrderStore(db).read_all()


def get_pipeline(request: Request) -> UploadPipeline:
    return request.app.state.upload_pipeline
