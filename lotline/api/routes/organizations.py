from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.auth import AuthContext, require_super_admin
from lotline.core.db import get_db_session
from lotline.core.tenants import destroy_organization
from lotline.schemas.organization import DeletedCountsResponse, OrganizationDeleteResponse

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.delete("/{organization_id}", response_model=OrganizationDeleteResponse)
async def delete_organization(
    organization_id: UUID,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> OrganizationDeleteResponse:
    report = await destroy_organization(session, organization_id)
    return OrganizationDeleteResponse(
        message=report.summary(),
        deleted_counts=DeletedCountsResponse(**report.deleted_counts.as_dict()),
    )
