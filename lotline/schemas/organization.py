from __future__ import annotations

from pydantic import BaseModel


class DeletedCountsResponse(BaseModel):
    users: int
    cars: int
    maintenance_records: int
    expenses: int


class OrganizationDeleteResponse(BaseModel):
    message: str
    deleted_counts: DeletedCountsResponse
