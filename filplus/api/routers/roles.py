"""Roles API router: GET /roles/{address}."""

from typing import Annotated

from fastapi import APIRouter, Depends

from filplus.api.dependencies import get_container
from filplus.bootstrap import Container
from filplus.domain.schemas.application import RoleResponse

router = APIRouter()


@router.get("/{address}", response_model=RoleResponse)
async def get_role(address: str, container: Annotated[Container, Depends(get_container)]):
    role = container.role_resolver.role_of(address)
    return RoleResponse(address=address, role=role.value)
