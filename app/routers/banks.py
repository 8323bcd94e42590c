"""
Banks router — the shared registry of financial institutions.

All endpoints require a JWT. Banks are shared between users, so any
authenticated user can read and maintain the list.

Endpoints:
  GET    /banks              — List banks (by name)
  POST   /banks              — Create a bank
  GET    /banks/{bank_id}    — Get a bank
  PUT    /banks/{bank_id}    — Update a bank
  DELETE /banks/{bank_id}    — Delete a bank (409 while accounts use it)
"""

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.bank import BankResponse, BankWriteRequest
from app.services import bank_service

router = APIRouter()


@router.get(
    "",
    response_model=list[BankResponse],
    summary="List banks",
)
async def list_banks(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await bank_service.list_banks(db)


@router.post(
    "",
    response_model=BankResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a bank",
)
async def create_bank(
    request: BankWriteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a bank to the registry.

    - **name**: 2-100 characters, unique
    - **code**: Optional, 2-20 characters, unique
    """
    return await bank_service.create_bank(db, name=request.name, code=request.code)


@router.get(
    "/{bank_id}",
    response_model=BankResponse,
    summary="Get a bank",
)
async def get_bank(
    bank_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await bank_service.get_bank(db, bank_id)


@router.put(
    "/{bank_id}",
    response_model=BankResponse,
    summary="Update a bank",
)
async def update_bank(
    bank_id: uuid.UUID,
    request: BankWriteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await bank_service.update_bank(db, bank_id, name=request.name, code=request.code)


@router.delete(
    "/{bank_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a bank",
)
async def delete_bank(
    bank_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a bank.

    Returns 409 while any account still references the bank; delete those
    accounts first.
    """
    await bank_service.delete_bank(db, bank_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
