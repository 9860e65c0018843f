"""Registration, login and the caller's own profile"""

import logging
from typing import Any
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.deps import Actor, get_current_user, get_db
from produce_app.core.security import create_access_token, hash_password, verify_password
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse
from produce_app.schemas.v1.store import (
    ChangePasswordRequest, LoginRequest, LoginResponse, StoreRegister, StoreResponse
)
from produce_app.services.numbering import generate_registration_ref
from produce_app.services.money import money

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_store_by_email(db: AsyncSession, email: str) -> Store:
    result = await db.execute(select(Store).where(Store.email == email.strip().lower()))
    return result.scalar_one_or_none()


@router.post("/register", response_model=ApiResponse[StoreResponse])
async def register(*, db: AsyncSession = Depends(get_db), data: StoreRegister) -> Any:
    """Stores start pending approval; members and admins are approved at once."""
    if await get_store_by_email(db, data.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    now = datetime.utcnow()
    payload = data.model_dump(exclude={"password", "email", "shipping_cost"})
    store = Store(
        **payload,
        email=data.email.strip().lower(),
        password_hash=hash_password(data.password),
        shipping_cost=money(data.shipping_cost),
        registration_ref=generate_registration_ref(now),
        credit_history=[],
    )
    if data.role == "store":
        store.approval_status = "pending"
    else:
        store.approval_status = "approved"
        store.approved_at = now

    db.add(store)
    await db.commit()
    await db.refresh(store)
    logger.info(f"Registered {store.role} {store.email} ({store.registration_ref})")
    return ApiResponse(message="Registration successful", data=StoreResponse.model_validate(store))


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(*, db: AsyncSession = Depends(get_db), data: LoginRequest) -> Any:
    store = await get_store_by_email(db, data.email)
    if not store or not verify_password(data.password, store.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if store.approval_status == "rejected":
        raise HTTPException(status_code=403, detail="Your registration was rejected")

    store.last_login = datetime.utcnow()
    await db.commit()

    token = create_access_token(store.id, role=store.role, name=store.display_name)
    logger.info(f"Login {store.email}")
    return ApiResponse(
        message="Login successful",
        data=LoginResponse(token=token, user=StoreResponse.model_validate(store)),
    )


@router.get("/me", response_model=ApiResponse[StoreResponse])
async def read_me(
    *,
    db: AsyncSession = Depends(get_db),
    current_user: Actor = Depends(get_current_user)
) -> Any:
    store = await db.get(Store, current_user.id)
    if not store:
        raise HTTPException(status_code=404, detail="User not found")
    return ApiResponse(data=StoreResponse.model_validate(store))


@router.post("/change-password", response_model=ApiResponse)
async def change_password(
    *,
    db: AsyncSession = Depends(get_db),
    data: ChangePasswordRequest,
    current_user: Actor = Depends(get_current_user)
) -> Any:
    store = await db.get(Store, current_user.id)
    if not store:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(data.old_password, store.password_hash):
        raise HTTPException(status_code=400, detail="Old password is incorrect")

    store.password_hash = hash_password(data.new_password)
    await db.commit()
    logger.info(f"Password changed for {store.email}")
    return ApiResponse(message="Password changed")
