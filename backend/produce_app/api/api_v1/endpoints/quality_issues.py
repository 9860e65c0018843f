"""Quality issues reported by stores against delivered orders"""

import logging
from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.orders.core import get_order_or_404
from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import Actor, get_current_user, get_db, get_optional_user
from produce_app.models.v1.quality_issue import QualityIssue
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.quality_issue import (
    QualityIssueCreate, QualityIssueMessage, QualityIssueStatusUpdate, QualityIssueResolve,
    QualityIssueResponse, build_quality_issue_response
)
from produce_app.services.money import money
from produce_app.services.store_credit import post_credit

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_issue_or_404(db: AsyncSession, issue_id: int) -> QualityIssue:
    issue = await db.get(QualityIssue, issue_id)
    if not issue:
        raise HTTPException(status_code=404, detail="Issue not found")
    return issue


async def issues_for_store(db: AsyncSession, store_id: int) -> List[QualityIssueResponse]:
    result = await db.execute(
        select(QualityIssue).where(QualityIssue.store_id == store_id)
        .order_by(QualityIssue.created_at.desc(), QualityIssue.id.desc())
    )
    return [build_quality_issue_response(i) for i in result.scalars().all()]


@router.post("/", response_model=ApiResponse[QualityIssueResponse])
async def create_issue(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_user),
    data: QualityIssueCreate
) -> Any:
    store_id = data.store_id if actor.role == "admin" and data.store_id else actor.id
    store = await get_store_or_404(db, store_id)
    order = await get_order_or_404(db, data.order_id)
    if order.store_id != store.id:
        raise HTTPException(status_code=400, detail="Order does not belong to this store")

    issue = QualityIssue(
        store=store,
        order_id=order.id,
        order_number=order.order_number,
        issue_type=data.issue_type,
        description=data.description,
        affected_items=data.affected_items,
        requested_action=data.requested_action,
        requested_amount=money(data.requested_amount),
        images=data.images,
        status="pending",
        communications=[],
    )
    db.add(issue)
    await db.commit()
    await db.refresh(issue)
    logger.info(f"Quality issue {issue.id} reported by {store.display_name} on order {order.order_number}")
    return ApiResponse(message="Quality issue reported successfully", data=build_quality_issue_response(issue))


@router.get("/my", response_model=ApiResponse[List[QualityIssueResponse]])
async def my_issues(*, db: AsyncSession = Depends(get_db), actor: Actor = Depends(get_current_user)) -> Any:
    return ApiResponse(data=await issues_for_store(db, actor.id))


@router.get("/store/{store_id}", response_model=ApiResponse[List[QualityIssueResponse]])
async def store_issues(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    await get_store_or_404(db, store_id)
    return ApiResponse(data=await issues_for_store(db, store_id))


@router.get("/admin", response_model=ApiResponse[Page[QualityIssueResponse]])
async def list_issues(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None)
) -> Any:
    query = select(QualityIssue).join(Store, QualityIssue.store_id == Store.id)
    conditions = []
    if status and status != "all":
        conditions.append(QualityIssue.status == status)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            QualityIssue.order_number.ilike(pattern),
            QualityIssue.description.ilike(pattern),
            Store.store_name.ilike(pattern),
        ))
    if conditions:
        query = query.where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(QualityIssue.created_at.desc(), QualityIssue.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    issues = result.scalars().all()
    return ApiResponse(data=page_of([build_quality_issue_response(i) for i in issues], total, page, limit))


@router.get("/{issue_id}", response_model=ApiResponse[QualityIssueResponse])
async def get_issue(*, db: AsyncSession = Depends(get_db), issue_id: int) -> Any:
    issue = await get_issue_or_404(db, issue_id)
    return ApiResponse(data=build_quality_issue_response(issue))


@router.post("/{issue_id}/message", response_model=ApiResponse[QualityIssueResponse])
async def add_message(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    issue_id: int,
    data: QualityIssueMessage
) -> Any:
    issue = await get_issue_or_404(db, issue_id)
    sender = "admin" if actor.role == "admin" else "store"
    issue.add_message(sender, actor.name, data.message)
    await db.commit()
    await db.refresh(issue)
    return ApiResponse(message="Message added", data=build_quality_issue_response(issue))


@router.patch("/{issue_id}/status", response_model=ApiResponse[QualityIssueResponse])
async def update_issue_status(
    *,
    db: AsyncSession = Depends(get_db),
    issue_id: int,
    data: QualityIssueStatusUpdate
) -> Any:
    issue = await get_issue_or_404(db, issue_id)
    issue.status = data.status
    if data.admin_notes is not None:
        issue.admin_notes = data.admin_notes
    await db.commit()
    await db.refresh(issue)
    return ApiResponse(message="Status updated", data=build_quality_issue_response(issue))


@router.post("/{issue_id}/resolve", response_model=ApiResponse[QualityIssueResponse])
async def resolve_issue(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    issue_id: int,
    data: QualityIssueResolve
) -> Any:
    """
    Approved credit requests are added to the store's credit balance right away.
    Other approved actions only note the credit memo to follow.
    """
    issue = await get_issue_or_404(db, issue_id)
    amount = money(data.approved_amount)

    issue.status = data.status
    issue.approved_amount = amount
    issue.resolution = data.resolution
    issue.resolved_at = datetime.utcnow()
    issue.resolved_by_name = actor.name

    approved = data.status in ("approved", "partially_approved")
    if approved and amount > 0 and issue.requested_action == "credit":
        post_credit(
            issue.store, amount, "credit_issued",
            f"Quality issue credit - {issue.issue_type}: {issue.description[:100]}",
            reference_id=issue.id, reference_model="QualityIssue", actor=actor,
        )
        issue.resolution = f"{data.resolution} Credit of ${amount:.2f} added to store balance."
    elif data.create_credit_memo and amount > 0:
        issue.resolution = f"{data.resolution} Credit memo for ${amount:.2f} will be applied."
        issue.credit_memo_created = True

    await db.commit()
    await db.refresh(issue)
    logger.info(f"Resolved quality issue {issue.id} as {data.status}, approved ${amount}")
    return ApiResponse(message="Issue resolved", data=build_quality_issue_response(issue))
