"""
Business API endpoints.
"""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from opsdesk.api.deps import get_audit_recorder, http_error, require_permission
from opsdesk.config import get_settings
from opsdesk.errors import OpsDeskError
from opsdesk.models.base import get_db
from opsdesk.models.enums import BusinessStatus
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.business import BusinessCreate, BusinessUpdate, BusinessResponse
from opsdesk.schemas.common import Page
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.business_service import BusinessService

router = APIRouter(prefix="/businesses", tags=["Businesses"])

settings = get_settings()


@router.post("", response_model=BusinessResponse, status_code=201)
def create_business(
    request: BusinessCreate,
    claims: Claims = Depends(require_permission("business", "create")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    service = BusinessService(db, audit)
    try:
        business = service.create_business(claims, request)
        db.commit()
        return business
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.get("", response_model=Page[BusinessResponse])
def list_businesses(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    name: str | None = None,
    status: BusinessStatus | None = None,
    claims: Claims = Depends(require_permission("business", "read")),
    db: Session = Depends(get_db),
):
    items, total = BusinessService(db).list_businesses(
        page, page_size, name=name, status=status
    )
    return Page[BusinessResponse](
        items=[BusinessResponse.model_validate(b) for b in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{business_id}", response_model=BusinessResponse)
def get_business(
    business_id: int,
    claims: Claims = Depends(require_permission("business", "read")),
    db: Session = Depends(get_db),
):
    try:
        return BusinessService(db).get_business(business_id)
    except OpsDeskError as e:
        raise http_error(e)


@router.put("/{business_id}", response_model=BusinessResponse)
def update_business(
    business_id: int,
    request: BusinessUpdate,
    claims: Claims = Depends(require_permission("business", "update")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    service = BusinessService(db, audit)
    try:
        business = service.update_business(claims, business_id, request)
        db.commit()
        return business
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/{business_id}", status_code=204)
def delete_business(
    business_id: int,
    claims: Claims = Depends(require_permission("business", "delete")),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
):
    service = BusinessService(db, audit)
    try:
        service.delete_business(claims, business_id)
        db.commit()
    except OpsDeskError as e:
        db.rollback()
        raise http_error(e)
    return Response(status_code=204)
