"""Invoice authoring, listing and status endpoints."""

from datetime import date
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from invoicing.errors import InvoiceNotFoundError, InvoiceValidationError
from invoicing.models.invoice import Invoice, InvoiceForm, InvoiceStatus, InvoiceType, LineItemInput
from invoicing.service import InvoiceService

from ...logging import logging_context
from ...models.identity import BILLING_ROLES, CallerIdentity, Role
from ..auth import require_roles
from ..deps import get_invoice_service

router = APIRouter(prefix="/invoices", tags=["invoices"])

_read_caller = require_roles(*BILLING_ROLES, Role.LAWYER)
_billing_caller = require_roles(*BILLING_ROLES)
_admin_caller = require_roles(Role.SUPER_ADMIN, Role.ADMIN)


class PreviewRequest(BaseModel):
    items: list[LineItemInput] = Field(default_factory=list)
    tax_rate: Decimal = Decimal("0")


def _visible_to(invoice: Invoice, caller: CallerIdentity) -> Invoice:
    """Lawyers only see their own invoices; others look like they don't exist."""
    if caller.is_lawyer and invoice.lawyer_id != caller.user_id:
        raise InvoiceNotFoundError(f"Invoice {invoice.id} not found", context={"invoice_id": invoice.id})
    return invoice


async def _get_visible(service: InvoiceService, invoice_id: str, caller: CallerIdentity) -> Invoice:
    invoice = await service.repository.get(invoice_id)
    if invoice is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found", context={"invoice_id": invoice_id})
    return _visible_to(invoice, caller)


@router.get("")
async def list_invoices(
    status: InvoiceStatus | None = None,
    invoice_type: InvoiceType | None = None,
    lawyer_id: str | None = None,
    caller: CallerIdentity = Depends(_read_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    if caller.is_lawyer:
        lawyer_id = caller.user_id
    invoices = await service.repository.list_invoices(
        lawyer_id=lawyer_id, status=status, invoice_type=invoice_type
    )
    return {"invoices": [inv.model_dump(mode="json") for inv in invoices]}


@router.post("/preview")
async def preview_invoice(
    body: PreviewRequest,
    caller: CallerIdentity = Depends(_billing_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Validated line items and totals for a draft, without saving anything."""
    return service.preview(body.items, body.tax_rate).to_dict()


@router.get("/eligible-deals")
async def eligible_deals(
    invoice_type: InvoiceType = InvoiceType.LAWYER,
    lawyer_id: str | None = None,
    lead_vendor_id: str | None = None,
    date_start: date | None = None,
    date_end: date | None = None,
    editing_invoice_id: str | None = Query(default=None),
    caller: CallerIdentity = Depends(_billing_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Deals that can be billed on a new invoice (or on the one being edited)."""
    repo = service.repository
    if invoice_type == InvoiceType.PUBLISHER:
        if not lead_vendor_id:
            raise InvoiceValidationError("lead_vendor_id is required for publisher invoices")
        vendor_name = await repo.get_vendor_name(lead_vendor_id)
        if not vendor_name:
            raise InvoiceValidationError(
                "Lead vendor has no vendor name", context={"lead_vendor_id": lead_vendor_id}
            )
        deals = await repo.list_deals_for_publisher_invoice(
            vendor_name, date_start, date_end, editing_invoice_id
        )
    else:
        if not lawyer_id or date_start is None or date_end is None:
            raise InvoiceValidationError("lawyer_id, date_start and date_end are required")
        deals = await repo.list_deals_for_lawyer_invoice(
            lawyer_id, date_start, date_end, editing_invoice_id
        )
    return {"deals": [d.model_dump(mode="json") for d in deals]}


@router.post("", status_code=201)
async def create_invoice(
    form: InvoiceForm,
    caller: CallerIdentity = Depends(_billing_caller),
    service: InvoiceService = Depends(get_invoice_service),
) -> dict[str, Any]:
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        result = await service.create_invoice(form, created_by=caller.user_id)
        return result.to_dict()


@router.get("/{invoice_id}")
async def get_invoice(
    invoice_id: str,
    caller: CallerIdentity = Depends(_read_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = await _get_visible(service, invoice_id, caller)
    return invoice.model_dump(mode="json")


@router.put("/{invoice_id}")
async def update_invoice(
    invoice_id: str,
    form: InvoiceForm,
    caller: CallerIdentity = Depends(_billing_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        result = await service.update_invoice(invoice_id, form)
        return result.to_dict()


@router.post("/{invoice_id}/paid")
async def mark_invoice_paid(
    invoice_id: str,
    caller: CallerIdentity = Depends(_read_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Lawyers may mark their own invoices paid; billing roles any invoice."""
    await _get_visible(service, invoice_id, caller)
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        result = await service.mark_paid(invoice_id)
        return result.to_dict()


@router.post("/{invoice_id}/chargeback")
async def request_chargeback(
    invoice_id: str,
    caller: CallerIdentity = Depends(_billing_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        result = await service.request_chargeback(invoice_id)
        return result.to_dict()


@router.delete("/{invoice_id}")
async def delete_invoice(
    invoice_id: str,
    caller: CallerIdentity = Depends(_admin_caller),
    service: InvoiceService = Depends(get_invoice_service),
):
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        unlinked = await service.delete_invoice(invoice_id)
        return {"deleted": True, "unlinked_ids": unlinked}
