"""Request-scoped dependencies built from the clients on app.state."""

from fastapi import Request

from invoicing.repository import InvoiceRepository
from invoicing.service import InvoiceService

from ..session import SessionRegistry


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_invoice_service(request: Request) -> InvoiceService:
    return InvoiceService(InvoiceRepository(request.app.state.postgres))
