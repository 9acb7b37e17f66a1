"""
Invoice–deal linker.

A deal carries at most one lawyer invoice (invoice_id) and at most one
publisher invoice (publisher_invoice_id). Linking checks the number of
rows the store actually changed:

- zero rows: fatal, DealLinkError
- fewer rows than requested: warning, the result lists the skipped ids
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from .errors import DealLinkError
from .models.invoice import LinkColumn

logger = structlog.get_logger(__name__)


class DealLinkStore(Protocol):
    async def set_deal_links(self, deal_ids: list[str], invoice_id: str, column: LinkColumn) -> list[str]: ...

    async def clear_deal_links(self, invoice_id: str, column: LinkColumn) -> list[str]: ...


@dataclass
class LinkResult:
    invoice_id: str
    column: LinkColumn
    requested: list[str] = field(default_factory=list)
    linked: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> list[str]:
        linked = set(self.linked)
        return [d for d in self.requested if d not in linked]

    @property
    def partial(self) -> bool:
        return 0 < len(self.linked) < len(self.requested)

    def to_dict(self) -> dict[str, Any]:
        return {
            'invoice_id': self.invoice_id,
            'column': self.column.value,
            'requested_count': len(self.requested),
            'linked_count': len(self.linked),
            'skipped_ids': self.skipped,
            'partial': self.partial,
        }


class InvoiceDealLinker:
    """Associates deals with invoices and verifies the affected row counts."""

    def __init__(self, store: DealLinkStore):
        self.store = store

    async def link_deals(
        self,
        deal_ids: list[str],
        invoice_id: str,
        column: LinkColumn,
    ) -> LinkResult:
        """
        Set the link column on each deal.

        Deals already linked to a different invoice of the same type are not
        overwritten; when editing, call unlink_deals() for the invoice first
        so its own deals are free to be linked again.

        Raises:
            DealLinkError: No deal was updated
        """
        column = LinkColumn(column)
        requested = list(dict.fromkeys(deal_ids))
        result = LinkResult(invoice_id=invoice_id, column=column, requested=requested)
        if not requested:
            return result

        result.linked = await self.store.set_deal_links(requested, invoice_id, column)

        if not result.linked:
            raise DealLinkError(
                'Failed to link deals to invoice: no rows were updated',
                context={
                    'invoice_id': invoice_id,
                    'column': column.value,
                    'requested_count': len(requested),
                },
            )
        if result.partial:
            logger.warning(
                'invoice_linker.partial_link',
                invoice_id=invoice_id,
                column=column.value,
                linked=len(result.linked),
                requested=len(requested),
                skipped_ids=result.skipped,
            )
        else:
            logger.info(
                'invoice_linker.linked',
                invoice_id=invoice_id,
                column=column.value,
                linked=len(result.linked),
            )
        return result

    async def unlink_deals(self, invoice_id: str, column: LinkColumn) -> list[str]:
        """Clear the link column on every deal pointing at the invoice."""
        column = LinkColumn(column)
        cleared = await self.store.clear_deal_links(invoice_id, column)
        logger.info(
            'invoice_linker.unlinked',
            invoice_id=invoice_id,
            column=column.value,
            cleared=len(cleared),
        )
        return cleared
