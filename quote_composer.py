"""
Draft quote editing.

The draft lives in a QuoteDraft that the web shell keeps in the session
between requests; QuoteComposer applies one user action to it at a time.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from entitlement import FEATURE_SIGNATURE, is_entitled, require_entitlement
from errors import DuplicateItemError, NotFoundError, ValidationError
from messaging import build_share_link, quote_message
from pdf_builder import QuotePDF
from records import STATUS_PENDING, Client, Item, Quote, QuoteLineItem

log = logging.getLogger(__name__)


def coerce_quantity(value):
    """Positive integer, or 1 when the input is not one."""
    try:
        quantity = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity if quantity > 0 else 1


@dataclass
class QuoteDraft:
    client_id: Optional[str] = None
    items: List[QuoteLineItem] = field(default_factory=list)
    notes: str = ""
    signature: Optional[str] = None

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        return cls(
            client_id=data.get('client_id') or None,
            items=[QuoteLineItem.from_dict(entry) for entry in data.get('items') or []],
            notes=data.get('notes') or "",
            signature=data.get('signature') or None,
        )

    def to_dict(self):
        return {
            'client_id': self.client_id,
            'items': [line.to_dict() for line in self.items],
            'notes': self.notes,
            'signature': self.signature,
        }


class QuoteComposer:
    def __init__(self, gateway, user, draft=None, settings=None):
        self.gateway = gateway
        self.user = user
        self.draft = draft or QuoteDraft()
        self.settings = settings or {}
        self.clients = []
        self.catalog = []

    def load(self):
        filters = {'user_id': self.user.id}
        self.clients = [Client.from_row(r) for r in
                        self.gateway.select('clients', filters, order_by='name').unwrap()]
        self.catalog = [Item.from_row(r) for r in
                        self.gateway.select('items', filters, order_by='name').unwrap()]
        return self

    def _find_line(self, item_id):
        for line in self.draft.items:
            if line.item_id == item_id:
                return line
        return None

    def select_client(self, client_id):
        self.draft.client_id = client_id or None

    def add_item(self, item_id):
        if self._find_line(item_id) is not None:
            raise DuplicateItemError()
        item = next((i for i in self.catalog if i.id == item_id), None)
        if item is None:
            raise NotFoundError("Item not found")
        line = QuoteLineItem.from_item(item)
        self.draft.items.append(line)
        return line

    def set_quantity(self, item_id, quantity):
        quantity = coerce_quantity(quantity)
        for index, line in enumerate(self.draft.items):
            if line.item_id == item_id:
                self.draft.items[index] = line.with_quantity(quantity)
                return self.draft.items[index]
        raise NotFoundError("Item is not in this quote")

    def remove_item(self, item_id):
        self.draft.items = [line for line in self.draft.items if line.item_id != item_id]

    def set_notes(self, notes):
        self.draft.notes = notes or ""

    def set_signature(self, signature):
        if signature:
            require_entitlement(self.user, FEATURE_SIGNATURE)
        self.draft.signature = signature or None

    def total(self):
        return sum(line.subtotal for line in self.draft.items)

    def clear(self):
        self.draft = QuoteDraft()

    def _require_complete(self):
        if not self.draft.client_id or not self.draft.items:
            raise ValidationError("Select a client and add at least one item")

    def _selected_client(self):
        return next((c for c in self.clients if c.id == self.draft.client_id), None)

    def _client(self):
        client = self._selected_client()
        if client is None:
            raise NotFoundError("Client not found")
        return client

    def to_quote(self):
        entitled = is_entitled(self.user)
        return Quote(
            user_id=self.user.id,
            client_id=self.draft.client_id,
            items=list(self.draft.items),
            total=self.total(),
            status=STATUS_PENDING,
            notes=self.draft.notes,
            signature=self.draft.signature if entitled else None,
        )

    def save(self):
        # The session draft may hold a deleted or foreign client id
        if not self.draft.client_id or self._selected_client() is None:
            raise ValidationError("Select a client")
        if not self.draft.items:
            raise ValidationError("Add at least one item")
        if self.draft.signature:
            require_entitlement(self.user, FEATURE_SIGNATURE)

        row = self.gateway.insert('quotes', self.to_quote().to_row()).unwrap()
        saved = Quote.from_row(row)
        log.info("Quote %s saved, total %.2f", saved.id, saved.total,
                 extra={'quote_id': saved.id, 'user_id': self.user.id})
        self.clear()
        return saved

    def export_pdf(self, company):
        self._require_complete()
        quote = self.to_quote()
        quote.created_at = datetime.utcnow()
        pdf = QuotePDF(quote, company, self._client(), is_entitled(self.user),
                       currency=self.settings.get('CURRENCY_SYMBOL', 'R$'),
                       brand=self.settings.get('BRAND_NAME', 'Quote Builder'))
        return pdf.to_bytes()

    def share_link(self):
        self._require_complete()
        client = self._client()
        message = quote_message(client.name, self.total(),
                                currency=self.settings.get('CURRENCY_SYMBOL', 'R$'))
        return build_share_link(client.phone, message,
                                base_url=self.settings.get('MESSAGING_BASE_URL', 'https://wa.me'),
                                country_code=self.settings.get('MESSAGING_COUNTRY_CODE', '55'))
