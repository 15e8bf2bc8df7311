import logging
from collections import namedtuple
from datetime import datetime

from entitlement import is_entitled
from errors import ConfirmationRequired, NotFoundError, ValidationError
from messaging import build_share_link, quote_message
from pdf_builder import QuotePDF
from records import STATUS_APPROVED, STATUS_PENDING, Client, Quote

log = logging.getLogger(__name__)

CLIENT_NOT_FOUND = "client not found"

Badge = namedtuple('Badge', ['label', 'color'])
LedgerEntry = namedtuple('LedgerEntry', ['quote', 'client_name', 'badge'])

BADGES = {
    'pending': Badge('Pending', 'amber'),
    'approved': Badge('Approved', 'green'),
    'rejected': Badge('Rejected', 'red'),
}


def status_badge(status):
    return BADGES.get(status, BADGES[STATUS_PENDING])


def month_start(now):
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class QuoteLedger:
    def __init__(self, gateway, user, settings=None):
        self.gateway = gateway
        self.user = user
        self.settings = settings or {}
        self.quotes = []
        self.clients = {}

    def load(self):
        filters = {'user_id': self.user.id}
        rows = self.gateway.select('quotes', filters, order_by='created_at', descending=True).unwrap()
        self.quotes = [Quote.from_row(row) for row in rows]
        self.clients = {row['id']: Client.from_row(row)
                        for row in self.gateway.select('clients', filters).unwrap()}
        return self.quotes

    def client_name(self, quote):
        client = self.clients.get(quote.client_id)
        return client.name if client is not None else CLIENT_NOT_FOUND

    def entries(self, client_filter=""):
        """Loaded quotes, newest first, narrowed to clients whose name contains the filter."""
        term = (client_filter or "").strip().lower()
        result = []
        for quote in self.quotes:
            client = self.clients.get(quote.client_id)
            if term and (client is None or term not in client.name.lower()):
                continue
            result.append(LedgerEntry(quote, self.client_name(quote), status_badge(quote.status)))
        return result

    def list(self, client_filter=""):
        self.load()
        return self.entries(client_filter)

    def get(self, quote_id):
        row = self.gateway.select_one('quotes', {'id': quote_id, 'user_id': self.user.id}).unwrap()
        if row is None:
            raise NotFoundError("Quote not found")
        return Quote.from_row(row)

    def duplicate(self, quote_id):
        original = self.get(quote_id)
        # id and created_at are assigned by the store
        row = self.gateway.insert('quotes', original.to_row()).unwrap()
        copy = Quote.from_row(row)
        log.info("Quote %s duplicated as %s", original.id, copy.id, extra={'quote_id': copy.id})
        self.load()
        return copy

    def delete(self, quote_id, confirmed=False):
        if not confirmed:
            raise ConfirmationRequired("Confirm to delete this quote")
        deleted = self.gateway.delete('quotes', {'id': quote_id, 'user_id': self.user.id}).unwrap()
        if not deleted:
            raise NotFoundError("Quote not found")
        log.info("Quote %s deleted", quote_id, extra={'quote_id': quote_id})
        self.load()

    def _client_for(self, quote):
        if quote.client_id in self.clients:
            return self.clients[quote.client_id]
        if not quote.client_id:
            return None
        row = self.gateway.select_one('clients', {'id': quote.client_id, 'user_id': self.user.id}).unwrap()
        return Client.from_row(row) if row else None

    def render_pdf(self, quote_id, company):
        quote = self.get(quote_id)
        client = self._client_for(quote)
        if client is None:
            client = Client(user_id=self.user.id, name=CLIENT_NOT_FOUND, phone="")
        pdf = QuotePDF(quote, company, client, is_entitled(self.user),
                       currency=self.settings.get('CURRENCY_SYMBOL', 'R$'),
                       brand=self.settings.get('BRAND_NAME', 'Quote Builder'))
        return pdf.to_bytes()

    def share_link(self, quote_id):
        quote = self.get(quote_id)
        client = self._client_for(quote)
        if client is None:
            raise ValidationError("This quote's client no longer exists")
        message = quote_message(client.name, quote.total, greeting="Here is your quote.",
                                currency=self.settings.get('CURRENCY_SYMBOL', 'R$'))
        return build_share_link(client.phone, message,
                                base_url=self.settings.get('MESSAGING_BASE_URL', 'https://wa.me'),
                                country_code=self.settings.get('MESSAGING_COUNTRY_CODE', '55'))

    def monthly_summary(self, now=None):
        """Counts and totals for quotes created since the first day of the current month."""
        since = month_start(now or datetime.utcnow())
        rows = self.gateway.select('quotes', {'user_id': self.user.id},
                                   since=('created_at', since)).unwrap()
        quotes = [Quote.from_row(row) for row in rows]
        approved = sum(1 for q in quotes if q.status == STATUS_APPROVED)
        rate = round(approved / len(quotes) * 100) if quotes else 0
        return {
            'quotes_this_month': len(quotes),
            'total_value': sum(q.total for q in quotes),
            'approved': approved,
            'approval_rate': rate,
        }
