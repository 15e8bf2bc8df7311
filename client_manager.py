import logging

from errors import NotFoundError, ValidationError
from records import Client

log = logging.getLogger(__name__)


def matches(client, term):
    term = (term or "").strip().lower()
    if not term:
        return True
    return term in client.name.lower() or term in client.tax_id.lower()


class ClientManager:
    def __init__(self, gateway, user):
        self.gateway = gateway
        self.user = user
        self.clients = []

    def load(self):
        rows = self.gateway.select('clients', {'user_id': self.user.id},
                                   order_by='created_at', descending=True).unwrap()
        self.clients = [Client.from_row(row) for row in rows]
        return self.clients

    def list(self, search=""):
        """Filter the in-memory list; call load() to refresh it."""
        return [c for c in self.clients if matches(c, search)]

    def get(self, client_id):
        row = self.gateway.select_one('clients', {'id': client_id, 'user_id': self.user.id}).unwrap()
        if row is None:
            raise NotFoundError("Client not found")
        return Client.from_row(row)

    def save(self, form, client_id=None):
        name = (form.get('name') or "").strip()
        phone = (form.get('phone') or "").strip()
        if not name or not phone:
            raise ValidationError("Name and phone are required")

        client = Client(
            user_id=self.user.id,
            name=name,
            phone=phone,
            tax_id=(form.get('tax_id') or "").strip(),
            address=(form.get('address') or "").strip(),
        )
        if client_id:
            updated = self.gateway.update('clients', client.to_row(),
                                          {'id': client_id, 'user_id': self.user.id}).unwrap()
            if not updated:
                raise NotFoundError("Client not found")
            log.info("Client %s updated", client_id, extra={'user_id': self.user.id})
            saved = self.get(client_id)
        else:
            saved = Client.from_row(self.gateway.insert('clients', client.to_row()).unwrap())
            log.info("Client %s added", saved.id, extra={'user_id': self.user.id})
        self.load()
        return saved

    def delete(self, client_id):
        # Quotes referencing the client are left alone
        deleted = self.gateway.delete('clients', {'id': client_id, 'user_id': self.user.id}).unwrap()
        if not deleted:
            raise NotFoundError("Client not found")
        self.load()
