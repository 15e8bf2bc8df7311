"""
Domain records shared by every manager.

Rows come out of the gateway as plain dicts; these dataclasses are the typed
shape the rest of the app works with. Quote line items are stored as an
untyped JSON list, so they are validated here on the way in.
"""
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from errors import ValidationError

CATEGORY_PRODUCT = 'Product'
CATEGORY_SERVICE = 'Service'
CATEGORIES = (CATEGORY_PRODUCT, CATEGORY_SERVICE)

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_REJECTED = 'rejected'
STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


def _text(value):
    return value if value is not None else ""


def _parse_datetime(value):
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class User:
    id: str
    email: str
    is_pro: bool = False

    @classmethod
    def from_row(cls, row):
        return cls(id=row['id'], email=_text(row.get('email')), is_pro=bool(row.get('is_pro')))

    def to_dict(self):
        return asdict(self)


@dataclass
class CompanyInfo:
    user_id: str
    name: str = ""
    logo: Optional[str] = None
    phone: str = ""
    whatsapp: str = ""
    tax_id: str = ""
    address: str = ""
    contact_person: str = ""
    email: str = ""
    id: Optional[str] = None

    FIELDS = ('name', 'logo', 'phone', 'whatsapp', 'tax_id', 'address', 'contact_person', 'email')

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            user_id=row['user_id'],
            name=_text(row.get('name')),
            logo=row.get('logo') or None,
            phone=_text(row.get('phone')),
            whatsapp=_text(row.get('whatsapp')),
            tax_id=_text(row.get('tax_id')),
            address=_text(row.get('address')),
            contact_person=_text(row.get('contact_person')),
            email=_text(row.get('email')),
        )

    def to_row(self):
        row = {name: getattr(self, name) for name in self.FIELDS}
        row['user_id'] = self.user_id
        return row

    def to_dict(self):
        return asdict(self)


@dataclass
class Client:
    user_id: str
    name: str
    phone: str
    tax_id: str = ""
    address: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            user_id=row['user_id'],
            name=_text(row.get('name')),
            phone=_text(row.get('phone')),
            tax_id=_text(row.get('tax_id')),
            address=_text(row.get('address')),
            created_at=_parse_datetime(row.get('created_at')),
        )

    def to_row(self):
        return {
            'user_id': self.user_id,
            'name': self.name,
            'phone': self.phone,
            'tax_id': self.tax_id,
            'address': self.address,
        }

    def to_dict(self):
        return asdict(self)


@dataclass
class Item:
    user_id: str
    name: str
    price: float
    description: str = ""
    category: str = CATEGORY_PRODUCT
    unit: str = ""
    photo: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row.get('id'),
            user_id=row['user_id'],
            name=_text(row.get('name')),
            price=float(row.get('price') or 0),
            description=_text(row.get('description')),
            category=row.get('category') or CATEGORY_PRODUCT,
            unit=_text(row.get('unit')),
            photo=row.get('photo') or None,
            created_at=_parse_datetime(row.get('created_at')),
        )

    def to_row(self):
        return {
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'price': self.price,
            'unit': self.unit,
            'photo': self.photo,
        }

    def to_dict(self):
        return asdict(self)


class LineItemSchema(BaseModel):
    """One entry of the JSON `items` column on quotes. Stored subtotals are ignored."""
    item_id: str
    name: Optional[str] = ""
    description: Optional[str] = ""
    price: float = Field(ge=0, allow_inf_nan=False)
    quantity: int = Field(gt=0)


@dataclass
class QuoteLineItem:
    """Snapshot of a catalog item inside a quote; never re-linked to the catalog."""
    item_id: str
    name: str
    description: str
    price: float
    quantity: int = 1
    subtotal: float = 0.0

    @classmethod
    def from_item(cls, item):
        return cls(item_id=item.id, name=item.name, description=item.description,
                   price=item.price, quantity=1, subtotal=item.price)

    @classmethod
    def from_dict(cls, data):
        try:
            entry = LineItemSchema.model_validate(data)
        except SchemaError as e:
            raise ValidationError(f"Malformed quote line item: {e.error_count()} invalid field(s)")
        return cls(
            item_id=entry.item_id,
            name=entry.name or "",
            description=entry.description or "",
            price=entry.price,
            quantity=entry.quantity,
            subtotal=entry.price * entry.quantity,
        )

    def with_quantity(self, quantity):
        return replace(self, quantity=quantity, subtotal=self.price * quantity)

    def to_dict(self):
        return asdict(self)


@dataclass
class Quote:
    user_id: str
    client_id: str
    items: List[QuoteLineItem] = field(default_factory=list)
    total: float = 0.0
    status: str = STATUS_PENDING
    notes: str = ""
    signature: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row):
        raw_items = row.get('items') or []
        if not isinstance(raw_items, list):
            raise ValidationError("Quote items must be a list")
        return cls(
            id=row.get('id'),
            user_id=row['user_id'],
            client_id=row.get('client_id'),
            items=[QuoteLineItem.from_dict(entry) for entry in raw_items],
            total=float(row.get('total') or 0),
            status=row.get('status') or STATUS_PENDING,
            notes=_text(row.get('notes')),
            signature=row.get('signature') or None,
            created_at=_parse_datetime(row.get('created_at')),
        )

    def computed_total(self):
        return sum(line.subtotal for line in self.items)

    def to_row(self):
        return {
            'user_id': self.user_id,
            'client_id': self.client_id,
            'items': [line.to_dict() for line in self.items],
            'total': self.total,
            'status': self.status,
            'notes': self.notes,
            'signature': self.signature,
        }

    def to_dict(self):
        data = self.to_row()
        data['id'] = self.id
        data['created_at'] = self.created_at.isoformat() if self.created_at else None
        return data
