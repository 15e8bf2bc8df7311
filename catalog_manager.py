import logging
import math

from entitlement import FEATURE_PHOTO, is_entitled, require_entitlement
from errors import BackendError, NotFoundError, PartialAdjustmentError, ValidationError
from records import CATEGORIES, CATEGORY_PRODUCT, Item

log = logging.getLogger(__name__)


def parse_price(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Name and price are required")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a number")
    if math.isnan(price) or math.isinf(price) or price < 0:
        raise ValidationError("Price must be a non-negative number")
    return price


def parse_percent(value):
    try:
        percent = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Enter a valid percentage")
    if math.isnan(percent) or math.isinf(percent) or percent == 0:
        raise ValidationError("Enter a valid percentage")
    # Below -100% every price would turn negative
    if percent < -100:
        raise ValidationError("A reduction cannot exceed 100%")
    return percent


def adjust_price(price, percent):
    return price * (1 + percent / 100)


class CatalogManager:
    def __init__(self, gateway, user):
        self.gateway = gateway
        self.user = user
        self.items = []

    def load(self):
        rows = self.gateway.select('items', {'user_id': self.user.id},
                                   order_by='created_at', descending=True).unwrap()
        self.items = [Item.from_row(row) for row in rows]
        return self.items

    def list(self, search=""):
        term = (search or "").strip().lower()
        if not term:
            return list(self.items)
        return [i for i in self.items
                if term in i.name.lower() or term in i.description.lower()]

    def get(self, item_id):
        row = self.gateway.select_one('items', {'id': item_id, 'user_id': self.user.id}).unwrap()
        if row is None:
            raise NotFoundError("Item not found")
        return Item.from_row(row)

    def save(self, form, item_id=None):
        name = (form.get('name') or "").strip()
        if not name:
            raise ValidationError("Name and price are required")
        price = parse_price(form.get('price'))

        category = form.get('category') or CATEGORY_PRODUCT
        if category not in CATEGORIES:
            raise ValidationError(f"Category must be one of: {', '.join(CATEGORIES)}")

        photo = form.get('photo') or None
        if photo:
            require_entitlement(self.user, FEATURE_PHOTO)

        item = Item(
            user_id=self.user.id,
            name=name,
            price=price,
            description=(form.get('description') or "").strip(),
            category=category,
            unit=(form.get('unit') or "").strip(),
            photo=photo,
        )
        row = item.to_row()

        if item_id:
            existing = self.get(item_id)
            if 'photo' not in form or not is_entitled(self.user):
                row['photo'] = existing.photo
            self.gateway.update('items', row, {'id': item_id, 'user_id': self.user.id}).unwrap()
            log.info("Item %s updated", item_id, extra={'item_id': item_id})
            saved = self.get(item_id)
        else:
            saved = Item.from_row(self.gateway.insert('items', row).unwrap())
            log.info("Item %s added", saved.id, extra={'item_id': saved.id})
        self.load()
        return saved

    def attach_photo(self, item_id, photo):
        require_entitlement(self.user, FEATURE_PHOTO)
        item = self.get(item_id)
        self.gateway.update('items', {'photo': photo or None},
                            {'id': item.id, 'user_id': self.user.id}).unwrap()
        self.load()
        return self.get(item_id)

    def delete(self, item_id):
        deleted = self.gateway.delete('items', {'id': item_id, 'user_id': self.user.id}).unwrap()
        if not deleted:
            raise NotFoundError("Item not found")
        self.load()

    def bulk_price_adjustment(self, percent):
        """
        Multiply every stored item's price by (1 + percent/100).

        Items are updated one at a time. If an update fails, the ones already
        written stay written and PartialAdjustmentError reports how far it got.
        """
        percent = parse_percent(percent)
        items = self.load()

        updated = 0
        for item in items:
            new_price = adjust_price(item.price, percent)
            result = self.gateway.update('items', {'price': new_price},
                                         {'id': item.id, 'user_id': self.user.id})
            if not result.ok:
                log.error("Price adjustment stopped at item %s (%d/%d done)",
                          item.id, updated, len(items), extra={'item_id': item.id})
                detail = result.error.detail if isinstance(result.error, BackendError) else str(result.error)
                raise PartialAdjustmentError(updated, len(items), detail=detail)
            updated += 1

        log.info("Adjusted %d item prices by %+g%%", updated, percent, extra={'user_id': self.user.id})
        self.load()
        return updated
