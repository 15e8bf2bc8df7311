import logging
from dataclasses import replace

from errors import ValidationError
from messaging import digits_only
from records import CompanyInfo

log = logging.getLogger(__name__)

TAX_ID_LENGTH = 14


class CompanyProfileManager:
    """The single company profile row owned by a user."""

    def __init__(self, gateway, user, registry=None):
        self.gateway = gateway
        self.user = user
        self.registry = registry

    def load(self):
        """Stored profile, or a blank one when the user has not saved any yet."""
        row = self.gateway.select_one('company_info', {'user_id': self.user.id}).unwrap()
        if row is None:
            return CompanyInfo(user_id=self.user.id)
        return CompanyInfo.from_row(row)

    def from_form(self, form, base=None):
        profile = base or CompanyInfo(user_id=self.user.id)
        changes = {}
        for name in CompanyInfo.FIELDS:
            if name in form:
                value = form.get(name)
                changes[name] = (value or None) if name == 'logo' else (value or "").strip()
        return replace(profile, user_id=self.user.id, **changes)

    def save(self, profile):
        """Update the user's row if there is one, insert it otherwise."""
        row = profile.to_row()
        row['user_id'] = self.user.id
        existing = self.gateway.select_one('company_info', {'user_id': self.user.id}).unwrap()
        if existing is not None:
            self.gateway.update('company_info', row, {'user_id': self.user.id}).unwrap()
            log.info("Company profile updated", extra={'user_id': self.user.id})
        else:
            self.gateway.insert('company_info', row).unwrap()
            log.info("Company profile created", extra={'user_id': self.user.id})
        return self.load()

    def lookup_by_tax_id(self, profile):
        """
        Fill name, phone, address and email from the public registry.

        Only fields the registry returned a value for are replaced; the
        profile is not saved.
        """
        digits = digits_only(profile.tax_id)
        if len(digits) < TAX_ID_LENGTH:
            raise ValidationError("Invalid tax ID")
        if self.registry is None:
            raise ValidationError("Tax ID lookup is not available")

        data = self.registry.lookup(digits)
        changes = {name: data[name] for name in ('name', 'phone', 'address', 'email')
                   if data.get(name)}
        log.info("Registry lookup for %s filled %s", digits, sorted(changes))
        return replace(profile, **changes)
