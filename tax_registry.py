"""Client for the public company registry used to pre-fill the company profile."""
import logging

import requests

from errors import BackendError, TaxIdNotFound

log = logging.getLogger(__name__)


def format_address(data):
    """Compose "street, number - district, city/state" from whatever parts came back."""
    street = ", ".join(p for p in (data.get('logradouro'), data.get('numero')) if p)
    place = "/".join(p for p in (data.get('municipio'), data.get('uf')) if p)
    locality = ", ".join(p for p in (data.get('bairro'), place) if p)
    return " - ".join(p for p in (street, locality) if p)


class TaxRegistryClient:
    def __init__(self, base_url, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def lookup(self, tax_id_digits):
        url = f"{self.base_url}/{tax_id_digits}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            log.warning("Registry lookup for %s failed: %s", tax_id_digits, e)
            raise BackendError("Could not look up the tax ID", detail=str(e))
        except ValueError as e:
            log.warning("Registry returned invalid JSON for %s: %s", tax_id_digits, e)
            raise BackendError("Could not look up the tax ID", detail=str(e))

        if not isinstance(data, dict):
            raise BackendError("Could not look up the tax ID", detail=f"unexpected payload: {data!r}")
        if data.get('status') == 'ERROR':
            raise TaxIdNotFound()

        return {
            'name': data.get('nome') or "",
            'phone': data.get('telefone') or "",
            'address': format_address(data),
            'email': data.get('email') or "",
        }
