"""
Tests for company_profile.py and tax_registry.py.
"""
import pytest
import requests

from company_profile import CompanyProfileManager
from errors import BackendError, TaxIdNotFound, ValidationError
from records import CompanyInfo
from tax_registry import TaxRegistryClient, format_address

REGISTRY_HIT = {
    "status": "OK",
    "nome": "ACME COMERCIO LTDA",
    "telefone": "(11) 3333-4444",
    "email": "contato@acme.com.br",
    "logradouro": "RUA DAS FLORES", "numero": "100", "bairro": "CENTRO",
    "municipio": "SAO PAULO", "uf": "SP",
}


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def registry(response):
    return TaxRegistryClient("https://registry.example.com/v1/cnpj/", timeout=5,
                             session=FakeSession(response))


class TestUpsert:

    def test_load_without_record_is_blank(self, gateway, user):
        profile = CompanyProfileManager(gateway, user).load()
        assert profile == CompanyInfo(user_id=user.id)

    def test_first_save_inserts_second_updates(self, gateway, user):
        manager = CompanyProfileManager(gateway, user)
        first = manager.save(manager.from_form({"name": "My Shop", "phone": "1"}))
        second = manager.save(manager.from_form({"name": "My Shop Ltd"}, base=first))
        rows = gateway.select("company_info", {"user_id": user.id}).unwrap()
        assert len(rows) == 1
        assert second.id == first.id
        assert (second.name, second.phone) == ("My Shop Ltd", "1")

    def test_from_form_keeps_fields_not_submitted(self, gateway, user):
        manager = CompanyProfileManager(gateway, user)
        base = CompanyInfo(user_id=user.id, name="Shop", email="a@b.c")
        profile = manager.from_form({"email": " new@b.c "}, base=base)
        assert (profile.name, profile.email) == ("Shop", "new@b.c")


class TestLookup:

    def test_fills_fields_from_registry(self, gateway, user):
        manager = CompanyProfileManager(gateway, user, registry=registry(FakeResponse(REGISTRY_HIT)))
        profile = manager.lookup_by_tax_id(CompanyInfo(user_id=user.id, tax_id="12.345.678/0001-95"))
        assert profile.name == "ACME COMERCIO LTDA"
        assert profile.address == "RUA DAS FLORES, 100 - CENTRO, SAO PAULO/SP"
        assert profile.email == "contato@acme.com.br"
        assert manager.registry.session.calls == [("https://registry.example.com/v1/cnpj/12345678000195", 5)]

    def test_empty_registry_values_keep_existing(self, gateway, user):
        sparse = {"status": "OK", "nome": "NEW NAME", "telefone": "", "email": None}
        manager = CompanyProfileManager(gateway, user, registry=registry(FakeResponse(sparse)))
        current = CompanyInfo(user_id=user.id, tax_id="12345678000195", phone="555", email="me@x.com",
                              address="Old street")
        profile = manager.lookup_by_tax_id(current)
        assert (profile.name, profile.phone, profile.email, profile.address) == \
            ("NEW NAME", "555", "me@x.com", "Old street")

    def test_lookup_does_not_save(self, gateway, user):
        manager = CompanyProfileManager(gateway, user, registry=registry(FakeResponse(REGISTRY_HIT)))
        manager.lookup_by_tax_id(CompanyInfo(user_id=user.id, tax_id="12345678000195"))
        assert gateway.select_one("company_info", {"user_id": user.id}).unwrap() is None

    @pytest.mark.parametrize("tax_id", ["", "1234", "12.345.678/0001"])
    def test_short_tax_id_rejected(self, gateway, user, tax_id):
        session = FakeSession(FakeResponse(REGISTRY_HIT))
        client = TaxRegistryClient("https://registry.example.com", session=session)
        manager = CompanyProfileManager(gateway, user, registry=client)
        with pytest.raises(ValidationError):
            manager.lookup_by_tax_id(CompanyInfo(user_id=user.id, tax_id=tax_id))
        assert session.calls == []

    def test_not_found(self, gateway, user):
        miss = {"status": "ERROR", "message": "CNPJ invalido"}
        manager = CompanyProfileManager(gateway, user, registry=registry(FakeResponse(miss)))
        with pytest.raises(TaxIdNotFound):
            manager.lookup_by_tax_id(CompanyInfo(user_id=user.id, tax_id="12345678000195"))


class TestRegistryClient:

    def test_network_error(self):
        with pytest.raises(BackendError):
            registry(requests.ConnectionError("down")).lookup("12345678000195")

    def test_http_error(self):
        with pytest.raises(BackendError):
            registry(FakeResponse({}, status_code=429)).lookup("12345678000195")

    def test_invalid_json(self):
        with pytest.raises(BackendError):
            registry(FakeResponse(ValueError("not json"))).lookup("12345678000195")

    def test_format_address_skips_missing_parts(self):
        assert format_address({"logradouro": "RUA A", "municipio": "RIO", "uf": "RJ"}) == "RUA A - RIO/RJ"
        assert format_address({}) == ""
