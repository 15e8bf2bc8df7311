"""
Tests for quote_composer.py: line items, quantities, totals, save, PDF, share link.
"""
from urllib.parse import unquote

import pytest

from catalog_manager import CatalogManager
from client_manager import ClientManager
from errors import DuplicateItemError, EntitlementError, NotFoundError, ValidationError
from quote_composer import QuoteComposer, QuoteDraft, coerce_quantity
from records import CompanyInfo


@pytest.fixture
def catalog(gateway, user):
    manager = CatalogManager(gateway, user)
    consulting = manager.save({"name": "Consulting Hour", "price": "150.00", "category": "Service"})
    cable = manager.save({"name": "Cable", "price": 12.5, "description": "2m"})
    return {"consulting": consulting, "cable": cable}


@pytest.fixture
def acme(gateway, user):
    return ClientManager(gateway, user).save({"name": "ACME", "phone": "(11) 98765-4321"})


def make_composer(gateway, user):
    return QuoteComposer(gateway, user).load()


class TestQuantity:

    @pytest.mark.parametrize("raw, expected", [
        ("4", 4), (3, 3), (2.7, 2), ("0", 1), ("-2", 1), ("abc", 1), ("", 1), (None, 1), ("inf", 1),
    ])
    def test_coerce_quantity(self, raw, expected):
        assert coerce_quantity(raw) == expected

    @pytest.mark.parametrize("raw", ["3", "0", "-5", "x", None, 7])
    def test_subtotal_is_price_times_quantity(self, gateway, user, catalog, raw):
        comp = make_composer(gateway, user)
        comp.add_item(catalog["cable"].id)
        line = comp.set_quantity(catalog["cable"].id, raw)
        assert line.subtotal == line.price * line.quantity
        assert line.quantity >= 1

    def test_unknown_line(self, gateway, user, catalog):
        with pytest.raises(NotFoundError):
            make_composer(gateway, user).set_quantity("nope", 2)


class TestLineItems:

    def test_add_snapshots_catalog_item(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        line = comp.add_item(catalog["cable"].id)
        assert (line.name, line.description, line.price, line.quantity, line.subtotal) == \
            ("Cable", "2m", 12.5, 1, 12.5)

    def test_duplicate_add_leaves_list_unchanged(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        comp.add_item(catalog["cable"].id)
        comp.set_quantity(catalog["cable"].id, 5)
        before = list(comp.draft.items)
        with pytest.raises(DuplicateItemError):
            comp.add_item(catalog["cable"].id)
        assert comp.draft.items == before

    def test_unknown_catalog_item(self, gateway, user, catalog):
        with pytest.raises(NotFoundError):
            make_composer(gateway, user).add_item("missing")

    def test_remove_item(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        comp.add_item(catalog["cable"].id)
        comp.add_item(catalog["consulting"].id)
        comp.remove_item(catalog["cable"].id)
        assert [l.item_id for l in comp.draft.items] == [catalog["consulting"].id]

    def test_total_is_sum_of_subtotals(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        comp.add_item(catalog["cable"].id)
        comp.add_item(catalog["consulting"].id)
        comp.set_quantity(catalog["cable"].id, 4)
        assert comp.total() == 50.0 + 150.0

    def test_catalog_changes_do_not_relink_lines(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        comp.add_item(catalog["cable"].id)
        CatalogManager(gateway, user).save({"name": "Cable", "price": 99}, item_id=catalog["cable"].id)
        assert comp.draft.items[0].price == 12.5


class TestSave:

    def test_end_to_end_example(self, gateway, user, catalog, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        comp.add_item(catalog["consulting"].id)
        with pytest.raises(DuplicateItemError):
            comp.add_item(catalog["consulting"].id)
        assert comp.set_quantity(catalog["consulting"].id, 3).subtotal == 450.00

        quote = comp.save()
        assert quote.total == 450.00
        assert quote.status == "pending"
        assert quote.client_id == acme.id
        assert quote.id and quote.created_at
        assert comp.draft == QuoteDraft()

    def test_saved_total_matches_line_items(self, gateway, user, catalog, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        comp.add_item(catalog["cable"].id)
        comp.add_item(catalog["consulting"].id)
        comp.set_quantity(catalog["cable"].id, 7)
        quote = comp.save()
        assert quote.total == sum(l.subtotal for l in quote.items)

    def test_requires_client(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        comp.add_item(catalog["cable"].id)
        with pytest.raises(ValidationError):
            comp.save()
        assert len(comp.draft.items) == 1

    def test_unknown_client_id_not_saved(self, gateway, user, catalog):
        comp = make_composer(gateway, user)
        comp.select_client("no-such-client")
        comp.add_item(catalog["cable"].id)
        with pytest.raises(ValidationError):
            comp.save()
        assert gateway.select("quotes", {"user_id": user.id}).unwrap() == []

    def test_deleted_client_not_saved(self, gateway, user, catalog, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        comp.add_item(catalog["cable"].id)
        ClientManager(gateway, user).delete(acme.id)
        with pytest.raises(ValidationError):
            comp.load().save()
        assert len(comp.draft.items) == 1

    def test_requires_items(self, gateway, user, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        with pytest.raises(ValidationError):
            comp.save()

    def test_signature_rejected_without_entitlement(self, gateway, user):
        comp = make_composer(gateway, user)
        with pytest.raises(EntitlementError):
            comp.set_signature("Jane Roe")
        assert comp.draft.signature is None

    def test_signature_saved_when_entitled(self, gateway, pro_user, catalog, acme):
        comp = make_composer(gateway, pro_user)
        comp.select_client(acme.id)
        comp.add_item(catalog["cable"].id)
        comp.set_signature("Jane Roe")
        assert comp.save().signature == "Jane Roe"

    def test_signature_in_restored_draft_blocks_save(self, gateway, user, catalog, acme):
        draft = QuoteDraft(client_id=acme.id, signature="Jane Roe")
        comp = QuoteComposer(gateway, user, draft).load()
        comp.add_item(catalog["cable"].id)
        with pytest.raises(EntitlementError):
            comp.save()
        assert gateway.select("quotes", {"user_id": user.id}).unwrap() == []


class TestDraftState:

    def test_round_trips_through_dict(self, gateway, user, catalog, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        comp.add_item(catalog["cable"].id)
        comp.set_quantity(catalog["cable"].id, 2)
        comp.set_notes("Valid for 10 days")
        restored = QuoteDraft.from_dict(comp.draft.to_dict())
        assert restored == comp.draft


class TestExport:

    def test_share_link(self, gateway, user, catalog, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        comp.add_item(catalog["consulting"].id)
        comp.set_quantity(catalog["consulting"].id, 3)
        url = comp.share_link()
        assert url.startswith("https://wa.me/5511987654321?text=")
        message = unquote(url.split("text=", 1)[1])
        assert message == "Hello ACME! Here is the requested quote.\n\nTotal: R$ 450.00"

    def test_share_requires_client_and_items(self, gateway, user, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        with pytest.raises(ValidationError):
            comp.share_link()

    def test_export_pdf(self, gateway, user, catalog, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        comp.add_item(catalog["cable"].id)
        data = comp.export_pdf(CompanyInfo(user_id=user.id, name="My Shop"))
        assert data.startswith(b"%PDF")

    def test_export_requires_items(self, gateway, user, acme):
        comp = make_composer(gateway, user)
        comp.select_client(acme.id)
        with pytest.raises(ValidationError):
            comp.export_pdf(CompanyInfo(user_id=user.id))
