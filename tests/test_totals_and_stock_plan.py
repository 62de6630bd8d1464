import pytest

from clinic.errors import ApiError
from clinic.models.invoice import Facture, FactureBien, FactureForm, FactureItem, FactureStatut, TypeBien
from clinic.models.product import Product
from clinic.services.invoices import (
    calculate_invoice_total, calculate_invoice_totals, create_empty_facture, get_invoice_statistics,
    validate_facture_data,
)
from clinic.services.stock import (
    StockAdjuster, build_product_qty_map, diff_qty_maps, plan_stock_changes,
)


def _item(pid, qty, price=10.0, kind=TypeBien.PRODUIT):
    return FactureItem(id_bien=pid, type_bien=kind, quantite=qty, prix_unitaire=price)


# ---------- Totaux ----------
def test_totals_apply_twenty_percent_vat():
    t = calculate_invoice_totals([_item(1, 2, 49.99), _item(2, 1, 0.05)])
    assert t.prix_ht == pytest.approx(100.03)
    assert t.tva_amount == 20.01
    assert t.tva_rate == 20
    assert t.prix_total == 120.04


def test_totals_round_half_up():
    # 0.125 de TVA -> 0.13
    t = calculate_invoice_totals([_item(1, 1, 0.625)])
    assert t.tva_amount == 0.13
    assert t.prix_total == 0.76


def test_empty_invoice_totals():
    t = calculate_invoice_totals([])
    assert (t.prix_ht, t.tva_amount, t.prix_total) == (0.0, 0.0, 0.0)
    assert calculate_invoice_total([]) == 0.0


def test_calculate_invoice_total_is_ht():
    assert calculate_invoice_total([_item(1, 3, 10.1)]) == pytest.approx(30.3)


# ---------- Validation ----------
def test_validate_facture_requires_payment_date_when_paid():
    form = FactureForm(cin="BK123456", date="2024-01-01T10:00", statut=FactureStatut.PAYEE,
                       cree_par="AB12345", items=[_item(1, 1)])
    assert validate_facture_data(form) == ["La date de paiement est obligatoire pour une facture payée"]


def test_validate_facture_cheque_fields_and_items():
    form = FactureForm(cin="", date="", cree_par="", methode_paiement="Par chéque",
                       items=[_item(0, 0, 0)])
    errors = validate_facture_data(form)
    assert errors == [
        "Le CIN du patient est obligatoire",
        "La date de la facture est obligatoire",
        "Le créateur est obligatoire",
        "Le numéro de chèque est requis lorsque le paiement est par chèque",
        "Le nom de la banque est requis lorsque le paiement est par chèque",
        "La date de tirage du chèque est requise lorsque le paiement est par chèque",
        "L'article 1 doit avoir un produit/service sélectionné",
        "L'article 1 doit avoir une quantité supérieure à 0",
        "L'article 1 doit avoir un prix supérieur à 0",
    ]


def test_validate_facture_needs_an_item():
    form = FactureForm(cin="BK123456", date="2024-01-01T10:00", cree_par="AB12345")
    assert validate_facture_data(form) == ["Au moins un article est requis"]


def test_empty_facture_defaults():
    form = create_empty_facture("AB12345")
    assert form.statut is FactureStatut.BROUILLON
    assert form.cree_par == "AB12345"
    assert form.items == []


def test_statut_parsing_is_accent_insensitive():
    assert FactureStatut.parse("payee") is FactureStatut.PAYEE
    assert FactureStatut.parse("ENVOYÉE") is FactureStatut.ENVOYEE
    assert FactureStatut.parse("archivée") is FactureStatut.EN_RETARD
    assert Facture.model_validate({"statut": "Brouillon"}).statut is FactureStatut.BROUILLON


def test_type_bien_parsing():
    assert TypeBien.parse("SERVICE") is TypeBien.SOIN
    assert TypeBien.parse("soin") is TypeBien.SOIN
    assert TypeBien.parse("produit") is TypeBien.PRODUIT
    assert TypeBien.parse("Produit") is TypeBien.PRODUIT
    assert TypeBien.parse("forfait") is TypeBien.SOIN
    assert TypeBien.parse(None) is TypeBien.SOIN
    assert not TypeBien.SOIN.affects_stock


def test_stored_lines_without_product_tag_stay_out_of_stock():
    rows = [
        {"id_bien": 7, "type_bien": None, "quantite": 2, "prix": 10},
        {"id_bien": 8, "type_bien": "forfait", "quantite": 3, "prix": 10},
        {"id_bien": 9, "quantite": 1, "prix": 10},
    ]
    lines = [FactureBien.model_validate(r) for r in rows]
    assert {ln.type_bien for ln in lines} == {TypeBien.SOIN}
    assert build_product_qty_map(lines) == {}
    tagged = FactureBien.model_validate({"id_bien": 7, "type_bien": "produit", "quantite": 2})
    assert build_product_qty_map([tagged]) == {7: 2}


def test_invoice_statistics():
    factures = [
        Facture(id=1, statut="Payée", prix_total=120.0),
        Facture(id=2, statut="Envoyée", prix_total=60.0),
        Facture(id=3, statut="Brouillon", prix_total=0.0),
    ]
    stats = get_invoice_statistics(factures)
    assert stats["total_invoices"] == 3
    assert stats["total_revenue"] == 180.0
    assert stats["paid_invoices"] == 1
    assert stats["pending_invoices"] == 1
    assert stats["draft_invoices"] == 1
    assert stats["average_invoice_value"] == 60.0


# ---------- Plan de stock ----------
def test_qty_map_sums_products_and_skips_soins():
    items = [_item(1, 2), _item(1, 3), _item(2, 1), _item(9, 5, kind=TypeBien.SOIN)]
    assert build_product_qty_map(items) == {1: 5, 2: 1}


def test_diff_excludes_zero_deltas():
    assert diff_qty_maps({1: 2, 2: 3}, {1: 2, 3: 1}) == {2: -3, 3: 1}


@pytest.mark.parametrize(
    "was_paid, is_paid, expected",
    [
        (False, True, {1: -4, 3: -1}),
        (True, False, {1: 2, 2: 1}),
        (True, True, {1: -2, 2: 1, 3: -1}),
        (False, False, {}),
    ],
)
def test_plan_stock_changes(was_paid, is_paid, expected):
    old = {1: 2, 2: 1}
    new = {1: 4, 3: 1}
    assert plan_stock_changes(was_paid, is_paid, old, new) == expected


class DummyProducts:
    """Remplace ProductsService : stock en mémoire, échec simulé par id."""

    def __init__(self, stocks, failing=()):
        self.items = {pid: Product(id=pid, nom=f"P{pid}", prix=1, stock=s) for pid, s in stocks.items()}
        self.failing = set(failing)
        self.writes = []

    def ensure(self, pid):
        return self.items.get(pid)

    def set_stock(self, product, new_stock):
        if product.id in self.failing:
            raise ApiError("refusé", status_code=500)
        self.writes.append((product.id, new_stock))
        self.items[product.id] = product.model_copy(update={"stock": new_stock})
        return self.items[product.id]


def test_adjuster_is_best_effort_per_product():
    products = DummyProducts({1: 5, 2: 1, 3: 8}, failing={3})
    report = StockAdjuster(products).apply({1: -2, 2: -4, 3: 1, 4: 2}, reason="test")

    assert products.writes == [(1, 3), (2, 0)]
    assert report.applied_for(2).deficit == 3
    assert report.failures == {3: "refusé"}
    assert report.missing == [4]
    assert not report.ok
    assert report.summary() == "2 produit(s) mis à jour, 1 stock(s) ramené(s) à 0, 1 produit(s) introuvable(s), 1 échec(s)"


def test_adjuster_ignores_zero_deltas():
    products = DummyProducts({1: 5})
    report = StockAdjuster(products).apply({1: 0})
    assert products.writes == []
    assert report.ok and report.applied == []
