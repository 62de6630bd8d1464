from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from clinic.errors import ApiError, ValidationFailed
from clinic.models.common import now_iso, parse_dt, sort_newest_first
from clinic.models.invoice import (
    CHEQUE_METHOD, TVA_RATE, Facture, FactureBien, FactureForm, FactureItem,
    FactureStatut, FactureWithDetails, TypeBien,
)
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .currency import format_currency
from .stock import StockAdjuster, StockAdjustmentReport
from .validation import blank

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


# ---------- Totaux ----------
@dataclass(frozen=True)
class InvoiceTotals:
    prix_ht: float
    tva_amount: float
    tva_rate: int
    prix_total: float


def _round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def calculate_invoice_total(items: Iterable[FactureItem]) -> float:
    return float(sum((Decimal(str(it.prix_unitaire)) * it.quantite for it in items), Decimal("0")))


def calculate_invoice_totals(items: Iterable[FactureItem]) -> InvoiceTotals:
    """HT = somme qté x prix ; TVA 20 % arrondie au centime ; TTC = HT + TVA."""
    ht = sum((Decimal(str(it.prix_unitaire)) * it.quantite for it in items), Decimal("0"))
    tva = _round2(ht * TVA_RATE / 100)
    total = _round2(ht + tva)
    return InvoiceTotals(float(ht), float(tva), TVA_RATE, float(total))


# ---------- Validation ----------
def validate_facture_data(data: FactureForm) -> List[str]:
    errors: List[str] = []
    if blank(data.cin):
        errors.append("Le CIN du patient est obligatoire")
    if not data.date:
        errors.append("La date de la facture est obligatoire")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    if data.is_paid and not data.date_paiement:
        errors.append("La date de paiement est obligatoire pour une facture payée")

    if data.methode_paiement == CHEQUE_METHOD:
        if blank(data.cheque_numero):
            errors.append("Le numéro de chèque est requis lorsque le paiement est par chèque")
        if blank(data.cheque_banque):
            errors.append("Le nom de la banque est requis lorsque le paiement est par chèque")
        if not data.cheque_date_tirage:
            errors.append("La date de tirage du chèque est requise lorsque le paiement est par chèque")

    if not data.items:
        errors.append("Au moins un article est requis")
    for i, item in enumerate(data.items, start=1):
        if not item.id_bien:
            errors.append(f"L'article {i} doit avoir un produit/service sélectionné")
        if item.quantite <= 0:
            errors.append(f"L'article {i} doit avoir une quantité supérieure à 0")
        if item.prix_unitaire <= 0:
            errors.append(f"L'article {i} doit avoir un prix supérieur à 0")
    return errors


# ---------- Utilitaires ----------
def get_facture_statuses() -> List[FactureStatut]:
    return list(FactureStatut)


def create_empty_facture(cin: str = "") -> FactureForm:
    now = datetime.now().strftime("%Y-%m-%dT%H:%M")
    return FactureForm(cin="", date=now, statut=FactureStatut.BROUILLON, notes="",
                       cree_par=cin, cheque_date_tirage=now, items=[])


def create_empty_item() -> FactureItem:
    return FactureItem(id_bien=0, type_bien=TypeBien.PRODUIT, quantite=1, prix_unitaire=0, nom_bien="")


def get_invoice_statistics(factures: List[Facture]) -> Dict[str, float]:
    total = len(factures)
    revenue = sum(f.prix_total for f in factures)

    def count(st: FactureStatut) -> int:
        return sum(1 for f in factures if f.statut is st)

    return {
        "total_invoices": total,
        "total_revenue": revenue,
        "paid_invoices": count(FactureStatut.PAYEE),
        "pending_invoices": count(FactureStatut.ENVOYEE),
        "overdue_invoices": count(FactureStatut.EN_RETARD),
        "draft_invoices": count(FactureStatut.BROUILLON),
        "average_invoice_value": revenue / total if total else 0,
    }


def to_api_datetime(value: Optional[str]) -> Optional[str]:
    dt = parse_dt(value)
    return dt.isoformat() if dt else None


def bien_row_to_item(row: Dict[str, Any]) -> Dict[str, Any]:
    """Ligne facture-bien brute -> dict FactureBien (nom tiré du bien joint)."""
    bien = row.get("bien") if isinstance(row.get("bien"), dict) else {}
    return {**row, "nom_bien": row.get("nom_bien") or bien.get("Nom") or ""}


class InvoicesService(ApiService):
    """
    Factures et lignes de facture.
    Le stock des produits suit le statut Payée : voir StockAdjuster.
    L'écriture de la facture est faite avant les ajustements de stock.
    """

    def __init__(self, api, products, session=None, activities=None, clients=None):
        super().__init__(api, session, activities)
        self.products = products
        self.clients = clients
        self.stock = StockAdjuster(products)
        self.cache: EntityCache[Facture] = EntityCache("facture")
        self.last_stock_report: Optional[StockAdjustmentReport] = None

    # ---------- Lecture ----------
    def get_all(self) -> List[Facture]:
        factures = parse_rows(Facture, self.api.get("facture"), "facture")
        raw_items = self.api.get("facture-bien") or []
        items = parse_rows(
            FactureBien,
            [bien_row_to_item(r) for r in raw_items if isinstance(r, dict)],
            "facture-bien",
        )
        by_invoice: Dict[int, List[FactureBien]] = {}
        for it in items:
            if it.id_facture is not None:
                by_invoice.setdefault(it.id_facture, []).append(it)

        factures = [f.model_copy(update={"items": by_invoice.get(f.id, [])}) for f in factures]
        factures = [f.model_copy(update=self._totals_update(f.items)) for f in factures]
        factures = sort_newest_first(factures)
        self.cache.replace_all(factures)
        return factures

    def _totals_update(self, items: List[FactureBien]) -> Dict[str, Any]:
        if not items:
            return {"tva_rate": TVA_RATE}
        t = calculate_invoice_totals(items)
        return {"prix_ht": t.prix_ht, "tva_amount": t.tva_amount, "tva_rate": t.tva_rate,
                "prix_total": t.prix_total}

    def _ensure_loaded(self) -> None:
        if self.cache.is_empty():
            self.get_all()

    def _patient_name(self, cin: str) -> str:
        if self.clients is None:
            return ""
        client = self.clients.cache.find_one(lambda c: c.cin == cin)
        return client.full_name if client else ""

    def get_all_with_details(self) -> List[FactureWithDetails]:
        return [
            FactureWithDetails.model_validate({**f.model_dump(), "patient_name": self._patient_name(f.cin)})
            for f in self.cache.list_all()
        ]

    def get_by_id(self, facture_id: int) -> Optional[Facture]:
        return self.cache.get(facture_id)

    def get_by_patient_cin(self, cin: str) -> List[Facture]:
        return self.cache.find(lambda f: f.cin == cin)

    def search(self, query: str) -> List[Facture]:
        q = (query or "").lower()
        return self.cache.find(
            lambda f: q in f.cin.lower() or q in f.cree_par.lower() or q in (f.notes or "").lower()
        )

    # ---------- Écriture ----------
    def _header_payload(self, data: FactureForm, totals: InvoiceTotals) -> Dict[str, Any]:
        return {
            "CIN": data.cin,
            "date": data.date,
            "prix_total": totals.prix_total,
            "statut": data.statut.value,
            "notes": data.notes or None,
            "date_paiement": to_api_datetime(data.date_paiement),
            "methode_paiement": data.methode_paiement or None,
            "cheque_numero": data.cheque_numero or None,
            "cheque_banque": data.cheque_banque or None,
            "cheque_date_tirage": to_api_datetime(data.cheque_date_tirage),
            "Cree_par": self._cin(),
        }

    def _post_items(self, facture_id: int, items: List[FactureItem]) -> List[FactureBien]:
        # une ligne après l'autre : chaque POST doit aboutir avant de continuer
        created: List[FactureBien] = []
        for item in items:
            res = self.api.post("facture-bien", {
                "id_facture": facture_id,
                "id_bien": item.id_bien,
                "type_bien": item.type_bien.value,
                "quantite": item.quantite,
                "prix": item.prix_unitaire,
                "Cree_par": self._cin(),
            })
            created.append(FactureBien(
                id=response_id(res), id_facture=facture_id, id_bien=item.id_bien,
                type_bien=item.type_bien, quantite=item.quantite, prix_unitaire=item.prix_unitaire,
                nom_bien=item.nom_bien, cree_par=self._cin(),
            ))
        return created

    def _reconcile(self, was_paid: bool, is_paid: bool, old_items, new_items, reason: str) -> StockAdjustmentReport:
        report = self.stock.reconcile(was_paid, is_paid, old_items, new_items, reason=reason)
        self.last_stock_report = report
        if report.applied or not report.ok:
            logger.info("%s: %s", reason, report.summary())
        return report

    def create(self, data: FactureForm) -> Facture:
        errors = validate_facture_data(data)
        if errors:
            raise ValidationFailed(errors)

        totals = calculate_invoice_totals(data.items)
        res = self.api.post("facture", self._header_payload(data, totals))
        facture_id = response_id(res)
        if facture_id is None:
            raise ApiError("La création de la facture n'a pas renvoyé d'identifiant", path="facture")

        items = self._post_items(facture_id, data.items)
        facture = Facture(
            id=facture_id, cin=data.cin, date=data.date, statut=data.statut, notes=data.notes,
            cree_par=data.cree_par, date_paiement=data.date_paiement,
            methode_paiement=data.methode_paiement, cheque_numero=data.cheque_numero,
            cheque_banque=data.cheque_banque, cheque_date_tirage=data.cheque_date_tirage,
            prix_ht=totals.prix_ht, tva_amount=totals.tva_amount, tva_rate=totals.tva_rate,
            prix_total=totals.prix_total, created_at=now_iso(), items=items,
        )
        self.cache.add(facture)

        self._reconcile(False, facture.is_paid, [], data.items, reason=f"facture {facture_id} créée")
        self._log("invoice", "created", facture_id, f"FAC-{facture_id}", {
            "clientName": self._patient_name(data.cin) or data.cin,
            "amount": format_currency(totals.prix_total),
        })
        return facture

    def update(self, facture_id: int, data: FactureForm) -> Optional[Facture]:
        self._ensure_loaded()
        current = self.cache.get(facture_id)
        if current is None:
            return None
        errors = validate_facture_data(data)
        if errors:
            raise ValidationFailed(errors)

        totals = calculate_invoice_totals(data.items)
        self.api.patch(f"facture/{facture_id}", self._header_payload(data, totals))
        self.api.delete(f"facture-bien/{facture_id}")
        items = self._post_items(facture_id, data.items)

        updated = current.model_copy(update={
            "cin": data.cin, "date": data.date, "statut": data.statut, "notes": data.notes,
            "cree_par": data.cree_par, "date_paiement": data.date_paiement,
            "methode_paiement": data.methode_paiement, "cheque_numero": data.cheque_numero,
            "cheque_banque": data.cheque_banque, "cheque_date_tirage": data.cheque_date_tirage,
            "prix_ht": totals.prix_ht, "tva_amount": totals.tva_amount, "tva_rate": totals.tva_rate,
            "prix_total": totals.prix_total, "items": items,
        })
        self.cache.update(updated)

        self._reconcile(current.is_paid, updated.is_paid, current.items, data.items,
                        reason=f"facture {facture_id} modifiée")
        self._log("invoice", "updated", facture_id, f"FAC-{facture_id}",
                  {"clientName": self._patient_name(data.cin) or data.cin})
        return updated

    def delete(self, facture_id: int) -> bool:
        self._ensure_loaded()
        current = self.cache.get(facture_id)
        if current is None:
            return False

        self.api.delete(f"facture-bien/{facture_id}")
        self.api.delete(f"facture/{facture_id}")
        self.cache.delete(facture_id)

        self._reconcile(current.is_paid, False, current.items, [], reason=f"facture {facture_id} supprimée")
        self._log("invoice", "deleted", facture_id, f"FAC-{facture_id}",
                  {"clientName": self._patient_name(current.cin) or current.cin})
        return True

    def update_status(
        self,
        facture_id: int,
        status: FactureStatut,
        date_paiement: Optional[str] = None,
        methode_paiement: Optional[str] = None,
        cheque_numero: Optional[str] = None,
        cheque_banque: Optional[str] = None,
        cheque_date_tirage: Optional[str] = None,
    ) -> Optional[Facture]:
        """Changement de statut seul (ex. marquer comme payée)."""
        self._ensure_loaded()
        current = self.cache.get(facture_id)
        if current is None:
            return None
        status = FactureStatut.parse(status)

        payload: Dict[str, Any] = {"statut": status.value}
        if date_paiement:
            payload["date_paiement"] = to_api_datetime(date_paiement)
        if methode_paiement:
            payload["methode_paiement"] = methode_paiement
        if cheque_numero:
            payload["cheque_numero"] = cheque_numero
        if cheque_banque:
            payload["cheque_banque"] = cheque_banque
        if cheque_date_tirage:
            payload["cheque_date_tirage"] = to_api_datetime(cheque_date_tirage)
        self.api.patch(f"facture/{facture_id}", payload)

        changes: Dict[str, Any] = {"statut": status, "date_paiement": date_paiement}
        optional = {
            "methode_paiement": methode_paiement,
            "cheque_numero": cheque_numero,
            "cheque_banque": cheque_banque,
            "cheque_date_tirage": cheque_date_tirage,
        }
        changes.update({k: v for k, v in optional.items() if v})
        updated = self.cache.update(current.model_copy(update=changes))

        self._reconcile(current.is_paid, updated.is_paid, current.items, current.items,
                        reason=f"facture {facture_id} -> {status.value}")
        return updated
