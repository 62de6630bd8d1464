from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso, parse_dt
from clinic.models.payment import Payment, PaymentWithInvoiceDetails
from clinic.storage.cache import EntityCache

from .validation import blank


def validate_payment_data(data: Payment) -> List[str]:
    errors: List[str] = []
    if not data.id_facture:
        errors.append("L'ID de la facture est obligatoire")
    if blank(data.date):
        errors.append("La date du paiement est obligatoire")
    if not data.montant_totale or data.montant_totale <= 0:
        errors.append("Le montant doit être supérieur à 0")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    return errors


def _sort_key(p: Payment) -> datetime:
    return parse_dt(p.date) or datetime.min


def get_payment_statistics(payments: List[Payment], now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now()
    total = len(payments)
    revenue = sum(p.montant_totale for p in payments)

    monthly: Dict[str, Dict[str, float]] = defaultdict(lambda: {"count": 0, "revenue": 0.0})
    doctors: Dict[str, Dict[str, float]] = defaultdict(lambda: {"count": 0, "revenue": 0.0})
    for p in payments:
        dt = parse_dt(p.date)
        if dt is not None:
            month = monthly[dt.strftime("%Y-%m")]
            month["count"] += 1
            month["revenue"] += p.montant_totale
        doc = doctors[p.cree_par]
        doc["count"] += 1
        doc["revenue"] += p.montant_totale

    empty = {"count": 0, "revenue": 0.0}
    current = monthly.get(now.strftime("%Y-%m"), empty)
    previous = monthly.get((now - timedelta(days=30)).strftime("%Y-%m"), empty)
    top = max(doctors.items(), key=lambda kv: kv[1]["revenue"])[0] if doctors else "N/A"

    return {
        "total_payments": total,
        "total_revenue": revenue,
        "average_payment": revenue / total if total else 0,
        "current_month_revenue": current["revenue"],
        "previous_month_revenue": previous["revenue"],
        "current_month_count": current["count"],
        "previous_month_count": previous["count"],
        "monthly_trend": current["revenue"] - previous["revenue"],
        "monthly_data": dict(monthly),
        "doctor_stats": dict(doctors),
        "top_doctor": top,
    }


class PaymentsService:
    """
    Paiements déduits des factures payées (pas de table côté serveur).
    La date d'un paiement est la date de paiement de la facture, à défaut
    sa date d'émission.
    """

    def __init__(self, invoices, session=None):
        self.invoices = invoices
        self.session = session
        self.cache: EntityCache[Payment] = EntityCache("paiement")

    def generate_from_paid_invoices(self) -> List[Payment]:
        paid = sorted((f for f in self.invoices.get_all() if f.is_paid), key=lambda f: f.id or 0)
        payments = [
            Payment(
                id=i, id_facture=f.id, date=f.date_paiement or f.date,
                montant_totale=f.prix_total, cree_par=f.cree_par,
            )
            for i, f in enumerate(paid, start=1)
        ]
        self.cache.replace_all(payments)
        return self.get_all()

    def get_all(self) -> List[Payment]:
        return sorted(self.cache.list_all(), key=_sort_key, reverse=True)

    def get_all_with_details(self) -> List[PaymentWithInvoiceDetails]:
        invoices = {f.id: f for f in self.invoices.get_all()}
        out = []
        for p in self.cache.list_all():
            inv = invoices.get(p.id_facture)
            out.append(PaymentWithInvoiceDetails(
                **p.model_dump(),
                facture_number=f"#{p.id_facture:04d}",
                patient_cin=inv.cin if inv and inv.cin else "N/A",
                facture_notes=inv.notes if inv else None,
                facture_date=inv.date if inv and inv.date else p.date,
            ))
        return sorted(out, key=_sort_key, reverse=True)

    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        return self.cache.get(payment_id)

    def get_by_doctor(self, doctor: str) -> List[Payment]:
        return self.cache.find(lambda p: p.cree_par == doctor)

    def get_by_date_range(self, start: str, end: str) -> List[Payment]:
        lo, hi = parse_dt(start), parse_dt(end)
        if lo is None or hi is None:
            return []

        def within(p: Payment) -> bool:
            dt = parse_dt(p.date)
            return dt is not None and lo <= dt <= hi

        return self.cache.find(within)

    def search(self, query: str) -> List[Payment]:
        q = (query or "").lower()
        return self.cache.find(lambda p: q in p.cree_par.lower() or q in str(p.id_facture))

    def get_available_doctors(self) -> List[str]:
        return sorted({p.cree_par for p in self.cache.list_all()})

    def create_from_invoice(self, invoice_id: int, created_by: str = "") -> Payment:
        invoice = self.invoices.get_by_id(invoice_id)
        if invoice is None:
            raise ValidationFailed(["Facture introuvable"])
        ids = [p.id for p in self.cache.list_all()]
        payment = Payment(
            id=max(ids, default=0) + 1,
            id_facture=invoice_id,
            date=invoice.date_paiement or now_iso(),
            montant_totale=invoice.prix_total,
            cree_par=created_by or (self.session.current_cin() if self.session is not None else ""),
        )
        errors = validate_payment_data(payment)
        if errors:
            raise ValidationFailed(errors)
        return self.cache.add(payment)
