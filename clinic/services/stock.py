from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from clinic.errors import ApiError
from clinic.models.invoice import FactureItem

logger = logging.getLogger(__name__)

# id produit -> quantité
QtyMap = Dict[int, int]


def build_product_qty_map(items: Iterable[FactureItem]) -> QtyMap:
    """Somme des quantités par produit ; les lignes de soin n'entrent pas dans le stock."""
    qty: QtyMap = {}
    for it in items:
        if not it.type_bien.affects_stock:
            continue
        qty[it.id_bien] = qty.get(it.id_bien, 0) + int(it.quantite)
    return qty


def diff_qty_maps(old: QtyMap, new: QtyMap) -> QtyMap:
    """new - old par produit (côté absent = 0), deltas nuls exclus."""
    out: QtyMap = {}
    for pid in set(old) | set(new):
        delta = new.get(pid, 0) - old.get(pid, 0)
        if delta:
            out[pid] = delta
    return out


def plan_stock_changes(was_paid: bool, is_paid: bool, old: QtyMap, new: QtyMap) -> QtyMap:
    """
    Variation de stock à appliquer par produit (négatif = sortie) :
      - non payée -> payée : sortie des nouvelles quantités
      - payée -> non payée : retour des anciennes quantités
      - payée -> payée     : sortie du delta (new - old)
      - sinon              : rien
    Création = (False, statut, {}, new), suppression = (statut, False, old, {}).
    """
    if not was_paid and is_paid:
        return {pid: -q for pid, q in new.items() if q}
    if was_paid and not is_paid:
        return {pid: q for pid, q in old.items() if q}
    if was_paid and is_paid:
        return {pid: -d for pid, d in diff_qty_maps(old, new).items()}
    return {}


@dataclass
class StockAdjustment:
    product_id: int
    product_name: str
    before: int
    delta: int
    after: int
    deficit: int = 0  # quantité non couverte, perdue par le plancher à 0


@dataclass
class StockAdjustmentReport:
    reason: str = ""
    applied: List[StockAdjustment] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def clamped(self) -> List[StockAdjustment]:
        return [a for a in self.applied if a.deficit]

    @property
    def ok(self) -> bool:
        return not self.failures and not self.missing

    def applied_for(self, product_id: int) -> Optional[StockAdjustment]:
        for a in self.applied:
            if a.product_id == product_id:
                return a
        return None

    def summary(self) -> str:
        parts = [f"{len(self.applied)} produit(s) mis à jour"]
        if self.clamped:
            parts.append(f"{len(self.clamped)} stock(s) ramené(s) à 0")
        if self.missing:
            parts.append(f"{len(self.missing)} produit(s) introuvable(s)")
        if self.failures:
            parts.append(f"{len(self.failures)} échec(s)")
        return ", ".join(parts)


class StockAdjuster:
    """
    Applique des variations de stock produit par produit.
    Chaque produit est traité indépendamment : un échec est consigné dans le
    rapport et n'empêche pas les suivants. Le stock ne descend jamais sous 0.
    """

    def __init__(self, products):
        self.products = products

    def apply(self, deltas: QtyMap, reason: str = "") -> StockAdjustmentReport:
        report = StockAdjustmentReport(reason=reason)
        for pid in sorted(deltas):
            delta = int(deltas[pid])
            if not delta:
                continue
            try:
                product = self.products.ensure(pid)
            except ApiError as e:
                logger.warning("[%s] produit %s: lecture impossible (%s)", reason, pid, e.message)
                report.failures[pid] = e.message
                continue
            if product is None:
                logger.warning("[%s] produit %s introuvable, stock non ajusté", reason, pid)
                report.missing.append(pid)
                continue

            before = product.stock
            target = before + delta
            after = max(target, 0)
            try:
                self.products.set_stock(product, after)
            except ApiError as e:
                logger.warning("[%s] produit %s: mise à jour du stock échouée (%s)", reason, pid, e.message)
                report.failures[pid] = e.message
                continue

            adj = StockAdjustment(pid, product.nom, before, delta, after, deficit=max(-target, 0))
            report.applied.append(adj)
            if adj.deficit:
                logger.warning(
                    "[%s] produit %s (%s): stock insuffisant %s%+d, ramené à 0 (manque %s)",
                    reason, pid, product.nom, before, delta, adj.deficit,
                )
            else:
                logger.info("[%s] produit %s (%s): stock %s -> %s", reason, pid, product.nom, before, after)
        return report

    def reconcile(self, was_paid: bool, is_paid: bool, old_items: Iterable[FactureItem],
                  new_items: Iterable[FactureItem], reason: str = "") -> StockAdjustmentReport:
        deltas = plan_stock_changes(
            was_paid, is_paid, build_product_qty_map(old_items), build_product_qty_map(new_items),
        )
        return self.apply(deltas, reason)
