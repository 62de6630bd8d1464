from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso, parse_dt
from clinic.models.inventory import InventoryForm, InventoryMovement, MovementType
from clinic.models.invoice import FactureStatut, TypeBien

from .base import ApiService, response_id
from .stock import StockAdjuster, StockAdjustmentReport

logger = logging.getLogger(__name__)


def validate_movement(data: InventoryForm) -> List[str]:
    errors: List[str] = []
    if not data.id_bien:
        errors.append("Veuillez sélectionner un produit")
    if data.quantite <= 0:
        errors.append("La quantité doit être supérieure à 0")
    if data.prix < 0:
        errors.append("Le prix ne peut pas être négatif")
    return errors


def _is_product_row(row: Dict[str, Any]) -> bool:
    return TypeBien.parse(row.get("type_bien")) is TypeBien.PRODUIT


def _is_out(row: Dict[str, Any]) -> bool:
    # ligne de facture sans type explicite = sortie
    return row.get("movementType") == "OUT" or (bool(row.get("id_facture")) and row.get("movementType") != "IN")


class InventoryService(ApiService):
    """
    Mouvements de stock (table facture-bien, lignes produit).
    Chaque création, modification ou suppression répercute la variation
    sur le stock du produit, plancher à 0.
    """

    def __init__(self, api, products, session=None, activities=None):
        super().__init__(api, session, activities)
        self.products = products
        self.stock = StockAdjuster(products)
        self.last_stock_report: Optional[StockAdjustmentReport] = None

    # ---------- Lecture ----------
    def get_all(self) -> List[InventoryMovement]:
        factures = {f.get("id"): f for f in (self.api.get("facture") or []) if isinstance(f, dict)}
        rows = [r for r in (self.api.get("facture-bien") or []) if isinstance(r, dict) and _is_product_row(r)]

        out: List[InventoryMovement] = []
        for row in rows:
            is_out = _is_out(row)
            linked = factures.get(row.get("id_facture")) if row.get("id_facture") else None
            # sortie liée à une facture : visible seulement si la facture est payée
            if is_out and row.get("id_facture"):
                if linked is None or FactureStatut.parse(linked.get("statut")) is not FactureStatut.PAYEE:
                    continue
            bien = row.get("bien") if isinstance(row.get("bien"), dict) else {}
            out.append(InventoryMovement(
                id=row.get("id"),
                id_facture=row.get("id_facture"),
                id_bien=row.get("id_bien"),
                nom_bien=bien.get("Nom") or "",
                quantite=row.get("quantite") or 0,
                prix=row.get("prix") or 0,
                movement_type="OUT" if is_out else "IN",
                date=(linked.get("date") if is_out and linked else row.get("created_at")) or "",
                cree_par=row.get("Cree_par") or "",
                created_at=row.get("created_at"),
            ))
        out.sort(key=lambda m: parse_dt(m.date) or datetime.min, reverse=True)
        return out

    def _find_raw(self, movement_id: int) -> Optional[Dict[str, Any]]:
        for row in self.api.get("facture-bien") or []:
            if isinstance(row, dict) and row.get("id") == movement_id and _is_product_row(row):
                return row
        return None

    # ---------- Écriture ----------
    def _payload(self, data: InventoryForm, movement_type: MovementType, with_creator: bool) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id_bien": data.id_bien,
            "type_bien": TypeBien.PRODUIT.value,
            "quantite": data.quantite,
            "prix": data.prix,
            "movementType": movement_type,
        }
        if with_creator:
            payload["Cree_par"] = self._cin()
        when = parse_dt(data.date) if data.date else None
        if when is not None:
            payload["created_at"] = when.isoformat()
        return payload

    def _apply(self, deltas: Dict[int, int], reason: str) -> StockAdjustmentReport:
        self.last_stock_report = self.stock.apply(deltas, reason=reason)
        return self.last_stock_report

    def _create(self, data: InventoryForm, movement_type: MovementType) -> InventoryMovement:
        errors = validate_movement(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("facture-bien", self._payload(data, movement_type, with_creator=True))
        sign = 1 if movement_type == "IN" else -1
        self._apply({data.id_bien: sign * data.quantite}, reason=f"mouvement {movement_type}")

        product = self.products.get_by_id(data.id_bien)
        when = parse_dt(data.date) if data.date else None
        stamp = when.isoformat() if when else now_iso()
        return InventoryMovement(
            id=response_id(res), id_bien=data.id_bien, nom_bien=product.nom if product else "",
            quantite=data.quantite, prix=data.prix, movement_type=movement_type,
            date=stamp, cree_par=self._cin(), created_at=stamp,
        )

    def _update(self, movement_id: int, data: InventoryForm, movement_type: MovementType) -> bool:
        errors = validate_movement(data)
        if errors:
            raise ValidationFailed(errors)
        prev = self._find_raw(movement_id)
        self.api.patch(f"facture-bien/{movement_id}", self._payload(data, movement_type, with_creator=False))
        if prev is None:
            logger.warning("mouvement %s introuvable avant modification, stock non ajusté", movement_id)
            return True

        sign = 1 if movement_type == "IN" else -1
        prev_qty = int(prev.get("quantite") or 0)
        if prev.get("id_bien") == data.id_bien:
            deltas = {data.id_bien: sign * (data.quantite - prev_qty)}
        else:
            # produit changé : annulation sur l'ancien, application sur le nouveau
            deltas = {prev["id_bien"]: -sign * prev_qty, data.id_bien: sign * data.quantite}
        self._apply(deltas, reason=f"mouvement {movement_id} modifié")
        return True

    def create_in(self, data: InventoryForm) -> InventoryMovement:
        return self._create(data, "IN")

    def create_out(self, data: InventoryForm) -> InventoryMovement:
        return self._create(data, "OUT")

    def update_in(self, movement_id: int, data: InventoryForm) -> bool:
        return self._update(movement_id, data, "IN")

    def update_out(self, movement_id: int, data: InventoryForm) -> bool:
        return self._update(movement_id, data, "OUT")

    def delete_movement(self, movement_id: int, movement_type: MovementType) -> bool:
        prev = self._find_raw(movement_id)
        self.api.delete(f"facture-bien/IN/{movement_id}")
        if prev is not None:
            qty = int(prev.get("quantite") or 0)
            delta = -qty if movement_type == "IN" else qty
            self._apply({prev["id_bien"]: delta}, reason=f"mouvement {movement_id} supprimé")
        return True
