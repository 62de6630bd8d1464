from __future__ import annotations

from typing import Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso, sort_newest_first
from clinic.models.soin import Soin
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank


def validate_soin_data(data: Soin) -> List[str]:
    errors: List[str] = []
    if blank(data.nom):
        errors.append("Le nom du soin est obligatoire")
    if not data.type:
        errors.append("Le type de soin est obligatoire")
    if not data.prix or data.prix <= 0:
        errors.append("Le prix doit être supérieur à 0")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    if blank(data.cabinet):
        errors.append("Le cabinet est obligatoire")
    if blank(data.therapeute):
        errors.append("Le thérapeute est obligatoire")
    return errors


def create_empty_soin(cin: str = "") -> Soin:
    return Soin(nom="", type="Consultation", prix=0, cree_par=cin, cabinet="Biohacking", therapeute="")


def get_statistics_by_type(soins: List[Soin]) -> Dict[str, Dict[str, float]]:
    stats: Dict[str, Dict[str, float]] = {}
    for type_ in dict.fromkeys(s.type for s in soins):
        of_type = [s for s in soins if s.type == type_]
        revenue = sum(s.prix for s in of_type)
        stats[type_] = {"count": len(of_type), "total_revenue": revenue, "avg_price": revenue / len(of_type)}
    return stats


def get_revenue_statistics(soins: List[Soin]) -> Dict[str, float]:
    prices = [s.prix for s in soins]
    total = sum(prices)
    return {
        "total_revenue": total,
        "average_price": total / len(prices) if prices else 0,
        "highest_price": max(prices, default=0),
        "lowest_price": min(prices, default=0),
        "total_services": len(prices),
    }


class SoinsService(ApiService):
    """Soins (bien de type SERVICE) : facturables, jamais stockés."""

    def __init__(self, api, session=None, activities=None):
        super().__init__(api, session, activities)
        self.cache: EntityCache[Soin] = EntityCache("soin")

    def _payload(self, data: Soin) -> dict:
        return {
            "Nom": data.nom,
            "bien_type": "SERVICE",
            "Type": data.type,
            "prix": data.prix,
            "stock": 1,
            "cabinet": data.cabinet,
            "Cree_par": self._cin(),
            "therapeute": data.therapeute,
        }

    def get_all(self) -> List[Soin]:
        rows = sort_newest_first(parse_rows(Soin, self.api.get("bien", params={"type": "SERVICE"}), "bien?type=SERVICE"))
        self.cache.replace_all(rows)
        return rows

    def get_by_id(self, soin_id: int) -> Optional[Soin]:
        return self.cache.get(soin_id)

    def create(self, data: Soin) -> Soin:
        errors = validate_soin_data(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("bien", self._payload(data))
        ids = [s.id for s in self.cache.list_all() if s.id is not None]
        soin = data.model_copy(update={"id": response_id(res) or max(ids, default=0) + 1, "created_at": now_iso()})
        self.cache.add(soin)
        self._log("soin", "created", soin.id, soin.nom)
        return soin

    def update(self, soin_id: int, data: Soin) -> Optional[Soin]:
        errors = validate_soin_data(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"bien/{soin_id}", self._payload(data))
        current = self.cache.get(soin_id)
        if current is None:
            return None
        updated = data.model_copy(update={"id": soin_id, "created_at": current.created_at})
        self.cache.update(updated)
        self._log("soin", "updated", soin_id, updated.nom)
        return updated

    def delete(self, soin_id: int) -> bool:
        self.api.delete(f"bien/{soin_id}")
        current = self.cache.get(soin_id)
        if current is None:
            return False
        self.cache.delete(soin_id)
        self._log("soin", "deleted", soin_id, current.nom)
        return True

    def search(self, query: str) -> List[Soin]:
        q = (query or "").lower()
        return self.cache.find(lambda s: q in s.nom.lower() or q in s.type.lower() or q in s.cree_par.lower())

    def get_by_type(self, type_: str) -> List[Soin]:
        return self.cache.find(lambda s: s.type == type_)

    def get_price_range(self) -> Dict[str, float]:
        prices = [s.prix for s in self.cache.list_all()]
        if not prices:
            return {"min": 0, "max": 0, "avg": 0}
        return {"min": min(prices), "max": max(prices), "avg": sum(prices) / len(prices)}
