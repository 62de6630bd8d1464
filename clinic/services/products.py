from __future__ import annotations

import logging
from typing import Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso, sort_newest_first
from clinic.models.product import Product
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 10


def validate_product_data(data: Product) -> List[str]:
    errors: List[str] = []
    if blank(data.nom):
        errors.append("Le nom du produit est obligatoire")
    if not data.prix or data.prix <= 0:
        errors.append("Le prix doit être supérieur à 0")
    if data.stock < 0:
        errors.append("Le stock ne peut pas être négatif")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    return errors


def get_stock_status(stock: int) -> str:
    if stock == 0:
        return "Rupture"
    if stock <= LOW_STOCK_THRESHOLD:
        return "Stock faible"
    return "En stock"


def calculate_total_value(products: List[Product]) -> float:
    return sum(p.prix * p.stock for p in products)


def get_stock_statistics(products: List[Product]) -> Dict[str, float]:
    return {
        "total_products": len(products),
        "out_of_stock": sum(1 for p in products if p.stock == 0),
        "low_stock": sum(1 for p in products if 0 < p.stock <= LOW_STOCK_THRESHOLD),
        "in_stock": sum(1 for p in products if p.stock > LOW_STOCK_THRESHOLD),
        "total_value": calculate_total_value(products),
    }


def create_empty_product(cin: str = "") -> Product:
    return Product(nom="", prix=0, stock=0, cree_par=cin)


class ProductsService(ApiService):
    """Produits vendus au comptoir (bien de type PRODUIT, avec stock)."""

    def __init__(self, api, session=None, activities=None):
        super().__init__(api, session, activities)
        self.cache: EntityCache[Product] = EntityCache("produit")

    def _payload(self, data: Product, stock: Optional[int] = None) -> dict:
        return {
            "Nom": data.nom,
            "bien_type": "PRODUIT",
            "Type": "",
            "prix": data.prix,
            "stock": data.stock if stock is None else stock,
            "Cree_par": self._cin(),
        }

    # ---------- Lecture ----------
    def get_all(self) -> List[Product]:
        rows = parse_rows(Product, self.api.get("bien", params={"type": "PRODUIT"}), "bien?type=PRODUIT")
        rows = sort_newest_first(rows)
        self.cache.replace_all(rows)
        return rows

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return self.cache.get(product_id)

    def ensure(self, product_id: int) -> Optional[Product]:
        """get_by_id, avec rechargement de la liste si le produit n'est pas en cache."""
        product = self.cache.get(product_id)
        if product is None:
            self.get_all()
            product = self.cache.get(product_id)
        return product

    def search(self, query: str) -> List[Product]:
        q = (query or "").lower()
        return self.cache.find(lambda p: q in p.nom.lower() or q in p.cree_par.lower())

    def get_low_stock(self, threshold: int = LOW_STOCK_THRESHOLD) -> List[Product]:
        return self.cache.find(lambda p: p.stock <= threshold)

    # ---------- Écriture ----------
    def create(self, data: Product) -> Product:
        errors = validate_product_data(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("bien", self._payload(data))
        product = data.model_copy(update={
            "id": response_id(res) or self._next_local_id(),
            "created_at": now_iso(),
        })
        self.cache.add(product)
        self._log("product", "created", product.id, product.nom)
        return product

    def update(self, product_id: int, data: Product) -> Optional[Product]:
        errors = validate_product_data(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"bien/{product_id}", self._payload(data))
        current = self.cache.get(product_id)
        if current is None:
            return None
        updated = current.model_copy(update={
            "nom": data.nom, "prix": data.prix, "stock": data.stock, "cree_par": data.cree_par,
        })
        self.cache.update(updated)
        self._log("product", "updated", product_id, updated.nom)
        return updated

    def set_stock(self, product: Product, new_stock: int) -> Product:
        """PATCH du stock seul (mouvements et factures), sans revalider la fiche."""
        self.api.patch(f"bien/{product.id}", self._payload(product, stock=new_stock))
        updated = product.model_copy(update={"stock": new_stock})
        self.cache.upsert(updated)
        return updated

    def update_stock(self, product_id: int, new_stock: int) -> Optional[Product]:
        """Mise à jour locale uniquement."""
        current = self.cache.get(product_id)
        if current is None:
            return None
        return self.cache.update(current.model_copy(update={"stock": new_stock}))

    def delete(self, product_id: int) -> bool:
        self.api.delete(f"bien/{product_id}")
        current = self.cache.get(product_id)
        if not self.cache.delete(product_id):
            return False
        self._log("product", "deleted", product_id, current.nom if current else "")
        return True

    def _next_local_id(self) -> int:
        ids = [p.id for p in self.cache.list_all() if p.id is not None]
        return max(ids, default=0) + 1
