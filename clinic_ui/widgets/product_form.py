from __future__ import annotations
from typing import Optional, Union

from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QFormLayout, QLineEdit, QSpinBox,
    QPushButton, QWidget, QComboBox
)

from clinic.models.product import Product
from clinic.models.soin import Soin
from clinic.services.currency import current_symbol, parse_currency
from clinic.services.soins import create_empty_soin

CatalogItem = Union[Product, Soin]


class CatalogItemForm(QDialog):
    """
    Formulaire unique pour Produit / Soin.
    - Prix saisi dans la devise courante ("1 250,50" accepté).
    - Le stock n'existe que pour les produits.
    """
    def __init__(self, parent: Optional[QWidget] = None, item: Optional[CatalogItem] = None,
                 item_type: str = "product", soin_types: Optional[list] = None):
        super().__init__(parent)
        self.setWindowTitle("Édition " + ("Produit" if item_type == "product" else "Soin"))
        self.item_type = item_type
        self.item = item

        self.ed_nom = QLineEdit()
        self.ed_prix = QLineEdit()
        self.ed_prix.setPlaceholderText("ex: 150,00")
        self.sp_stock = QSpinBox(); self.sp_stock.setRange(0, 1_000_000)
        self.cb_type = QComboBox(); self.cb_type.setEditable(True)
        self.cb_type.addItems(soin_types or [])
        self.ed_cabinet = QLineEdit()
        self.ed_therapeute = QLineEdit()

        form = QFormLayout()
        form.addRow("Nom*", self.ed_nom)
        form.addRow(f"Prix ({current_symbol()})*", self.ed_prix)
        if item_type == "product":
            form.addRow("Stock", self.sp_stock)
        else:
            form.addRow("Type*", self.cb_type)
            form.addRow("Cabinet", self.ed_cabinet)
            form.addRow("Thérapeute", self.ed_therapeute)

        btn_ok = QPushButton("Valider")
        btn_cancel = QPushButton("Annuler")
        btn_ok.clicked.connect(self.accept)
        btn_cancel.clicked.connect(self.reject)
        bar = QHBoxLayout()
        bar.addStretch(1)
        bar.addWidget(btn_cancel)
        bar.addWidget(btn_ok)

        root = QVBoxLayout(self)
        root.addLayout(form)
        root.addLayout(bar)

        self.ed_nom.returnPressed.connect(btn_ok.click)
        self.ed_prix.returnPressed.connect(btn_ok.click)
        self._populate(item)
        self.resize(420, 260)

    def _populate(self, item: Optional[CatalogItem]) -> None:
        if item is None:
            if self.item_type != "product":
                empty = create_empty_soin()
                self.cb_type.setCurrentText(empty.type)
                self.ed_cabinet.setText(empty.cabinet)
            return
        self.ed_nom.setText(item.nom)
        self.ed_prix.setText(f"{item.prix:.2f}".replace(".", ","))
        if isinstance(item, Product):
            self.sp_stock.setValue(item.stock)
        else:
            self.cb_type.setCurrentText(item.type)
            self.ed_cabinet.setText(item.cabinet)
            self.ed_therapeute.setText(item.therapeute or "")

    def get_item(self) -> Optional[CatalogItem]:
        nom = self.ed_nom.text().strip()
        if not nom:
            return None
        values = {"nom": nom, "prix": parse_currency(self.ed_prix.text())}
        if self.item_type == "product":
            values["stock"] = int(self.sp_stock.value())
            model = Product
        else:
            values.update(
                type=self.cb_type.currentText().strip(),
                cabinet=self.ed_cabinet.text().strip(),
                therapeute=self.ed_therapeute.text().strip() or None,
            )
            model = Soin
        if self.item is not None:
            return self.item.model_copy(update=values)
        return model(**values)
