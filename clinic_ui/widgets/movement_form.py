from __future__ import annotations
from typing import Optional
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QSpinBox, QDoubleSpinBox, QDialogButtonBox, QDateEdit
)
from PySide6.QtCore import QDate

from clinic.models.inventory import InventoryForm, InventoryMovement, MovementType


class MovementForm(QDialog):
    """Entrée ou sortie manuelle de stock."""

    def __init__(self, parent=None, products=None, movement_type: MovementType = "IN",
                 movement: Optional[InventoryMovement] = None):
        super().__init__(parent)
        self.setWindowTitle("Entrée de stock" if movement_type == "IN" else "Sortie de stock")
        self.setModal(True)
        self.movement_type = movement_type

        self.cb_product = QComboBox()
        for p in products.cache.list_all():
            self.cb_product.addItem(f"{p.nom} (stock {p.stock})", p.id)
        self.sp_qty = QSpinBox(); self.sp_qty.setRange(1, 1_000_000)
        self.sp_prix = QDoubleSpinBox(); self.sp_prix.setRange(0, 1e9); self.sp_prix.setDecimals(2)
        self.ed_date = QDateEdit(); self.ed_date.setCalendarPopup(True); self.ed_date.setDate(QDate.currentDate())

        form = QFormLayout()
        form.addRow("Produit", self.cb_product)
        form.addRow("Quantité", self.sp_qty)
        form.addRow("Prix unitaire", self.sp_prix)
        form.addRow("Date", self.ed_date)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        if movement:
            self.cb_product.setCurrentIndex(max(0, self.cb_product.findData(movement.id_bien)))
            self.sp_qty.setValue(movement.quantite)
            self.sp_prix.setValue(movement.prix)
            if movement.date:
                d = QDate.fromString(movement.date[:10], "yyyy-MM-dd")
                if d.isValid():
                    self.ed_date.setDate(d)

    def get_movement(self) -> InventoryForm:
        return InventoryForm(
            id_bien=self.cb_product.currentData() or 0,
            quantite=int(self.sp_qty.value()),
            prix=float(self.sp_prix.value()),
            date=self.ed_date.date().toString("yyyy-MM-dd"),
            movement_type=self.movement_type,
        )
