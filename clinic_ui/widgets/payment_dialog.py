from __future__ import annotations
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QLineEdit, QDialogButtonBox, QDateEdit, QLabel
)
from PySide6.QtCore import QDate
from typing import Dict, List, Optional

from clinic.models.invoice import CHEQUE_METHOD, PAYMENT_METHODS
from clinic.services.currency import format_currency


class PaymentDialog(QDialog):
    """Encaissement d'une facture : moyen, date et détails du chèque."""

    def __init__(self, parent=None, amount: float = 0.0, banks: Optional[List[str]] = None):
        super().__init__(parent)
        self.setWindowTitle("Encaissement")
        self.setModal(True)

        self.cb_method = QComboBox()
        self.cb_method.addItems(PAYMENT_METHODS)

        self.dt_paid = QDateEdit()
        self.dt_paid.setCalendarPopup(True)
        self.dt_paid.setDate(QDate.currentDate())

        self.ed_cheque_num = QLineEdit()
        self.cb_bank = QComboBox(); self.cb_bank.setEditable(True)
        self.cb_bank.addItems(banks or [])
        self.dt_cheque = QDateEdit(); self.dt_cheque.setCalendarPopup(True)
        self.dt_cheque.setDate(QDate.currentDate())

        form = QFormLayout()
        form.addRow("Montant TTC", QLabel(format_currency(amount)))
        form.addRow("Moyen de paiement", self.cb_method)
        form.addRow("Date du paiement", self.dt_paid)
        form.addRow("N° de chèque", self.ed_cheque_num)
        form.addRow("Banque", self.cb_bank)
        form.addRow("Date de tirage", self.dt_cheque)
        self._cheque_widgets = (self.ed_cheque_num, self.cb_bank, self.dt_cheque)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        self.cb_method.currentTextChanged.connect(self._toggle_cheque)
        self._toggle_cheque(self.cb_method.currentText())

    def _toggle_cheque(self, method: str):
        for w in self._cheque_widgets:
            w.setEnabled(method == CHEQUE_METHOD)

    def get_payment(self) -> Dict[str, Optional[str]]:
        """Champs attendus par InvoicesService.update_status."""
        method = self.cb_method.currentText()
        out: Dict[str, Optional[str]] = {
            "methode_paiement": method,
            "date_paiement": self.dt_paid.date().toString("yyyy-MM-dd"),
        }
        if method == CHEQUE_METHOD:
            out["cheque_numero"] = self.ed_cheque_num.text().strip() or None
            out["cheque_banque"] = self.cb_bank.currentText().strip() or None
            out["cheque_date_tirage"] = self.dt_cheque.date().toString("yyyy-MM-dd")
        return out
