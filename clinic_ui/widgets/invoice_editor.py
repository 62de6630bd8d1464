from __future__ import annotations
from typing import List, Optional
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QComboBox, QTextEdit, QDialogButtonBox,
    QHBoxLayout, QPushButton, QTableWidget, QTableWidgetItem, QHeaderView,
    QSpinBox, QLabel, QDateTimeEdit, QMessageBox
)
from PySide6.QtCore import QDateTime

from clinic.models.invoice import FactureForm, FactureItem, FactureStatut, TypeBien
from clinic.services.currency import format_currency
from clinic.services.invoices import calculate_invoice_totals, create_empty_facture, validate_facture_data

from clinic_ui.widgets.payment_dialog import PaymentDialog


class _AddLineDialog(QDialog):
    """Sélecteur simple pour ajouter un produit ou un soin."""
    def __init__(self, parent=None, products=None, soins=None):
        super().__init__(parent)
        self.setWindowTitle("Ajouter une ligne")
        self.setModal(True)
        self.products = products
        self.soins = soins

        self.cb_type = QComboBox()
        self.cb_type.addItem("Produit", TypeBien.PRODUIT)
        self.cb_type.addItem("Soin", TypeBien.SOIN)
        self.cb_item = QComboBox()
        self.sp_qty = QSpinBox(); self.sp_qty.setRange(1, 100_000); self.sp_qty.setValue(1)
        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)

        form = QFormLayout()
        form.addRow("Type", self.cb_type)
        form.addRow("Article", self.cb_item)
        form.addRow("Quantité", self.sp_qty)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        self.cb_type.currentIndexChanged.connect(self._refresh_items)
        self._refresh_items()

        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

    def _refresh_items(self):
        self.cb_item.clear()
        if self.cb_type.currentData() is TypeBien.PRODUIT:
            for p in self.products.cache.list_all():
                self.cb_item.addItem(f"{p.nom} ({format_currency(p.prix)}, stock {p.stock})",
                                     (TypeBien.PRODUIT, p.id, p.nom, p.prix))
        else:
            for s in self.soins.cache.list_all():
                self.cb_item.addItem(f"{s.nom} ({format_currency(s.prix)})", (TypeBien.SOIN, s.id, s.nom, s.prix))

    def get_line(self) -> Optional[FactureItem]:
        data = self.cb_item.currentData()
        if not data:
            return None
        typ, item_id, name, price = data
        return FactureItem(id_bien=item_id, type_bien=typ, quantite=int(self.sp_qty.value()),
                           prix_unitaire=float(price), nom_bien=name)


class InvoiceEditor(QDialog):
    """
    En-tête + lignes d'une facture, totaux HT / TVA / TTC recalculés à chaque
    modification. Le paiement se saisit via PaymentDialog (statut Payée).
    """
    def __init__(self, parent=None, clients=None, products=None, soins=None,
                 facture: Optional[FactureForm] = None, banks: Optional[List[str]] = None):
        super().__init__(parent)
        self.setWindowTitle("Facture")
        self.setModal(True)
        self.clients = clients
        self.products = products
        self.soins = soins
        self.banks = banks or []

        self.cb_client = QComboBox()
        self.ed_date = QDateTimeEdit(); self.ed_date.setCalendarPopup(True)
        self.ed_date.setDisplayFormat("dd/MM/yyyy HH:mm")
        self.ed_date.setDateTime(QDateTime.currentDateTime())
        self.cb_statut = QComboBox()
        for st in FactureStatut:
            self.cb_statut.addItem(st.value, st)
        self.ed_notes = QTextEdit()

        self.lab_ht = QLabel()
        self.lab_tva = QLabel()
        self.lab_total = QLabel()

        self.tbl = QTableWidget(0, 5)
        self.tbl.setHorizontalHeaderLabels(["Type", "Désignation", "Qté", "PU HT", "Total HT"])
        self.tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        self.tbl.setSelectionBehavior(self.tbl.SelectionBehavior.SelectRows)
        self.tbl.setEditTriggers(self.tbl.EditTrigger.NoEditTriggers)

        btn_add = QPushButton("Ajouter une ligne")
        btn_del = QPushButton("Supprimer la ligne")
        btn_add.clicked.connect(self._add_line)
        btn_del.clicked.connect(self._del_line)

        top = QFormLayout()
        top.addRow("Patient", self.cb_client)
        top.addRow("Date", self.ed_date)
        top.addRow("Statut", self.cb_statut)
        top.addRow("Notes", self.ed_notes)

        bar = QHBoxLayout()
        bar.addWidget(btn_add); bar.addWidget(btn_del); bar.addStretch(1)
        bar.addWidget(self.lab_ht); bar.addWidget(self.lab_tva); bar.addWidget(self.lab_total)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self._accept_if_valid)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(top)
        lay.addLayout(bar)
        lay.addWidget(self.tbl)
        lay.addWidget(btns)

        self._orig = facture or create_empty_facture()
        self._lines: List[FactureItem] = []
        for c in self.clients.cache.list_all():
            self.cb_client.addItem(f"{c.full_name} ({c.cin})", c.cin)

        if facture:
            self._fill_from_facture(facture)
        else:
            self._update_totals()

    # -------- UI helpers --------
    def _fill_from_facture(self, f: FactureForm):
        self.cb_client.setCurrentIndex(max(0, self.cb_client.findData(f.cin)))
        dt = QDateTime.fromString(f.date[:16], "yyyy-MM-ddTHH:mm")
        if dt.isValid():
            self.ed_date.setDateTime(dt)
        self.cb_statut.setCurrentIndex(max(0, self.cb_statut.findData(f.statut)))
        self.ed_notes.setPlainText(f.notes or "")
        self._lines = [ln.model_copy() for ln in f.items]
        self._refresh_table()

    def _refresh_table(self):
        self.tbl.setRowCount(0)
        for ln in self._lines:
            r = self.tbl.rowCount()
            self.tbl.insertRow(r)
            self.tbl.setItem(r, 0, QTableWidgetItem("Produit" if ln.type_bien is TypeBien.PRODUIT else "Soin"))
            self.tbl.setItem(r, 1, QTableWidgetItem(ln.nom_bien))
            self.tbl.setItem(r, 2, QTableWidgetItem(str(ln.quantite)))
            self.tbl.setItem(r, 3, QTableWidgetItem(format_currency(ln.prix_unitaire)))
            self.tbl.setItem(r, 4, QTableWidgetItem(format_currency(ln.total)))
        self.tbl.resizeRowsToContents()
        self._update_totals()

    def _update_totals(self):
        t = calculate_invoice_totals(self._lines)
        self.lab_ht.setText(f"HT : {format_currency(t.prix_ht)}")
        self.lab_tva.setText(f"TVA {t.tva_rate} % : {format_currency(t.tva_amount)}")
        self.lab_total.setText(f"TTC : {format_currency(t.prix_total)}")

    def _add_line(self):
        dlg = _AddLineDialog(self, self.products, self.soins)
        if dlg.exec() == QDialog.Accepted:
            ln = dlg.get_line()
            if ln:
                self._lines.append(ln)
                self._refresh_table()

    def _del_line(self):
        row = self.tbl.currentRow()
        if row < 0: return
        del self._lines[row]
        self._refresh_table()

    def _accept_if_valid(self):
        form = self.get_facture()
        if form.is_paid and not form.date_paiement:
            dlg = PaymentDialog(self, amount=calculate_invoice_totals(form.items).prix_total, banks=self.banks)
            if dlg.exec() != QDialog.Accepted:
                return
            self._orig = self._orig.model_copy(update=dlg.get_payment())
            form = self.get_facture()
        errors = validate_facture_data(form)
        if errors:
            QMessageBox.warning(self, "Validation", "\n".join(errors))
            return
        self.accept()

    # -------- Result --------
    def get_facture(self) -> FactureForm:
        return self._orig.model_copy(update={
            "cin": self.cb_client.currentData() or "",
            "date": self.ed_date.dateTime().toString("yyyy-MM-ddTHH:mm"),
            "statut": self.cb_statut.currentData(),
            "notes": self.ed_notes.toPlainText().strip(),
            "items": [ln.model_copy() for ln in self._lines],
        })
