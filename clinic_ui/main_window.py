from __future__ import annotations
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QTabWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QPushButton, QFileDialog, QMessageBox, QTableWidget,
    QTableWidgetItem, QHeaderView, QGroupBox, QDialog, QLineEdit, QComboBox, QFormLayout
)
import logging
from typing import Callable, Optional

from clinic.app_context import AppContext
from clinic.errors import ApiError, ValidationFailed
from clinic.models.appointment import APPOINTMENT_STATUSES
from clinic.models.invoice import FactureStatut
from clinic.services.activities import format_relative_time
from clinic.services.currency import format_currency
from clinic.services.payments import get_payment_statistics
from clinic.services.products import get_stock_status
from clinic.services.stock import StockAdjustmentReport
from clinic_ui.widgets.patient_form import PatientForm
from clinic_ui.widgets.product_form import CatalogItemForm
from clinic_ui.widgets.invoice_editor import InvoiceEditor
from clinic_ui.widgets.payment_dialog import PaymentDialog
from clinic_ui.widgets.movement_form import MovementForm

logger = logging.getLogger(__name__)

ALL_STATUSES = "tous"


def _table(headers) -> QTableWidget:
    tbl = QTableWidget(0, len(headers))
    tbl.setHorizontalHeaderLabels(headers)
    tbl.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
    tbl.setSelectionBehavior(tbl.SelectionBehavior.SelectRows)
    tbl.setEditTriggers(tbl.EditTrigger.NoEditTriggers)
    return tbl


def _fill_row(tbl: QTableWidget, values) -> None:
    r = tbl.rowCount(); tbl.insertRow(r)
    for col, v in enumerate(values):
        tbl.setItem(r, col, QTableWidgetItem("" if v is None else str(v)))


def _selected_id(tbl: QTableWidget) -> Optional[int]:
    # ID = dernière colonne
    row = tbl.currentRow()
    if row < 0: return None
    item = tbl.item(row, tbl.columnCount() - 1)
    return int(item.text()) if item and item.text().isdigit() else None


class MainWindow(QMainWindow):
    def __init__(self, ctx: AppContext):
        super().__init__()
        self.ctx = ctx
        user = ctx.auth.current_user()
        self.setWindowTitle(f"Clinique - {user.display_name if user else 'Invité'}")
        self.resize(1280, 800)

        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        self.tabs.addTab(self._patients_tab(), "Patients")
        self.tabs.addTab(self._appointments_tab(), "Rendez-vous")
        self.tabs.addTab(self._catalog_tab(), "Catalogue")
        self.tabs.addTab(self._invoices_tab(), "Factures")
        self.tabs.addTab(self._payments_tab(), "Paiements")
        self.tabs.addTab(self._inventory_tab(), "Inventaire")
        self.tabs.addTab(self._activities_tab(), "Activités")
        self.tabs.addTab(self._settings_tab(), "Paramètres")

        self._unsubscribe = ctx.activities.subscribe(lambda _a: self._refresh_activities())
        self._refresh_all()

    # ---------- Appels service ----------
    def _run(self, title: str, fn: Callable, *args, **kwargs):
        """Exécute un appel service ; les erreurs métier/API sont affichées."""
        try:
            return fn(*args, **kwargs)
        except ValidationFailed as e:
            QMessageBox.warning(self, title, "\n".join(e.errors))
        except ApiError as e:
            logger.error("%s: %s (%s)", title, e.message, e.path)
            QMessageBox.critical(self, title, e.message)
        return None

    def _refresh_all(self):
        self._run("Chargement", self.ctx.clients.get_all)
        self._run("Chargement", self.ctx.products.get_all)
        self._run("Chargement", self.ctx.soins.get_all)
        self._run("Chargement", self.ctx.appointments.get_all)
        self._refresh_patients()
        self._refresh_appointments()
        self._refresh_catalog()
        self._refresh_invoices()
        self._refresh_payments()
        self._refresh_inventory()
        self._refresh_activities()

    def _report_stock(self, report: Optional[StockAdjustmentReport]):
        if report is None or (report.ok and not report.clamped):
            return
        lines = [report.summary()]
        for adj in report.clamped:
            lines.append(f"- {adj.product_name} : {adj.deficit} unité(s) manquante(s)")
        for pid, msg in report.failures.items():
            lines.append(f"- produit {pid} : {msg}")
        QMessageBox.warning(self, "Stock", "\n".join(lines))

    # ==================== PATIENTS ====================
    def _patients_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouveau")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        self.ed_patient_search = QLineEdit(); self.ed_patient_search.setPlaceholderText("Rechercher (nom, CIN, email…)")
        bar.addWidget(btn_new); bar.addWidget(btn_edit); bar.addWidget(btn_del)
        bar.addStretch(1); bar.addWidget(self.ed_patient_search)
        root.addLayout(bar)

        self.tbl_patients = _table(["CIN", "Nom", "Prénom", "Téléphone", "Email", "Groupe", "ID"])
        root.addWidget(self.tbl_patients, 1)

        btn_new.clicked.connect(self._patient_new)
        btn_edit.clicked.connect(self._patient_edit)
        btn_del.clicked.connect(self._patient_delete)
        self.ed_patient_search.textChanged.connect(lambda _t: self._refresh_patients())
        return w

    def _refresh_patients(self):
        query = self.ed_patient_search.text().strip()
        items = self.ctx.clients.search(query) if query else self.ctx.clients.cache.list_all()
        self.tbl_patients.setRowCount(0)
        for c in items:
            _fill_row(self.tbl_patients, [c.cin, c.nom, c.prenom, c.numero_telephone, c.email, c.groupe_sanguin, c.id])
        self.tbl_patients.resizeRowsToContents()

    def _patient_new(self):
        dlg = PatientForm(self)
        if dlg.exec() == QDialog.Accepted:
            c = dlg.get_client()
            if not c:
                QMessageBox.warning(self, "Validation", "CIN obligatoire.")
                return
            if self._run("Patients", self.ctx.clients.create, c):
                self._refresh_patients()

    def _patient_edit(self):
        cid = _selected_id(self.tbl_patients)
        if not cid:
            QMessageBox.information(self, "Patients", "Sélectionne une ligne d’abord.")
            return
        current = self.ctx.clients.get_by_id(cid)
        if not current:
            QMessageBox.warning(self, "Patients", "Impossible de charger ce patient.")
            return
        dlg = PatientForm(self, client=current)
        if dlg.exec() == QDialog.Accepted:
            c = dlg.get_client()
            if c and self._run("Patients", self.ctx.clients.update, cid, c):
                self._refresh_patients()

    def _patient_delete(self):
        cid = _selected_id(self.tbl_patients)
        if not cid:
            QMessageBox.information(self, "Patients", "Sélectionne une ligne d’abord.")
            return
        if QMessageBox.question(self, "Suppression", "Supprimer ce patient ?") == QMessageBox.Yes:
            self._run("Patients", self.ctx.clients.delete, cid)
            self._refresh_patients()

    # ==================== CATALOGUE ====================
    def _catalog_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)

        grp_p = QGroupBox("Produits"); lay_p = QVBoxLayout(grp_p)
        bar_p = QHBoxLayout()
        btn_p_new = QPushButton("Nouveau produit")
        btn_p_edit = QPushButton("Modifier")
        btn_p_del = QPushButton("Supprimer")
        for b in (btn_p_new, btn_p_edit, btn_p_del): bar_p.addWidget(b)
        bar_p.addStretch(1)
        lay_p.addLayout(bar_p)
        self.tbl_products = _table(["Nom", "Prix", "Stock", "État", "ID"])
        lay_p.addWidget(self.tbl_products)

        grp_s = QGroupBox("Soins"); lay_s = QVBoxLayout(grp_s)
        bar_s = QHBoxLayout()
        btn_s_new = QPushButton("Nouveau soin")
        btn_s_edit = QPushButton("Modifier")
        btn_s_del = QPushButton("Supprimer")
        for b in (btn_s_new, btn_s_edit, btn_s_del): bar_s.addWidget(b)
        bar_s.addStretch(1)
        lay_s.addLayout(bar_s)
        self.tbl_soins = _table(["Nom", "Type", "Prix", "Cabinet", "Thérapeute", "ID"])
        lay_s.addWidget(self.tbl_soins)

        root.addWidget(grp_p); root.addWidget(grp_s)

        btn_p_new.clicked.connect(lambda: self._catalog_new("product"))
        btn_p_edit.clicked.connect(lambda: self._catalog_edit("product"))
        btn_p_del.clicked.connect(lambda: self._catalog_del("product"))
        btn_s_new.clicked.connect(lambda: self._catalog_new("soin"))
        btn_s_edit.clicked.connect(lambda: self._catalog_edit("soin"))
        btn_s_del.clicked.connect(lambda: self._catalog_del("soin"))
        return w

    def _refresh_catalog(self):
        self.tbl_products.setRowCount(0)
        for p in self.ctx.products.cache.list_all():
            _fill_row(self.tbl_products, [p.nom, format_currency(p.prix), p.stock, get_stock_status(p.stock), p.id])
        self.tbl_soins.setRowCount(0)
        for s in self.ctx.soins.cache.list_all():
            _fill_row(self.tbl_soins, [s.nom, s.type, format_currency(s.prix), s.cabinet, s.therapeute or "", s.id])
        self.tbl_products.resizeRowsToContents(); self.tbl_soins.resizeRowsToContents()

    def _catalog_service(self, which: str):
        return self.ctx.products if which == "product" else self.ctx.soins

    def _soin_types(self):
        return self._run("Options", self.ctx.options.get_soin_types) or []

    def _catalog_new(self, which: str):
        dlg = CatalogItemForm(self, item=None, item_type=which, soin_types=self._soin_types())
        if dlg.exec() == QDialog.Accepted:
            it = dlg.get_item()
            if not it:
                QMessageBox.warning(self, "Validation", "Le nom est obligatoire.")
                return
            self._run("Catalogue", self._catalog_service(which).create, it)
            self._refresh_catalog()

    def _catalog_edit(self, which: str):
        tbl = self.tbl_products if which == "product" else self.tbl_soins
        iid = _selected_id(tbl)
        if not iid:
            QMessageBox.information(self, "Catalogue", "Sélectionne une ligne d’abord.")
            return
        cur = self._catalog_service(which).get_by_id(iid)
        if not cur:
            QMessageBox.warning(self, "Catalogue", "Impossible de charger cet élément.")
            return
        dlg = CatalogItemForm(self, item=cur, item_type=which, soin_types=self._soin_types())
        if dlg.exec() == QDialog.Accepted:
            it = dlg.get_item()
            if it:
                self._run("Catalogue", self._catalog_service(which).update, iid, it)
                self._refresh_catalog()

    def _catalog_del(self, which: str):
        tbl = self.tbl_products if which == "product" else self.tbl_soins
        iid = _selected_id(tbl)
        if not iid:
            QMessageBox.information(self, "Catalogue", "Sélectionne une ligne d’abord.")
            return
        if QMessageBox.question(self, "Suppression", "Supprimer cet élément ?") == QMessageBox.Yes:
            self._run("Catalogue", self._catalog_service(which).delete, iid)
            self._refresh_catalog()

    # ==================== FACTURES ====================
    def _invoices_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_new = QPushButton("Nouvelle facture")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        btn_pay = QPushButton("Marquer comme payée")
        btn_reload = QPushButton("Actualiser")
        for b in (btn_new, btn_edit, btn_del): bar.addWidget(b)
        bar.addStretch(1); bar.addWidget(btn_pay); bar.addWidget(btn_reload)
        root.addLayout(bar)

        self.lbl_invoice_stats = QLabel("")
        root.addWidget(self.lbl_invoice_stats)
        self.tbl_invoices = _table(["N°", "Patient", "Date", "Statut", "HT", "TVA", "TTC", "Paiement", "ID"])
        root.addWidget(self.tbl_invoices, 1)

        btn_new.clicked.connect(self._invoice_new)
        btn_edit.clicked.connect(self._invoice_edit)
        btn_del.clicked.connect(self._invoice_delete)
        btn_pay.clicked.connect(self._invoice_mark_paid)
        btn_reload.clicked.connect(self._refresh_invoices)
        return w

    def _load_invoices(self):
        self.ctx.invoices.get_all()
        return self.ctx.invoices.get_all_with_details()

    def _refresh_invoices(self):
        items = self._run("Factures", self._load_invoices) or []
        self.tbl_invoices.setRowCount(0)
        for f in items:
            _fill_row(self.tbl_invoices, [
                f"FAC-{f.id}", f.patient_name or f.cin, (f.date or "")[:10], f.statut.value,
                format_currency(f.prix_ht), format_currency(f.tva_amount), format_currency(f.prix_total),
                f.methode_paiement or "—", f.id,
            ])
        self.tbl_invoices.resizeRowsToContents()
        paid = [f for f in items if f.is_paid]
        self.lbl_invoice_stats.setText(
            f"{len(items)} facture(s) | {len(paid)} payée(s) | "
            f"Encaissé : {format_currency(sum(f.prix_total for f in paid))}"
        )

    def _banks(self):
        return self._run("Options", self.ctx.options.get_bank_names) or []

    def _invoice_dialog(self, facture=None) -> Optional[InvoiceEditor]:
        dlg = InvoiceEditor(self, clients=self.ctx.clients, products=self.ctx.products,
                            soins=self.ctx.soins, facture=facture, banks=self._banks())
        return dlg if dlg.exec() == QDialog.Accepted else None

    def _after_invoice_write(self):
        self._report_stock(self.ctx.invoices.last_stock_report)
        self._refresh_invoices()
        self._refresh_payments()
        self._refresh_catalog()
        self._refresh_inventory()

    def _invoice_new(self):
        dlg = self._invoice_dialog()
        if dlg and self._run("Factures", self.ctx.invoices.create, dlg.get_facture()):
            self._after_invoice_write()

    def _invoice_edit(self):
        fid = _selected_id(self.tbl_invoices)
        if not fid:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        current = self.ctx.invoices.get_by_id(fid)
        if not current:
            QMessageBox.warning(self, "Factures", "Impossible de charger cette facture."); return
        dlg = self._invoice_dialog(current.to_form())
        if dlg and self._run("Factures", self.ctx.invoices.update, fid, dlg.get_facture()):
            self._after_invoice_write()

    def _invoice_delete(self):
        fid = _selected_id(self.tbl_invoices)
        if not fid:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        if QMessageBox.question(self, "Suppression", "Supprimer cette facture ?") == QMessageBox.Yes:
            self._run("Factures", self.ctx.invoices.delete, fid)
            self._after_invoice_write()

    def _invoice_mark_paid(self):
        fid = _selected_id(self.tbl_invoices)
        if not fid:
            QMessageBox.information(self, "Factures", "Sélectionne une facture."); return
        current = self.ctx.invoices.get_by_id(fid)
        if not current or current.is_paid:
            return
        dlg = PaymentDialog(self, amount=current.prix_total, banks=self._banks())
        if dlg.exec() != QDialog.Accepted:
            return
        if self._run("Encaissement", self.ctx.invoices.update_status, fid, FactureStatut.PAYEE, **dlg.get_payment()):
            self._after_invoice_write()

    # ==================== INVENTAIRE ====================
    def _inventory_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        btn_in = QPushButton("Entrée de stock")
        btn_out = QPushButton("Sortie de stock")
        btn_edit = QPushButton("Modifier")
        btn_del = QPushButton("Supprimer")
        for b in (btn_in, btn_out, btn_edit, btn_del): bar.addWidget(b)
        bar.addStretch(1)
        root.addLayout(bar)

        self.tbl_movements = _table(["Date", "Type", "Produit", "Quantité", "Prix", "Facture", "ID"])
        root.addWidget(self.tbl_movements, 1)
        self._movements = []

        btn_in.clicked.connect(lambda: self._movement_new("IN"))
        btn_out.clicked.connect(lambda: self._movement_new("OUT"))
        btn_edit.clicked.connect(self._movement_edit)
        btn_del.clicked.connect(self._movement_delete)
        return w

    def _refresh_inventory(self):
        self._movements = self._run("Inventaire", self.ctx.inventory.get_all) or []
        self.tbl_movements.setRowCount(0)
        for m in self._movements:
            _fill_row(self.tbl_movements, [
                (m.date or "")[:10], "Entrée" if m.movement_type == "IN" else "Sortie", m.nom_bien,
                m.quantite, format_currency(m.prix), f"FAC-{m.id_facture}" if m.id_facture else "—", m.id,
            ])
        self.tbl_movements.resizeRowsToContents()

    def _selected_movement(self):
        mid = _selected_id(self.tbl_movements)
        for m in self._movements:
            if m.id == mid:
                return m
        return None

    def _after_movement(self):
        self._report_stock(self.ctx.inventory.last_stock_report)
        self._refresh_inventory()
        self._refresh_catalog()

    def _movement_new(self, kind: str):
        dlg = MovementForm(self, products=self.ctx.products, movement_type=kind)
        if dlg.exec() != QDialog.Accepted:
            return
        fn = self.ctx.inventory.create_in if kind == "IN" else self.ctx.inventory.create_out
        if self._run("Inventaire", fn, dlg.get_movement()):
            self._after_movement()

    def _movement_edit(self):
        m = self._selected_movement()
        if not m:
            QMessageBox.information(self, "Inventaire", "Sélectionne un mouvement."); return
        if m.id_facture:
            QMessageBox.information(self, "Inventaire", "Ce mouvement dépend d'une facture : modifie la facture."); return
        dlg = MovementForm(self, products=self.ctx.products, movement_type=m.movement_type, movement=m)
        if dlg.exec() != QDialog.Accepted:
            return
        fn = self.ctx.inventory.update_in if m.movement_type == "IN" else self.ctx.inventory.update_out
        if self._run("Inventaire", fn, m.id, dlg.get_movement()):
            self._after_movement()

    def _movement_delete(self):
        m = self._selected_movement()
        if not m:
            QMessageBox.information(self, "Inventaire", "Sélectionne un mouvement."); return
        if m.id_facture:
            QMessageBox.information(self, "Inventaire", "Ce mouvement dépend d'une facture : modifie la facture."); return
        if QMessageBox.question(self, "Suppression", "Supprimer ce mouvement ?") == QMessageBox.Yes:
            self._run("Inventaire", self.ctx.inventory.delete_movement, m.id, m.movement_type)
            self._after_movement()

    # ==================== RENDEZ-VOUS ====================
    def _appointments_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        self.cb_appointment_status = QComboBox()
        self.cb_appointment_status.addItem("Tous les statuts", ALL_STATUSES)
        for st in APPOINTMENT_STATUSES:
            self.cb_appointment_status.addItem(st.capitalize(), st)
        self.ed_appointment_search = QLineEdit()
        self.ed_appointment_search.setPlaceholderText("Rechercher (patient, CIN, sujet…)")
        btn_reload = QPushButton("Actualiser")
        bar.addWidget(self.cb_appointment_status); bar.addStretch(1)
        bar.addWidget(self.ed_appointment_search); bar.addWidget(btn_reload)
        root.addLayout(bar)

        self.tbl_appointments = _table(["Date", "Patient", "CIN", "Sujet", "Soin", "Cabinet", "Statut", "ID"])
        root.addWidget(self.tbl_appointments, 1)

        btn_reload.clicked.connect(self._reload_appointments)
        self.cb_appointment_status.currentIndexChanged.connect(lambda _i: self._refresh_appointments())
        self.ed_appointment_search.textChanged.connect(lambda _t: self._refresh_appointments())
        return w

    def _reload_appointments(self):
        self._run("Rendez-vous", self.ctx.appointments.get_all)
        self._refresh_appointments()

    def _refresh_appointments(self):
        q = self.ed_appointment_search.text().strip()
        rows = self.ctx.appointments.search(q) if q else self.ctx.appointments.cache.list_all()
        status = self.cb_appointment_status.currentData()
        if status != ALL_STATUSES:
            rows = [a for a in rows if a.status == status]
        self.tbl_appointments.setRowCount(0)
        for a in sorted(rows, key=lambda a: a.date_rendez_vous, reverse=True):
            _fill_row(self.tbl_appointments, [
                a.date_rendez_vous.replace("T", " ")[:16], a.patient_nom, a.cin, a.sujet,
                a.soin_nom or "—", a.cabinet, a.status, a.id,
            ])

    # ==================== PAIEMENTS ====================
    def _payments_tab(self):
        w = QWidget()
        root = QVBoxLayout(w)
        bar = QHBoxLayout()
        self.lbl_payment_stats = QLabel("")
        btn_reload = QPushButton("Actualiser")
        bar.addWidget(self.lbl_payment_stats); bar.addStretch(1); bar.addWidget(btn_reload)
        root.addLayout(bar)

        self.tbl_payments = _table(["Facture", "Patient (CIN)", "Date", "Montant", "Encaissé par", "ID"])
        root.addWidget(self.tbl_payments, 1)

        btn_reload.clicked.connect(self._refresh_payments)
        return w

    def _load_payments(self):
        self.ctx.payments.generate_from_paid_invoices()
        return self.ctx.payments.get_all_with_details()

    def _refresh_payments(self):
        items = self._run("Paiements", self._load_payments) or []
        self.tbl_payments.setRowCount(0)
        for p in items:
            _fill_row(self.tbl_payments, [
                p.facture_number, p.patient_cin, (p.date or "")[:10],
                format_currency(p.montant_totale), p.cree_par, p.id,
            ])
        stats = get_payment_statistics(items)
        self.lbl_payment_stats.setText(
            f"{stats['total_payments']} paiement(s) | Total : {format_currency(stats['total_revenue'])} | "
            f"Ce mois : {format_currency(stats['current_month_revenue'])}"
        )

    # ==================== ACTIVITÉS ====================
    def _activities_tab(self):
        w = QWidget(); lay = QVBoxLayout(w)
        self.tbl_activities = _table(["Quand", "Titre", "Description", "Par"])
        lay.addWidget(self.tbl_activities, 1)
        return w

    def _refresh_activities(self):
        self.tbl_activities.setRowCount(0)
        for a in self.ctx.activities.get_recent_activities(limit=100):
            _fill_row(self.tbl_activities, [format_relative_time(a.timestamp), a.title, a.description, a.created_by])

    # ==================== PARAMÈTRES ====================
    def _settings_tab(self):
        w = QWidget(); lay = QVBoxLayout(w)
        prefs = self.ctx.preferences
        current = prefs.get_settings()

        form = QFormLayout()
        self.cb_currency = QComboBox()
        for opt in prefs.get_currency_options():
            self.cb_currency.addItem(opt["label"], opt["value"])
        self.cb_currency.setCurrentIndex(max(0, self.cb_currency.findData(current.currency)))
        self.cb_theme = QComboBox()
        for opt in prefs.get_theme_options():
            self.cb_theme.addItem(opt["label"], opt["value"])
        self.cb_theme.setCurrentIndex(max(0, self.cb_theme.findData(current.theme)))
        form.addRow("Devise", self.cb_currency)
        form.addRow("Thème", self.cb_theme)
        lay.addLayout(form)

        bar = QHBoxLayout()
        btn_save = QPushButton("Enregistrer")
        btn_reset = QPushButton("Valeurs par défaut")
        btn_export = QPushButton("Exporter…")
        btn_import = QPushButton("Importer…")
        btn_logout = QPushButton("Se déconnecter")
        for b in (btn_save, btn_reset, btn_export, btn_import): bar.addWidget(b)
        bar.addStretch(1); bar.addWidget(btn_logout)
        lay.addLayout(bar)
        lay.addWidget(QLabel(f"API : {self.ctx.settings.api_url}"))
        lay.addWidget(QLabel(f"Données locales : {self.ctx.settings.data_dir}"))
        lay.addStretch(1)

        btn_save.clicked.connect(self._settings_save)
        btn_reset.clicked.connect(self._settings_reset)
        btn_export.clicked.connect(self._settings_export)
        btn_import.clicked.connect(self._settings_import)
        btn_logout.clicked.connect(self._logout)
        return w

    def _settings_save(self):
        self.ctx.preferences.update_settings({
            "currency": self.cb_currency.currentData(),
            "theme": self.cb_theme.currentData(),
        })
        self._refresh_catalog(); self._refresh_invoices(); self._refresh_inventory()

    def _settings_reset(self):
        self.ctx.preferences.reset_to_defaults()
        self._sync_settings_widgets()

    def _settings_export(self):
        path, _ = QFileDialog.getSaveFileName(self, "Exporter les paramètres", "parametres.json", "JSON (*.json)")
        if path:
            with open(path, "w", encoding="utf-8") as f:
                f.write(self.ctx.preferences.export_settings())

    def _settings_import(self):
        path, _ = QFileDialog.getOpenFileName(self, "Importer les paramètres", "", "JSON (*.json)")
        if not path:
            return
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
        try:
            self.ctx.preferences.import_settings(content)
        except ValueError as e:
            QMessageBox.warning(self, "Paramètres", str(e))
            return
        self._sync_settings_widgets()

    def _sync_settings_widgets(self):
        s = self.ctx.preferences.get_settings()
        self.cb_currency.setCurrentIndex(max(0, self.cb_currency.findData(s.currency)))
        self.cb_theme.setCurrentIndex(max(0, self.cb_theme.findData(s.theme)))
        self._refresh_catalog(); self._refresh_invoices(); self._refresh_inventory()

    def _logout(self):
        self.ctx.auth.logout()
        self.close()

    def closeEvent(self, event):
        self._unsubscribe()
        super().closeEvent(event)
