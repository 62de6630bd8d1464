from __future__ import annotations
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QLineEdit, QTextEdit, QDialogButtonBox,
    QComboBox, QDateEdit, QCheckBox
)
from PySide6.QtCore import Qt, QDate
from typing import Optional

from clinic.models.client import Client
from clinic.services.clients import get_blood_groups
from clinic.services.validation import parse_day


class PatientForm(QDialog):
    def __init__(self, parent=None, client: Optional[Client] = None):
        super().__init__(parent)
        self.setWindowTitle("Patient")
        self.setModal(True)

        self.ed_cin = QLineEdit()
        self.ed_cin.setPlaceholderText("B1234567")
        self.ed_nom = QLineEdit()
        self.ed_prenom = QLineEdit()
        self.cb_birth = QCheckBox("Renseignée")
        self.ed_birth = QDateEdit(); self.ed_birth.setCalendarPopup(True); self.ed_birth.setDisplayFormat("dd/MM/yyyy")
        self.ed_birth.setDate(QDate(1990, 1, 1)); self.ed_birth.setEnabled(False)
        self.cb_birth.toggled.connect(self.ed_birth.setEnabled)
        self.ed_adresse = QLineEdit()
        self.ed_phone = QLineEdit()
        self.ed_email = QLineEdit()
        self.cb_groupe = QComboBox()
        self.cb_groupe.addItem("", "")
        for g in get_blood_groups():
            self.cb_groupe.addItem(g, g)
        self.ed_antecedents = QTextEdit()
        self.ed_allergies = QTextEdit()
        self.ed_commentaire = QTextEdit()

        form = QFormLayout()
        form.addRow("CIN (obligatoire)", self.ed_cin)
        form.addRow("Nom (obligatoire)", self.ed_nom)
        form.addRow("Prénom (obligatoire)", self.ed_prenom)
        form.addRow("Date de naissance", self.cb_birth)
        form.addRow("", self.ed_birth)
        form.addRow("Adresse", self.ed_adresse)
        form.addRow("Téléphone", self.ed_phone)
        form.addRow("Email", self.ed_email)
        form.addRow("Groupe sanguin", self.cb_groupe)
        form.addRow("Antécédents", self.ed_antecedents)
        form.addRow("Allergies", self.ed_allergies)
        form.addRow("Commentaire", self.ed_commentaire)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self.accept)
        btns.rejected.connect(self.reject)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(btns)

        self._orig_client = client
        if client:
            self._fill_from_client(client)

    def _fill_from_client(self, c: Client):
        self.ed_cin.setText(c.cin)
        self.ed_nom.setText(c.nom)
        self.ed_prenom.setText(c.prenom)
        born = parse_day(c.date_naissance)
        if born:
            self.cb_birth.setChecked(True)
            self.ed_birth.setDate(QDate(born.year, born.month, born.day))
        self.ed_adresse.setText(c.adresse)
        self.ed_phone.setText(c.numero_telephone)
        self.ed_email.setText(c.email)
        self.cb_groupe.setCurrentIndex(max(0, self.cb_groupe.findData(c.groupe_sanguin)))
        self.ed_antecedents.setPlainText(c.antecedents)
        self.ed_allergies.setPlainText(c.allergies)
        self.ed_commentaire.setPlainText(c.commentaire)

    def get_client(self) -> Optional[Client]:
        """Client saisi (les règles métier sont vérifiées par le service)."""
        cin = self.ed_cin.text().strip().upper()
        if not cin:
            self.ed_cin.setFocus(Qt.FocusReason.ActiveWindowFocusReason)
            return None

        values = dict(
            cin=cin,
            nom=self.ed_nom.text().strip(),
            prenom=self.ed_prenom.text().strip(),
            date_naissance=self.ed_birth.date().toString("yyyy-MM-dd") if self.cb_birth.isChecked() else None,
            adresse=self.ed_adresse.text().strip(),
            numero_telephone=self.ed_phone.text().strip(),
            email=self.ed_email.text().strip(),
            groupe_sanguin=self.cb_groupe.currentData() or "",
            antecedents=self.ed_antecedents.toPlainText().strip(),
            allergies=self.ed_allergies.toPlainText().strip(),
            commentaire=self.ed_commentaire.toPlainText().strip(),
        )
        if self._orig_client:
            return self._orig_client.model_copy(update=values)
        return Client(**values)
