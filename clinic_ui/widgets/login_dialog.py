from __future__ import annotations
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QFormLayout, QLineEdit, QDialogButtonBox, QLabel
)

from clinic.errors import ApiError
from clinic.services.auth import AuthService


class LoginDialog(QDialog):
    def __init__(self, auth: AuthService, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Connexion")
        self.setModal(True)
        self.auth = auth
        self.user = None

        self.ed_email = QLineEdit()
        self.ed_password = QLineEdit(); self.ed_password.setEchoMode(QLineEdit.Password)
        self.lab_error = QLabel(""); self.lab_error.setStyleSheet("color: #b00020;")

        form = QFormLayout()
        form.addRow("Email", self.ed_email)
        form.addRow("Mot de passe", self.ed_password)

        btns = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        btns.accepted.connect(self._try_login)
        btns.rejected.connect(self.reject)
        self.ed_password.returnPressed.connect(self._try_login)

        lay = QVBoxLayout(self)
        lay.addLayout(form)
        lay.addWidget(self.lab_error)
        lay.addWidget(btns)

    def _try_login(self):
        email = self.ed_email.text().strip()
        if not email or not self.ed_password.text():
            self.lab_error.setText("Email et mot de passe obligatoires.")
            return
        try:
            self.user = self.auth.login(email, self.ed_password.text())
        except ApiError as e:
            self.lab_error.setText(e.message)
            self.ed_password.clear()
            return
        self.accept()
