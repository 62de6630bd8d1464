from __future__ import annotations
import logging
import sys

from PySide6.QtWidgets import QApplication, QDialog

from clinic.app_context import AppContext
from clinic_ui.main_window import MainWindow
from clinic_ui.widgets.login_dialog import LoginDialog


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = QApplication(sys.argv)
    ctx = AppContext()

    # session encore valide : pas de nouvelle connexion
    if not ctx.auth.is_authenticated():
        dlg = LoginDialog(ctx.auth)
        if dlg.exec() != QDialog.Accepted:
            ctx.close()
            return 0

    win = MainWindow(ctx)
    win.show()
    code = app.exec()
    ctx.close()
    return code


if __name__ == "__main__":
    sys.exit(main())
