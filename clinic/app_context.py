from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from clinic.api.client import ApiClient
from clinic.services.activities import ActivityLog
from clinic.services.app_settings import AppSettingsService
from clinic.services.appointments import AppointmentsService
from clinic.services.auth import AuthService, Session
from clinic.services.clients import ClientsService
from clinic.services.document_templates import DocumentTemplatesService
from clinic.services.documents import DocumentsService
from clinic.services.employees import EmployeesService
from clinic.services.entreprise import EntrepriseService
from clinic.services.inventory import InventoryService
from clinic.services.invoices import InvoicesService
from clinic.services.options import OptionsService
from clinic.services.payments import PaymentsService
from clinic.services.products import ProductsService
from clinic.services.scanned_documents import ScannedDocumentsService
from clinic.services.soins import SoinsService
from clinic.services.users import UserService
from clinic.services.workflow import WorkflowService
from clinic.settings import Settings, load_settings
from clinic.storage.json_store import JsonStore

logger = logging.getLogger(__name__)


class AppContext:
    """
    Assemble les services de l'application autour d'un même client REST,
    d'une même session et d'un même journal d'activité.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings or load_settings()
        data = Path(self.settings.data_dir)

        self.session = Session(JsonStore(data / "session.json"))
        self.preferences = AppSettingsService(JsonStore(data / "preferences.json"))
        self.activities = ActivityLog()
        self.api = ApiClient(
            self.settings.api_url,
            token_provider=self.session.token,
            timeout=self.settings.api_timeout,
            transport=transport,
        )
        logger.info("API: %s (données locales: %s)", self.settings.api_url, data)

        s, a = self.session, self.activities
        self.auth = AuthService(self.api, s)
        self.users = UserService(self.api, s)
        self.employees = EmployeesService(self.api, s, a)
        self.clients = ClientsService(self.api, s, a)
        self.products = ProductsService(self.api, s, a)
        self.soins = SoinsService(self.api, s, a)
        self.invoices = InvoicesService(self.api, self.products, s, a, clients=self.clients)
        self.inventory = InventoryService(self.api, self.products, s, a)
        self.appointments = AppointmentsService(self.api, self.clients, self.soins, s, a)
        self.workflow = WorkflowService(self.api, self.clients, self.appointments, self.invoices, s, a)
        self.payments = PaymentsService(self.invoices, s)
        self.templates = DocumentTemplatesService(self.api, s, a)
        self.documents = DocumentsService(self.api, s, a, templates=self.templates)
        self.scanned_documents = ScannedDocumentsService(self.api, s, a)
        self.options = OptionsService(self.api)
        self.entreprise = EntrepriseService(self.api)

    def close(self) -> None:
        self.api.close()
