from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from clinic.models.activity import Activity

logger = logging.getLogger(__name__)

MAX_ACTIVITIES = 100

ACTIVITY_TITLES: Dict[str, Dict[str, str]] = {
    "appointment": {
        "created": "Nouveau rendez-vous programmé",
        "updated": "Rendez-vous modifié",
        "deleted": "Rendez-vous supprimé",
        "cancelled": "Rendez-vous annulé",
        "completed": "Rendez-vous terminé",
    },
    "patient": {
        "created": "Nouveau patient enregistré",
        "updated": "Informations patient mises à jour",
        "deleted": "Patient supprimé",
    },
    "product": {
        "created": "Nouveau produit ajouté",
        "updated": "Produit modifié",
        "deleted": "Produit supprimé",
    },
    "soin": {
        "created": "Nouveau soin créé",
        "updated": "Soin modifié",
        "deleted": "Soin supprimé",
    },
    "invoice": {
        "created": "Nouvelle facture créée",
        "updated": "Facture modifiée",
        "deleted": "Facture supprimée",
    },
    "document": {
        "created": "Nouveau document créé",
        "updated": "Document modifié",
        "deleted": "Document supprimé",
    },
    "document_template": {
        "created": "Nouveau modèle de document créé",
        "updated": "Modèle de document modifié",
        "deleted": "Modèle de document supprimé",
    },
    "workflow": {
        "created": "Nouveau flux patient créé",
        "updated": "Flux patient modifié",
        "deleted": "Flux patient supprimé",
        "completed": "Flux patient terminé",
    },
}


def describe(type_: str, action: str, entity_name: str, metadata: Optional[Dict[str, Any]] = None) -> str:
    meta = metadata or {}
    if type_ == "appointment":
        return f"{meta.get('patientName') or 'Patient'} - {meta.get('appointmentType') or 'Consultation'}"
    if type_ == "patient":
        if action == "created":
            return f"{entity_name} ajouté au système"
        if action == "updated":
            return f"Profil de {entity_name} mis à jour"
        return f"Patient {entity_name}"
    if type_ == "product":
        if action == "created":
            return f"{entity_name} ajouté au catalogue"
        if action == "updated":
            return f"{entity_name} modifié dans le catalogue"
        return f"Produit {entity_name}"
    if type_ == "soin":
        if action == "created":
            return f"{entity_name} ajouté aux soins disponibles"
        if action == "updated":
            return f"{entity_name} modifié"
        return f"Soin {entity_name}"
    if type_ == "invoice":
        client = meta.get("clientName") or "Client"
        if action == "created":
            amount = f" - {meta['amount']}" if meta.get("amount") else ""
            return f"Facture pour {client}{amount}"
        return f"Facture {entity_name} - {client}"
    if type_ == "document":
        return f"{meta.get('documentType') or 'Document'} pour {meta.get('patientName') or 'Patient'}"
    if type_ == "document_template":
        if action == "created":
            return f'Modèle "{entity_name}" créé'
        return f'Modèle "{entity_name}"'
    if type_ == "workflow":
        return f"{entity_name} - {meta.get('patientName') or meta.get('patientCIN') or 'Patient'}"
    return entity_name


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    minutes = int((now - timestamp).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return "à l'instant"
    if minutes < 60:
        return f"il y a {minutes} minute{'s' if minutes > 1 else ''}"
    if hours < 24:
        return f"il y a {hours} heure{'s' if hours > 1 else ''}"
    if days < 7:
        return f"il y a {days} jour{'s' if days > 1 else ''}"
    return timestamp.strftime("%d/%m/%Y")


class ActivityLog:
    """
    Journal d'activité en mémoire (plus récent en tête, 100 entrées max).
    Non persisté : repart vide à chaque lancement.
    """

    def __init__(self, max_entries: int = MAX_ACTIVITIES):
        self._lock = threading.Lock()
        self._items: deque = deque(maxlen=max_entries)
        self._listeners: List[Callable[[Activity], None]] = []

    def subscribe(self, listener: Callable[[Activity], None]) -> Callable[[], None]:
        """Abonne un écouteur ; renvoie la fonction de désabonnement."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def log_activity(
        self,
        type_: str,
        action: str,
        entity_id: Optional[int],
        entity_name: str,
        created_by: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[Activity]:
        title = ACTIVITY_TITLES.get(type_, {}).get(action)
        if not title:
            logger.debug("Activité ignorée: %s/%s", type_, action)
            return None

        activity = Activity(
            id=uuid.uuid4().hex,
            type=type_,
            action=action,
            title=title,
            description=describe(type_, action, entity_name, metadata),
            entity_id=entity_id,
            entity_name=entity_name or "",
            created_by=created_by or "",
            metadata=metadata or {},
        )
        with self._lock:
            self._items.appendleft(activity)
        logger.info("Activité: %s (%s)", activity.title, activity.description)

        # un écouteur en échec n'interrompt ni les suivants ni l'appelant
        for listener in list(self._listeners):
            try:
                listener(activity)
            except Exception:
                logger.warning("Écouteur d'activité en échec (%s)", activity.title, exc_info=True)
        return activity

    def get_recent_activities(self, limit: int = 10) -> List[Activity]:
        return list(self._items)[:limit]

    def get_by_type(self, type_: str, limit: int = 20) -> List[Activity]:
        return [a for a in self._items if a.type == type_][:limit]

    def get_by_user(self, created_by: str, limit: int = 20) -> List[Activity]:
        return [a for a in self._items if a.created_by == created_by][:limit]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
