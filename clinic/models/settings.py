from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .common import ApiModel

Theme = Literal["light", "dark", "system"]
FontSize = Literal["small", "medium", "large"]
Language = Literal["fr", "en", "nl"]


class NotificationSettings(BaseModel):
    desktop: bool = True
    sound: bool = False
    email: bool = True


class AppSettings(BaseModel):
    """Préférences locales de l'application (clé camelCase dans le fichier)."""

    model_config = ConfigDict(populate_by_name=True)

    theme: Theme = "light"
    font_size: FontSize = Field("medium", alias="fontSize")
    compact_mode: bool = Field(False, alias="compactMode")
    show_animations: bool = Field(True, alias="showAnimations")
    language: Language = "fr"
    currency: str = "DH"
    auto_save: bool = Field(True, alias="autoSave")
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class OptionLists(ApiModel):
    bank_names: List[str] = Field(default_factory=list, alias="bankNames")
    appointment_types: List[str] = Field(default_factory=list, alias="appointmentTypes")
    soin_types: List[str] = Field(default_factory=list, alias="soinTypes")


# identifiants légaux : saisis en texte, stockés en entiers
NumberLike = Union[int, str]


class EntrepriseForm(ApiModel):
    ice: NumberLike = Field("", alias="ICE")
    cnss: NumberLike = Field("", alias="CNSS")
    rc: NumberLike = Field("", alias="RC")
    if_number: NumberLike = Field("", alias="IF")
    rib: NumberLike = Field("", alias="RIB")
    patente: NumberLike = ""
    adresse: str = ""
    email: Optional[str] = None
    numero_telephone: Optional[str] = None


class Entreprise(ApiModel):
    id: Optional[int] = None
    ice: int = Field(0, alias="ICE")
    cnss: int = Field(0, alias="CNSS")
    rc: int = Field(0, alias="RC")
    if_number: int = Field(0, alias="IF")
    rib: int = Field(0, alias="RIB")
    patente: int = 0
    adresse: str = ""
    email: Optional[str] = None
    numero_telephone: Optional[str] = None
    created_at: Optional[str] = None
