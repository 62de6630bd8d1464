import json

import pytest

from clinic.errors import ApiError, ValidationFailed
from clinic.models.settings import EntrepriseForm
from clinic.services.app_settings import IMPORT_ERROR, SETTINGS_KEY, AppSettingsService
from clinic.services.currency import format_currency
from clinic.services.entreprise import to_int, validate_entreprise_data
from clinic.services.options import DEFAULT_OPTIONS
from clinic.storage.json_store import JsonStore


# ---------- Préférences locales ----------
@pytest.fixture
def prefs(tmp_path):
    return AppSettingsService(JsonStore(tmp_path / "preferences.json"))


def test_defaults(prefs):
    s = prefs.get_settings()
    assert (s.theme, s.font_size, s.language, s.currency) == ("light", "medium", "fr", "DH")
    assert s.notifications.desktop and not s.notifications.sound


def test_update_accepts_both_key_styles_and_persists(prefs, tmp_path):
    prefs.update_settings({"fontSize": "large", "compact_mode": True, "theme": "dark"})

    stored = JsonStore(tmp_path / "preferences.json").get(SETTINGS_KEY)
    assert stored["fontSize"] == "large"
    assert stored["compactMode"] is True
    reloaded = AppSettingsService(JsonStore(tmp_path / "preferences.json")).get_settings()
    assert reloaded.theme == "dark"
    assert reloaded.compact_mode is True


def test_get_settings_returns_a_copy(prefs):
    s = prefs.get_settings()
    s.notifications.sound = True
    assert prefs.get_settings().notifications.sound is False


def test_currency_symbol_follows_preferences(prefs):
    prefs.update_settings({"currency": "EUR"})
    assert prefs.get_current_currency_symbol() == "€"
    assert format_currency(10) == "10,00 €"

    prefs.update_settings({"currency": "USD"})
    assert format_currency(10) == "$10,00"


def test_export_then_import(prefs, tmp_path):
    prefs.update_settings({"language": "nl", "currency": "CHF"})
    exported = prefs.export_settings()
    assert json.loads(exported)["language"] == "nl"

    other = AppSettingsService(JsonStore(tmp_path / "other.json"))
    imported = other.import_settings(exported)
    assert (imported.language, imported.currency) == ("nl", "CHF")


@pytest.mark.parametrize("payload", ["{pas du json", "[1, 2]", '{"theme": "fluo"}'])
def test_import_rejects_bad_files(prefs, payload):
    with pytest.raises(ValueError, match=IMPORT_ERROR):
        prefs.import_settings(payload)
    assert prefs.get_settings().theme == "light"


def test_reset_notifies_listeners(prefs):
    seen = []
    prefs.on_change(seen.append)
    prefs.update_settings({"theme": "system"})
    prefs.reset_to_defaults()
    assert [s.theme for s in seen] == ["system", "light"]


def test_unreadable_stored_settings_fall_back_to_defaults(tmp_path):
    store = JsonStore(tmp_path / "preferences.json")
    store.set(SETTINGS_KEY, {"fontSize": "géante"})
    assert AppSettingsService(store).get_settings().font_size == "medium"


def test_option_lists_for_widgets():
    assert [o["value"] for o in AppSettingsService.get_theme_options()] == ["light", "dark", "system"]
    assert {"value": "GBP", "label": "Livre sterling (£)", "symbol": "£"} in AppSettingsService.get_currency_options()


# ---------- Options serveur ----------
def test_options_fall_back_per_list(ctx, backend):
    backend.options = {"bankNames": ["CIH Bank"], "soinTypes": "pas une liste"}
    opts = ctx.options.get_all()

    assert opts.bank_names == ["CIH Bank"]
    assert opts.appointment_types == DEFAULT_OPTIONS.appointment_types
    assert ctx.options.get_soin_types() == DEFAULT_OPTIONS.soin_types


def test_options_update(ctx, backend):
    result = ctx.options.update({"bank_names": ["BMCI"], "appointmentTypes": ["Bilan"]})
    assert backend.options == {"bankNames": ["BMCI"], "appointmentTypes": ["Bilan"]}
    assert result.bank_names == ["BMCI"]
    assert ctx.options.get_appointment_types() == ["Bilan"]


def test_options_update_failure_message(ctx, backend):
    backend.fail("PUT", "options", 500)
    with pytest.raises(ApiError, match="Impossible de sauvegarder les options"):
        ctx.options.update({"bankNames": []})


# ---------- Entreprise ----------
def _entreprise(**overrides):
    values = dict(ice="001234567000089", cnss="1234567", rc="45678", if_number="3345678", rib="011780000012345",
                  patente="25123456", adresse="Avenue Mohammed V, Rabat")
    values.update(overrides)
    return EntrepriseForm(**values)


@pytest.mark.parametrize("value, expected", [("42abc", 42), (" 7 ", 7), ("abc", None), ("", None), (12, 12)])
def test_to_int(value, expected):
    assert to_int(value) == expected


def test_validate_entreprise():
    errors = validate_entreprise_data(_entreprise(ice="", rib="x", adresse="  "))
    assert errors == [
        "L'ICE est obligatoire et doit être un nombre valide",
        "Le RIB est obligatoire et doit être un nombre valide",
        "L'adresse est obligatoire",
    ]


def test_entreprise_save_creates_then_updates(ctx, backend):
    assert ctx.entreprise.get() is None

    created = ctx.entreprise.save(_entreprise())
    assert created.id == 1
    assert backend.entreprise["ICE"] == 1234567000089
    assert backend.entreprise["adresse"] == "Avenue Mohammed V, Rabat"

    updated = ctx.entreprise.save(_entreprise(rc="99", email="contact@clinic.ma"))
    assert updated.rc == 99
    assert backend.entreprise["email"] == "contact@clinic.ma"
    assert backend.count("POST", "entreprise") == 1
    assert ("PATCH", "entreprise/1") in backend.calls


def test_entreprise_update_without_record(ctx):
    with pytest.raises(ApiError, match="Aucune entreprise enregistrée"):
        ctx.entreprise.update(_entreprise())


def test_entreprise_invalid_form_is_not_sent(ctx, backend):
    with pytest.raises(ValidationFailed):
        ctx.entreprise.create(_entreprise(patente="0"))
    assert backend.count("POST", "entreprise") == 0
