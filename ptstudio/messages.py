"""
User-facing check-in messages, per locale.
Store errors and stack traces never reach the end user; every outcome maps to
one of these.
"""
from typing import Optional

from ptstudio import config

# Error kinds
NO_SESSIONS_LEFT = "NO_SESSIONS_LEFT"
RECENT_CHECK_IN = "RECENT_CHECK_IN"
SESSION_CREATION_FAILED = "SESSION_CREATION_FAILED"
PURCHASE_UPDATE_FAILED = "PURCHASE_UPDATE_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
TIMEOUT_ERROR = "TIMEOUT_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
CLIENT_NOT_FOUND = "CLIENT_NOT_FOUND"
CHECK_IN_IN_PROGRESS = "CHECK_IN_IN_PROGRESS"

CHECK_IN_SUCCESS = "CHECK_IN_SUCCESS"

MESSAGES = {
    "tr": {
        CHECK_IN_SUCCESS: "Giriş başarılı!",
        NO_SESSIONS_LEFT: "Ders hakkınız kalmamış",
        RECENT_CHECK_IN: "Yakın zamanda giriş yapıldı. Lütfen {seconds} saniye bekleyin.",
        SESSION_CREATION_FAILED: "Giriş işlemi başarısız oldu",
        PURCHASE_UPDATE_FAILED: "Seans güncellenirken hata oluştu",
        NETWORK_ERROR: "Bağlantı hatası. Lütfen internet bağlantınızı kontrol edin.",
        TIMEOUT_ERROR: "İşlem zaman aşımına uğradı. Lütfen tekrar deneyin.",
        UNKNOWN_ERROR: "Beklenmeyen bir hata oluştu. Lütfen tekrar deneyin.",
        CLIENT_NOT_FOUND: "Müşteri bulunamadı",
        CHECK_IN_IN_PROGRESS: "Giriş işlemi devam ediyor, lütfen bekleyin.",
    },
    "en": {
        CHECK_IN_SUCCESS: "Check-in successful!",
        NO_SESSIONS_LEFT: "You have no sessions left",
        RECENT_CHECK_IN: "You just checked in. Please wait {seconds} seconds.",
        SESSION_CREATION_FAILED: "Check-in failed",
        PURCHASE_UPDATE_FAILED: "Could not update your session balance",
        NETWORK_ERROR: "Connection error. Please check your internet connection.",
        TIMEOUT_ERROR: "The request timed out. Please try again.",
        UNKNOWN_ERROR: "An unexpected error occurred. Please try again.",
        CLIENT_NOT_FOUND: "Client not found",
        CHECK_IN_IN_PROGRESS: "Check-in in progress, please wait.",
    },
}


def get_message(kind: str, locale: Optional[str] = None, **params) -> str:
    """Localized message for an outcome kind, falling back to English"""
    catalogue = MESSAGES.get(locale or config.MESSAGE_LOCALE, MESSAGES["en"])
    template = catalogue.get(kind) or MESSAGES["en"].get(kind) or MESSAGES["en"][UNKNOWN_ERROR]
    if "{seconds}" in template:
        params.setdefault("seconds", config.CHECKIN_WINDOW_SECONDS)
    return template.format(**params)


# Pydantic validation messages; locales without an entry keep pydantic's English
VALIDATION_MESSAGES = {
    "tr": {
        "Field required": "Zorunlu alan",
        "Input should be a valid integer": "Sayı olmalı",
        "Input should be a valid integer, unable to parse string as an integer": "Sayı olmalı",
        "Input should be a valid number": "Sayı olmalı",
        "Input should be a valid number, unable to parse string as a number": "Sayı olmalı",
        "String should have at least 1 character": "Boş bırakılamaz",
    },
}


def translate_validation(msg: str, locale: Optional[str] = None) -> str:
    catalogue = VALIDATION_MESSAGES.get(locale or config.MESSAGE_LOCALE, {})
    if msg in catalogue:
        return catalogue[msg]
    if catalogue and msg.startswith("Input should be greater than or equal to "):
        return f"En az {msg.rsplit(' ', 1)[-1]} olmalı"
    if catalogue and msg.startswith("Input should be greater than "):
        return f"{msg.rsplit(' ', 1)[-1]} değerinden büyük olmalı"
    return msg
