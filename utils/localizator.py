import json
from pathlib import Path
from typing import Optional

import config
from enums.actor_role import ActorRole

L10N_DIR = Path(__file__).resolve().parent.parent / "l10n"


class Localizator:

    @staticmethod
    def get_text(role: ActorRole | None, key: str, lang: Optional[str] = None) -> str:
        """
        Get localized text for given role and key.

        Args:
            role: Viewer role (BUYER/RETAILER read the "buyer" section, STAFF the
                  "staff" section); None reads the "common" section
            key: Localization key
            lang: Optional language code (e.g., "en").
                  If None, uses config.APP_LANGUAGE (default).

        Returns:
            Localized text string

        Example:
            text = Localizator.get_text(ActorRole.BUYER, "checkout_success", lang="en")
        """
        # Use provided lang or fall back to global config
        language = lang if lang is not None else config.APP_LANGUAGE
        localization_file = L10N_DIR / f"{language}.json"

        with open(localization_file, "r", encoding="UTF-8") as f:
            data = json.loads(f.read())
            if role == ActorRole.STAFF:
                return data["staff"][key]
            elif role in (ActorRole.BUYER, ActorRole.RETAILER):
                return data["buyer"][key]
            else:
                return data["common"][key]

    @staticmethod
    def get_status_text(status, lang: Optional[str] = None) -> str:
        return Localizator.get_text(None, f"status_{status.value}", lang=lang)

    @staticmethod
    def get_currency_symbol(lang: Optional[str] = None) -> str:
        return Localizator.get_text(None, "currency_symbol", lang=lang)
