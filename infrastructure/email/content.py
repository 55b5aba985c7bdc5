"""
Verification email copy, keyed by (purpose, language).

Every cell of the matrix carries its own subject, heading, body and expiry
wording. Adding a purpose or a language means adding catalog entries, not
branches. Rendering goes through the Jinja2 templates in templates/emails.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from schemas.models.verification_code import Purpose

_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

APP_NAME = "Tour App"


@dataclass(frozen=True)
class EmailCopy:
    subject: str  # formatted with {code} and {app_name}
    heading: str
    greeting: str
    greeting_named: str  # formatted with {name}
    intro: str
    expiry: str  # formatted with {minutes}
    share_warning: str
    ignore_notice: str
    rights: str


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html_body: str
    text_body: str


MESSAGE_CATALOG: dict[tuple[Purpose, str], EmailCopy] = {
    (Purpose.TWO_FACTOR, "tr"): EmailCopy(
        subject="{code} - {app_name} Doğrulama Kodu",
        heading="Doğrulama Kodu",
        greeting="Merhaba,",
        greeting_named="Merhaba {name},",
        intro="Hesabınıza giriş yapmak için aşağıdaki doğrulama kodunu kullanın:",
        expiry="Bu kod {minutes} dakika içinde geçerliliğini yitirecektir.",
        share_warning="Bu kodu kimseyle paylaşmayın.",
        ignore_notice="Bu e-postayı siz talep etmediyseniz, lütfen dikkate almayın.",
        rights="Tüm hakları saklıdır.",
    ),
    (Purpose.TWO_FACTOR, "en"): EmailCopy(
        subject="{code} - {app_name} Verification Code",
        heading="Verification Code",
        greeting="Hello,",
        greeting_named="Hello {name},",
        intro="Use the verification code below to sign in to your account:",
        expiry="This code expires in {minutes} minutes.",
        share_warning="Do not share this code with anyone.",
        ignore_notice="If you did not request this email, you can safely ignore it.",
        rights="All rights reserved.",
    ),
    (Purpose.PASSWORD_RESET, "tr"): EmailCopy(
        subject="{code} - {app_name} Şifre Sıfırlama Kodu",
        heading="Şifre Sıfırlama",
        greeting="Merhaba,",
        greeting_named="Merhaba {name},",
        intro="Şifrenizi sıfırlamak için aşağıdaki kodu kullanın:",
        expiry="Bu kod {minutes} dakika içinde geçerliliğini yitirecektir.",
        share_warning="Bu kodu kimseyle paylaşmayın.",
        ignore_notice=(
            "Şifre sıfırlama talebinde bulunmadıysanız bu e-postayı dikkate almayın; "
            "şifreniz değişmeyecektir."
        ),
        rights="Tüm hakları saklıdır.",
    ),
    (Purpose.PASSWORD_RESET, "en"): EmailCopy(
        subject="{code} - {app_name} Password Reset Code",
        heading="Reset Your Password",
        greeting="Hello,",
        greeting_named="Hello {name},",
        intro="Use the code below to reset your password:",
        expiry="This code expires in {minutes} minutes.",
        share_warning="Do not share this code with anyone.",
        ignore_notice=(
            "If you did not ask to reset your password, ignore this email; "
            "your password will not change."
        ),
        rights="All rights reserved.",
    ),
}

SUPPORTED_LANGUAGES = frozenset(language for _, language in MESSAGE_CATALOG)


def resolve_language(language: Optional[str], default: str = "tr") -> str:
    """Map a requested language (``"en-US"``, ``"EN"``...) onto a catalog language."""
    if language:
        base = language.strip().lower().replace("_", "-").split("-")[0]
        if base in SUPPORTED_LANGUAGES:
            return base
    return default


def get_copy(purpose: Purpose, language: str) -> EmailCopy:
    return MESSAGE_CATALOG[(purpose, language)]


class VerificationEmailRenderer:
    def __init__(
        self,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
        app_name: str = APP_NAME,
        default_language: str = "tr",
    ) -> None:
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self._app_name = app_name
        self._default_language = resolve_language(default_language, "tr")

    def render(
        self,
        code: str,
        purpose: Purpose,
        language: Optional[str] = None,
        display_name: Optional[str] = None,
        ttl_minutes: int = 10,
    ) -> RenderedEmail:
        lang = resolve_language(language, self._default_language)
        copy = get_copy(purpose, lang)
        context = {
            "lang": lang,
            "code": code,
            "app_name": self._app_name,
            "heading": copy.heading,
            "greeting": (
                copy.greeting_named.format(name=display_name) if display_name else copy.greeting
            ),
            "intro": copy.intro,
            "expiry": copy.expiry.format(minutes=ttl_minutes),
            "share_warning": copy.share_warning,
            "ignore_notice": copy.ignore_notice,
            "rights": copy.rights,
            "year": datetime.now(timezone.utc).year,
        }
        return RenderedEmail(
            subject=copy.subject.format(code=code, app_name=self._app_name),
            html_body=self._jinja.get_template("verification_code.html").render(**context),
            text_body=self._jinja.get_template("verification_code.txt").render(**context),
        )
