"""Comment moderation for the social wall (French first, common English too)."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import asdict, dataclass
from typing import Optional


LEET_TABLE = str.maketrans({
    "@": "a",
    "4": "a",
    "3": "e",
    "€": "e",
    "1": "i",
    "!": "i",
    "0": "o",
    "$": "s",
    "5": "s",
    "7": "t",
})


@dataclass
class FilterDecision:
    """Why a comment was refused."""

    category: str
    severity: str
    label: str
    match: str
    rule_id: str

    def to_dict(self) -> dict:
        return asdict(self)


class ContentFilter:
    """Regex rules for insults, hate speech, sexual content, spam links and phone numbers."""

    def __init__(self) -> None:
        self._rules = self._build_rules()
        self._phone_pattern = re.compile(r"(?:\+?\d[\s().-]*){8,}\d")
        self._link_pattern = re.compile(r"(?:https?://|www\.)\S+|\b\S+\.(?:com|fr|net|org|io|ly)\b", re.IGNORECASE)

    def _build_rules(self) -> list[dict]:
        rules: list[dict] = [
            {
                "id": "threats",
                "label": "Menaces",
                "category": "violence",
                "severity": "critical",
                "patterns": [
                    r"\bje\s+vais\s+te\s+(?:tuer|buter|crever|frapper|defoncer)\b",
                    r"\b(?:tuer|buter|egorger)\s+(?:le|la|les)\s+(?:patron|cuisinier|serveur|serveuse)s?\b",
                    r"\bkill\s+(?:you|him|her|them)\b",
                ],
            },
            {
                "id": "hate-speech",
                "label": "Propos haineux",
                "category": "hate_speech",
                "severity": "critical",
                "patterns": [
                    r"\bsale\s+(?:arabe|noir|juif|pd|pede|bougnoule|negre)s?\b",
                    r"\bbougnoules?\b",
                    r"\bnegres?\b",
                    r"\bbicots?\b",
                    r"\byoupins?\b",
                    r"\bpedes?\b",
                    r"\btarlouzes?\b",
                    r"\bnigg(?:a|er)s?\b",
                    r"\bfag+(?:ot)?s?\b",
                    r"\bretard(?:ed|s)?\b",
                ],
            },
            {
                "id": "insults",
                "label": "Insultes",
                "category": "profanity",
                "severity": "high",
                "patterns": [
                    r"\bconn?(?:ard|asse)s?\b",
                    r"\bencule(?:e|s|es)?\b",
                    r"\bfdp\b",
                    r"\bfils\s+de\s+pute\b",
                    r"\bputes?\b",
                    r"\bsalope?s?\b",
                    r"\bsalauds?\b",
                    r"\bbatards?\b",
                    r"\bnique\s+(?:ta|sa|vos|leur)\b",
                    r"\bntm\b",
                    r"\bta\s+gueule\b",
                    r"\bmerd(?:e|eux|ique)s?\b",
                    r"\bf+u+c+k+\b",
                    r"\bshit+\b",
                    r"\bbitch(?:es)?\b",
                ],
            },
            {
                "id": "sexual-content",
                "label": "Contenu sexuel",
                "category": "inappropriate",
                "severity": "high",
                "patterns": [
                    r"\bnudes?\b",
                    r"\bonlyfans\b",
                    r"\bporno?\b",
                    r"\bsexe\b",
                ],
            },
            {
                "id": "spam",
                "label": "Publicité",
                "category": "spam",
                "severity": "medium",
                "patterns": [
                    r"\bcrypto\b",
                    r"\bbitcoin\b",
                    r"\bcasino\b",
                    r"\bgagne[rz]?\s+de\s+l['’]argent\b",
                    r"\bpromo\s+code\b",
                ],
            },
        ]
        for rule in rules:
            rule["compiled"] = [re.compile(pattern, re.IGNORECASE) for pattern in rule["patterns"]]
        return rules

    @staticmethod
    def _normalize(value: str) -> str:
        # accents off so "enculé" and "encule" hit the same rule
        stripped = unicodedata.normalize("NFKD", value)
        stripped = "".join(char for char in stripped if not unicodedata.combining(char))
        lowered = stripped.lower().translate(LEET_TABLE)
        return re.sub(r"\s+", " ", lowered)

    def _detect_phone_number(self, value: str) -> Optional[str]:
        match = self._phone_pattern.search(value)
        if not match:
            return None
        digits = re.sub(r"\D", "", match.group(0))
        if len(digits) < 9:
            return None
        return match.group(0).strip()

    def scan(self, value: str) -> Optional[FilterDecision]:
        """Return a FilterDecision if the text violates policy."""
        if not value:
            return None

        normalized = self._normalize(value)
        for rule in self._rules:
            for pattern in rule["compiled"]:
                found = pattern.search(normalized)
                if found:
                    return FilterDecision(
                        category=rule["category"],
                        severity=rule["severity"],
                        label=rule["label"],
                        match=found.group(0).strip(),
                        rule_id=rule["id"],
                    )

        link = self._link_pattern.search(value)
        if link:
            return FilterDecision(
                category="spam",
                severity="medium",
                label="Les liens ne sont pas autorisés.",
                match=link.group(0),
                rule_id="link",
            )

        phone_match = self._detect_phone_number(value)
        if phone_match:
            return FilterDecision(
                category="contact_sharing",
                severity="critical",
                label="Les numéros de téléphone ne sont pas autorisés.",
                match=phone_match,
                rule_id="phone-number",
            )

        return None
