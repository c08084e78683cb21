"""Canonical checklist categories, status vocabulary and lookup tables."""
from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Tuple


class Category(str, Enum):
    """Checklist items evaluated for every contract."""

    INSTRUCTIONS_ONLY = "instructions_only"
    CONFIDENTIALITY = "confidentiality"
    SECURITY_TOMS = "security_TOMs"
    SUBPROCESSORS = "subprocessors"
    DATA_SUBJECT_RIGHTS_SUPPORT = "data_subject_rights_support"
    BREACH_SUPPORT = "breach_support"
    DELETION_RETURN = "deletion_return"
    AUDIT_RIGHTS = "audit_rights"
    INTERNATIONAL_TRANSFERS = "international_transfers"
    LIABILITY_CAP = "liability_cap"
    JURISDICTION = "jurisdiction"

    @property
    def is_core(self) -> bool:
        return self in CORE_CATEGORIES


class Status(str, Enum):
    MET = "met"
    PARTIAL = "partial"
    MISSING = "missing"
    PRESENT = "present"
    NOT_FOUND = "not_found"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


CORE_CATEGORIES: Tuple[Category, ...] = (
    Category.INSTRUCTIONS_ONLY,
    Category.CONFIDENTIALITY,
    Category.SECURITY_TOMS,
    Category.SUBPROCESSORS,
    Category.DATA_SUBJECT_RIGHTS_SUPPORT,
    Category.BREACH_SUPPORT,
    Category.DELETION_RETURN,
    Category.AUDIT_RIGHTS,
)

SUPPLEMENTARY_CATEGORIES: Tuple[Category, ...] = (
    Category.INTERNATIONAL_TRANSFERS,
    Category.LIABILITY_CAP,
    Category.JURISDICTION,
)

CATEGORY_ORDER: Tuple[Category, ...] = CORE_CATEGORIES + SUPPLEMENTARY_CATEGORIES

CATEGORY_WEIGHTS: Mapping[Category, int] = {
    Category.INSTRUCTIONS_ONLY: 15,
    Category.CONFIDENTIALITY: 10,
    Category.SECURITY_TOMS: 20,
    Category.SUBPROCESSORS: 15,
    Category.DATA_SUBJECT_RIGHTS_SUPPORT: 10,
    Category.BREACH_SUPPORT: 10,
    Category.DELETION_RETURN: 10,
    Category.AUDIT_RIGHTS: 10,
}

# Synonyms seen in oracle output and in the German report format. The
# canonical key of each category is registered automatically.
_CATEGORY_SYNONYMS: Mapping[Category, Tuple[str, ...]] = {
    Category.INSTRUCTIONS_ONLY: (
        "instructions",
        "documented_instructions",
        "processing_on_instructions",
        "weisung",
        "weisungen",
        "weisungsgebundenheit",
    ),
    Category.CONFIDENTIALITY: (
        "confidentiality_obligations",
        "vertraulichkeit",
        "verschwiegenheit",
        "datengeheimnis",
    ),
    Category.SECURITY_TOMS: (
        "toms",
        "security",
        "security_measures",
        "technical_organisational_measures",
        "technical_organizational_measures",
        "technisch_organisatorische_massnahmen",
    ),
    Category.SUBPROCESSORS: (
        "sub_processors",
        "subprocessing",
        "subcontractors",
        "unterauftragsverarbeiter",
        "unterauftragsverhaeltnisse",
    ),
    Category.DATA_SUBJECT_RIGHTS_SUPPORT: (
        "data_subject_rights",
        "data_subject_requests",
        "betroffenenrechte",
    ),
    Category.BREACH_SUPPORT: (
        "breach_notification",
        "data_breach",
        "incident_support",
        "vorfallmeldung",
        "meldepflichten",
    ),
    Category.DELETION_RETURN: (
        "deletion",
        "deletion_or_return",
        "return_deletion",
        "löschung_rückgabe",
        "loeschung_rueckgabe",
    ),
    Category.AUDIT_RIGHTS: (
        "audit",
        "audits",
        "inspections",
        "audit_nachweis",
        "nachweise_audits",
    ),
    Category.INTERNATIONAL_TRANSFERS: (
        "international_transfer",
        "third_country_transfers",
        "data_transfers",
        "internationale_übermittlungen",
        "drittlandtransfer",
    ),
    Category.LIABILITY_CAP: (
        "liability",
        "limitation_of_liability",
        "haftung",
        "haftungsbegrenzung",
    ),
    Category.JURISDICTION: (
        "governing_law",
        "jurisdiction_governing_law",
        "gerichtsstand",
        "gerichtsstand_recht",
        "rechtswahl",
    ),
}

_KEY_SEPARATORS_RE = re.compile(r"[\s\-./]+")


def _alias_key(value: str) -> str:
    return _KEY_SEPARATORS_RE.sub("_", value.strip().lower()).strip("_")


def _build_alias_table(synonyms: Mapping[Category, Iterable[str]]) -> Dict[str, Category]:
    table: Dict[str, Category] = {}
    for category in CATEGORY_ORDER:
        for alias in (category.value, *synonyms.get(category, ())):
            key = _alias_key(alias)
            existing = table.get(key)
            if existing is not None and existing is not category:
                raise ValueError(f"Alias {alias!r} maps to both {existing.value} and {category.value}")
            table[key] = category
    return table


CATEGORY_ALIASES: Mapping[str, Category] = _build_alias_table(_CATEGORY_SYNONYMS)


def canonical_category(value: object) -> Optional[Category]:
    """Map *value* onto a canonical category, or ``None`` when unknown."""

    if isinstance(value, Category):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    return CATEGORY_ALIASES.get(_alias_key(value))


_STATUS_VOCABULARY: Mapping[str, Status] = {
    "met": Status.MET,
    "erfüllt": Status.MET,
    "erfuellt": Status.MET,
    "partial": Status.PARTIAL,
    "partially_met": Status.PARTIAL,
    "teilweise": Status.PARTIAL,
    "missing": Status.MISSING,
    "fehlt": Status.MISSING,
    "present": Status.PRESENT,
    "vorhanden": Status.PRESENT,
    "not_found": Status.NOT_FOUND,
    "nicht_gefunden": Status.NOT_FOUND,
}

# Core categories only know met/partial/missing; a bare "present" earns nothing.
_CORE_STATUS_FOLDING: Mapping[Status, Status] = {
    Status.PRESENT: Status.MISSING,
    Status.NOT_FOUND: Status.MISSING,
}


def canonical_status(value: object, category: Category | None = None) -> Optional[Status]:
    """Canonicalise a status string in English or German, any case.

    When *category* is a core category the result is restricted to
    ``met``/``partial``/``missing``.
    """

    if isinstance(value, Status):
        status: Optional[Status] = value
    elif isinstance(value, str):
        status = _STATUS_VOCABULARY.get(_alias_key(value))
    else:
        status = None
    if status is not None and category is not None and category.is_core:
        status = _CORE_STATUS_FOLDING.get(status, status)
    return status


_SEVERITY_VOCABULARY: Mapping[str, Severity] = {
    "high": Severity.HIGH,
    "hoch": Severity.HIGH,
    "critical": Severity.HIGH,
    "kritisch": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "mittel": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
    "niedrig": Severity.LOW,
    "gering": Severity.LOW,
}


def canonical_severity(value: object, default: Severity = Severity.MEDIUM) -> Severity:
    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        return _SEVERITY_VOCABULARY.get(_alias_key(value), default)
    return default


SEVERITY_RANK: Mapping[Severity, int] = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}
CATEGORY_RANK: Mapping[Category, int] = {category: index for index, category in enumerate(CATEGORY_ORDER)}

# Higher wins when a category is reported more than once.
STATUS_STRENGTH: Mapping[Status, int] = {
    Status.MET: 4,
    Status.PRESENT: 3,
    Status.PARTIAL: 2,
    Status.MISSING: 1,
    Status.NOT_FOUND: 0,
}

KEYWORDS: Mapping[Category, Tuple[str, ...]] = {
    Category.INSTRUCTIONS_ONLY: ("Weisung", "Weisungen", "Instruktion", "Instruction"),
    Category.CONFIDENTIALITY: (
        "Vertraulichkeit",
        "Verschwiegenheit",
        "Geheimhaltung",
        "Confidentiality",
        "Datengeheimnis",
    ),
    Category.SECURITY_TOMS: (
        "Technisch-organisatorisch",
        "TOM",
        "TOMs",
        "Stand der Technik",
        "Sicherheitsmaßnahme",
        "Privacy by Design",
        "Privacy by Default",
        "ISO 27001",
    ),
    Category.SUBPROCESSORS: (
        "Unterauftragsverarbeiter",
        "Subunternehmer",
        "Subprozessor",
        "Unterauftragnehmer",
        "Subprocessor",
        "Genehmigung Unterauftrag",
    ),
    Category.DATA_SUBJECT_RIGHTS_SUPPORT: (
        "Betroffenenrechte",
        "Auskunft",
        "Berichtigung",
        "Löschung",
        "Einschränkung",
        "Übertragbarkeit",
        "Widerspruch",
        "Art. 15",
        "Art. 16",
        "Art. 17",
        "Art. 18",
        "Art. 20",
        "Art. 21",
    ),
    Category.BREACH_SUPPORT: (
        "Datenschutzverletzung",
        "Breach",
        "Meldung",
        "Meldepflicht",
        "72 Stunden",
        "Incident",
        "Sicherheitsvorfall",
    ),
    Category.DELETION_RETURN: (
        "Löschung",
        "Rückgabe",
        "nach Vertragsende",
        "Rückübertragung",
        "Vernichtung",
        "Deletion",
        "Return of Data",
    ),
    Category.AUDIT_RIGHTS: (
        "Audit",
        "Nachweis",
        "Kontrolle",
        "Inspektion",
        "Prüfung",
        "Auditrechte",
        "Nachweispflichten",
    ),
    Category.INTERNATIONAL_TRANSFERS: (
        "international",
        "Drittland",
        "Übermittlung",
        "Transfer",
        "Standardvertragsklauseln",
        "SCC",
        "SVK",
        "UK",
        "USA",
        "EU 2021/914",
        "2021/915",
    ),
    Category.LIABILITY_CAP: (
        "Haftung",
        "Haftungsbegrenzung",
        "Haftungsausschluss",
        "limitiert",
        "beschränkt",
        "Liability",
    ),
    Category.JURISDICTION: (
        "Gerichtsstand",
        "anwendbares Recht",
        "Rechtswahl",
        "Jurisdiction",
        "Governing Law",
    ),
}


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Keywords match at a word start; acronyms ("TOM", "UK") must be whole words.
    prefix = r"\b" if keyword[:1].isalnum() else ""
    suffix = r"\b" if len(keyword) <= 4 and keyword[-1:].isalnum() else ""
    return re.compile(prefix + re.escape(keyword) + suffix, re.IGNORECASE)


KEYWORD_PATTERNS: Mapping[Category, Tuple[re.Pattern[str], ...]] = {
    category: tuple(_keyword_pattern(keyword) for keyword in keywords)
    for category, keywords in KEYWORDS.items()
}


def find_keyword(category: Category, text: str) -> Optional[re.Match[str]]:
    """Return the earliest keyword hit for *category* in *text*."""

    best: Optional[re.Match[str]] = None
    for pattern in KEYWORD_PATTERNS[category]:
        match = pattern.search(text)
        if match is not None and (best is None or match.start() < best.start()):
            best = match
    return best


def infer_category(text: str) -> Category:
    """Guess the category of free text; falls back to the last category checked."""

    for category in CATEGORY_ORDER:
        if find_keyword(category, text) is not None:
            return category
    return CATEGORY_ORDER[-1]


__all__ = [
    "CATEGORY_ALIASES",
    "CATEGORY_ORDER",
    "CATEGORY_RANK",
    "CATEGORY_WEIGHTS",
    "CORE_CATEGORIES",
    "Category",
    "KEYWORDS",
    "SEVERITY_RANK",
    "STATUS_STRENGTH",
    "SUPPLEMENTARY_CATEGORIES",
    "Severity",
    "Status",
    "canonical_category",
    "canonical_severity",
    "canonical_status",
    "find_keyword",
    "infer_category",
]
