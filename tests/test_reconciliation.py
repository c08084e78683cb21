import pytest

from avvcheck.analysis import categories
from avvcheck.analysis.categories import (
    CATEGORY_ALIASES,
    CATEGORY_ORDER,
    Category,
    Severity,
    Status,
    canonical_category,
    canonical_status,
)
from avvcheck.analysis.models import RISK_SOURCE_DERIVED, RISK_SOURCE_ORACLE
from avvcheck.analysis.reconciliation import MAX_QUOTE_CHARS, reconcile
from avvcheck.analysis.scoring import score_record

from conftest import make_record


def test_reconcile_fills_every_category_and_drops_unknown_keys():
    record = reconcile({"article_28_analysis": {"instructions_only": {"status": "met"}, "foo_bar": {"status": "met"}}})

    assert list(record.findings) == list(CATEGORY_ORDER)
    assert record.status_of(Category.INSTRUCTIONS_ONLY) is Status.MET
    assert record.status_of(Category.CONFIDENTIALITY) is None
    serialised = record.to_dict()
    assert "foo_bar" not in serialised["article_28_analysis"]
    assert len(serialised["article_28_analysis"]) == 8
    assert len(serialised["additional_clauses"]) == 3


@pytest.mark.parametrize("raw", [None, {}, {"article_28_analysis": "kaputt"}, {"risk_score": "hoch"}, []])
def test_reconcile_never_raises_on_odd_shapes(raw):
    record = reconcile(raw)

    assert all(finding.status is None for finding in record.findings.values())
    assert record.actions == []


def test_reconcile_reads_german_groups_and_vocabulary():
    record = reconcile(
        {
            "prüfung": {
                "art_28": {"Weisungen": {"status": "Erfüllt", "belege": [{"zitat": "Nur auf Weisung.", "seite": 2}]}},
                "zusatzklauseln": {"Gerichtsstand": "vorhanden"},
            }
        }
    )

    instructions = record.findings[Category.INSTRUCTIONS_ONLY]
    assert instructions.status is Status.MET
    assert [(item.quote, item.page) for item in instructions.evidence] == [("Nur auf Weisung.", 2)]
    assert record.status_of(Category.JURISDICTION) is Status.PRESENT


def test_core_categories_fold_presence_statuses():
    record = reconcile(
        {
            "article_28_analysis": {
                "confidentiality": {"status": "present"},
                "audit_rights": {"status": "not_found"},
            },
            "additional_clauses": {"liability_cap": {"status": "not_found"}},
        }
    )

    assert record.status_of(Category.CONFIDENTIALITY) is Status.MISSING
    assert record.status_of(Category.AUDIT_RIGHTS) is Status.MISSING
    assert record.status_of(Category.LIABILITY_CAP) is Status.NOT_FOUND


def test_duplicate_categories_keep_the_stronger_status_and_merge_evidence():
    record = reconcile(
        {
            "findings": {"sub-processors": {"status": "missing", "evidence": [{"quote": "Klausel A"}]}},
            "article_28_analysis": {"subprocessors": {"status": "met", "evidence": [{"quote": "Klausel B"}]}},
        }
    )

    finding = record.findings[Category.SUBPROCESSORS]
    assert finding.status is Status.MET
    assert [item.quote for item in finding.evidence] == ["Klausel A", "Klausel B"]


def test_evidence_is_trimmed_deduplicated_and_capped():
    long_quote = "Der Auftragsverarbeiter\n trifft   Maßnahmen. " * 20
    record = reconcile(
        {
            "article_28_analysis": {
                "security_TOMs": {
                    "status": "partial",
                    "evidence": [
                        {"quote": "TOM gemäß Anlage 2", "page": "3"},
                        {"quote": "tom gemäß anlage 2", "page": 4},
                        {"quote": long_quote, "page": 0},
                        {"quote": "Dritter Beleg", "page": 5},
                    ],
                }
            }
        }
    )

    evidence = record.findings[Category.SECURITY_TOMS].evidence
    assert len(evidence) == 2
    assert evidence[0].quote == "TOM gemäß Anlage 2"
    assert evidence[0].page is None
    assert len(evidence[1].quote) <= MAX_QUOTE_CHARS
    assert "\n" not in evidence[1].quote and "  " not in evidence[1].quote
    assert evidence[1].page is None
    assert "page" not in record.to_dict()["article_28_analysis"]["security_TOMs"]["evidence"][0]


def test_flat_parties_object_is_normalised():
    record = reconcile(
        {
            "contract_metadata": {
                "title": "AVV",
                "parties": {
                    "controller": {"name": "Kunde GmbH", "country": "AT"},
                    "processor": "Cloud Inc.",
                    "processor_dpo": {"name": "Dr. Datenschutz"},
                },
            }
        }
    )

    parties = [(party.role, party.name, party.country) for party in record.metadata.parties]
    assert parties == [
        ("Verantwortlicher", "Kunde GmbH", "AT"),
        ("Auftragsverarbeiter", "Cloud Inc.", "AT"),
    ]
    assert record.metadata.processor_dpo == "Dr. Datenschutz"


def test_party_list_maps_roles_and_defaults_country():
    record = reconcile(
        {
            "contract_metadata": {
                "parties": [
                    {"role": "controller", "name": "Kunde GmbH"},
                    {"role": "Auftragsverarbeiter", "name": "Hosting AG"},
                    {"role": "processor", "name": "hosting ag"},
                    {"role": "dpo", "name": "Frau Muster"},
                ]
            }
        }
    )

    parties = [(party.role, party.name, party.country) for party in record.metadata.parties]
    assert parties == [
        ("Verantwortlicher", "Kunde GmbH", "DE"),
        ("Auftragsverarbeiter", "Hosting AG", "DE"),
    ]
    assert record.metadata.processor_dpo == "Frau Muster"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-03-01", "2024-03-01"),
        ("2024-03-01T10:00:00Z", "2024-03-01"),
        ("1.3.2024", "2024-03-01"),
        ("31.02.2024", ""),
        ("März 2024", ""),
        (None, ""),
    ],
)
def test_contract_date_is_iso_or_empty(raw, expected):
    record = reconcile({"contract_metadata": {"date": raw}})

    assert record.metadata.date == expected


def test_actions_are_canonicalised_deduplicated_and_sorted():
    record = reconcile(
        {
            "recommended_actions": [
                {"category": "audit", "severity": "niedrig", "description": "Auditfristen konkretisieren"},
                {"severity": "hoch", "action": "Haftungsbegrenzung ergänzen"},
                {"category": "Vertraulichkeit", "severity": "unbekannt", "description": "Verpflichtung  ergänzen"},
                {"category": "audit", "severity": "low", "description": "Auditfristen konkretisieren"},
                {"description": "Allgemeine Überarbeitung"},
                {"severity": "high"},
                "kein Objekt",
            ]
        }
    )

    actions = [(action.category, action.severity, action.description) for action in record.actions]
    assert actions == [
        (Category.LIABILITY_CAP, Severity.HIGH, "Haftungsbegrenzung ergänzen"),
        (Category.CONFIDENTIALITY, Severity.MEDIUM, "Verpflichtung ergänzen"),
        (Category.JURISDICTION, Severity.MEDIUM, "Allgemeine Überarbeitung"),
        (Category.AUDIT_RIGHTS, Severity.LOW, "Auditfristen konkretisieren"),
    ]


def test_risk_override_and_rationale_are_kept():
    record = reconcile({"risk_score": {"overall": 42, "rationale": "Fristen fehlen."}})

    assert record.risk_override == 42.0
    assert record.risk_rationale == "Fristen fehlen."


def test_derived_risk_is_not_treated_as_override():
    record = reconcile({"risk_score": {"overall": 80, "source": RISK_SOURCE_DERIVED}, "risk_rationale": "Lücken."})

    assert record.risk_override is None
    assert record.risk_rationale == "Lücken."


def test_reconcile_is_idempotent():
    raw = make_record(
        "met",
        None,
        overrides={"security_TOMs": "teilweise", "liability_cap": "not_found"},
        actions=[{"severity": "high", "description": "Löschfristen festlegen"}],
        contract_metadata={
            "title": "Auftragsverarbeitungsvertrag",
            "date": "01.02.2024",
            "parties": [{"role": "controller", "name": "Kunde GmbH", "country": "DE"}, {"role": "processor", "name": "Cloud Inc."}],
            "processor_dpo": "Herr Beauftragter",
        },
        risk_score={"overall": 35, "rationale": "Mittleres Risiko."},
    )

    once = reconcile(raw)

    assert reconcile(once) == once
    assert reconcile(once.to_dict()) == once
    assert once.to_dict()["risk_score"]["source"] == RISK_SOURCE_ORACLE


def test_reconcile_of_scored_record_drops_derived_risk():
    once = reconcile(make_record("partial", "present"))
    scored = score_record(once)

    assert reconcile(scored) == once


def test_every_alias_maps_to_exactly_one_category():
    reachable = set()
    for alias, category in CATEGORY_ALIASES.items():
        assert canonical_category(alias) is category
        assert canonical_category(alias.upper()) is category
        reachable.add(category)

    assert reachable == set(CATEGORY_ORDER)
    assert canonical_category("security TOMs") is Category.SECURITY_TOMS
    assert canonical_category("no-such-category") is None


def test_alias_table_rejects_collisions():
    with pytest.raises(ValueError):
        categories._build_alias_table({Category.LIABILITY_CAP: ("audit",), Category.AUDIT_RIGHTS: ("audit",)})


@pytest.mark.parametrize(
    "value, category, expected",
    [
        ("MET", None, Status.MET),
        ("Nicht gefunden", None, Status.NOT_FOUND),
        ("present", Category.BREACH_SUPPORT, Status.MISSING),
        ("present", Category.LIABILITY_CAP, Status.PRESENT),
        ("vielleicht", None, None),
        (3, None, None),
    ],
)
def test_canonical_status(value, category, expected):
    assert canonical_status(value, category) is expected
