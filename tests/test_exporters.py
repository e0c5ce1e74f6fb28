from datetime import date, datetime, timedelta, timezone

from cfc_tracker.core.exporters import (
    build_notes_csv,
    csv_filename,
    format_number,
    json_filename,
    latest_note_per_module,
    render_printable_report,
)
from cfc_tracker.core.aggregation import group_by_year
from cfc_tracker.models.progress import ModuleWithNote

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _module(code, nom=None, note=None, annee=1, is_cie=False, updated_at=None, module_id=None):
    return ModuleWithNote(
        id=module_id or f"mod-{code}",
        nom=nom or f"Module {code}",
        code=code,
        annee=annee,
        is_cie=is_cie,
        note=note,
        note_updated_at=updated_at,
    )


def test_format_number():
    assert format_number(5.0) == "5"
    assert format_number(4.5) == "4.5"
    assert format_number(None) == "0"
    assert format_number(6) == "6"
    assert format_number(0.00001) == "0.00001"
    assert format_number(4.25) == "4.25"
    assert format_number(0.1 + 0.2) == "0.3"


def test_csv_sanitizes_names_and_uses_decimal_comma():
    csv = build_notes_csv([_module("431", nom='431 - Test "A"; B', note=4.5, updated_at=T0)])

    assert csv == 'Module;Note\n"431 - Test A, B";4,5\n'


def test_csv_leaves_out_ungraded_modules():
    modules = [
        _module("100", note=5.0, updated_at=T0),
        _module("101", note=0.0, updated_at=T0),
        _module("102"),
    ]

    csv = build_notes_csv(modules)

    assert csv == 'Module;Note\n"Module 100";5\n'


def test_csv_header_only_without_notes():
    assert build_notes_csv([]) == "Module;Note\n"


def test_latest_note_per_module_keeps_most_recent():
    older = _module("100", note=3.0, updated_at=T0)
    newer = _module("100", note=5.5, updated_at=T0 + timedelta(days=1))
    other = _module("101", note=4.0, updated_at=T0)

    kept = latest_note_per_module([older, other, newer])

    assert [(m.code, m.note) for m in kept] == [("100", 5.5), ("101", 4.0)]
    assert build_notes_csv([older, other, newer]).splitlines()[1] == '"Module 100";5,5'


def test_filenames_use_iso_date():
    day = date(2024, 6, 30)

    assert csv_filename(day) == "notes-cfc-2024-06-30.csv"
    assert json_filename(day) == "seed-data-2024-06-30.json"


def test_printable_report_content():
    modules = [
        _module("106", nom="Bases <données>", note=5.0, annee=1),
        _module("187", note=3.0, annee=1, is_cie=True),
        _module("431", annee=2),
    ]

    report = render_printable_report("Jane Doe", group_by_year(modules), date(2024, 6, 30))

    assert "<h1>Notes de Jane Doe</h1>" in report
    assert "<strong>Total des modules :</strong> 3" in report
    assert "<strong>Modules notés :</strong> 2" in report
    assert "<strong>Moyenne générale :</strong> 4.00/6" in report
    assert "<h2>1ème année</h2>" in report
    assert "<h2>2ème année</h2>" in report
    assert "Bases &lt;données&gt;" in report
    assert '<tr class="cie">' in report
    assert "0/6" in report
    assert "Généré le 30/06/2024" in report
