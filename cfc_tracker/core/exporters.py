"""
Export formatters

- build_notes_csv(): spreadsheet export of the recorded notes
- render_printable_report(): standalone HTML page meant to be printed to PDF
- csv_filename() / json_filename(): attachment names for the export endpoints

The JSON export is built from storage by services/seed_service.py since it
must match the seed loader's input shape.
"""
import html
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from ..models.progress import ModuleWithNote
from .aggregation import graded_notes, overall_average
from .constants import CSV_FILENAME_PREFIX, CSV_HEADER, JSON_FILENAME_PREFIX, UNSET_VALUE

NUMBER_DECIMALS = 10


def format_number(value: Optional[float]) -> str:
    """
    Plain decimal form of a note: 5.0 -> "5", 4.5 -> "4.5", None -> "0".

    Never uses exponent notation; rounded to NUMBER_DECIMALS places, trailing
    zeros dropped.
    """
    if value is None:
        return str(UNSET_VALUE)
    value = float(value)
    if value.is_integer():
        return str(int(value))
    text = format(value, f".{NUMBER_DECIMALS}f").rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _csv_module_name(nom: str) -> str:
    # Quotes are dropped and semicolons would split the field
    return nom.replace('"', "").replace(";", ",")


def latest_note_per_module(modules: Iterable[ModuleWithNote]) -> List[ModuleWithNote]:
    """
    Keep one entry per module id: the most recently updated one.

    The position of the first occurrence is kept so the input ordering survives.
    """
    kept: Dict[str, ModuleWithNote] = {}
    for module in modules:
        current = kept.get(module.id)
        if current is None or _is_newer(module, current):
            kept[module.id] = module
    return list(kept.values())


def _is_newer(candidate: ModuleWithNote, current: ModuleWithNote) -> bool:
    if candidate.note_updated_at is None:
        return False
    if current.note_updated_at is None:
        return True
    return candidate.note_updated_at > current.note_updated_at


def build_notes_csv(modules: Iterable[ModuleWithNote]) -> str:
    """
    Semicolon separated export of the graded modules.

    Ungraded modules (no note or 0) are left out: the export only lists
    recorded evidence. Notes use a decimal comma.

    Example:
        Module;Note
        "431 - Test A, B";4,5
    """
    lines = [CSV_HEADER]
    for module in latest_note_per_module(modules):
        if not module.is_graded:
            continue
        name = _csv_module_name(module.nom)
        note = format_number(module.note).replace(".", ",")
        lines.append(f'"{name}";{note}')
    return "\n".join(lines) + "\n"


def csv_filename(day: date) -> str:
    return f"{CSV_FILENAME_PREFIX}{day.isoformat()}.csv"


def json_filename(day: date) -> str:
    return f"{JSON_FILENAME_PREFIX}{day.isoformat()}.json"


_REPORT_STYLE = """
        body { font-family: Arial, sans-serif; margin: 20px; }
        h1 { color: #333; text-align: center; }
        h2 { color: #666; border-bottom: 2px solid #eee; padding-bottom: 5px; }
        table { width: 100%; border-collapse: collapse; margin: 20px 0; }
        th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
        th { background-color: #f5f5f5; font-weight: bold; }
        .note { font-weight: bold; }
        .cie { background-color: #fff3cd; }
        .stats { margin: 20px 0; padding: 15px; background-color: #f8f9fa; border-radius: 5px; }
"""


def _report_rows(modules: Iterable[ModuleWithNote]) -> str:
    rows = []
    for module in modules:
        css_class = "cie" if module.is_cie else ""
        rows.append(
            f'<tr class="{css_class}">'
            f"<td>{html.escape(module.code)}</td>"
            f"<td>{html.escape(module.nom)}</td>"
            f'<td class="note">{format_number(module.note)}/6</td>'
            f"<td>{'Oui' if module.is_cie else 'Non'}</td>"
            "</tr>"
        )
    return "\n".join(rows)


def render_printable_report(
    user_name: str,
    modules_by_year: Mapping[int, List[ModuleWithNote]],
    generated_on: date,
) -> str:
    """
    HTML report of every module (ungraded ones show 0/6), one table per year.

    The statistics block uses the plain average of all graded modules,
    not the CIE-weighted one.
    """
    all_modules = [m for year_modules in modules_by_year.values() for m in year_modules]
    graded_count = len(graded_notes(all_modules))
    average = f"{overall_average(all_modules):.2f}"
    name = html.escape(user_name)

    sections = []
    for annee, year_modules in modules_by_year.items():
        sections.append(
            f"<h2>{annee}ème année</h2>\n"
            "<table>\n"
            "<thead><tr><th>Code</th><th>Module</th><th>Note</th><th>CIE</th></tr></thead>\n"
            f"<tbody>\n{_report_rows(year_modules)}\n</tbody>\n"
            "</table>"
        )

    return (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>Notes de {name}</title>\n"
        f"<style>{_REPORT_STYLE}</style>\n"
        "</head>\n<body>\n"
        f"<h1>Notes de {name}</h1>\n"
        '<p style="text-align: center; color: #666;">Formation CFC en informatique</p>\n'
        '<div class="stats">\n'
        "<h3>Statistiques</h3>\n"
        f"<p><strong>Total des modules :</strong> {len(all_modules)}</p>\n"
        f"<p><strong>Modules notés :</strong> {graded_count}</p>\n"
        f"<p><strong>Moyenne générale :</strong> {average}/6</p>\n"
        "</div>\n"
        + "\n".join(sections)
        + "\n"
        f'<p style="text-align: center; margin-top: 30px; color: #666; font-size: 12px;">'
        f"Généré le {generated_on.strftime('%d/%m/%Y')}</p>\n"
        "</body>\n</html>\n"
    )
