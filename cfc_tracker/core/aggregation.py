"""
Aggregation Engine - averages and groupings over a user's modules and competences

All functions are pure: they work on already-fetched query results
(models/progress.py) and never touch storage.

Two different averages exist and must not be unified:
- compute_averages(): CIE modules weigh 20%, the other modules 80%.
  Used by the modules dashboard.
- overall_average(): plain mean of every graded module, CIE or not.
  Used by the printable report.

A module counts as graded when its note is set and greater than 0.
An empty subset averages to 0 (never NaN), so callers can render it directly.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from ..models.progress import CompetenceWithNiveau, ModuleWithNote
from .constants import CIE_WEIGHT, NORMAL_WEIGHT

T = TypeVar("T")


@dataclass(frozen=True)
class GradeAverages:
    """Averages of one set of modules"""

    normal_average: float
    cie_average: float
    weighted_average: float
    total_modules: int
    graded_modules: int


@dataclass(frozen=True)
class YearSummary:
    annee: int
    averages: GradeAverages


@dataclass(frozen=True)
class CompetenceLevelStats:
    """
    Tally of competences per level bucket.

    beginner: niveau 1-2, intermediate: 3-4, mastered: 5, unset: no niveau.
    """

    beginner: int = 0
    intermediate: int = 0
    mastered: int = 0
    unset: int = 0

    @property
    def total(self) -> int:
        return self.beginner + self.intermediate + self.mastered + self.unset


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def graded_notes(modules: Iterable[ModuleWithNote], is_cie: Optional[bool] = None) -> List[float]:
    """
    Notes of the graded modules, optionally restricted to CIE / non-CIE modules.
    """
    return [
        m.note
        for m in modules
        if m.is_graded and (is_cie is None or m.is_cie == is_cie)
    ]


def compute_averages(modules: Sequence[ModuleWithNote]) -> GradeAverages:
    """
    Normal, CIE and weighted averages.

    weighted = normal * 0.8 + cie * 0.2. An empty subset contributes 0 to the
    weighted sum; the weights are not renormalized.
    """
    normal_notes = graded_notes(modules, is_cie=False)
    cie_notes = graded_notes(modules, is_cie=True)

    normal_average = _mean(normal_notes)
    cie_average = _mean(cie_notes)

    return GradeAverages(
        normal_average=normal_average,
        cie_average=cie_average,
        weighted_average=normal_average * NORMAL_WEIGHT + cie_average * CIE_WEIGHT,
        total_modules=len(modules),
        graded_modules=len(normal_notes) + len(cie_notes),
    )


def overall_average(modules: Iterable[ModuleWithNote]) -> float:
    """Unweighted mean of every graded module, CIE or not"""
    return _mean(graded_notes(modules))


def group_by_year(modules: Iterable[ModuleWithNote]) -> Dict[int, List[ModuleWithNote]]:
    """
    Buckets keyed by year, in ascending year order.

    Inside a bucket the input order is kept (no re-sorting).
    """
    buckets: Dict[int, List[ModuleWithNote]] = {}
    for module in modules:
        buckets.setdefault(module.annee, []).append(module)
    return {annee: buckets[annee] for annee in sorted(buckets)}


def year_summaries(modules: Iterable[ModuleWithNote]) -> List[YearSummary]:
    return [
        YearSummary(annee=annee, averages=compute_averages(year_modules))
        for annee, year_modules in group_by_year(modules).items()
    ]


def group_by_domain(competences: Iterable[T], key=lambda c: c.domaine_nom) -> Dict[str, List[T]]:
    """Buckets keyed by domain name, in order of first appearance"""
    buckets: Dict[str, List[T]] = {}
    for competence in competences:
        buckets.setdefault(key(competence), []).append(competence)
    return buckets


def competence_level_stats(competences: Iterable[CompetenceWithNiveau]) -> CompetenceLevelStats:
    """Count competences per level bucket"""
    beginner = intermediate = mastered = unset = 0
    for competence in competences:
        niveau = competence.niveau
        if not niveau:
            unset += 1
        elif niveau <= 2:
            beginner += 1
        elif niveau <= 4:
            intermediate += 1
        else:
            mastered += 1

    return CompetenceLevelStats(
        beginner=beginner,
        intermediate=intermediate,
        mastered=mastered,
        unset=unset,
    )
