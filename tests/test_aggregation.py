import math

import pytest

from cfc_tracker.core.aggregation import (
    compute_averages,
    competence_level_stats,
    graded_notes,
    group_by_domain,
    group_by_year,
    overall_average,
    year_summaries,
)
from cfc_tracker.models.progress import CompetenceWithNiveau, ModuleWithNote


def _module(code, note=None, annee=1, is_cie=False):
    return ModuleWithNote(id=f"mod-{code}", nom=f"Module {code}", code=code, annee=annee, is_cie=is_cie, note=note)


def _competence(nom, domaine, niveau=None):
    return CompetenceWithNiveau(
        id=f"comp-{nom}", nom=nom, description="", domaine_id=f"dom-{domaine}", domaine_nom=domaine, niveau=niveau
    )


def test_weighted_average_normal_and_cie():
    modules = [_module("100", 5.0), _module("101", 4.0), _module("187", 2.0, is_cie=True)]

    averages = compute_averages(modules)

    assert averages.normal_average == pytest.approx(4.5)
    assert averages.cie_average == pytest.approx(2.0)
    assert averages.weighted_average == pytest.approx(4.0)
    assert averages.total_modules == 3
    assert averages.graded_modules == 3


def test_ungraded_and_zero_notes_are_ignored():
    modules = [_module("100", 5.0), _module("101", 0.0), _module("102", None)]

    averages = compute_averages(modules)

    assert averages.normal_average == pytest.approx(5.0)
    assert averages.graded_modules == 1
    assert averages.total_modules == 3


def test_empty_subsets_average_to_zero():
    averages = compute_averages([_module("100"), _module("187", is_cie=True)])

    assert averages.normal_average == 0.0
    assert averages.cie_average == 0.0
    assert averages.weighted_average == 0.0
    assert not math.isnan(averages.weighted_average)


def test_weights_are_not_renormalized_without_cie():
    averages = compute_averages([_module("100", 5.0), _module("187", None, is_cie=True)])

    assert averages.weighted_average == pytest.approx(4.0)


def test_overall_average_is_unweighted():
    modules = [_module("100", 5.0), _module("101", 4.0), _module("187", 2.0, is_cie=True)]

    assert overall_average(modules) == pytest.approx(11.0 / 3)
    assert overall_average([]) == 0.0


def test_graded_notes_filters_by_kind():
    modules = [_module("100", 5.0), _module("187", 3.0, is_cie=True), _module("101", 0.0)]

    assert graded_notes(modules) == [5.0, 3.0]
    assert graded_notes(modules, is_cie=True) == [3.0]
    assert graded_notes(modules, is_cie=False) == [5.0]


def test_group_by_year_sorts_years_and_keeps_order_inside():
    modules = [_module("431", annee=2), _module("117", annee=1), _module("106", annee=1), _module("450", annee=3)]

    grouped = group_by_year(modules)

    assert list(grouped) == [1, 2, 3]
    assert [m.code for m in grouped[1]] == ["117", "106"]


def test_year_summaries_one_per_year():
    modules = [_module("117", 4.0, annee=1), _module("431", 6.0, annee=2)]

    summaries = year_summaries(modules)

    assert [s.annee for s in summaries] == [1, 2]
    assert summaries[1].averages.normal_average == pytest.approx(6.0)


def test_group_by_domain_keeps_first_appearance_order():
    competences = [_competence("b", "Infra"), _competence("a", "Dev"), _competence("c", "Infra")]

    grouped = group_by_domain(competences)

    assert list(grouped) == ["Infra", "Dev"]
    assert [c.nom for c in grouped["Infra"]] == ["b", "c"]


def test_competence_level_stats_buckets():
    competences = [
        _competence("a", "D", 1),
        _competence("b", "D", 2),
        _competence("c", "D", 3),
        _competence("d", "D", 4),
        _competence("e", "D", 5),
        _competence("f", "D", None),
    ]

    stats = competence_level_stats(competences)

    assert (stats.beginner, stats.intermediate, stats.mastered, stats.unset) == (2, 2, 1, 1)
    assert stats.total == 6


def test_equal_normal_and_cie_averages():
    modules = [_module("100", 5.0), _module("101", 3.0), _module("187", 4.0, is_cie=True)]

    averages = compute_averages(modules)

    assert averages.normal_average == pytest.approx(4.0)
    assert averages.cie_average == pytest.approx(4.0)
    assert averages.weighted_average == pytest.approx(4.0)
