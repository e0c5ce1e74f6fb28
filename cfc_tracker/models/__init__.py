from .progress import CompetenceWithModules, CompetenceWithNiveau, ModuleWithNote

__all__ = ["ModuleWithNote", "CompetenceWithNiveau", "CompetenceWithModules"]
