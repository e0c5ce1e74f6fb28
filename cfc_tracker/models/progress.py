"""
Named result types returned by the query gateways

A missing note or niveau is `None` here. It only becomes 0 when serialized
for clients (api/schemas) or exported.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class ModuleWithNote:
    """A module left-joined with one user's note"""

    id: str
    nom: str
    code: str
    annee: int
    is_cie: bool
    note: Optional[float] = None
    note_id: Optional[str] = None
    note_updated_at: Optional[datetime] = None

    @property
    def is_graded(self) -> bool:
        """0 is treated as "not graded" by every average"""
        return self.note is not None and self.note > 0


@dataclass(frozen=True)
class CompetenceWithNiveau:
    """A competence joined with its domain name and one user's niveau"""

    id: str
    nom: str
    description: str
    domaine_id: str
    domaine_nom: str
    niveau: Optional[int] = None


@dataclass(frozen=True)
class CompetenceWithModules:
    """A competence with the modules linked to it and the user's note on each"""

    competence: CompetenceWithNiveau
    modules: List[ModuleWithNote] = field(default_factory=list)
