"""Drug-drug interaction checks against the curated table in interactions.yml"""
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional
import yaml

from carecoord import config
from carecoord.medications.schemas import (
    DrugInteraction,
    InteractionCheckResponse,
    InteractionSeverity,
    InteractionsBySeverity,
)

DEFAULT_INTERACTIONS_FILE = Path(__file__).parent / "interactions.yml"

SEVERITY_ORDER = [
    InteractionSeverity.CONTRAINDICATED,
    InteractionSeverity.MAJOR,
    InteractionSeverity.MODERATE,
    InteractionSeverity.MINOR,
]

NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


def normalize_drug_name(name: Optional[str]) -> str:
    """'Vitamin K' -> 'vitamink'"""
    return NON_ALPHANUMERIC.sub("", (name or "").lower())


def names_match(name: str, drug: str) -> bool:
    """Normalized names match when either contains the other; empty never matches"""
    return bool(name) and bool(drug) and (name in drug or drug in name)


class InteractionChecker:
    """Looks up known interactions among medication names"""

    def __init__(self, interactions_file_path: Optional[str] = None):
        path = Path(interactions_file_path) if interactions_file_path else DEFAULT_INTERACTIONS_FILE
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        self.interactions: List[DrugInteraction] = [
            DrugInteraction(**entry) for entry in data.get("interactions") or []
        ]

    @staticmethod
    def _pair_matches(interaction: DrugInteraction, first: str, second: str) -> bool:
        drug1 = normalize_drug_name(interaction.drug1)
        drug2 = normalize_drug_name(interaction.drug2)
        return (
            (names_match(first, drug1) and names_match(second, drug2))
            or (names_match(first, drug2) and names_match(second, drug1))
        )

    def find(self, names: Iterable[str]) -> List[DrugInteraction]:
        """Every known interaction between two distinct names, most severe first"""
        unique = list(dict.fromkeys(n for n in map(normalize_drug_name, names) if n))
        pairs = [(a, b) for i, a in enumerate(unique) for b in unique[i + 1:]]

        found = [
            interaction for interaction in self.interactions
            if any(self._pair_matches(interaction, a, b) for a, b in pairs)
        ]
        found.sort(key=lambda interaction: SEVERITY_ORDER.index(interaction.severity))
        return found

    def check(self, names: Iterable[str], checked_at: datetime) -> InteractionCheckResponse:
        names = list(names)
        found = self.find(names)
        by_severity = InteractionsBySeverity(**{
            severity.value: [i for i in found if i.severity == severity]
            for severity in InteractionSeverity
        })
        return InteractionCheckResponse(
            has_interactions=bool(found),
            total_interactions=len(found),
            by_severity=by_severity,
            checked_medications=names,
            checked_at=checked_at,
        )

    def warnings_for(
        self,
        result: InteractionCheckResponse,
        name: str,
        generic_name: Optional[str] = None,
    ) -> List[str]:
        """Contraindicated and major interactions that involve the named medication"""
        candidates = [n for n in (normalize_drug_name(name), normalize_drug_name(generic_name)) if n]
        warnings = []
        for interaction in result.by_severity.contraindicated + result.by_severity.major:
            drug1 = normalize_drug_name(interaction.drug1)
            drug2 = normalize_drug_name(interaction.drug2)
            if any(names_match(c, drug1) for c in candidates):
                other = interaction.drug2
            elif any(names_match(c, drug2) for c in candidates):
                other = interaction.drug1
            else:
                continue
            warnings.append(
                f"{interaction.severity.value.upper()}: {name} may interact with {other}. {interaction.description}"
            )
        return warnings

    def details(self, drug1: str, drug2: str) -> Optional[DrugInteraction]:
        first, second = normalize_drug_name(drug1), normalize_drug_name(drug2)
        for interaction in self.interactions:
            if self._pair_matches(interaction, first, second):
                return interaction
        return None

    def known(self) -> List[DrugInteraction]:
        return list(self.interactions)


interaction_checker = InteractionChecker(config.INTERACTIONS_FILE)
