"""Adherence metrics over medication logs"""
from typing import Dict, Iterable

from carecoord.medications.models import MedicationLog, MedicationLogStatus


def compute_adherence(logs: Iterable[MedicationLog]) -> Dict:
    """
    Count logs by status.

    Metrics computed:
    - given / skipped / missed: counts per status
    - total: number of logs (always the sum of the three counts)
    - adherence_rate: given / total as a percentage, 0.0 with no logs
    """
    counts = {status: 0 for status in MedicationLogStatus}
    for log in logs:
        counts[MedicationLogStatus(log.status)] += 1

    total = sum(counts.values())
    given = counts[MedicationLogStatus.GIVEN]
    return {
        "given": given,
        "skipped": counts[MedicationLogStatus.SKIPPED],
        "missed": counts[MedicationLogStatus.MISSED],
        "total": total,
        "adherence_rate": round((given / total) * 100, 2) if total else 0.0,
    }
