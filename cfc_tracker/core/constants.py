"""
Domain constants shared by the services, the aggregation engine and the exporters
"""
from datetime import datetime, timezone


# Grade (note) bounds, inclusive. Half points and finer are allowed.
NOTE_MIN = 0.0
NOTE_MAX = 6.0

# Self-assessed competence level (niveau) bounds, inclusive, integers only.
NIVEAU_MIN = 1
NIVEAU_MAX = 5

# Training years (annee) a module can belong to.
ANNEE_MIN = 1
ANNEE_MAX = 4

# CIE modules count for one fifth of the final mark.
NORMAL_WEIGHT = 0.8
CIE_WEIGHT = 0.2

# Value surfaced to clients when no note / niveau is recorded.
UNSET_VALUE = 0

CSV_HEADER = "Module;Note"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8; sep=;"
CSV_FILENAME_PREFIX = "notes-cfc-"
JSON_FILENAME_PREFIX = "seed-data-"


def utc_now() -> datetime:
    """Timezone-aware UTC timestamp, used for created_at/updated_at"""
    return datetime.now(timezone.utc)
