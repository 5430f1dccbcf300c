import os
from datetime import datetime, timezone
from typing import List, Optional

from schemas.inventory import InventoryResult

CSV_HEADER = ["label", "brand", "estimated_quantity", "position", "confidence"]
DELIMITER = ","
DELIMITER_SUBSTITUTE = ";"


def _clean(value: Optional[str]) -> str:
    # No quoting: delimiters and line breaks are substituted instead.
    text = (value or "").replace(DELIMITER, DELIMITER_SUBSTITUTE)
    return " ".join(text.splitlines())


def to_csv_rows(result: InventoryResult) -> List[List[str]]:
    rows = [list(CSV_HEADER)]
    for item in result.inventory:
        rows.append([
            _clean(item.label),
            _clean(item.brand),
            str(item.estimated_quantity),
            _clean(item.position),
            str(item.confidence),
        ])
    return rows


def to_csv_text(result: InventoryResult) -> str:
    return "".join(DELIMITER.join(row) + "\n" for row in to_csv_rows(result))


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    stamp = now.isoformat().replace(":", "-").replace(".", "-").replace("+", "_")
    return f"inventory_{stamp}.csv"


def export_inventory(result: InventoryResult, directory: str, now: Optional[datetime] = None) -> str:
    """Write the inventory as a new CSV file under ``directory`` and return its path."""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, export_filename(now))
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(to_csv_text(result))
    return path
