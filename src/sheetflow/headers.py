import re
import unicodedata
from typing import Any, Dict, List, Sequence

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_header(cell: Any) -> str:
    """
    Turn a header cell into a record key.

    "Full Name" -> "full_name", "E-mail Address" -> "e_mail_address",
    "Endereço" -> "endereco". Returns "" for empty cells.
    """
    if cell is None:
        return ""
    text = unicodedata.normalize("NFKD", str(cell)).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("_", text.lower()).strip("_")


def header_keys(cells: Sequence[Any]) -> List[str]:
    """
    Keys for a whole header row. Empty cells become `column_<n>` (1-based)
    and repeated keys get `_2`, `_3`... so every key is unique.
    """
    keys: List[str] = []
    seen: Dict[str, int] = {}
    for index, cell in enumerate(cells, start=1):
        key = normalize_header(cell) or f"column_{index}"
        if key in seen:
            seen[key] += 1
            key = f"{key}_{seen[key]}"
        seen.setdefault(key, 1)
        keys.append(key)
    return keys


def zip_row(keys: Sequence[str], values: Sequence[Any]) -> Dict[str, Any]:
    """Associative row; missing cells are None and extra cells are dropped."""
    return {key: values[i] if i < len(values) else None for i, key in enumerate(keys)}
