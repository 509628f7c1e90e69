"""
Transaction sheet column mapping.

Users rename, reorder and re-accent their headers ("Descrição",
"descricao", "DESCRICAO"). We match headers by normalized text against
a small alias list per field instead of by position.
"""

from typing import Any, Optional

from fintrack.normalization import normalize_text


# field -> accepted normalized header names, first one is canonical
TRANSACTION_COLUMNS: dict[str, tuple[str, ...]] = {
    "date": ("data",),
    "description": ("descricao",),
    "total_value": ("valor total", "valor"),
    "installment": ("parcelado",),
    "installment_count": ("parcelas", "qtd parcelas"),
    "kind": ("tipo",),
    "category": ("categoria",),
    "subcategory": ("subcategoria",),
    "payment_method": ("forma de pagamento", "pagamento"),
    "notes": ("observacoes", "obs"),
    "status": ("status", "pago"),
}

# Headers written to a fresh transactions worksheet, in order
DEFAULT_HEADERS = [
    "Data",
    "Descrição",
    "Valor Total",
    "Parcelado",
    "Parcelas",
    "Tipo",
    "Categoria",
    "Subcategoria",
    "Forma de Pagamento",
    "Observações",
    "Status",
]


def resolve_columns(headers: list[str]) -> dict[str, str]:
    """
    Map each known field to the actual header present in the sheet.

    Fields with no matching header are left out. When two headers match
    the same field, the earlier alias wins, then the leftmost header.
    """
    by_normalized: dict[str, str] = {}
    for header in headers:
        by_normalized.setdefault(normalize_text(header), header)

    resolved = {}
    for field, aliases in TRANSACTION_COLUMNS.items():
        for alias in aliases:
            if alias in by_normalized:
                resolved[field] = by_normalized[alias]
                break
    return resolved


def cell(row: dict[str, Any], columns: dict[str, str], field: str) -> Optional[Any]:
    """Read a field from a header-keyed row; None when the column is absent."""
    header = columns.get(field)
    if header is None:
        return None
    return row.get(header)
