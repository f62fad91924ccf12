"""In-memory formula catalog: exact lookup, listing, and substring search.

The catalog is built once from a list of formulas and never changes
afterwards. There is no mutation API, so any number of readers (relay
requests, flow controllers) can share one instance without coordination.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterator, Optional

from authplay.exceptions import FormulaError
from authplay.models import Formula, FormulaSummary


class FormulaCatalog:
    """Read-only collection of formulas keyed by id, in insertion order.

    Args:
        formulas: The formulas to index. Order is preserved for
            :meth:`list` and :meth:`search`.

    Raises:
        FormulaError: If two formulas share an id.

    Example::

        catalog = FormulaCatalog.builtin()
        github = catalog.get("github")
        hits = catalog.search("device")
    """

    def __init__(self, formulas: list[Formula]) -> None:
        index: dict[str, Formula] = {}
        for formula in formulas:
            if formula.id in index:
                raise FormulaError(f"Duplicate formula id '{formula.id}'")
            index[formula.id] = formula
        self._formulas = index

    @classmethod
    def builtin(cls) -> FormulaCatalog:
        """Catalog over the formulas shipped with the package."""
        from authplay.catalog.loader import load_builtin_formulas

        return cls(load_builtin_formulas())

    @classmethod
    def from_source(cls, source: Optional[str | Path]) -> FormulaCatalog:
        """Catalog over *source*, or the built-ins when *source* is ``None``."""
        if source is None:
            return cls.builtin()
        from authplay.catalog.loader import load_formulas

        return cls(load_formulas(source))

    def get(self, formula_id: str) -> Optional[Formula]:
        """Exact-key lookup. Returns ``None`` for unknown ids."""
        return self._formulas.get(formula_id)

    def list(self) -> list[FormulaSummary]:
        """Return ``{id, label}`` for every formula in catalog order."""
        return [FormulaSummary(id=f.id, label=f.label) for f in self._formulas.values()]

    def search(self, query: str) -> list[Formula]:
        """Case-insensitive substring search over id, label, and method names.

        A formula matches when *any* of those fields contains *query*.
        Results keep catalog order; there is no ranking. An empty query
        matches every formula.
        """
        q = query.lower()
        return [
            f
            for f in self._formulas.values()
            if q in f.id.lower()
            or q in f.label.lower()
            or any(q in name.lower() for name in f.methods)
        ]

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Full id-keyed wire dump of the catalog."""
        return {formula_id: f.to_wire() for formula_id, f in self._formulas.items()}

    def __len__(self) -> int:
        return len(self._formulas)

    def __iter__(self) -> Iterator[Formula]:
        return iter(self._formulas.values())

    def __contains__(self, formula_id: object) -> bool:
        return formula_id in self._formulas
