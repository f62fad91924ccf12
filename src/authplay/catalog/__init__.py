"""Formula catalog -- load formula documents and look them up.

Typical usage::

    from authplay.catalog import FormulaCatalog, load_formulas

    catalog = FormulaCatalog(load_formulas("./formulas"))
    formula = catalog.get("github")

Sub-modules:

* :mod:`~authplay.catalog.loader` -- I/O layer (directory, file, URL) plus
  JSON/YAML detection and formula validation.
* :mod:`~authplay.catalog.catalog` -- the immutable
  :class:`FormulaCatalog` with ``get`` / ``list`` / ``search``.
"""

from authplay.catalog.catalog import FormulaCatalog
from authplay.catalog.loader import load_builtin_formulas, load_formulas, parse_formula

__all__ = ["FormulaCatalog", "load_builtin_formulas", "load_formulas", "parse_formula"]
