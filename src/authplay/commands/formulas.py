"""Formula commands -- browse the catalog.

Provides the ``authplay formulas`` sub-command group with read-only
commands over the formula catalog: a table of every formula, the full
document of one formula, and substring search. All sub-commands resolve
the formula source (``--formulas``, ``AUTHPLAY_FORMULAS``, the config
file, or the bundled catalog) and load it once.
"""

from __future__ import annotations

from typing import Optional

import typer

from authplay.catalog import FormulaCatalog
from authplay.config import Settings
from authplay.exceptions import AuthplayError, NotFoundError
from authplay.models import Formula
from authplay.output import error, format_response, info, print_table, suggest


formulas_app = typer.Typer(no_args_is_help=True)

_TABLE_HEADERS = ["ID", "LABEL", "METHODS", "PLAYGROUND"]


def load_settings_and_catalog(
    ctx: Optional[typer.Context],
) -> tuple[Settings, FormulaCatalog]:
    """Resolve settings and load the catalog they point at.

    Args:
        ctx: Typer context; ``ctx.obj["formulas"]`` holds the root
            ``--formulas`` flag when present.

    Raises:
        typer.Exit: With the error's exit code when settings or the
            formula source cannot be loaded.
    """
    from authplay.config import resolve_settings

    cli_formulas = None
    if ctx is not None and ctx.obj:
        cli_formulas = ctx.obj.get("formulas")

    try:
        settings = resolve_settings(cli_formulas=cli_formulas)
        return settings, FormulaCatalog.from_source(settings.formulas_path)
    except AuthplayError as exc:
        error(f"Failed to load formulas: {exc}")
        raise typer.Exit(code=exc.exit_code) from None


def load_catalog(ctx: Optional[typer.Context]) -> FormulaCatalog:
    """Load the catalog selected by ``--formulas`` or settings."""
    return load_settings_and_catalog(ctx)[1]


def _rows(formulas: list[Formula]) -> list[list[str]]:
    return [
        [
            f.id,
            f.label,
            ", ".join(f.methods),
            "yes" if f.supports_playground else "no",
        ]
        for f in formulas
    ]


@formulas_app.command("list")
def list_formulas(ctx: typer.Context) -> None:
    """List every formula in the catalog.

    Example::

        authplay formulas list
        authplay --json formulas list
    """
    catalog = load_catalog(ctx)
    print_table(_TABLE_HEADERS, _rows(list(catalog)), title="Formulas")
    info(f"{len(catalog)} formulas")


@formulas_app.command("show")
def show_formula(
    ctx: typer.Context,
    formula_id: str = typer.Argument(..., help="Formula id, e.g. 'github'."),
) -> None:
    """Print one formula document.

    Example::

        authplay formulas show github
    """
    catalog = load_catalog(ctx)
    formula = catalog.get(formula_id)
    if formula is None:
        exc = NotFoundError(f"Formula not found: {formula_id}")
        error(str(exc))
        suggest(f"Try: authplay formulas search {formula_id}")
        raise typer.Exit(code=exc.exit_code)

    format_response(formula.to_wire())
    if formula.supports_playground:
        suggest(f"Try it: authplay login {formula.id}")


@formulas_app.command("search")
def search_formulas(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Case-insensitive text matched against id, label and method names."),
) -> None:
    """Search formulas by id, label or method name.

    Example::

        authplay formulas search device
    """
    catalog = load_catalog(ctx)
    results = catalog.search(query)
    if not results:
        info(f"No formulas match '{query}'")
        return
    print_table(_TABLE_HEADERS, _rows(results), title=f"Formulas matching '{query}'")
