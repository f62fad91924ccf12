"""Load formula documents from a directory, a file, or a URL.

Formula documents are JSON or YAML with automatic format detection. Three
source shapes are accepted:

* a **directory** -- every ``*.json``, ``*.yaml`` and ``*.yml`` file inside
  it, in file-name order, each holding one formula;
* a **file** -- either one formula (an object with an ``id``), an aggregate
  object keyed by formula id, or a list of formulas;
* an **http(s) URL** -- the same shapes as a file, typically the
  ``/api/formulas.json`` export of another deployment.

Every document is validated against :class:`~authplay.models.Formula` and
the cross-field rules in :func:`validate_formula`. Failures raise
:class:`~authplay.exceptions.FormulaError` naming the offending source.
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from authplay.exceptions import FormulaError
from authplay.models import DEVICE_CODE, Formula

SUPPORTED_SCHEMAS = ("v1",)
_FORMULA_SUFFIXES = (".json", ".yaml", ".yml")

# Endpoint names each OAuth method cannot work without.
_REQUIRED_ENDPOINTS: dict[str, tuple[str, ...]] = {
    DEVICE_CODE: ("device", "token"),
    "authorization_code": ("authorize", "token"),
}


def load_formulas(source: str | Path) -> list[Formula]:
    """Load and validate formulas from a directory, file, or URL.

    Args:
        source: Directory path, file path, or ``http(s)://`` URL.

    Returns:
        The formulas in source order.

    Raises:
        FormulaError: If the source cannot be read or any document is
            invalid.
    """
    text = str(source)
    if text.startswith(("http://", "https://")):
        return _formulas_from_document(_load_from_url(text), origin=text)

    path = Path(source).expanduser()
    if path.is_dir():
        return _load_from_dir(path)
    if path.is_file():
        return _formulas_from_document(_load_from_file(path), origin=str(path))
    raise FormulaError(f"Formula source not found: {source}")


def load_builtin_formulas() -> list[Formula]:
    """Load the formulas shipped inside the ``authplay.formulas`` package."""
    package = resources.files("authplay.formulas")
    formulas: list[Formula] = []
    entries = sorted(
        (entry for entry in package.iterdir() if entry.name.endswith(_FORMULA_SUFFIXES)),
        key=lambda entry: entry.name,
    )
    for entry in entries:
        content = entry.read_text(encoding="utf-8")
        data = _parse_content(content, hint=_hint_for(entry.name), origin=entry.name)
        formulas.append(parse_formula(data, origin=entry.name))
    return formulas


def parse_formula(data: Any, origin: str = "<document>") -> Formula:
    """Validate one raw formula document.

    Args:
        data: The decoded JSON/YAML value.
        origin: Source description used in error messages.

    Raises:
        FormulaError: On schema or cross-field validation failure.
    """
    if not isinstance(data, dict):
        raise FormulaError(
            f"{origin}: formula must be an object (got {type(data).__name__})"
        )
    try:
        formula = Formula.model_validate(data)
    except ValidationError as exc:
        raise FormulaError(f"{origin}: invalid formula: {exc}") from exc
    validate_formula(formula, origin=origin)
    return formula


def validate_formula(formula: Formula, origin: str = "<document>") -> None:
    """Check the rules a schema alone cannot express.

    * the schema version is supported;
    * OAuth methods declare the endpoints they need;
    * client and API method references point at declared methods.

    Raises:
        FormulaError: Naming the first violated rule.
    """
    where = f"{origin}: formula '{formula.id}'"
    if formula.schema_version not in SUPPORTED_SCHEMAS:
        raise FormulaError(
            f"{where} uses unsupported schema '{formula.schema_version}'"
        )

    for method_name, required in _REQUIRED_ENDPOINTS.items():
        method = formula.methods.get(method_name)
        if method is None:
            continue
        missing = [name for name in required if not method.endpoints.get(name)]
        if missing:
            raise FormulaError(
                f"{where} method '{method_name}' is missing endpoints: {', '.join(missing)}"
            )

    for client in formula.clients:
        for method_name in client.methods or []:
            if method_name not in formula.methods:
                raise FormulaError(
                    f"{where} client '{client.name}' references unknown method '{method_name}'"
                )
    for api_name, api in formula.apis.items():
        for method_name in api.methods:
            if method_name not in formula.methods:
                raise FormulaError(
                    f"{where} api '{api_name}' references unknown method '{method_name}'"
                )


# ------------------------------------------------------------------ #
# Sources
# ------------------------------------------------------------------ #


def _load_from_dir(path: Path) -> list[Formula]:
    files = sorted(
        p for p in path.iterdir() if p.is_file() and p.suffix.lower() in _FORMULA_SUFFIXES
    )
    formulas: list[Formula] = []
    for file_path in files:
        data = _load_from_file(file_path)
        formulas.append(parse_formula(data, origin=str(file_path)))
    return formulas


def _load_from_file(path: Path) -> Any:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FormulaError(f"Failed to read formula file {path}: {exc}") from exc

    if not content.strip():
        raise FormulaError(f"Formula file is empty: {path}")

    return _parse_content(content, hint=_hint_for(path.name), origin=str(path))


def _load_from_url(url: str) -> Any:
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FormulaError(
            f"HTTP {exc.response.status_code} fetching formulas from {url}"
        ) from exc
    except httpx.RequestError as exc:
        raise FormulaError(f"Failed to fetch formulas from {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    return _parse_content(response.text, hint=hint, origin=url)


def _formulas_from_document(data: Any, origin: str) -> list[Formula]:
    """Split a file-level document into individual formulas."""
    if isinstance(data, list):
        return [parse_formula(item, origin=f"{origin}[{i}]") for i, item in enumerate(data)]
    if isinstance(data, dict) and "id" in data and "label" in data:
        return [parse_formula(data, origin=origin)]
    if isinstance(data, dict):
        formulas = []
        for key, item in data.items():
            formula = parse_formula(item, origin=f"{origin}[{key}]")
            if formula.id != key:
                raise FormulaError(
                    f"{origin}: key '{key}' does not match formula id '{formula.id}'"
                )
            formulas.append(formula)
        return formulas
    raise FormulaError(
        f"{origin}: expected a formula, a list, or an id-keyed object "
        f"(got {type(data).__name__})"
    )


# ------------------------------------------------------------------ #
# Parsing
# ------------------------------------------------------------------ #


def _hint_for(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith(".json"):
        return "json"
    if lowered.endswith((".yaml", ".yml")):
        return "yaml"
    return ""


def _parse_content(content: str, hint: str = "", origin: str = "<document>") -> Any:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hinted as YAML), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter.

    Raises:
        FormulaError: If the content parses as neither format.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise FormulaError(f"{origin}: invalid JSON: {exc}") from exc

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        yaml_error = exc
    else:
        if result is None:
            raise FormulaError(f"{origin}: empty document")
        return result

    msg = f"{origin}: failed to parse formula as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise FormulaError(msg)
