"""Tests for authplay.catalog.loader -- sources, formats, validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
import yaml

from authplay.catalog.loader import (
    load_builtin_formulas,
    load_formulas,
    parse_formula,
    validate_formula,
)
from authplay.exceptions import FormulaError
from authplay.models import Formula


def _write(path: Path, data: Any) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestBuiltinFormulas:
    def test_bundled_catalog_loads(self) -> None:
        formulas = load_builtin_formulas()
        ids = [f.id for f in formulas]
        assert "github" in ids
        assert ids == sorted(ids)

    def test_github_is_playground_capable(self) -> None:
        github = next(f for f in load_builtin_formulas() if f.id == "github")
        assert github.supports_playground
        assert github.device_method is not None
        assert github.device_method.endpoints["device"] == "https://github.com/login/device/code"


class TestLoadFromDirectory:
    def test_json_and_yaml_files(
        self,
        tmp_path: Path,
        device_formula_raw: dict[str, Any],
        key_formula_raw: dict[str, Any],
    ) -> None:
        _write(tmp_path / "b-acme.json", device_formula_raw)
        (tmp_path / "a-keystore.yaml").write_text(yaml.safe_dump(key_formula_raw))
        (tmp_path / "notes.txt").write_text("ignored")

        formulas = load_formulas(tmp_path)

        assert [f.id for f in formulas] == ["keystore", "acme"]

    def test_invalid_file_names_source(self, tmp_path: Path) -> None:
        (tmp_path / "broken.json").write_text("{not json")
        with pytest.raises(FormulaError, match="broken.json"):
            load_formulas(tmp_path)

    def test_empty_file_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "empty.json").write_text("   ")
        with pytest.raises(FormulaError, match="empty"):
            load_formulas(tmp_path)


class TestLoadFromFile:
    def test_single_formula(self, tmp_path: Path, device_formula_raw: dict[str, Any]) -> None:
        formulas = load_formulas(_write(tmp_path / "acme.json", device_formula_raw))
        assert len(formulas) == 1
        assert formulas[0].label == "Acme Cloud"

    def test_list_of_formulas(
        self,
        tmp_path: Path,
        device_formula_raw: dict[str, Any],
        key_formula_raw: dict[str, Any],
    ) -> None:
        path = _write(tmp_path / "all.json", [device_formula_raw, key_formula_raw])
        assert [f.id for f in load_formulas(path)] == ["acme", "keystore"]

    def test_id_keyed_aggregate(
        self,
        tmp_path: Path,
        device_formula_raw: dict[str, Any],
        key_formula_raw: dict[str, Any],
    ) -> None:
        path = _write(
            tmp_path / "formulas.json",
            {"acme": device_formula_raw, "keystore": key_formula_raw},
        )
        assert [f.id for f in load_formulas(path)] == ["acme", "keystore"]

    def test_aggregate_key_must_match_id(
        self, tmp_path: Path, device_formula_raw: dict[str, Any]
    ) -> None:
        path = _write(tmp_path / "formulas.json", {"other": device_formula_raw})
        with pytest.raises(FormulaError, match="does not match"):
            load_formulas(path)

    def test_yaml_without_suffix_hint(
        self, tmp_path: Path, key_formula_raw: dict[str, Any]
    ) -> None:
        path = tmp_path / "formula"
        path.write_text(yaml.safe_dump(key_formula_raw))
        assert load_formulas(path)[0].id == "keystore"

    def test_missing_source(self, tmp_path: Path) -> None:
        with pytest.raises(FormulaError, match="not found"):
            load_formulas(tmp_path / "nope.json")


class TestLoadFromUrl:
    def test_fetches_json(self, device_formula_raw: dict[str, Any]) -> None:
        response = MagicMock(spec=httpx.Response)
        response.text = json.dumps({"acme": device_formula_raw})
        response.headers = {"content-type": "application/json"}
        response.raise_for_status.return_value = None

        with patch("authplay.catalog.loader.httpx.get", return_value=response) as mock_get:
            formulas = load_formulas("https://formulas.example/api/formulas.json")

        mock_get.assert_called_once()
        assert formulas[0].id == "acme"

    def test_network_error(self) -> None:
        with patch(
            "authplay.catalog.loader.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            with pytest.raises(FormulaError, match="Failed to fetch"):
                load_formulas("https://formulas.example/formulas.json")


class TestValidation:
    def test_non_object_rejected(self) -> None:
        with pytest.raises(FormulaError, match="must be an object"):
            parse_formula(["x"])

    def test_missing_label_rejected(self) -> None:
        with pytest.raises(FormulaError, match="invalid formula"):
            parse_formula({"id": "x"})

    def test_unsupported_schema(self, key_formula_raw: dict[str, Any]) -> None:
        key_formula_raw["schema"] = "v9"
        with pytest.raises(FormulaError, match="unsupported schema"):
            parse_formula(key_formula_raw)

    def test_device_code_needs_both_endpoints(self, device_formula_raw: dict[str, Any]) -> None:
        del device_formula_raw["methods"]["device_code"]["endpoints"]["token"]
        with pytest.raises(FormulaError, match="missing endpoints: token"):
            parse_formula(device_formula_raw)

    def test_client_references_unknown_method(self, device_formula_raw: dict[str, Any]) -> None:
        device_formula_raw["clients"][0]["methods"] = ["implicit"]
        with pytest.raises(FormulaError, match="unknown method 'implicit'"):
            parse_formula(device_formula_raw)

    def test_api_references_unknown_method(self, key_formula_raw: dict[str, Any]) -> None:
        key_formula_raw["apis"]["main"]["methods"].append("device_code")
        with pytest.raises(FormulaError, match="api 'main'"):
            parse_formula(key_formula_raw)

    def test_unknown_fields_are_kept(self, key_formula_raw: dict[str, Any]) -> None:
        key_formula_raw["homepage"] = "https://keystore.example"
        formula = parse_formula(key_formula_raw)
        assert formula.to_wire()["homepage"] == "https://keystore.example"

    def test_validate_formula_accepts_valid(self, device_formula: Formula) -> None:
        validate_formula(device_formula)
