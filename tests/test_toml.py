"""Tests for modver.toml."""

from __future__ import annotations

from pathlib import Path

import tomlkit

from modver.toml import (
    get_project_version,
    get_tool_table,
    load_pyproject,
    save_pyproject,
    set_project_version,
)


class TestLoadSavePyproject:
    def test_load(self, tmp_pyproject: Path) -> None:
        doc = load_pyproject(tmp_pyproject)
        assert get_project_version(doc) == "1.0.0"

    def test_save_preserves_comments(self, tmp_pyproject: Path) -> None:
        doc = load_pyproject(tmp_pyproject)
        set_project_version(doc, "9.9.9")
        save_pyproject(tmp_pyproject, doc)

        text = tmp_pyproject.read_text()
        assert "# keep this comment" in text
        assert 'version = "9.9.9"' in text
        assert get_project_version(load_pyproject(tmp_pyproject)) == "9.9.9"


class TestGetProjectVersion:
    def test_returns_version(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_project_version(sample_toml_doc) == "2.0.0"

    def test_poetry_table(self) -> None:
        doc = tomlkit.parse('[tool.poetry]\nname = "x"\nversion = "0.3.1"\n')
        assert get_project_version(doc) == "0.3.1"

    def test_returns_none_when_missing(self) -> None:
        doc = tomlkit.parse('[project]\nname = "x"\ndynamic = ["version"]\n')
        assert get_project_version(doc) is None


class TestSetProjectVersion:
    def test_project_table(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert set_project_version(sample_toml_doc, "2.1.0")
        assert get_project_version(sample_toml_doc) == "2.1.0"

    def test_poetry_table(self) -> None:
        doc = tomlkit.parse('[tool.poetry]\nname = "x"\nversion = "0.3.1"\n')
        assert set_project_version(doc, "0.4.0")
        assert doc["tool"]["poetry"]["version"] == "0.4.0"

    def test_no_static_version(self) -> None:
        doc = tomlkit.parse('[project]\nname = "x"\n')
        assert not set_project_version(doc, "1.0.0")
        assert "version" not in doc["project"]


class TestGetToolTable:
    def test_returns_plain_values(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        table = get_tool_table(sample_toml_doc, "modver")
        assert table == {"tag-prefix": "release-", "push_retries": 5}
        assert type(table["push_retries"]) is int

    def test_missing_table(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_tool_table(sample_toml_doc, "other") == {}
