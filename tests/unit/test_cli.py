"""Unit tests for the pagetree command line."""

import json

import pytest
from typer.testing import CliRunner

from pagetree import config as config_module
from pagetree.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_sources(monkeypatch, tmp_path):
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATHS", (tmp_path / "absent.toml",))
    for name in ("STORE_FILE", "STORE_URL", "STORE_TOKEN", "ROOT", "DEPTH", "LOG_LEVEL"):
        monkeypatch.delenv(f"PAGETREE_{name}", raising=False)


@pytest.fixture
def store_file(tmp_path):
    path = tmp_path / "site.json"
    result = runner.invoke(app, ["--store", str(path), "init", "--title", "Home"])
    assert result.exit_code == 0, result.output
    return path


def invoke(store_file, *args):
    return runner.invoke(app, ["--store", str(store_file), *args])


class TestInit:
    """Test cases for the init command."""

    def test_creates_home_page_once(self, store_file):
        data = json.loads(store_file.read_text(encoding="utf-8"))
        assert [page["slug"] for page in data["pages"]] == ["/"]

        result = invoke(store_file, "init", "--title", "Other")
        assert result.exit_code == 0
        data = json.loads(store_file.read_text(encoding="utf-8"))
        assert [page["title"] for page in data["pages"]] == ["Home"]


class TestEditing:
    """Adding, renaming and removing pages through the CLI."""

    def test_add_and_tree(self, store_file):
        result = invoke(store_file, "add", "/", "--title", "About")
        assert result.exit_code == 0, result.output
        assert "Created /about (rank 1)." in result.output

        assert invoke(store_file, "add", "/about", "--title", "Team").exit_code == 0

        result = invoke(store_file, "tree", "/")
        assert result.exit_code == 0
        assert "About" in result.output
        assert "Team" in result.output

    def test_rename_cascades_and_records_redirect(self, store_file):
        invoke(store_file, "add", "/", "--title", "About")
        invoke(store_file, "add", "/about", "--title", "Team")

        result = invoke(store_file, "edit", "/about", "--title", "Company", "--slug", "/company")
        assert result.exit_code == 0, result.output
        assert "Saved /company." in result.output

        result = invoke(store_file, "redirects", "/about")
        assert result.exit_code == 0
        assert "/about -> /company" in result.output

        result = invoke(store_file, "show", "/company/team")
        assert result.exit_code == 0
        assert "200" in result.output
        assert "Team" in result.output

    def test_resume_after_rename(self, store_file):
        invoke(store_file, "add", "/", "--title", "About")
        invoke(store_file, "add", "/about", "--title", "Team")
        invoke(store_file, "edit", "/about", "--title", "Company", "--slug", "/company")

        result = invoke(store_file, "resume", "/about")
        assert result.exit_code == 0, result.output
        assert "Descendants of /company are in place." in result.output

        result = invoke(store_file, "resume", "/never")
        assert result.exit_code == 1
        assert "notfound" in result.output

    def test_remove_refuses_pages_with_children(self, store_file):
        invoke(store_file, "add", "/", "--title", "About")
        invoke(store_file, "add", "/about", "--title", "Team")

        result = invoke(store_file, "remove", "/about")
        assert result.exit_code == 1
        assert "has-children" in result.output
        assert "child page" in result.output

        result = invoke(store_file, "remove", "/about/team")
        assert result.exit_code == 0
        assert "parent is /about" in result.output

    def test_remove_home_page(self, store_file):
        result = invoke(store_file, "remove", "/")
        assert result.exit_code == 1
        assert "immutable-root" in result.output

    def test_invalid_content(self, store_file):
        result = invoke(store_file, "add", "/", "--title", "About", "--content", "[1, 2]")
        assert result.exit_code == 2


class TestLookups:
    """Commands that only read."""

    def test_show_missing_page(self, store_file):
        result = invoke(store_file, "show", "/nowhere")
        assert result.exit_code == 0
        assert "404" in result.output

    def test_tree_missing_page(self, store_file):
        result = invoke(store_file, "tree", "/nowhere")
        assert result.exit_code == 1
        assert "notfound" in result.output

    def test_unknown_redirect(self, store_file):
        result = invoke(store_file, "redirects", "/never")
        assert result.exit_code == 1
