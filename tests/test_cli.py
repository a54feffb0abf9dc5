"""CLI tests for vaultlink.

Covers every command with:
- One happy path per command
- The main error case per command
- Parametrized --help checks

Design:
- Uses fixtures from conftest.py (tmp_vault, sample_vault, runner)
- build_registry is patched so no command touches the network
- Tests BEHAVIORS not implementations
"""

import json
from unittest.mock import patch

import pytest

from conftest import FakeAIProvider, FakeKnowledgeProvider, entry, suggestion
from vaultlink import __version__ as VAULTLINK_VERSION
from vaultlink.cli import cli
from vaultlink.knowledge.registry import KnowledgeRegistry


ALL_COMMANDS = ["lookup", "note", "providers", "suggest", "link", "batch"]


@pytest.fixture
def fake_registry():
    """Registry with fake sources and a fake AI backend, returned by build_registry."""
    registry = KnowledgeRegistry(
        providers=[
            FakeKnowledgeProvider("wikipedia", [entry("Rust", description="Programming language")]),
            FakeKnowledgeProvider("github", error="rate limited"),
        ],
        ai_providers=[
            FakeAIProvider(
                "fake",
                suggestions={"people/ada.md": [suggestion("Project Phoenix", 0.92), suggestion("Project Atlas", 0.2)]},
            )
        ],
    )
    with patch("vaultlink.cli.build_registry", return_value=registry):
        yield registry


# ─────────────────────────────────────────────────────────────────────────────
# Group
# ─────────────────────────────────────────────────────────────────────────────


class TestGroup:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert VAULTLINK_VERSION in result.output

    @pytest.mark.parametrize("command", ALL_COMMANDS)
    def test_help(self, runner, command):
        result = runner.invoke(cli, [command, "--help"])

        assert result.exit_code == 0
        assert "Usage:" in result.output


# ─────────────────────────────────────────────────────────────────────────────
# lookup / note / providers
# ─────────────────────────────────────────────────────────────────────────────


class TestLookup:
    def test_text_output(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["lookup", "Rust"])

        assert result.exit_code == 0, result.output
        assert "1. Rust [wikipedia]" in result.output
        assert "   About Rust" in result.output
        assert "https://example.org/Rust" in result.output

    def test_json_output(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["lookup", "Rust", "--json"])

        data = json.loads(result.output)
        assert data["success"] is True
        assert data["entries"][0]["metadata"] == {"description": "Programming language"}

    def test_provider_failure(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["lookup", "tokio", "-p", "github"])

        assert result.exit_code == 1
        assert "rate limited" in result.output

    def test_no_results(self, runner, tmp_vault, fake_registry):
        fake_registry.get_provider("wikipedia").entries = []

        result = runner.invoke(cli, ["lookup", "zzz"])

        assert result.exit_code == 0
        assert "No results for 'zzz'." in result.output

    def test_empty_query(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["lookup", " "])
        assert result.exit_code == 1


class TestNote:
    def test_creates_note(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["note", "Rust"])

        assert result.exit_code == 0, result.output
        assert "Created References/Rust.md" in result.output
        assert (tmp_vault / "References/Rust.md").exists()

    def test_dry_run_prints_content(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["note", "Rust", "--dry-run", "--style", "minimal"])

        assert result.exit_code == 0
        assert "Would create References/Rust.md" in result.output
        assert "[Source](https://example.org/Rust)" in result.output
        assert not (tmp_vault / "References/Rust.md").exists()

    def test_existing_note(self, runner, tmp_vault, fake_registry):
        runner.invoke(cli, ["note", "Rust"])

        result = runner.invoke(cli, ["note", "Rust"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_vault_option(self, runner, tmp_path, fake_registry, monkeypatch):
        monkeypatch.delenv("VAULTLINK_VAULT_ROOT", raising=False)
        other = tmp_path / "other"
        other.mkdir()

        result = runner.invoke(cli, ["--vault", str(other), "note", "Rust", "--path", "x.md"])

        assert result.exit_code == 0, result.output
        assert (other / "x.md").exists()


class TestProviders:
    def test_lists(self, runner, tmp_vault, fake_registry):
        result = runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        assert "Knowledge sources:\n  - wikipedia\n  - github" in result.output
        assert "AI backends:\n  - fake" in result.output

    def test_json_with_check(self, runner, tmp_vault, fake_registry):
        fake_registry.get_provider("github").available = False

        result = runner.invoke(cli, ["providers", "--json", "--check"])

        data = json.loads(result.output)
        assert data["knowledge"] == {"wikipedia": True, "github": False}
        assert data["ai"] == {"fake": True}
        assert data["cache"]["enabled"] is True


# ─────────────────────────────────────────────────────────────────────────────
# suggest / link / batch
# ─────────────────────────────────────────────────────────────────────────────


class TestSuggest:
    def test_lists_suggestions(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "people/ada.md", "-p", "fake"])

        assert result.exit_code == 0, result.output
        assert "- [[Project Phoenix]] (92%)" in result.output
        assert "Project Atlas" not in result.output

    def test_apply(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "people/ada.md", "-p", "fake", "--apply"])

        assert result.exit_code == 0
        assert "## Link Changes Preview (1 insertions)" in result.output
        assert "[[Project Phoenix]]" in (sample_vault / "people/ada.md").read_text()

    def test_dry_run_writes_nothing(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "people/ada.md", "-p", "fake", "--dry-run"])

        assert result.exit_code == 0
        assert "Link Changes Preview" in result.output
        assert "[[" not in (sample_vault / "people/ada.md").read_text()

    def test_json(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "people/ada.md", "-p", "fake", "--json", "--min-confidence", "0.1"])

        data = json.loads(result.output)
        assert data["path"] == "people/ada.md"
        assert [s["target_note"] for s in data["suggestions"]] == ["Project Phoenix", "Project Atlas"]

    def test_no_suggestions(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "Project Atlas.md", "-p", "fake"])

        assert result.exit_code == 0
        assert "No link suggestions above the confidence threshold." in result.output

    def test_no_provider_selected(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "people/ada.md"])

        assert result.exit_code == 1
        assert "No AI provider selected" in result.output

    def test_missing_note(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["suggest", "nope.md", "-p", "fake"])

        assert result.exit_code == 1
        assert "Document not found: nope.md" in result.output

    def test_provider_from_config_file(self, runner, sample_vault, fake_registry):
        (sample_vault / ".vaultlink.yaml").write_text("ai_provider: ollama\n")

        result = runner.invoke(cli, ["suggest", "people/ada.md"])

        assert result.exit_code == 1
        assert "Unknown AI provider: ollama" in result.output


class TestLink:
    def test_links_targets(self, runner, sample_vault):
        result = runner.invoke(cli, ["link", "people/ada.md", "Project Atlas"])

        assert result.exit_code == 0, result.output
        assert '- Line 1: "Project Atlas" -> [[Project Atlas]]' in result.output
        assert "[[Project Atlas]]" in (sample_vault / "people/ada.md").read_text()

    def test_dry_run(self, runner, sample_vault):
        result = runner.invoke(cli, ["link", "people/ada.md", "Project Atlas", "--dry-run"])

        assert "(dry run, nothing written)" in result.output
        assert "[[" not in (sample_vault / "people/ada.md").read_text()

    def test_nothing_to_link(self, runner, sample_vault):
        result = runner.invoke(cli, ["link", "people/ada.md", "Nonexistent Topic"])

        assert result.exit_code == 0
        assert "No links to insert." in result.output

    def test_requires_targets(self, runner, sample_vault):
        result = runner.invoke(cli, ["link", "people/ada.md"])
        assert result.exit_code == 2

    def test_missing_vault(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("VAULTLINK_VAULT_ROOT", str(tmp_path / "missing"))

        result = runner.invoke(cli, ["link", "a.md", "X"])

        assert result.exit_code == 1
        assert "Vault directory does not exist" in result.output


class TestBatch:
    def test_report(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["batch", "-p", "fake"])

        assert result.exit_code == 0, result.output
        assert "## Batch Link Suggestions" in result.output
        assert "- Processed: 4 files" in result.output
        assert "### people/ada.md" in result.output
        assert "Batch Link Application" not in result.output

    def test_dry_run(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["batch", "-p", "fake", "--dry-run"])

        assert "## Batch Link Application (dry run)" in result.output
        assert "- people/ada.md: 1 links inserted" in result.output
        assert "[[" not in (sample_vault / "people/ada.md").read_text()

    def test_apply_json(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["batch", "-p", "fake", "--apply", "--json", "--concurrency", "2"])

        data = json.loads(result.output)
        assert data["applied"]["total_inserted"] == 1
        assert data["dry_run"] is False
        assert "[[Project Phoenix]]" in (sample_vault / "people/ada.md").read_text()

    def test_exclude(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["batch", "-p", "fake", "--exclude", "people", "--json"])

        data = json.loads(result.output)
        assert "people/ada.md" not in [item["path"] for item in data["suggestions"]["items"]]

    def test_missing_folder(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["batch", "nope", "-p", "fake"])

        assert result.exit_code == 1
        assert "Folder not found: nope" in result.output

    def test_invalid_concurrency(self, runner, sample_vault, fake_registry):
        result = runner.invoke(cli, ["batch", "-p", "fake", "--concurrency", "0"])
        assert result.exit_code == 2
