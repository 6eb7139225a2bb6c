"""Tests for importing keys from a legacy secrets.env file."""

from __future__ import annotations

import pathlib

import pytest

from skint_vault.secrets.errors import SymlinkRejectedError
from skint_vault.secrets.legacy import (
    LEGACY_FILES,
    cleanup_legacy_files,
    legacy_provider_keys,
    load_legacy_secrets,
)


@pytest.fixture
def secrets_env(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "secrets.env"
    path.write_text(
        "# skint secrets\n"
        "\n"
        'ZAI_API_KEY="sk-zai"\n'
        "export KIMI_API_KEY='sk-kimi'\n"
        "DEEPSEEK_API_KEY=\n"
        'OPENROUTER_API_KEY="sk-or\\$x"\n'
        "not a variable\n"
    )
    return path


class TestLoadLegacySecrets:
    def test_parses_assignments(self, secrets_env: pathlib.Path) -> None:
        variables = load_legacy_secrets(secrets_env)
        assert variables == {
            "ZAI_API_KEY": "sk-zai",
            "KIMI_API_KEY": "sk-kimi",
            "DEEPSEEK_API_KEY": "",
            "OPENROUTER_API_KEY": "sk-or$x",
        }

    def test_value_containing_equals(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "secrets.env"
        path.write_text("KIMI_API_KEY=sk-other=456\n")
        assert load_legacy_secrets(path) == {"KIMI_API_KEY": "sk-other=456"}

    def test_missing_file_raises(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_legacy_secrets(tmp_path / "secrets.env")

    def test_symlink_rejected(self, tmp_path: pathlib.Path, secrets_env: pathlib.Path) -> None:
        link = tmp_path / "link.env"
        link.symlink_to(secrets_env)
        with pytest.raises(SymlinkRejectedError):
            load_legacy_secrets(link)


class TestLegacyProviderKeys:
    def test_known_providers(self) -> None:
        keys = legacy_provider_keys({
            "ZAI_API_KEY": "sk-zai",
            "MINIMAX_API_KEY": "sk-mm",
            "MOONSHOT_API_KEY": "sk-moon",
        })
        assert keys == {"zai": "sk-zai", "minimax": "sk-mm", "moonshot": "sk-moon"}

    def test_empty_values_dropped(self) -> None:
        assert legacy_provider_keys({"ZAI_API_KEY": "", "KIMI_API_KEY": "sk-kimi"}) == {
            "kimi": "sk-kimi"
        }

    def test_openrouter(self) -> None:
        assert legacy_provider_keys({"OPENROUTER_API_KEY": "sk-or"}) == {"openrouter": "sk-or"}

    def test_custom_provider_needs_base_url(self) -> None:
        keys = legacy_provider_keys({
            "MY_LLM_API_KEY": "sk-custom",
            "SKINT_MY_LLM_API_KEY_BASE_URL": "https://llm.example/v1",
            "ORPHAN_API_KEY": "sk-orphan",
        })
        assert keys == {"my-llm": "sk-custom"}


class TestCleanupLegacyFiles:
    def test_removes_present_files(self, tmp_path: pathlib.Path) -> None:
        for filename in LEGACY_FILES:
            (tmp_path / filename).write_text("x")
        (tmp_path / "secrets.enc").write_bytes(b"keep")

        removed = cleanup_legacy_files(tmp_path)

        assert sorted(p.name for p in removed) == sorted(LEGACY_FILES)
        assert [p.name for p in tmp_path.iterdir()] == ["secrets.enc"]

    def test_nothing_to_remove(self, tmp_path: pathlib.Path) -> None:
        assert cleanup_legacy_files(tmp_path) == []
