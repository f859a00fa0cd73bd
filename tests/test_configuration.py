"""Tests for depscope.config.configuration (loading and staleness)."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from conftest import FakeRuleLoader, write

from depscope.config.configuration import has_config, load_configuration, normalize_root
from depscope.model import CONFIG, CONFIG_NAMES, DEFAULT_MAX_ERRORS

if TYPE_CHECKING:
    from pathlib import Path


class TestNormalizeRoot:
    def test_strips_prefix_and_separators(self) -> None:
        assert normalize_root("  ./bin/classes/ ") == "bin/classes"
        assert normalize_root("bin\\classes\\") == "bin/classes"
        assert normalize_root("bin") == "bin"


class TestLoadConfiguration:
    def test_no_configuration_is_inactive(self, tmp_path: Path) -> None:
        """Without a configuration file nothing is active, but every name is tracked."""
        config = load_configuration(tmp_path, FakeRuleLoader())

        assert not config.is_active
        assert not has_config(tmp_path)
        assert config.scopes == ()
        assert config.max_errors == DEFAULT_MAX_ERRORS
        for name in CONFIG_NAMES:
            assert (tmp_path / name) in config.fingerprints

    def test_creating_configuration_makes_it_stale(self, tmp_path: Path) -> None:
        config = load_configuration(tmp_path, FakeRuleLoader())
        write(tmp_path, ".depscope", "bin\n")
        assert not config.is_up_to_date()

    def test_all_files_contribute_scopes(self, tmp_path: Path) -> None:
        """Scopes from every present configuration file are kept in file order."""
        write(tmp_path, "depscope.conf", "--scope a --classes bin/a\n")
        write(tmp_path, "depscope.yml", "scopes:\n  - name: b\n    classes: bin/b\n")
        config = load_configuration(tmp_path, FakeRuleLoader())

        assert config.sources == ("depscope.conf", "depscope.yml")
        assert [s.name for s in config.scopes] == ["a", "b"]
        assert config.scopes[1].source == "depscope.yml"

    def test_undecodable_file_is_reported(self, tmp_path: Path) -> None:
        """Bytes that are not UTF-8 give a config diagnostic; the file still activates checking."""
        (tmp_path / "depscope.conf").write_bytes(b"\xff\xfe")
        config = load_configuration(tmp_path, FakeRuleLoader())

        assert config.is_active
        assert config.scopes == ()
        assert len(config.errors) == 1
        error = config.errors[0]
        assert error.resource == "depscope.conf"
        assert error.kind == CONFIG
        assert (error.offset, error.length) == (0, 1)
        assert error.message.startswith("Cannot decode depscope.conf as UTF-8")

    def test_delete_and_restore_round_trip(self, tmp_path: Path) -> None:
        """Deleting a rules file is a change; restoring it is another."""
        rules = write(tmp_path, "rules/core.jdep", "core")
        write(tmp_path, "depscope.conf", "bin\n  rules/core.jdep\n")
        first = load_configuration(tmp_path, FakeRuleLoader())
        assert first.scopes[0].rule_sets[0].fragments == ("core.jdep",)

        rules.unlink()
        assert not first.is_up_to_date()
        second = load_configuration(tmp_path, FakeRuleLoader())
        assert second.scopes[0].rule_sets[0].fragments == ()
        assert second.is_up_to_date()

        write(tmp_path, "rules/core.jdep", "core")
        assert not second.is_up_to_date()
        third = load_configuration(tmp_path, FakeRuleLoader())
        assert third.scopes[0].rule_sets[0].fragments == ("core.jdep",)

    def test_new_file_in_rules_dir_is_a_change(self, tmp_path: Path) -> None:
        """Rule directories are fingerprinted, so adding a file is detected."""
        rules_dir = tmp_path / "rules"
        write(tmp_path, "rules/a.jdep", "a")
        os.utime(rules_dir, ns=(1_000_000_000, 1_000_000_000))
        write(tmp_path, "depscope.conf", "--scope s --classes bin --rules-dir rules\n")
        config = load_configuration(tmp_path, FakeRuleLoader())

        write(tmp_path, "rules/b.jdep", "b")
        assert not config.is_up_to_date()

    def test_rules_subdirs(self, tmp_path: Path) -> None:
        write(tmp_path, "rules/one/a.jdep", "a")
        write(tmp_path, "rules/two/b.jdep", "b")
        write(tmp_path, "rules/top.jdep", "ignored")
        write(tmp_path, "depscope.conf", "--scope s --classes bin --rules-subdirs rules\n")
        config = load_configuration(tmp_path, FakeRuleLoader())

        assert config.scopes[0].rule_sets[0].fragments == ("a.jdep", "b.jdep")

    def test_scopes_compare_by_identity(self, tmp_path: Path) -> None:
        write(tmp_path, "depscope.conf", "bin\n")
        a = load_configuration(tmp_path, FakeRuleLoader()).scopes[0]
        b = load_configuration(tmp_path, FakeRuleLoader()).scopes[0]
        assert a != b
        assert a == a  # noqa: PLR0124
