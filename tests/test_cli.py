"""Test cli — Growth Engine."""
from __future__ import annotations

import json

import pytest

try:
    from growth_engine import __version__
    from growth_engine.cli import MODULE_REGISTRY, main
    HAS_MODULE = True
except ImportError:
    HAS_MODULE = False

pytestmark = pytest.mark.skipif(
    not HAS_MODULE, reason="cli module not available"
)


# ===================================================================
# Special commands
# ===================================================================

class TestSpecialCommands:

    def test_banner(self, capsys):
        assert main([]) == 0
        out = capsys.readouterr().out
        for name in MODULE_REGISTRY:
            assert name in out

    def test_version_json(self, capsys):
        assert main(["--json", "version"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["version"] == __version__

    def test_status_json(self, capsys):
        assert main(["--json", "status"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["modules"]["engagement"] is True
        assert data["ab_tests"] >= data["ab_active"]

    def test_unknown_command(self, capsys):
        assert main(["--no-color", "abc"]) == 2
        out = capsys.readouterr().out
        assert "Unknown command: abc" in out
        assert "Did you mean: ab?" in out


# ===================================================================
# Delegation
# ===================================================================

class TestDelegation:

    def test_engagement_thresholds(self, capsys):
        assert main(["engagement", "thresholds"]) == 0
        assert "soft-member" in capsys.readouterr().out

    def test_json_flag_scoped_to_special_commands(self, capsys):
        main([])
        assert "JSON output for status and version" in capsys.readouterr().out
        assert main(["--json", "engagement", "thresholds"]) == 0
        assert "min_score" in capsys.readouterr().out

    def test_select_show_unknown_cta(self):
        assert main(["select", "show", "nope"]) == 1

    def test_module_without_command_prints_help(self, capsys):
        assert main(["behavior"]) == 0
        assert "simulate" in capsys.readouterr().out

    def test_bad_arguments_are_usage_errors(self):
        assert main(["select", "ctas"]) == 2
