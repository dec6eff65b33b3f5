"""Tests for the safeguard checks and trust scoring."""

import os

import pytest

from skillli.models import RatingInfo, RegistryEntry, Severity
from skillli.parser import parse_skill_content
from skillli.safeguards import (
    check_file_size,
    check_line_count,
    check_prohibited_patterns,
    check_schema,
    check_script_safety,
    compute_trust_score,
    run_safeguards,
)


# -- Helpers ----------------------------------------------------------------

def _skill(extra_frontmatter: str = "", body: str = "# Demo\n\nClean instructions."):
    return parse_skill_content(
        f"---\nname: demo\ndescription: A demo skill\n{extra_frontmatter}---\n{body}"
    )


_FULL_FRONTMATTER = (
    "version: 1.0.0\n"
    "author: alice\n"
    "license: MIT\n"
    "repository: https://github.com/alice/demo\n"
)


# -- Individual checks ------------------------------------------------------

class TestChecks:
    """Each check in isolation."""

    def test_schema_always_passes(self):
        check = check_schema(_skill())
        assert check.passed
        assert check.severity == Severity.INFO

    def test_line_count(self):
        assert check_line_count("\n".join(["x"] * 500)).passed
        check = check_line_count("\n".join(["x"] * 501))
        assert not check.passed
        assert check.severity == Severity.WARNING
        assert "501" in check.message

    def test_eval_detected(self):
        check = check_prohibited_patterns('run this: eval("x") now')
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert "eval()" in check.message

    def test_clean_text_passes(self):
        check = check_prohibited_patterns("Review the code and evaluate the results.")
        assert check.passed
        assert check.severity == Severity.INFO

    @pytest.mark.parametrize(
        "text,label",
        [
            ("exec(code)", "exec()"),
            ("execSync('ls')", "execSync()"),
            ("require('child_process')", "child_process"),
            ("subprocess.run(['ls'])", "subprocess"),
            ("rm -rf /", "rm -rf /"),
            ('password = "hunter2"', "hardcoded password"),
            ("api_key: 'sk-123'", "hardcoded API key"),
            ("A" * 120, "large base64 blob"),
        ],
    )
    def test_each_pattern(self, text, label):
        check = check_prohibited_patterns(text)
        assert not check.passed
        assert label in check.message

    def test_all_matches_listed(self):
        check = check_prohibited_patterns('eval(x); exec(y); password = "p"')
        assert "eval()" in check.message
        assert "exec()" in check.message
        assert "hardcoded password" in check.message


class TestDirectoryChecks:
    """Checks that read the skill bundle from disk."""

    def test_no_scripts_dir(self, make_skill_dir):
        check = check_script_safety(make_skill_dir())
        assert check.passed

    def test_allowed_scripts(self, make_skill_dir):
        skill_dir = make_skill_dir(
            files={"scripts/run.sh": "echo hi", "scripts/sub/tool.py": "print(1)"}
        )
        assert check_script_safety(skill_dir).passed

    def test_disallowed_script(self, make_skill_dir):
        skill_dir = make_skill_dir(files={"scripts/run.sh": "", "scripts/payload.exe": b"\x00"})
        check = check_script_safety(skill_dir)
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert "payload.exe" in check.message
        assert "run.sh" not in check.message

    def test_file_size_within_limit(self, make_skill_dir):
        assert check_file_size(make_skill_dir()).passed

    def test_file_size_exceeded(self, make_skill_dir):
        skill_dir = make_skill_dir(files={"assets/big.bin": b"\x00" * (5 * 1024 * 1024 + 1)})
        check = check_file_size(skill_dir)
        assert not check.passed
        assert check.severity == Severity.WARNING

    def test_file_size_ignores_vcs_and_deps(self, make_skill_dir):
        skill_dir = make_skill_dir(
            files={
                ".git/objects/pack.bin": b"\x00" * (3 * 1024 * 1024),
                "node_modules/dep/index.js": b"\x00" * (3 * 1024 * 1024),
            }
        )
        assert check_file_size(skill_dir).passed

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_broken_symlink_does_not_raise(self, make_skill_dir):
        skill_dir = make_skill_dir()
        os.symlink(skill_dir / "nowhere.txt", skill_dir / "dangling.txt")

        check = check_file_size(skill_dir)
        assert check.passed

        result = run_safeguards(_skill(), skill_dir)
        assert result.passed
        assert "file-size" in [c.name for c in result.checks]


# -- Aggregate --------------------------------------------------------------

class TestRunSafeguards:
    """Overall verdict."""

    def test_clean_skill_passes(self):
        result = run_safeguards(_skill())
        assert result.passed
        assert [c.name for c in result.checks] == [
            "schema-validation",
            "line-count",
            "prohibited-patterns",
        ]

    def test_warnings_never_block(self):
        result = run_safeguards(_skill(body="\n".join(["line"] * 600)))
        assert result.passed
        assert any(not c.passed and c.severity == Severity.WARNING for c in result.checks)

    def test_error_blocks(self):
        result = run_safeguards(_skill(body='eval("x")'))
        assert not result.passed

    def test_frontmatter_is_scanned(self):
        result = run_safeguards(_skill(extra_frontmatter='api_key: "sk-live-123"\n'))
        assert not result.passed

    def test_directory_checks_included(self, make_skill_dir):
        skill_dir = make_skill_dir(name="demo", files={"scripts/x.bat": "@echo off"})
        result = run_safeguards(_skill(), skill_dir)
        names = [c.name for c in result.checks]
        assert "script-safety" in names
        assert "file-size" in names
        assert not result.passed

    def test_score_matches_trust_score(self):
        skill = _skill(_FULL_FRONTMATTER)
        assert run_safeguards(skill).score == compute_trust_score(skill)


# -- Trust score ------------------------------------------------------------

class TestTrustScore:
    """Additive 0-100 heuristic."""

    def test_minimal_clean_skill(self):
        # clean patterns + line count
        assert compute_trust_score(_skill()) == 35

    def test_full_metadata(self):
        assert compute_trust_score(_skill(_FULL_FRONTMATTER)) == 65

    def test_trust_level_applied_once(self):
        verified = compute_trust_score(_skill("trust-level: verified\n"))
        official = compute_trust_score(_skill("trust-level: official\n"))
        assert verified == 35 + 15
        assert official == 35 + 20

    def test_registry_signals(self):
        entry = RegistryEntry(
            name="demo",
            description="d",
            downloads=1500,
            rating=RatingInfo(average=4.0, count=3, distribution=[0, 0, 0, 3, 0]),
        )
        assert compute_trust_score(_skill(), entry) == 35 + 15 + 10

    def test_low_rating_no_bonus(self):
        entry = RegistryEntry(name="demo", description="d", downloads=101)
        assert compute_trust_score(_skill(), entry) == 35 + 5

    def test_capped_at_100(self):
        entry = RegistryEntry(
            name="demo",
            description="d",
            downloads=5000,
            rating=RatingInfo(average=5.0, count=1, distribution=[0, 0, 0, 0, 1]),
        )
        skill = _skill(_FULL_FRONTMATTER + "trust-level: official\n")
        assert compute_trust_score(skill, entry) == 100

    def test_monotonic(self):
        steps = [
            "",
            "repository: https://github.com/a/b\n",
            "repository: https://github.com/a/b\nlicense: MIT\n",
            "repository: https://github.com/a/b\nlicense: MIT\nversion: 1.0.0\n",
            _FULL_FRONTMATTER,
            _FULL_FRONTMATTER + "trust-level: verified\n",
            _FULL_FRONTMATTER + "trust-level: official\n",
        ]
        scores = [compute_trust_score(_skill(fm)) for fm in steps]
        assert scores == sorted(scores)
        assert all(0 <= s <= 100 for s in scores)

    def test_unsafe_body_loses_points(self):
        assert compute_trust_score(_skill(body='eval("x")')) == 15
