# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT
# See LICENSE file in the project root for full license information.

"""CLI tests: run ``python -m guidecheck`` and check output and exit codes.

None of these need Docker; runs that reach the sandbox point DOCKER_HOST
at a socket that doesn't exist.
"""

import pytest
import yaml

from guidecheck import naming
from tests.conftest import run_guidecheck

NO_DOCKER = {"DOCKER_HOST": "unix:///nonexistent/docker.sock"}


@pytest.fixture
def work_dir(tmp_path):
    return tmp_path / "work"


@pytest.fixture
def config_file(tmp_path, work_dir):
    path = tmp_path / "guidecheck.yml"
    path.write_text(yaml.safe_dump({"work_dir": str(work_dir)}))
    return path


class TestHelp:
    def test_lists_commands(self):
        result = run_guidecheck("--help")
        assert result.returncode == 0
        for command in ("check", "extract", "script", "preserved", "cleanup"):
            assert command in result.stdout

    def test_version(self):
        result = run_guidecheck("--version")
        assert result.returncode == 0
        assert "guidecheck" in result.stdout

    def test_missing_html_file(self, tmp_path):
        result = run_guidecheck("check", str(tmp_path / "missing.html"))
        assert result.returncode == 2
        assert "does not exist" in result.stderr


class TestExtract:
    def test_numbered_listing(self, full_guide):
        result = run_guidecheck("extract", str(full_guide))
        assert result.returncode == 0, result.stdout
        assert "Extracted commands (5)" in result.stdout
        assert "repo-signing.key.asc" in result.stdout
        assert "lsb_release -a" not in result.stdout

    def test_empty_guide_exits_1(self, tmp_path):
        path = tmp_path / "empty.html"
        path.write_text("<html><body>nothing</body></html>")
        result = run_guidecheck("extract", str(path))
        assert result.returncode == 1
        assert "No commands found" in result.stdout


class TestCheck:
    def test_static_checks_pass(self, full_guide, config_file):
        result = run_guidecheck("check", str(full_guide), "--no-docker", "--config", str(config_file))
        assert result.returncode == 0, result.stdout
        assert "Validation" in result.stdout
        assert "Static checks passed" in result.stdout
        assert "FAIL" not in result.stdout

    def test_extract_only_validates_without_assembling(self, full_guide, config_file, work_dir):
        result = run_guidecheck("check", str(full_guide), "--extract-only", "--docker", "--config", str(config_file))
        assert result.returncode == 0, result.stdout
        assert "Validation" in result.stdout
        assert "Extracted and validated 5 command(s)" in result.stdout
        assert not work_dir.exists()

    def test_extract_only_still_fails_on_danger(self, guide_file, config_file):
        path = guide_file("echo start", "sudo rm -rf /")
        result = run_guidecheck("check", str(path), "--extract-only", "--config", str(config_file))
        assert result.returncode == 1
        assert "Validation failed" in result.stdout

    def test_danger_exits_1_with_step(self, guide_file, config_file):
        path = guide_file("echo start", "sudo rm -rf /")
        result = run_guidecheck("check", str(path), "--config", str(config_file))
        assert result.returncode == 1
        assert "Validation failed" in result.stdout
        assert "step 2" in result.stdout

    def test_keep_script(self, full_guide, config_file, tmp_path):
        target = tmp_path / "kept.sh"
        result = run_guidecheck(
            "check", str(full_guide), "--keep-script", str(target), "--config", str(config_file)
        )
        assert result.returncode == 0, result.stdout
        assert target.read_text().startswith("#!/bin/bash\n")

    def test_launch_failure_exits_3(self, full_guide, config_file, work_dir):
        result = run_guidecheck(
            "check", str(full_guide), "--docker", "--config", str(config_file), env=NO_DOCKER
        )
        assert result.returncode == 3, result.stdout
        assert "Execution failed" in result.stdout
        scripts = list(work_dir.glob("guidecheck-*.sh"))
        assert len(scripts) == 1

    def test_invalid_config_exits_1(self, full_guide, tmp_path):
        bad = tmp_path / "bad.yml"
        bad.write_text("timeout_seconds: -1\n")
        result = run_guidecheck("check", str(full_guide), "--config", str(bad))
        assert result.returncode == 1
        assert "Configuration failed" in result.stdout


class TestScript:
    def test_script_to_stdout(self, full_guide):
        result = run_guidecheck("script", str(full_guide))
        assert result.returncode == 0, result.stderr
        assert result.stdout.startswith("#!/bin/bash\n")
        assert "Installation completed successfully!" in result.stdout

    def test_script_to_file(self, full_guide, tmp_path):
        target = tmp_path / "install.sh"
        result = run_guidecheck("script", str(full_guide), "-o", str(target))
        assert result.returncode == 0
        assert "set -e" in target.read_text()


class TestPreservedArtifacts:
    @pytest.fixture
    def leftovers(self, work_dir):
        work_dir.mkdir()
        run_id = "4194305-20250101T000000-000"
        paths = [work_dir / naming.script_filename(run_id), work_dir / naming.log_filename(run_id)]
        for path in paths:
            path.write_text("x")
        return paths

    def test_preserved_lists_files(self, leftovers, config_file):
        result = run_guidecheck("preserved", "--config", str(config_file), env=NO_DOCKER)
        assert result.returncode == 0, result.stdout
        assert "Docker unavailable" in result.stdout
        assert leftovers[0].name in result.stdout

    def test_cleanup_needs_confirmation(self, leftovers, config_file):
        result = run_guidecheck("cleanup", "--config", str(config_file), env=NO_DOCKER, input="n\n")
        assert result.returncode == 0
        assert all(path.exists() for path in leftovers)

    def test_cleanup_yes(self, leftovers, config_file):
        result = run_guidecheck("cleanup", "--yes", "--config", str(config_file), env=NO_DOCKER)
        assert result.returncode == 0, result.stdout
        assert not any(path.exists() for path in leftovers)

    def test_cleanup_spares_run_in_progress(self, leftovers, work_dir, config_file):
        """A run whose process is alive belongs to another invocation."""
        live = work_dir / naming.script_filename(naming.generate_run_id())
        live.write_text("x")

        result = run_guidecheck("cleanup", "--yes", "--config", str(config_file), env=NO_DOCKER)

        assert result.returncode == 0, result.stdout
        assert live.exists()
        assert not any(path.exists() for path in leftovers)
