"""Tests for the phase orchestrator."""

import pandas as pd
import pytest

import run_analysis_phases as phases


class TestBuildPhases:
    def test_models_passed_to_estimation(self):
        steps = phases.build_phases(["baseline", "addindic"])
        assert [label for label, _ in steps] == [
            "Descriptive statistics",
            "Sample construction",
            "First-stage estimation",
        ]
        assert steps[-1][1] == ["analysis.first_stage_estimation", "baseline", "addindic"]


class TestRunPhase:
    def test_failed_phase_exits(self, monkeypatch):
        """A non-zero exit code from a phase stops the run."""

        class Done:
            returncode = 1

        monkeypatch.setattr(phases.subprocess, "run", lambda cmd, env: Done())
        with pytest.raises(SystemExit, match="Phase failed"):
            phases.run_phase("Broken", ["analysis.nothing"])

    def test_pythonpath_includes_src(self, monkeypatch):
        seen = {}

        class Done:
            returncode = 0

        def fake_run(cmd, env):
            seen["cmd"] = cmd
            seen["env"] = env
            return Done()

        monkeypatch.setattr(phases.subprocess, "run", fake_run)
        phases.run_phase("EDA", ["analysis.eda"])
        assert seen["cmd"][1:] == ["-m", "analysis.eda"]
        assert str(phases.SRC_PATH) in seen["env"]["PYTHONPATH"]


class TestWriteReport:
    def test_report_sections(self, tmp_path):
        pd.DataFrame({"model": ["baseline"], "estimation_obs": [64]}).to_csv(
            tmp_path / "sample_construction_table.csv", index=False
        )
        table = pd.DataFrame({"(1)": [-0.6, 0.1]}, index=pd.Index(["beta", "se"], name="statistic"))
        table.to_csv(tmp_path / "first_stage_estimation_baseline.csv")

        path = phases.write_report({"rows_total": 64}, ["baseline", "addindic"], tmp_path)
        text = path.read_text(encoding="utf-8")

        assert '"rows_total": 64' in text
        assert "## Sample construction" in text
        assert "## First stage: baseline" in text
        assert "-0.600" in text
        assert "First stage: addindic" not in text
