"""Tests for MetricsTracker."""

import csv
import json

from job_tracker.metrics import MetricsTracker
from job_tracker.models import PipelineOutcome


class TestMetricsTracker:
    def test_outcome_counts_include_zeros(self, metrics_tracker):
        metrics_tracker.add_outcome(PipelineOutcome.created("Acme", message_id="m1"), 0.5)
        metrics_tracker.add_outcome(PipelineOutcome.ignored(message_id="m2"))

        assert metrics_tracker.outcome_counts() == {
            "created": 1,
            "updated": 0,
            "ignored": 1,
            "failed": 0,
        }

    def test_calculate_metrics(self, metrics_tracker):
        metrics_tracker.add_outcome(PipelineOutcome.created("Globex", message_id="m1"), 1.0)
        metrics_tracker.add_outcome(PipelineOutcome.updated("Acme", message_id="m2"), 3.0)
        metrics_tracker.add_outcome(PipelineOutcome.failed("timeout", message_id="m3"))

        metrics = metrics_tracker.calculate_metrics()

        assert metrics["total_emails"] == 3
        assert metrics["companies"] == ["Acme", "Globex"]
        assert metrics["average_processing_time"] == 2.0
        assert metrics["outcomes"]["failed"] == 1

    def test_calculate_metrics_empty(self):
        assert MetricsTracker().calculate_metrics() == {}

    def test_save_results(self, metrics_tracker, tmp_path):
        results_file = tmp_path / "results.csv"
        summary_file = tmp_path / "summary.json"
        metrics_tracker.add_outcome(PipelineOutcome.created("Acme", message_id="m1"), 0.25)

        metrics = metrics_tracker.save_results(str(results_file), str(summary_file))

        with open(results_file, newline="") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["message_id"] == "m1"
        assert rows[0]["outcome"] == "created"
        with open(summary_file) as f:
            assert json.load(f) == metrics

    def test_save_results_without_results(self, tmp_path):
        assert MetricsTracker().save_results(str(tmp_path / "r.csv"), str(tmp_path / "s.json")) is None
        assert not (tmp_path / "r.csv").exists()

    def test_reset(self, metrics_tracker):
        metrics_tracker.add_outcome(PipelineOutcome.ignored(message_id="m1"))

        metrics_tracker.reset()

        assert metrics_tracker.results == []
