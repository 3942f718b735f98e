"""Metrics and run results tracking."""

import csv
import json
import logging
import threading
from collections import Counter
from datetime import datetime
from typing import Dict, Optional

from .config import METRICS_FILE, RESULTS_FILE
from .models import OutcomeKind, PipelineOutcome


class MetricsTracker:
    """Tracks per-item pipeline outcomes. Safe to call from worker threads."""

    def __init__(self):
        """Initialize metrics tracker."""
        self.results = []
        self._lock = threading.Lock()

    def add_outcome(self, outcome: PipelineOutcome, processing_time: Optional[float] = None):
        """Add a pipeline outcome entry."""
        entry = {
            "message_id": outcome.message_id,
            "outcome": outcome.kind.value,
            "company": outcome.company or "",
            "reason": (outcome.reason or "")[:200],
            "processing_time": round(processing_time, 3) if processing_time is not None else None,
            "timestamp": datetime.now().isoformat(),
        }
        with self._lock:
            self.results.append(entry)

    def outcome_counts(self) -> Dict[str, int]:
        """Return the number of items per outcome kind, zeros included."""
        with self._lock:
            counts = Counter(r["outcome"] for r in self.results)
        return {kind.value: counts.get(kind.value, 0) for kind in OutcomeKind}

    def calculate_metrics(self) -> Dict:
        """Calculate summary metrics from recorded outcomes."""
        with self._lock:
            results = list(self.results)
        if not results:
            return {}

        processing_times = [r["processing_time"] for r in results if r.get("processing_time")]
        avg_time = sum(processing_times) / len(processing_times) if processing_times else 0
        companies = sorted({r["company"] for r in results if r["company"]})

        return {
            "total_emails": len(results),
            "outcomes": self.outcome_counts(),
            "companies": companies,
            "average_processing_time": round(avg_time, 3),
            "report_date": datetime.now().isoformat(),
        }

    def save_results(self, output_file: str = RESULTS_FILE, summary_file: str = METRICS_FILE):
        """Save per-item results to CSV and the summary to JSON."""
        with self._lock:
            results = list(self.results)
        if not results:
            logging.warning("No results to save")
            return None

        with open(output_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=results[0].keys())
            writer.writeheader()
            writer.writerows(results)
        logging.info(f"Run results saved to {output_file}")

        metrics = self.calculate_metrics()
        with open(summary_file, "w") as f:
            json.dump(metrics, f, indent=2)
        logging.info(f"Run summary saved to {summary_file}")

        return metrics

    def reset(self):
        with self._lock:
            self.results = []
