#!/usr/bin/env python3
"""Command-line interface for the job status pipeline."""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import DATABASE_FILE, METRICS_FILE
from ..database import JobDatabase
from ..exceptions import ConfigurationError, FetchError
from .config import PipelineConfig
from .orchestrator import JobStatusPipeline


def setup_logging(verbosity: int, default_level: str = "INFO"):
    """Set the root log level from the verbosity flag or the configured level."""
    if verbosity:
        levels = [logging.WARNING, logging.INFO, logging.DEBUG]
        level = levels[min(verbosity, len(levels) - 1)]
    else:
        level = getattr(logging, default_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="Gmail Job Application Tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default configuration
  %(prog)s run

  # Run with custom config file and at most 20 emails
  %(prog)s run --config my_config.yaml --limit 20

  # Generate sample configuration
  %(prog)s generate-config --output my_config.yaml

  # Show tracked applications
  %(prog)s list-jobs
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the ingestion pipeline")
    run_parser.add_argument("--config", "-c", type=str, help="Path to configuration YAML file")
    run_parser.add_argument("--query", type=str, help="Override Gmail query")
    run_parser.add_argument("--limit", type=int, help="Maximum number of emails to dispatch")
    run_parser.add_argument("--workers", type=int, help="Number of concurrent email workers")
    run_parser.add_argument(
        "--grace-period", type=float, help="Seconds to wait for in-flight emails when stopping"
    )
    run_parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    )

    # Generate config command
    config_parser = subparsers.add_parser(
        "generate-config", help="Generate a sample configuration file"
    )
    config_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="pipeline_config.yaml",
        help="Output path for configuration file",
    )

    # Validate config command
    validate_parser = subparsers.add_parser("validate-config", help="Validate a configuration file")
    validate_parser.add_argument("config", type=str, help="Path to configuration file to validate")

    # List jobs command
    jobs_parser = subparsers.add_parser("list-jobs", help="List tracked job applications")
    jobs_parser.add_argument(
        "--database", type=str, default=DATABASE_FILE, help="Path to the job database"
    )

    # Show metrics command
    metrics_parser = subparsers.add_parser("show-metrics", help="Show metrics from the last run")
    metrics_parser.add_argument(
        "--file", type=str, default=METRICS_FILE, help="Path to metrics file"
    )

    return parser


def load_config(args) -> PipelineConfig:
    """Load configuration and apply command-line overrides."""
    if args.config:
        config = PipelineConfig.from_yaml(args.config)
        logging.info(f"Loaded configuration from {args.config}")
    else:
        config = PipelineConfig.from_env()
        logging.info("Using configuration from environment")

    if args.query:
        config.fetch.gmail_query = args.query
    if args.limit is not None:
        config.fetch.max_emails = args.limit
    if args.workers is not None:
        config.concurrency.max_workers = args.workers
    if args.grace_period is not None:
        config.concurrency.shutdown_grace_period = args.grace_period

    return config.validate()


def run_pipeline(args):
    """Run the ingestion pipeline until the mailbox or the safety bound is exhausted."""
    try:
        config = load_config(args)
    except (OSError, ConfigurationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1
    setup_logging(args.verbose, config.monitoring.log_level)

    pipeline = JobStatusPipeline(config)
    try:
        result = pipeline.run()
    except KeyboardInterrupt:
        print("\nInterrupted, stopping pipeline...", file=sys.stderr)
        result = pipeline.stop()
    except FetchError as e:
        print(f"Could not fetch emails: {e}", file=sys.stderr)
        return 1
    finally:
        pipeline.close()

    if result is None:
        return 1

    print("\n" + "=" * 60)
    print("PIPELINE RUN COMPLETE")
    print("=" * 60)
    print(f"Run ID: {result.run_id}")
    print(f"Duration: {(result.end_time - result.start_time).total_seconds():.2f} seconds")
    print(f"Stop reason: {result.stop_reason.value if result.stop_reason else 'n/a'}")
    print(f"Emails dispatched: {result.dispatched}")
    print(f"Jobs created: {result.created}")
    print(f"Jobs updated: {result.updated}")
    print(f"Ignored: {result.ignored}")
    print(f"Failed: {result.failed}")
    if result.abandoned:
        print(f"Abandoned at shutdown: {result.abandoned}")

    if result.errors:
        print(f"\nErrors: {len(result.errors)}")
        for error in result.errors[:5]:
            print(f"  - {error}")
        if len(result.errors) > 5:
            print(f"  ... and {len(result.errors) - 5} more")

    print("=" * 60)

    return 0 if result.failed == 0 else 1


def generate_config(args):
    """Generate a sample configuration file."""
    config = PipelineConfig()
    config.to_yaml(args.output)
    print(f"Generated configuration file: {args.output}")

    print("\nEdit the configuration file to customize:")
    print("  - Gmail query and the per-run email limit")
    print("  - LLM service (OpenAI or Ollama) and classification rate limit")
    print("  - Worker pool size and shutdown grace period")
    print("  - Database and metrics paths")

    return 0


def validate_config(args):
    """Validate a configuration file."""
    try:
        config = PipelineConfig.from_yaml(args.config).validate()
    except (OSError, ConfigurationError) as e:
        print(f"✗ Configuration file is invalid: {e}", file=sys.stderr)
        return 1

    print(f"✓ Configuration file is valid: {args.config}")
    print("\nConfiguration summary:")
    print(f"  Gmail query: {config.fetch.gmail_query}")
    print(f"  Max emails per run: {config.fetch.max_emails}")
    print(f"  LLM: {config.classify.llm_service} ({config.classify.model})")
    print(
        f"  Rate limit: {config.classify.rate_limit_permits} per "
        f"{config.classify.rate_limit_period:g}s"
    )
    print(f"  Workers: {config.concurrency.max_workers}")
    print(f"  Database: {config.persist.database_path}")
    return 0


def list_jobs(args):
    """Print every tracked job application."""
    database = JobDatabase(database_file=args.database)
    try:
        jobs = database.get_all_jobs()
    finally:
        database.close()

    if not jobs:
        print("No job applications tracked yet")
        return 0

    width = max(len(job.name) for job in jobs)
    for job in jobs:
        print(f"{job.id:>4}  {job.name:<{width}}  {job.status.value}")
    return 0


def show_metrics(args):
    """Show metrics from the last run."""
    metrics_path = Path(args.file)

    if not metrics_path.exists():
        print(f"Metrics file not found: {args.file}", file=sys.stderr)
        return 1

    try:
        with open(metrics_path) as f:
            metrics = json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read metrics: {e}", file=sys.stderr)
        return 1

    print("=" * 60)
    print("RUN METRICS")
    print("=" * 60)
    print(f"Report date: {metrics.get('report_date', 'N/A')}")
    print(f"Total emails: {metrics.get('total_emails', 0)}")
    print(f"Average processing time: {metrics.get('average_processing_time', 0):.2f}s")

    if metrics.get("outcomes"):
        print("\nOutcomes:")
        for outcome, count in metrics["outcomes"].items():
            print(f"  {outcome}: {count}")

    if metrics.get("companies"):
        print("\nCompanies:")
        for company in metrics["companies"]:
            print(f"  {company}")

    print("=" * 60)
    return 0


def main(argv=None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "run":
        return run_pipeline(args)
    elif args.command == "generate-config":
        return generate_config(args)
    elif args.command == "validate-config":
        return validate_config(args)
    elif args.command == "list-jobs":
        return list_jobs(args)
    elif args.command == "show-metrics":
        return show_metrics(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
