"""Gmail job status ingestion pipeline."""

from .base import PipelineContext, PipelineRun, PipelineStage, PipelineState, StopReason
from .classify_stage import ClassifyStage
from .config import (
    ClassifyConfig,
    ConcurrencyConfig,
    FetchConfig,
    MonitoringConfig,
    PersistConfig,
    PipelineConfig,
)
from .fetcher import CursorFetcher
from .item_pipeline import ItemPipeline
from .orchestrator import JobStatusPipeline
from .persist_stage import PersistStage
from .read_stage import ReadContentStage
from .shutdown import ShutdownCoordinator

__all__ = [
    # Base classes
    "PipelineContext",
    "PipelineRun",
    "PipelineStage",
    "PipelineState",
    "StopReason",
    # Configuration
    "FetchConfig",
    "ClassifyConfig",
    "PersistConfig",
    "ConcurrencyConfig",
    "MonitoringConfig",
    "PipelineConfig",
    # Stages
    "ReadContentStage",
    "ClassifyStage",
    "PersistStage",
    # Run machinery
    "CursorFetcher",
    "ItemPipeline",
    "ShutdownCoordinator",
    "JobStatusPipeline",
]
