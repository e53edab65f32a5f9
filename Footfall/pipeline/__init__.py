from .orchestrator import (
    ForecastPipeline,
    PipelineConfig,
    PipelineResult,
    compare_strategies,
    report_table,
    run_pipeline,
)
from .report_types import StageLog, StageRecord

__all__ = [
    "ForecastPipeline",
    "PipelineConfig",
    "PipelineResult",
    "compare_strategies",
    "report_table",
    "run_pipeline",
    "StageLog",
    "StageRecord",
]
