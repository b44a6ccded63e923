"""Build orchestration."""

from candle_builder.pipeline.orchestrator import BuildResult, CandleBuilder, build_all, run_build

__all__ = ["BuildResult", "CandleBuilder", "build_all", "run_build"]
