"""Rendering of encoding plans into ffmpeg command lines."""

from ffsmart.executor.command import (
    build_audio_args,
    build_ffmpeg_args,
    build_input_args,
    build_video_args,
    describe_plan,
    is_network_source,
    select_video_filter,
)
from ffsmart.executor.pipeline import (
    PipelineBenchmark,
    PipelineCase,
    PipelineResult,
    pipeline_cases,
    write_pipeline_csv,
)

__all__ = [
    "PipelineBenchmark",
    "PipelineCase",
    "PipelineResult",
    "build_audio_args",
    "build_ffmpeg_args",
    "build_input_args",
    "build_video_args",
    "describe_plan",
    "is_network_source",
    "pipeline_cases",
    "select_video_filter",
    "write_pipeline_csv",
]
