"""
Voice pipeline: intent extraction, device dispatch, audio assembly, model
clients and the orchestrator that sequences them.
"""

from .intent import ControlIntent, IntentExtractor
from .devices import DeviceDispatcher
from .audio import merge_segments, split_text
from .orchestrator import PipelineOrchestrator, PipelineResult, PipelineStage

__all__ = [
    'ControlIntent',
    'IntentExtractor',
    'DeviceDispatcher',
    'merge_segments',
    'split_text',
    'PipelineOrchestrator',
    'PipelineResult',
    'PipelineStage'
]
