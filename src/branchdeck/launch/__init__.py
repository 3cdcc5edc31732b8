"""Launch descriptor construction, confirmation flow and emission."""

from .descriptors import DescriptorKind, LaunchDescriptor, display_title, truncate_title
from .emitter import DescriptorEmitter, DryRunEmitter, WarpLaunchEmitter
from .pipeline import (
    ConfirmAnswer,
    ConfirmDialog,
    LaunchPipeline,
    LaunchReport,
    PendingLaunch,
    PipelineState,
    Remediation,
    RemediationMode,
)

__all__ = [
    "ConfirmAnswer",
    "ConfirmDialog",
    "DescriptorEmitter",
    "DescriptorKind",
    "DryRunEmitter",
    "LaunchDescriptor",
    "LaunchPipeline",
    "LaunchReport",
    "PendingLaunch",
    "PipelineState",
    "Remediation",
    "RemediationMode",
    "WarpLaunchEmitter",
    "display_title",
    "truncate_title",
]
