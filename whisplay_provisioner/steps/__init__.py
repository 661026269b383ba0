from __future__ import annotations

from typing import List

from ..config import ProvisionConfig
from ..environment import EnvironmentContext
from ..pipeline import Step
from ..reconciler import ResourceDescriptor
from .step_10_packages import PackagesStep
from .step_20_audio_driver import AudioDriverStep
from .step_25_audio_device import AudioDeviceStep
from .step_30_model_runtime import ModelRuntimeStep
from .step_40_toolchain import ToolchainStep
from .step_50_application import ApplicationStep
from .step_60_voice_assets import VoiceAssetsStep
from .step_70_restore_config import RestoreConfigStep
from .step_80_service_units import ServiceUnitsStep

__all__ = [
    "PackagesStep",
    "AudioDriverStep",
    "AudioDeviceStep",
    "ModelRuntimeStep",
    "ToolchainStep",
    "ApplicationStep",
    "VoiceAssetsStep",
    "RestoreConfigStep",
    "ServiceUnitsStep",
    "build_steps",
    "build_resources",
]


def build_steps() -> List[Step]:
    # Dependency order: packages before toolchains, driver before card
    # detection, toolchains before the deps that need them, restored config
    # before the units that read it.
    return [
        PackagesStep(),
        AudioDriverStep(),
        AudioDeviceStep(),
        ModelRuntimeStep(),
        ToolchainStep(),
        ApplicationStep(),
        VoiceAssetsStep(),
        RestoreConfigStep(),
        ServiceUnitsStep(),
    ]


def build_resources(ctx: EnvironmentContext, cfg: ProvisionConfig) -> List[ResourceDescriptor]:
    resources: List[ResourceDescriptor] = []
    for step in build_steps():
        resources.extend(step.resources(ctx, cfg))
    return resources
