from .checker import (
    ApkProbeResult,
    check_debug_attribute,
    device_is_debuggable,
    format_warning,
    probe_apks,
)
from .config import CheckerConfig
from .device import AdbDevice, StaticDevice
