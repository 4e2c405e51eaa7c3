class ToolError(Exception):
    exit_code = 1
    stage = "lrbox"


class PreconditionFailure(ToolError):
    exit_code = 2
    stage = "precondition"


class DeviceUnreachable(PreconditionFailure):
    stage = "device"


class DeviceUnauthorized(PreconditionFailure):
    stage = "device"


class IntegrityMismatch(ToolError):
    exit_code = 3
    stage = "integrity"


class UnsupportedFormat(ToolError):
    exit_code = 4
    stage = "extraction"


class BootloaderTimeout(ToolError):
    exit_code = 5
    stage = "bootloader"


class AcquisitionFailure(ToolError):
    exit_code = 6
    stage = "acquisition"


class PatchFailure(ToolError):
    exit_code = 7
    stage = "patch"


class FlashFailure(ToolError):
    exit_code = 8
    stage = "flash"


class DeviceCommandError(ToolError):
    stage = "device"
