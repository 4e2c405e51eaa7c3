from .flash import (
    FlashOrchestrator,
    poll_until
)

from .system import (
    check_device_connected,
    check_magisk,
    check_preconditions,
    check_root
)
