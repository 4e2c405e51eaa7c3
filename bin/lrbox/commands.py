from . import utils, workflow
from .i18n import get_string
from .registry import REGISTRY, CommandRegistry


def register_all_commands(registry: CommandRegistry = REGISTRY) -> CommandRegistry:
    command_specs = [
        ("root", workflow.root_device, get_string("task_title_root"), True, True),
        ("extract", workflow.extract_boot_image, get_string("task_title_extract"), True, False),
        ("clean", utils.clean_workspace, get_string("task_title_clean"), False, False),
    ]

    for name, func, title, require_dev, keep_log in command_specs:
        if name in registry:
            continue
        registry.add(name, func, title, require_dev=require_dev, keep_log=keep_log)
    return registry
