from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional


@dataclass(frozen=True)
class CommandSpec:
    name: str
    func: Callable[..., Any]
    title: str
    require_dev: bool = True
    keep_log: bool = False
    default_kwargs: Dict[str, Any] = field(default_factory=dict)


class CommandRegistry:
    def __init__(self):
        self._commands: Dict[str, CommandSpec] = {}

    def register(
        self,
        name: str,
        title: str,
        require_dev: bool = True,
        keep_log: bool = False,
        **default_kwargs: Any,
    ):
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            if name in self._commands:
                raise ValueError(f"Command already registered: {name}")
            self._commands[name] = CommandSpec(
                name=name,
                func=func,
                title=title,
                require_dev=require_dev,
                keep_log=keep_log,
                default_kwargs=default_kwargs,
            )
            return func

        return decorator

    def add(
        self,
        name: str,
        func: Callable[..., Any],
        title: str,
        require_dev: bool = True,
        keep_log: bool = False,
        **default_kwargs: Any,
    ) -> None:
        self.register(
            name, title, require_dev=require_dev, keep_log=keep_log, **default_kwargs
        )(func)

    def get(self, name: str) -> Optional[CommandSpec]:
        return self._commands.get(name)

    def __iter__(self) -> Iterator[CommandSpec]:
        return iter(self._commands.values())

    def __contains__(self, name: str) -> bool:
        return name in self._commands


REGISTRY = CommandRegistry()
