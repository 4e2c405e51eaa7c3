import questionary

from .logger import get_logger

logger = get_logger()


class ConsoleUI:
    def echo(self, message: str = "", err: bool = False) -> None:
        if err:
            logger.error(message)
        else:
            logger.info(message)

    def info(self, message: str) -> None:
        self.echo(message)

    def warn(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        self.echo(message, err=True)

    def confirm(self, message: str, default: bool = False) -> bool:
        answer = questionary.confirm(message, default=default, qmark=">").ask()
        if answer is None:
            raise KeyboardInterrupt()
        return answer


ui = ConsoleUI()
