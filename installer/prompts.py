import logging
from typing import Callable, Optional, Sequence

from installer.errors import UserExit, ValidationError

logger = logging.getLogger(__name__)

YES = ("y", "yes")
NO = ("n", "no")


class Prompter:
    """Interactive questions on stdin; every answer is kept in ``history``."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
    ):
        self._input = input_func
        self._output = output
        self.history: dict[str, str] = {}

    def _record(self, question: str, answer: str) -> str:
        self.history[question] = answer
        logger.info("Prompt %r -> %r", question, answer)
        return answer

    def ask(
        self,
        question: str,
        default: str = "",
        required: bool = False,
        validator: Optional[Callable[[str], str]] = None,
    ) -> str:
        suffix = f" [{default}]" if default else ""
        while True:
            answer = self._input(f"{question}{suffix}: ").strip() or default
            if required and not answer:
                self._output("A value is required.")
                continue
            if answer and validator is not None:
                try:
                    answer = validator(answer)
                except ValidationError as e:
                    self._output(e.message)
                    continue
            return self._record(question, answer)

    def confirm(self, question: str, default: Optional[bool] = None) -> bool:
        hint = {True: "[Y/n]", False: "[y/N]", None: "[y/n]"}[default]
        while True:
            answer = self._input(f"{question} {hint}: ").strip().lower()
            if not answer and default is not None:
                self._record(question, "yes" if default else "no")
                return default
            if answer in YES:
                self._record(question, "yes")
                return True
            if answer in NO:
                self._record(question, "no")
                return False
            self._output("Please answer yes or no.")

    def choose(
        self,
        question: str,
        options: Sequence[tuple[str, str]],
        default: Optional[int] = None,
        allow_exit: bool = True,
    ) -> int:
        """Numbered menu over ``(label, description)`` pairs; returns the 0-based index."""
        labels = [label for label, _ in options]
        if allow_exit:
            labels.append("Exit")

        while True:
            self._output(question)
            for number, label in enumerate(labels, start=1):
                self._output(f"  {number}) {label}")
            hint = f" [{default + 1}]" if default is not None else ""
            answer = self._input(f"Select an option (1-{len(labels)}, ? for help){hint}: ").strip()

            if answer == "?":
                for label, description in options:
                    self._output(f"  {label}: {description}")
                continue
            if not answer and default is not None:
                self._record(question, labels[default])
                return default
            if not answer.isdigit() or not 1 <= int(answer) <= len(labels):
                self._output(f"Invalid choice: {answer or '(empty)'}")
                continue

            index = int(answer) - 1
            self._record(question, labels[index])
            if allow_exit and index == len(options):
                raise UserExit()
            return index


class SilentPrompter(Prompter):
    """Answers with defaults in --silent-install mode and refuses questions that have none."""

    def __init__(self):
        super().__init__(input_func=self._refuse, output=logger.info)

    @staticmethod
    def _refuse(question: str) -> str:
        raise ValidationError(f"Input required in silent mode: {question.strip()}")

    def ask(self, question, default="", required=False, validator=None):
        if required and not default:
            self._refuse(question)
        if default and validator is not None:
            default = validator(default)
        return self._record(question, default)

    def confirm(self, question, default=None):
        if default is None:
            self._refuse(question)
        self._record(question, "yes" if default else "no")
        return default

    def choose(self, question, options, default=None, allow_exit=True):
        if default is None:
            self._refuse(question)
        self._record(question, options[default][0])
        return default
