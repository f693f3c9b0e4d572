from abc import ABC, abstractmethod
from typing import Any


class MetricWriter(ABC):
    """Destination for run telemetry, addressed by slash-separated tags."""

    @abstractmethod
    def scalar(self, tag: str, value: float, step: int | None = None) -> None:
        pass

    @abstractmethod
    def hist(self, tag: str, values: Any, step: int | None = None) -> None:
        pass

    @abstractmethod
    def text(self, tag: str, text: str, step: int | None = None) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def scoped(self, *prefix: str) -> "MetricWriter":
        return ScopedWriter(self, list(prefix))


class ScopedWriter(MetricWriter):
    """Prepends a fixed path to every tag; closing it closes the underlying writer."""

    def __init__(self, base: MetricWriter, prefix: list[str]):
        self._base = base
        self._prefix = prefix

    def _tag(self, tag: str) -> str:
        return "/".join([*self._prefix, tag])

    def scalar(self, tag: str, value: float, step: int | None = None) -> None:
        self._base.scalar(self._tag(tag), value, step)

    def hist(self, tag: str, values: Any, step: int | None = None) -> None:
        self._base.hist(self._tag(tag), values, step)

    def text(self, tag: str, text: str, step: int | None = None) -> None:
        self._base.text(self._tag(tag), text, step)

    def close(self) -> None:
        self._base.close()

    def scoped(self, *prefix: str) -> MetricWriter:
        return ScopedWriter(self._base, [*self._prefix, *prefix])
