"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, MutableMapping

from ..core.types import Example
from ..errors import ConfigurationError


@dataclass(frozen=True)
class Dataset:
    """Examples already partitioned into training and held-out sets."""

    name: str
    training: List[Example]
    testing: List[Example]
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def input_size(self) -> int:
        return int(self.training[0].input.shape[0])

    @property
    def output_size(self) -> int:
        return int(self.training[0].output.shape[0])


DatasetFactory = Callable[..., Dataset]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str, factory: DatasetFactory | None = None
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    Usable directly (``register_dataset("spiral", make_spiral)``) or as a
    decorator (``@register_dataset("spiral")``).
    """

    def decorator(fn: DatasetFactory) -> DatasetFactory:
        _REGISTRY[name] = fn
        return fn

    if factory is not None:
        return decorator(factory)
    return decorator


def names() -> Iterable[str]:
    return sorted(_REGISTRY)


def get(name: str, **options: Any) -> Dataset:
    try:
        factory = _REGISTRY[name]
    except KeyError as exc:
        available = ", ".join(names())
        raise ConfigurationError(f"Unknown dataset {name!r}. Available datasets: {available}") from exc
    try:
        return factory(**options)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid options for dataset {name!r}: {exc}") from exc


__all__ = ["Dataset", "DatasetFactory", "register_dataset", "names", "get"]
