"""Save, load and pretty-print trained networks.

A saved network is a single ``<directory>/<name>.npz`` archive holding:

``architecture``
    JSON document with the format version, the input size, the training
    hyperparameters and, for every layer in order, its type tag, its
    construction config and its input/output sizes.
``layer{i}.{param}``
    One float64 array per layer parameter.

Arrays are stored with :func:`numpy.savez` and read back with pickling
disabled, so floating point values round-trip bit for bit.
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Dict, Iterator, List, Mapping

import numpy as np

from .core.layers import LAYERS
from .core.network import Network
from .errors import ConfigurationError, CorruptFormatError, DimensionError

FORMAT_VERSION = 1
ARCHIVE_SUFFIX = ".npz"
REPORT_SUFFIX = ".txt"


def archive_path(directory: str | Path, name: str) -> Path:
    return Path(directory) / f"{name}{ARCHIVE_SUFFIX}"


def report_path(directory: str | Path, name: str) -> Path:
    return Path(directory) / f"{name}{REPORT_SUFFIX}"


@contextmanager
def _atomic_writer(path: Path, mode: str = "wb") -> Iterator[IO[Any]]:
    """Write to a sibling temporary file and rename it over ``path`` on success."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, mode) as handle:
            yield handle
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def describe_architecture(network: Network) -> Dict[str, Any]:
    if not network.initialized:
        raise ConfigurationError("Cannot persist a network that has not been initialized")
    return {
        "format": "lossless",
        "version": FORMAT_VERSION,
        "input_size": int(network.input_size),
        "batch_size": int(network.batch_size),
        "learning_rate": float(network.learning_rate),
        "loss": str(network.loss),
        "layers": [
            {
                "type": layer.tag,
                "config": layer.config(),
                "inputs": int(layer.input_size),
                "outputs": int(layer.output_size),
            }
            for layer in network.layers
        ],
    }


def save(network: Network, directory: str | Path, name: str) -> Path:
    """Write ``network`` to ``<directory>/<name>.npz`` and return the path."""

    architecture = describe_architecture(network)
    payload: Dict[str, np.ndarray] = {"architecture": np.array(json.dumps(architecture))}
    payload.update(network.state_dict())
    path = archive_path(directory, name)
    with _atomic_writer(path) as handle:
        np.savez(handle, **payload)
    return path


def load(directory: str | Path, name: str) -> Network:
    """Rebuild the network saved under ``<directory>/<name>.npz``.

    Raises :class:`OSError` when the file cannot be read and
    :class:`CorruptFormatError` when its contents are inconsistent.
    """

    path = archive_path(directory, name)
    with path.open("rb") as handle:
        try:
            with np.load(handle, allow_pickle=False) as archive:
                arrays = {key: archive[key] for key in archive.files}
        except (zipfile.BadZipFile, ValueError, EOFError, KeyError) as exc:
            raise CorruptFormatError(f"{path} is not a lossless network archive: {exc}") from exc
    if "architecture" not in arrays:
        raise CorruptFormatError(f"{path} has no architecture record")
    try:
        architecture = json.loads(str(arrays.pop("architecture")))
    except json.JSONDecodeError as exc:
        raise CorruptFormatError(f"{path} has an unreadable architecture record") from exc
    return _rebuild(architecture, arrays, source=path)


def _rebuild(architecture: Mapping[str, Any], arrays: Mapping[str, np.ndarray], *, source: Path) -> Network:
    if not isinstance(architecture, Mapping) or architecture.get("format") != "lossless":
        raise CorruptFormatError(f"{source} is not a lossless network archive")
    if architecture.get("version") != FORMAT_VERSION:
        raise CorruptFormatError(
            f"{source} uses format version {architecture.get('version')!r}, "
            f"expected {FORMAT_VERSION}"
        )
    layer_records = architecture.get("layers")
    if not isinstance(layer_records, list) or not layer_records:
        raise CorruptFormatError(f"{source} does not list any layers")

    specs: List[Dict[str, Any]] = []
    expected_in = architecture.get("input_size")
    for idx, record in enumerate(layer_records):
        if not isinstance(record, Mapping):
            raise CorruptFormatError(f"{source}: layer {idx} record is malformed")
        tag = record.get("type")
        if tag not in LAYERS:
            raise CorruptFormatError(f"{source}: layer {idx} has unknown type {tag!r}")
        if record.get("inputs") != expected_in:
            raise CorruptFormatError(
                f"{source}: layer {idx} expects {record.get('inputs')!r} inputs "
                f"but the previous layer produces {expected_in!r}"
            )
        config = record.get("config") or {}
        if not isinstance(config, Mapping):
            raise CorruptFormatError(f"{source}: layer {idx} config is malformed")
        specs.append({"type": tag, **dict(config)})
        expected_in = record.get("outputs")

    network = Network(
        batch_size=architecture.get("batch_size", 32),
        learning_rate=architecture.get("learning_rate", 1.0),
        loss=architecture.get("loss", "ce"),
    )
    try:
        network.initialize(architecture.get("input_size"), specs, rng=np.random.default_rng(0))
    except (ConfigurationError, DimensionError) as exc:
        raise CorruptFormatError(f"{source}: cannot rebuild layers: {exc}") from exc
    for idx, (layer, record) in enumerate(zip(network.layers, layer_records)):
        if layer.output_size != record.get("outputs"):
            raise CorruptFormatError(
                f"{source}: layer {idx} produces {layer.output_size} outputs, "
                f"archive says {record.get('outputs')!r}"
            )

    known = set(network.state_dict())
    stray = set(arrays) - known
    if stray:
        raise CorruptFormatError(f"{source}: unexpected arrays {sorted(stray)}")
    try:
        network.load_state_dict(arrays)
    except CorruptFormatError:
        raise
    except (TypeError, ValueError) as exc:
        raise CorruptFormatError(f"{source}: unreadable parameter values: {exc}") from exc
    return network


def format_report(network: Network) -> str:
    """Human-readable description of ``network`` and all of its parameters."""

    architecture = describe_architecture(network)
    lines = [
        "lossless network",
        "================",
        f"Input size    : {architecture['input_size']}",
        f"Output size   : {network.output_size}",
        f"Layers        : {len(network.layers)}",
        f"Parameters    : {network.parameter_count()}",
        f"Batch size    : {architecture['batch_size']}",
        f"Learning rate : {architecture['learning_rate']}",
        f"Loss          : {architecture['loss']}",
        "",
    ]
    with np.printoptions(precision=6, suppress=True, linewidth=100, threshold=sys.maxsize):
        for idx, layer in enumerate(network.layers):
            lines.append(f"[{idx}] {layer.tag}: {layer.input_size} -> {layer.output_size}")
            for param_name, value in layer.parameters().items():
                shape = "x".join(str(dim) for dim in value.shape)
                lines.append(f"    {param_name} ({shape}):")
                for row in np.array2string(value).splitlines():
                    lines.append(f"        {row}")
            lines.append("")
    return "\n".join(lines)


def pretty_print(network: Network, directory: str | Path, name: str) -> Path:
    """Write a display-only report to ``<directory>/<name>.txt``."""

    text = format_report(network)
    path = report_path(directory, name)
    with _atomic_writer(path, mode="w") as handle:
        handle.write(text)
    return path


__all__ = [
    "FORMAT_VERSION",
    "archive_path",
    "report_path",
    "describe_architecture",
    "save",
    "load",
    "format_report",
    "pretty_print",
]
