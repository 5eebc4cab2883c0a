"""Graph of effect combinations linked by the substances that transform them."""

from __future__ import annotations

import struct
import sys
from array import array
from os import PathLike
from typing import BinaryIO, Iterator

from .combinatorial import CombinatorialEncoder
from .flat_storage import FlatStorage
from .mixing import SUBSTANCES, Effects, MixtureRules, Substance

GRAPH_VERSION = 2

_MAGIC = b"SMEG"
_HEADER = struct.Struct("<4sIIIII")


def _write_array(handle: BinaryIO, values: array) -> None:
    if sys.byteorder == "big":
        values = array(values.typecode, values)
        values.byteswap()
    values.tofile(handle)


def _read_array(handle: BinaryIO, count: int) -> array:
    values = array("I")
    try:
        values.fromfile(handle, count)
    except EOFError:
        raise ValueError("graph file is truncated") from None
    if sys.byteorder == "big":
        values.byteswap()
    return values


class EffectGraph:
    """Every encodable effect set, with an edge for each substance that can be mixed in."""

    def __init__(self, rules: MixtureRules, encoder: CombinatorialEncoder) -> None:
        n_combinations = encoder.maximum_index()
        successors = array("I")
        predecessors: list[list[int]] = [[] for _ in range(n_combinations)]

        for idx in range(n_combinations):
            effects = Effects(encoder.decode(idx))
            for substance in SUBSTANCES:
                new_idx = encoder.encode(int(rules.apply(substance, effects)))
                successors.append(new_idx)
                if new_idx == idx:
                    continue
                preds = predecessors[new_idx]
                # Nodes are visited in order, so a repeat can only be the last entry.
                if not preds or preds[-1] != idx:
                    preds.append(idx)

        self._setup(encoder, successors, FlatStorage.from_ragged(predecessors))

    def _setup(
        self,
        encoder: CombinatorialEncoder,
        successors: array,
        predecessors: FlatStorage[int],
    ) -> None:
        self._encoder = encoder
        self._successors = successors
        self._predecessors = predecessors
        self._width = len(SUBSTANCES)

    def num_nodes(self) -> int:
        """Number of effect combinations in the graph."""
        return len(self._successors) // self._width

    def encode(self, effects: Effects) -> int:
        """Node index of a set of effects."""
        return self._encoder.encode(int(effects))

    def decode(self, index: int) -> Effects:
        """Set of effects of a node index."""
        return Effects(self._encoder.decode(index))

    def successors(self, index: int) -> tuple[int, ...]:
        """Node reached by mixing in each substance, in substance order."""
        if not 0 <= index < self.num_nodes():
            raise IndexError(f"node {index} out of range 0..{self.num_nodes()}")
        start = index * self._width
        return tuple(self._successors[start : start + self._width])

    def predecessors(self, index: int) -> tuple[int, ...]:
        """Distinct other nodes that lead to this one with one substance."""
        return self._predecessors.get(index)

    def predecessors_with_substances(self, index: int) -> Iterator[tuple[int, Substance]]:
        """Yield each predecessor with the first substance leading from it to ``index``."""
        for pred in self._predecessors.get(index):
            try:
                position = self.successors(pred).index(index)
            except ValueError:
                raise RuntimeError("failed to find matching substance") from None
            yield pred, SUBSTANCES[position]

    def save(self, path: str | PathLike[str]) -> None:
        """Write the graph to a binary file."""
        offsets = array("I", self._predecessors.offsets)
        preds = array("I", self._predecessors.paths)
        with open(path, "wb") as handle:
            handle.write(
                _HEADER.pack(
                    _MAGIC,
                    GRAPH_VERSION,
                    self._encoder.n,
                    self._encoder.max_k,
                    self.num_nodes(),
                    self._width,
                )
            )
            _write_array(handle, self._successors)
            _write_array(handle, offsets)
            _write_array(handle, preds)

    @classmethod
    def load(cls, path: str | PathLike[str]) -> "EffectGraph":
        """Read a graph written by :meth:`save`."""
        with open(path, "rb") as handle:
            header = handle.read(_HEADER.size)
            if len(header) != _HEADER.size:
                raise ValueError("graph file is truncated")
            magic, version, n, max_k, num_nodes, width = _HEADER.unpack(header)
            if magic != _MAGIC:
                raise ValueError("not a graph file")
            if version != GRAPH_VERSION:
                raise ValueError(
                    f"graph file version {version}, expected {GRAPH_VERSION}"
                )
            if width != len(SUBSTANCES):
                raise ValueError(f"graph has {width} substances, expected {len(SUBSTANCES)}")
            encoder = CombinatorialEncoder(n, max_k)
            if encoder.maximum_index() != num_nodes:
                raise ValueError("graph size does not match its encoder")
            successors = _read_array(handle, num_nodes * width)
            offsets = _read_array(handle, num_nodes + 1)
            preds = _read_array(handle, offsets[-1])
            if handle.read(1):
                raise ValueError("trailing data in graph file")

        graph = cls.__new__(cls)
        graph._setup(encoder, successors, FlatStorage(tuple(preds), tuple(offsets)))
        return graph