"""Command-line tool: build the effect graph, find routes and query them."""

from __future__ import annotations

import argparse
import heapq
import json
import math
import struct
import sys
from collections import Counter
from dataclasses import dataclass
from operator import attrgetter
from os import PathLike
from pathlib import Path
from typing import BinaryIO, Sequence

from .combinatorial import CombinatorialEncoder
from .effect_graph import EffectGraph
from .flat_storage import FlatStorage
from .mixing import (
    MAX_EFFECTS,
    NUM_EFFECTS,
    SUBSTANCES,
    Drugs,
    Effects,
    MixtureRules,
    Substance,
    base_price,
    effects_from_str,
    inherent_effects,
    parse_rules_file,
    substance_cost,
)
from .mosp import Label, multiobjective_shortest_path

SHORTEST_PATH_VERSION = 3

_ROUTES_MAGIC = b"SMRT"
_ROUTES_HEADER = struct.Struct("<4sIIII")
_LABEL = struct.Struct("<BHBI")

Violation = tuple[Drugs, int]
ProfitEntry = tuple[int, int, int, Label]


@dataclass(frozen=True)
class RoutesFile:
    """Pareto-optimal routes for every effect combination, per base product."""

    price_multipliers: tuple[int, ...]
    kush: FlatStorage[Label]
    sour_diesel: FlatStorage[Label]
    green_crack: FlatStorage[Label]
    granddaddy_purple: FlatStorage[Label]
    meth_cocaine: FlatStorage[Label]
    num_effects: int = NUM_EFFECTS
    max_effects: int = MAX_EFFECTS

    def __post_init__(self) -> None:
        object.__setattr__(self, "price_multipliers", tuple(self.price_multipliers))

    def paths_by_drug(self) -> list[tuple[Drugs, FlatStorage[Label]]]:
        """Each base product with its routes; meth and cocaine share one set."""
        return [
            (Drugs.OGKush, self.kush),
            (Drugs.SourDiesel, self.sour_diesel),
            (Drugs.GreenCrack, self.green_crack),
            (Drugs.GranddaddyPurple, self.granddaddy_purple),
            (Drugs.Meth, self.meth_cocaine),
        ]


def _encoder_for(routes: RoutesFile) -> CombinatorialEncoder:
    return CombinatorialEncoder(routes.num_effects, routes.max_effects)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _read_exact(handle: BinaryIO, size: int) -> bytes:
    data = handle.read(size)
    if len(data) != size:
        raise ValueError("routes file is truncated")
    return data


def save_routes(routes: RoutesFile, path: str | PathLike[str]) -> None:
    """Write routes to a binary file."""
    num_nodes = len(routes.price_multipliers)
    storages = [paths for _, paths in routes.paths_by_drug()]
    if any(len(paths) != num_nodes for paths in storages):
        raise ValueError("every route set must cover the same number of nodes")
    try:
        multipliers = struct.pack(f"<{num_nodes}H", *routes.price_multipliers)
    except struct.error as exc:
        raise ValueError(f"price multiplier out of range: {exc}") from None

    with open(path, "wb") as handle:
        handle.write(
            _ROUTES_HEADER.pack(
                _ROUTES_MAGIC,
                SHORTEST_PATH_VERSION,
                routes.num_effects,
                routes.max_effects,
                num_nodes,
            )
        )
        handle.write(multipliers)
        for paths in storages:
            handle.write(struct.pack(f"<{num_nodes + 1}I", *paths.offsets))
            handle.write(
                b"".join(
                    _LABEL.pack(
                        label.length,
                        label.cost,
                        int(label.previous_substance),
                        label.parent,
                    )
                    for label in paths.paths
                )
            )


def _read_storage(handle: BinaryIO, num_nodes: int) -> FlatStorage[Label]:
    offsets = struct.unpack(
        f"<{num_nodes + 1}I", _read_exact(handle, 4 * (num_nodes + 1))
    )
    count = offsets[-1]
    raw = _read_exact(handle, _LABEL.size * count)
    labels = tuple(
        Label(length, cost, Substance(substance), parent)
        for length, cost, substance, parent in _LABEL.iter_unpack(raw)
    )
    return FlatStorage(labels, offsets)


def load_routes(path: str | PathLike[str]) -> RoutesFile:
    """Read routes written by :func:`save_routes`."""
    with open(path, "rb") as handle:
        header = _read_exact(handle, _ROUTES_HEADER.size)
        magic, version, num_effects, max_effects, num_nodes = _ROUTES_HEADER.unpack(
            header
        )
        if magic != _ROUTES_MAGIC:
            raise ValueError("not a routes file")
        if version != SHORTEST_PATH_VERSION:
            raise ValueError(
                f"routes file version {version}, expected {SHORTEST_PATH_VERSION}"
            )
        multipliers = struct.unpack(
            f"<{num_nodes}H", _read_exact(handle, 2 * num_nodes)
        )
        storages = [_read_storage(handle, num_nodes) for _ in range(5)]
        if handle.read(1):
            raise ValueError("trailing data in routes file")
    return RoutesFile(multipliers, *storages, num_effects=num_effects, max_effects=max_effects)


def generate(
    rules: MixtureRules, encoder: CombinatorialEncoder, graph_path: str | PathLike[str]
) -> bool:
    """Build the graph and save it; refuse (returning False) if the file exists."""
    path = Path(graph_path)
    if path.is_file():
        print(f"'{path}' exists, refusing to overwrite")
        return False
    EffectGraph(rules, encoder).save(path)
    return True


def shortest_path(starting: Effects, graph: EffectGraph) -> FlatStorage[Label]:
    """Pareto-optimal routes from ``starting`` to every node of the graph."""
    costs = [substance_cost(s) for s in SUBSTANCES]
    return FlatStorage.from_ragged(multiobjective_shortest_path(graph, costs, starting))


def compute_routes(
    rules: MixtureRules, graph: EffectGraph, encoder: CombinatorialEncoder
) -> RoutesFile:
    """Routes for every base product, plus price multipliers in hundredths."""
    starts = (
        Drugs.OGKush,
        Drugs.SourDiesel,
        Drugs.GreenCrack,
        Drugs.GranddaddyPurple,
        Drugs.Meth,
    )
    paths = {drug: shortest_path(inherent_effects(drug), graph) for drug in starts}
    multipliers = tuple(
        _round_half_away(rules.price_multiplier(Effects(encoder.decode(idx))) * 100.0)
        for idx in range(encoder.maximum_index())
    )
    return RoutesFile(
        multipliers,
        kush=paths[Drugs.OGKush],
        sour_diesel=paths[Drugs.SourDiesel],
        green_crack=paths[Drugs.GreenCrack],
        granddaddy_purple=paths[Drugs.GranddaddyPurple],
        meth_cocaine=paths[Drugs.Meth],
        num_effects=encoder.n,
        max_effects=encoder.max_k,
    )


def trace_path(start: Label, paths: FlatStorage[Label]) -> list[Substance]:
    """Substances mixed, in order, along the route ending in ``start``."""
    path: list[Substance] = []
    label = start
    while (step := label.backlink()) is not None:
        node, substance = step
        path.append(substance)
        previous = next(
            (c for c in paths.get(node) if c.length == label.length - 1), None
        )
        if previous is None:
            raise RuntimeError("should find connected path")
        label = previous
    path.reverse()
    return path


def lookup(index: int, labels: FlatStorage[Label]) -> list[list[Substance]]:
    """Every stored route to node ``index``."""
    return [trace_path(label, labels) for label in labels.get(index)]


def search_inexact(
    target_effects: Effects,
    encoder: CombinatorialEncoder,
    labels: FlatStorage[Label],
) -> tuple[tuple[int, Label], tuple[int, Label]] | None:
    """Cheapest and shortest routes to any node holding all of ``target_effects``."""
    target = int(target_effects)
    lowest_cost: tuple[int, Label] | None = None
    shortest: tuple[int, Label] | None = None
    for idx in range(encoder.maximum_index()):
        paths = labels.get(idx)
        if not paths:
            continue
        if encoder.decode(idx) & target != target:
            continue
        for path in paths:
            if lowest_cost is None or path.cost < lowest_cost[1].cost:
                lowest_cost = (idx, path)
            if shortest is None or path.length < shortest[1].length:
                shortest = (idx, path)
    if lowest_cost is None or shortest is None:
        return None
    return lowest_cost, shortest


def best_profits(
    routes: RoutesFile,
    encoder: CombinatorialEncoder,
    drug: Drugs,
    paths: FlatStorage[Label],
    max_mixins: int | None,
    markup: float,
    max_price: int,
    max_results: int,
) -> list[ProfitEntry]:
    """Most profitable (profit, sell price, node, label) entries, best first."""
    price = base_price(drug) * (1.0 + markup)
    candidates: list[ProfitEntry] = []
    for idx in range(encoder.maximum_index()):
        eligible = [
            label
            for label in paths.get(idx)
            if max_mixins is None or label.length <= max_mixins
        ]
        if not eligible:
            continue
        best = min(eligible, key=attrgetter("cost"))
        mult = routes.price_multipliers[idx] / 100.0
        sell_price = min(max_price, max(0, _round_half_away(price * mult)))
        candidates.append((sell_price - best.cost, sell_price, idx, best))
    return heapq.nlargest(max_results, candidates)


def graph_metadata(graph: EffectGraph) -> str:
    """A short report on the graph's size."""
    num_nodes = graph.num_nodes()
    backlinks = sum(len(graph.predecessors(idx)) for idx in range(num_nodes))
    return "\n".join(
        [
            "---------",
            "Graph metadata:",
            f"Number of nodes = {num_nodes}",
            f"Number of backlinks = {backlinks}",
            "",
        ]
    )


def routes_metadata(routes: RoutesFile) -> str:
    """A report on how many routes each product has and how long they are."""
    titles = ["Kush", "Sour Diesel", "Green Crack", "GDP", "Meth/Cocaine"]
    num_nodes = len(routes.price_multipliers)
    lines = ["---------", "Route metadata:"]
    for title, (_, paths) in zip(titles, routes.paths_by_drug()):
        total = 0
        counts: Counter[int] = Counter()
        lengths: Counter[int] = Counter()
        minima: list[tuple[int, int]] = []
        for idx in range(num_nodes):
            labels = paths.get(idx)
            total += len(labels)
            counts[len(labels)] += 1
            if labels:
                shortest = min(labels, key=attrgetter("length"))
                lengths[shortest.length] += 1
                minima.append((shortest.length, idx))
        lines.append(f"{title}:")
        lines.append(f"  Number of labels: {total}")
        lines.append(f"  Counts: {sorted(counts.items())}")
        lines.append(f"  Minimum Lengths: {sorted(lengths.items())}")
        lines.append(f"  Longest Minimum Lengths: {heapq.nlargest(5, minima)}")
    return "\n".join(lines)


def check_pareto_optimality(routes: RoutesFile, max_value: int) -> list[Violation]:
    """Nodes whose labels include one dominated by or equal to another."""
    errors: list[Violation] = []
    for drug, paths in routes.paths_by_drug():
        for idx in range(max_value):
            labels = paths.get(idx)
            if any(
                label.cost >= other.cost and label.length >= other.length
                for j, label in enumerate(labels)
                for other in labels[j + 1 :]
            ):
                errors.append((drug, idx))
    return errors


def check_route_costs(routes: RoutesFile, max_value: int) -> list[Violation]:
    """Nodes with a label whose cost differs from the cost of its traced route."""
    errors: list[Violation] = []
    for drug, paths in routes.paths_by_drug():
        for idx in range(max_value):
            for label in paths.get(idx):
                actual = sum(substance_cost(s) for s in trace_path(label, paths))
                if actual != label.cost:
                    errors.append((drug, idx))
                    break
    return errors


def _effects_debug(effects: Effects) -> str:
    return f"Effects({effects})" if int(effects) else "Effects(0x0)"


def _path_debug(path: Sequence[Substance]) -> str:
    return "[" + ", ".join(s.name for s in path) + "]"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="schedmix")
    parser.add_argument("--rules", required=True, type=Path)
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate")
    gen.add_argument("--graph", required=True, type=Path)

    sp = sub.add_parser("shortest-path")
    sp.add_argument("--graph", required=True, type=Path)
    sp.add_argument("--output-file", required=True, type=Path)

    search = sub.add_parser("search")
    search.add_argument("--routes", required=True, type=Path)
    search.add_argument("--effects", required=True)

    lk = sub.add_parser("lookup")
    lk.add_argument("--routes", required=True, type=Path)
    which = lk.add_mutually_exclusive_group(required=True)
    which.add_argument("--effects")
    which.add_argument("--index", type=int)

    profit = sub.add_parser("profit")
    profit.add_argument("--routes", required=True, type=Path)
    profit.add_argument("--max-mixins", type=int, default=None)
    profit.add_argument("--markup", type=float, default=0.0)
    profit.add_argument("--max-price", type=int, default=999)
    profit.add_argument("--max-results", type=int, default=10)
    profit.add_argument("--json", action="store_true")

    meta = sub.add_parser("metadata")
    meta.add_argument("--graph", type=Path)
    meta.add_argument("--routes", type=Path)

    sanity = sub.add_parser("route-sanity")
    sanity.add_argument("--routes", required=True, type=Path)
    return parser


def _run_search(args: argparse.Namespace) -> None:
    target = effects_from_str(args.effects)
    routes = load_routes(args.routes)
    encoder = _encoder_for(routes)
    for drug, paths in routes.paths_by_drug():
        found = search_inexact(target, encoder, paths)
        if found is None:
            continue
        print(drug.name)
        for title, (idx, label) in zip(("Lowest Cost", "Shortest"), found):
            path = trace_path(label, paths)
            print(
                f"  {title}:\n"
                f"    Effects: {_effects_debug(Effects(encoder.decode(idx)))}\n"
                f"    Cost: {label.cost}\n"
                f"    Length: {label.length}\n"
                f"    Path: {_path_debug(path)}"
            )
        print()


def _run_lookup(args: argparse.Namespace) -> None:
    routes = load_routes(args.routes)
    encoder = _encoder_for(routes)
    if args.index is not None:
        index = args.index
    else:
        index = encoder.encode(int(effects_from_str(args.effects)))
    print(f"Effects: {_effects_debug(Effects(encoder.decode(index)))}")
    print(f"Index: {index}")
    for drug, paths in routes.paths_by_drug():
        print(drug.name)
        for path in lookup(index, paths):
            cost = sum(substance_cost(s) for s in path)
            print(f"  cost: {cost}, length: {len(path)}, substances: {_path_debug(path)}")
        print()


def _run_profit(args: argparse.Namespace) -> None:
    routes = load_routes(args.routes)
    encoder = _encoder_for(routes)
    products = routes.paths_by_drug() + [(Drugs.Cocaine, routes.meth_cocaine)]
    for drug, paths in products:
        results = best_profits(
            routes,
            encoder,
            drug,
            paths,
            args.max_mixins,
            args.markup,
            args.max_price,
            args.max_results,
        )
        if not args.json:
            print(f"\n{drug}")
        for profit, sell_price, idx, label in results:
            path = trace_path(label, paths)
            effects = Effects(encoder.decode(idx))
            if args.json:
                record = {
                    "drug": drug.name,
                    "effects": str(effects),
                    "sell_price": sell_price,
                    "cost": label.cost,
                    "profit": profit,
                    "ingredients": [s.name for s in path],
                }
                print(json.dumps(record, separators=(",", ":")))
            else:
                print(
                    f"{_effects_debug(effects)}\n"
                    f"  Sell Price: {sell_price}\n"
                    f"  Cost: {label.cost}\n"
                    f"  Profit: {profit}\n"
                    f"  Ingredients: {_path_debug(path)}\n"
                )


def _run_sanity(args: argparse.Namespace) -> None:
    routes = load_routes(args.routes)
    max_idx = _encoder_for(routes).maximum_index()
    checks = [
        ("pareto optimality", check_pareto_optimality),
        ("path cost", check_route_costs),
    ]
    for title, check in checks:
        violations = check(routes, max_idx)
        print(f"{title}: {len(violations)} violations found")
        if violations:
            print("First violations (up to 10):")
            for drug, idx in violations[:10]:
                print(f"({drug.name}, {idx})")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command-line tool; returns the exit status."""
    args = _build_parser().parse_args(argv)
    try:
        rules = parse_rules_file(args.rules)
        if args.command == "generate":
            generate(rules, CombinatorialEncoder(NUM_EFFECTS, MAX_EFFECTS), args.graph)
        elif args.command == "shortest-path":
            graph = EffectGraph.load(args.graph)
            encoder = CombinatorialEncoder(NUM_EFFECTS, MAX_EFFECTS)
            if graph.num_nodes() != encoder.maximum_index():
                raise ValueError("graph does not match the effect encoder")
            save_routes(compute_routes(rules, graph, encoder), args.output_file)
        elif args.command == "search":
            _run_search(args)
        elif args.command == "lookup":
            _run_lookup(args)
        elif args.command == "profit":
            _run_profit(args)
        elif args.command == "metadata":
            if args.graph is not None:
                print(graph_metadata(EffectGraph.load(args.graph)))
            if args.routes is not None:
                print(routes_metadata(load_routes(args.routes)))
        elif args.command == "route-sanity":
            _run_sanity(args)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())