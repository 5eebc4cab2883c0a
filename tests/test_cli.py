import json

import pytest

from schedmix.cli import (
    RoutesFile,
    best_profits,
    check_pareto_optimality,
    check_route_costs,
    generate,
    graph_metadata,
    load_routes,
    lookup,
    main,
    routes_metadata,
    save_routes,
    search_inexact,
    shortest_path,
    trace_path,
)
from schedmix.combinatorial import CombinatorialEncoder
from schedmix.effect_graph import EffectGraph
from schedmix.flat_storage import FlatStorage
from schedmix.mixing import (
    SUBSTANCES,
    Drugs,
    Effects,
    MixtureRules,
    Substance,
    substance_cost,
)
from schedmix.mosp import Label

FIVE = [Drugs.OGKush, Drugs.SourDiesel, Drugs.GreenCrack, Drugs.GranddaddyPurple, Drugs.Meth]


def _rules():
    return MixtureRules(
        replacement_rules=tuple(() for _ in SUBSTANCES),
        inherent_effects=tuple(Effects(1 << (int(s) % 4)) for s in SUBSTANCES),
        price_mults=tuple([0.5, 0.25, 0.0, 1.0] + [0.0] * 30),
    )


@pytest.fixture(scope="module")
def encoder():
    return CombinatorialEncoder(4, 4)


@pytest.fixture(scope="module")
def graph(encoder):
    return EffectGraph(_rules(), encoder)


@pytest.fixture(scope="module")
def paths(graph):
    return shortest_path(Effects(0), graph)


def _routes(storage, count):
    return RoutesFile(
        tuple(100 + 10 * i for i in range(count)),
        storage,
        storage,
        storage,
        storage,
        storage,
        num_effects=4,
        max_effects=4,
    )


@pytest.fixture(scope="module")
def routes(paths):
    return _routes(paths, 16)


def _write_rules(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"effects": [], "rules": [], "effect_price": {}}))
    return path


def test_lookup_start_and_single_step(paths, encoder):
    assert lookup(0, paths) == [[]]
    assert lookup(encoder.encode(int(Effects.AntiGravity)), paths) == [[Substance.Cuke]]


def test_traced_paths_match_labels_and_rules(paths, encoder):
    rules = _rules()
    for idx in range(encoder.maximum_index()):
        for label in paths.get(idx):
            path = trace_path(label, paths)
            assert len(path) == label.length
            assert sum(substance_cost(s) for s in path) == label.cost
            effects = Effects(0)
            for substance in path:
                effects = rules.apply(substance, effects)
            assert int(effects) == encoder.decode(idx)


def test_trace_path_broken_chain_raises():
    storage = FlatStorage.from_ragged([[Label(0, 0)], []])
    with pytest.raises(RuntimeError):
        trace_path(Label(2, 5, Substance.Cuke, 1), storage)


def test_checks_pass_on_computed_routes(routes, encoder):
    assert check_pareto_optimality(routes, encoder.maximum_index()) == []
    assert check_route_costs(routes, encoder.maximum_index()) == []


def test_checks_find_violations():
    storage = FlatStorage.from_ragged(
        [[Label(0, 0), Label(0, 0)], [Label(1, 99, Substance.Cuke, 0)]]
    )
    routes = _routes(storage, 2)
    assert check_pareto_optimality(routes, 2) == [(d, 0) for d in FIVE]
    assert check_route_costs(routes, 2) == [(d, 1) for d in FIVE]


def test_search_inexact_finds_cheapest(paths, encoder):
    found = search_inexact(Effects.AntiGravity, encoder, paths)
    (low_idx, low_label), (short_idx, short_label) = found
    assert low_idx == encoder.encode(int(Effects.AntiGravity))
    assert low_label.cost == substance_cost(Substance.Cuke)
    assert encoder.decode(short_idx) & int(Effects.AntiGravity)
    assert short_label.length == 1


def test_search_inexact_unreachable(paths, encoder):
    assert search_inexact(Effects.CalorieDense, encoder, paths) is None


def test_best_profits_start_only(routes, encoder, paths):
    result = best_profits(routes, encoder, Drugs.OGKush, paths, 0, 0.0, 999, 10)
    assert result == [(35, 35, 0, Label(0, 0))]


def test_best_profits_ordering(routes, encoder, paths):
    result = best_profits(routes, encoder, Drugs.Cocaine, paths, None, 0.0, 200, 5)
    assert len(result) == 5
    assert result == sorted(result, reverse=True)
    for profit, sell, idx, label in result:
        assert sell <= 200
        assert profit == sell - label.cost
        assert label in paths.get(idx)


def test_routes_roundtrip(tmp_path, routes):
    path = tmp_path / "routes.bin"
    save_routes(routes, path)
    assert load_routes(path) == routes


def test_load_routes_rejects_bad_files(tmp_path, routes):
    bad = tmp_path / "bad.bin"
    bad.write_bytes(b"XXXX" + bytes(16))
    with pytest.raises(ValueError):
        load_routes(bad)
    good = tmp_path / "good.bin"
    save_routes(routes, good)
    truncated = tmp_path / "truncated.bin"
    truncated.write_bytes(good.read_bytes()[:-3])
    with pytest.raises(ValueError):
        load_routes(truncated)


def test_generate_refuses_overwrite(tmp_path, encoder, capsys):
    path = tmp_path / "graph.bin"
    assert generate(_rules(), encoder, path) is True
    assert EffectGraph.load(path).num_nodes() == encoder.maximum_index()
    assert generate(_rules(), encoder, path) is False
    assert "refusing to overwrite" in capsys.readouterr().out


def test_graph_metadata(graph):
    report = graph_metadata(graph)
    backlinks = sum(len(graph.predecessors(i)) for i in range(graph.num_nodes()))
    assert f"Number of nodes = {graph.num_nodes()}" in report
    assert f"Number of backlinks = {backlinks}" in report


def test_routes_metadata(routes, paths):
    report = routes_metadata(routes)
    total = sum(len(paths.get(i)) for i in range(16))
    assert report.count(f"Number of labels: {total}") == 5
    assert "Meth/Cocaine:" in report


def test_main_lookup_by_index_and_effects(tmp_path, routes, capsys):
    rules = _write_rules(tmp_path)
    routes_path = tmp_path / "routes.bin"
    save_routes(routes, routes_path)
    assert main(["--rules", str(rules), "lookup", "--routes", str(routes_path), "--index", "1"]) == 0
    by_index = capsys.readouterr().out
    assert "Index: 1" in by_index
    assert "substances: [Cuke]" in by_index
    assert main(
        ["--rules", str(rules), "lookup", "--routes", str(routes_path), "--effects", "AntiGravity"]
    ) == 0
    assert capsys.readouterr().out == by_index


def test_main_profit_json(tmp_path, routes, capsys):
    rules = _write_rules(tmp_path)
    routes_path = tmp_path / "routes.bin"
    save_routes(routes, routes_path)
    code = main(
        ["--rules", str(rules), "profit", "--routes", str(routes_path), "--max-results", "3", "--json"]
    )
    assert code == 0
    records = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert len(records) == 18
    assert [r["drug"] for r in records[::3]] == [d.name for d in FIVE] + ["Cocaine"]
    for record in records:
        assert record["profit"] == record["sell_price"] - record["cost"]
        assert record["cost"] == sum(substance_cost(Substance[n]) for n in record["ingredients"])


def test_main_search_and_sanity(tmp_path, routes, capsys):
    rules = _write_rules(tmp_path)
    routes_path = tmp_path / "routes.bin"
    save_routes(routes, routes_path)
    assert main(
        ["--rules", str(rules), "search", "--routes", str(routes_path), "--effects", "AntiGravity"]
    ) == 0
    out = capsys.readouterr().out
    assert out.count("Lowest Cost:") == 5
    assert main(["--rules", str(rules), "route-sanity", "--routes", str(routes_path)]) == 0
    out = capsys.readouterr().out
    assert "pareto optimality: 0 violations found" in out
    assert "path cost: 0 violations found" in out


def test_main_bad_effects(tmp_path, routes, capsys):
    rules = _write_rules(tmp_path)
    routes_path = tmp_path / "routes.bin"
    save_routes(routes, routes_path)
    code = main(
        ["--rules", str(rules), "search", "--routes", str(routes_path), "--effects", "Nope"]
    )
    assert code == 1
    assert "unrecognized named flag" in capsys.readouterr().err


def test_main_missing_rules(tmp_path, capsys):
    code = main(["--rules", str(tmp_path / "absent.json"), "metadata"])
    assert code == 1
    assert capsys.readouterr().err.startswith("Error:")