# schedmix

`schedmix` works out how to mix ingredients into a base product to reach a
desired set of effects. Each ingredient changes the product's effects
according to a set of replacement rules. It then adds an effect of its own,
but only while the product has fewer than eight effects. There are
thirty-four effects in all.

The package enumerates every effect set of up to eight effects (about 25
million of them) and builds the graph of transitions between them. It then
runs a multiobjective shortest-path search from each base product. For every
reachable effect set it keeps the Pareto-optimal routes. These are the routes
that no other route beats on both total ingredient cost and number of mixing
steps.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## The rules file

Every command needs a JSON rules file, given with `--rules`. It has three keys:

- `effects`: a list of entries such as `{"substance": "A", "effect": ["Re"]}`,
  each giving an ingredient's own effects. Ingredients are coded `A` to `P`,
  in the order of `schedmix.mixing.Substance` (`A` is `Cuke`, `P` is
  `Battery`).
- `rules`: a list of replacement rules. Each rule has `if_present`,
  `if_not_present`, `requires_substance` and a `replace` object that maps one
  effect code to another. Rules whose substance code is unknown are skipped.
- `effect_price`: an object that maps effect codes to price multipliers written
  as strings, such as `{"Ca": "0.10"}`.

In the rules file, effects are written with two-letter codes such as `Ca`
(Calming), `Eu` (Euphoric) or `Tt` (TropicThunder). An unknown effect code is
an error.

## Workflow

Build the effect graph once:

```
schedmix --rules rules.json generate --graph graph.bin
```

`generate` does not overwrite an existing file. If the file exists, it prints
a message and does nothing.

Compute the optimal routes for every base product:

```
schedmix --rules rules.json shortest-path --graph graph.bin --output-file routes.bin
```

The routes file also stores each effect set's price multiplier, in
hundredths. The routes are computed for OG Kush, Sour Diesel, Green Crack,
Granddaddy Purple and Meth. Cocaine starts from no effects, as Meth does, so
the two share one set of routes.

The following commands query the routes file. On the command line, effects are
given by their full names joined with `|`, for example `"Calming | Euphoric"`.

`search` finds the cheapest route and the shortest route to any effect set
that contains all of the given effects. It prints both for each product:

```
schedmix --rules rules.json search --routes routes.bin --effects "Calming | Euphoric"
```

`lookup` lists every stored route to one exact effect set. Name the set either
by its effects or by its index, but not both:

```
schedmix --rules rules.json lookup --routes routes.bin --effects "Calming | Euphoric"
schedmix --rules rules.json lookup --routes routes.bin --index 42
```

`profit` ranks the most profitable mixes for each product, Cocaine included:

```
schedmix --rules rules.json profit --routes routes.bin --max-mixins 5 --markup 0.1 --max-results 10
schedmix --rules rules.json profit --routes routes.bin --json
```

The `profit` options are:

- `--max-mixins` ignores routes that have more steps than this. The default
  has no limit.
- `--markup` raises the base price by that fraction. The default is 0.
- `--max-price` caps the sell price. The default is 999.
- `--max-results` sets how many mixes are listed per product. The default
  is 10.
- `--json` prints one JSON object per result, with the keys `drug`,
  `effects`, `sell_price`, `cost`, `profit` and `ingredients`.

To inspect the files, and to check that the routes are Pareto-optimal and that
each route's cost matches its ingredients:

```
schedmix --rules rules.json metadata --graph graph.bin --routes routes.bin
schedmix --rules rules.json route-sanity --routes routes.bin
```

If a file cannot be read or is malformed, the command prints `Error: ...` to
standard error and exits with status 1.

## Using the library

You can use the building blocks directly from Python:

```python
from schedmix.mixing import Effects, Substance, parse_rules_file

rules = parse_rules_file("rules.json")
effects = rules.apply(Substance.Cuke, Effects(0))
multiplier = rules.price_multiplier(effects)
```

- `schedmix.mixing` holds `Effects`, `Substance`, `Drugs`, `MixtureRules`,
  `parse_rules` and `parse_rules_file`. It also has `base_price`,
  `substance_cost`, `inherent_effects` and `effects_from_str`.
- `schedmix.combinatorial.CombinatorialEncoder` maps every combination of up
  to `max_k` of `n` items, held as a bitset, to a dense integer index and
  back.
- `schedmix.flat_storage.FlatStorage` stores a list of lists as one flat tuple
  with offsets.
- `schedmix.effect_graph.EffectGraph` holds the transition graph. Use `save`
  and `load` to write it to a file and read it back.
- `schedmix.mosp.multiobjective_shortest_path` returns the Pareto-optimal
  `Label`s for every node of a graph.
- `schedmix.cli` has `compute_routes`, `save_routes`, `load_routes`,
  `trace_path`, `lookup`, `search_inexact` and `best_profits`. These are the
  functions the commands use.

## Limitations

- The graph and routes files use this package's own binary layout. Each file
  starts with a marker and a version number, and files with any other layout
  or version are rejected.
- The whole computation runs in a single process and shows no progress.
  Building the full graph and its routes takes a long time and a lot of
  memory.