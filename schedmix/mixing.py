"""Effects, substances and the rules that govern mixing them."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from os import PathLike
from typing import Any, Iterable, Iterator, Mapping

MAX_EFFECTS = 8
NUM_EFFECTS = 34


class Effects(enum.IntFlag):
    """A set of effects held as bit flags."""

    AntiGravity = 1 << 0
    Athletic = 1 << 1
    Balding = 1 << 2
    BrightEyed = 1 << 3
    Calming = 1 << 4
    CalorieDense = 1 << 5
    Cyclopean = 1 << 6
    Disorienting = 1 << 7
    Electrifying = 1 << 8
    Energizing = 1 << 9
    Euphoric = 1 << 10
    Explosive = 1 << 11
    Focused = 1 << 12
    Foggy = 1 << 13
    Gingeritis = 1 << 14
    Glowing = 1 << 15
    Jennerising = 1 << 16
    Laxative = 1 << 17
    LongFaced = 1 << 18
    Munchies = 1 << 19
    Paranoia = 1 << 20
    Refreshing = 1 << 21
    Schizophrenia = 1 << 22
    Sedating = 1 << 23
    Shrinking = 1 << 24
    SeizureInducing = 1 << 25
    Slippery = 1 << 26
    Smelly = 1 << 27
    Sneaky = 1 << 28
    Spicy = 1 << 29
    Toxic = 1 << 30
    ThoughtProvoking = 1 << 31
    TropicThunder = 1 << 32
    Zombifying = 1 << 33

    def __str__(self) -> str:
        value = int(self)
        return " | ".join(
            member.name for member in type(self) if value & int(member)
        )

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)


class Substance(enum.IntEnum):
    """An ingredient that can be mixed into a product."""

    Cuke = 0
    FluMedicine = 1
    Gasoline = 2
    Donut = 3
    EnergyDrink = 4
    MouthWash = 5
    MotorOil = 6
    Banana = 7
    Chili = 8
    Iodine = 9
    Paracetamol = 10
    Viagra = 11
    HorseSemen = 12
    MegaBean = 13
    Addy = 14
    Battery = 15


SUBSTANCES: tuple[Substance, ...] = tuple(Substance)


class Drugs(enum.IntEnum):
    """A base product."""

    OGKush = 0
    SourDiesel = 1
    GreenCrack = 2
    GranddaddyPurple = 3
    Meth = 4
    Cocaine = 5

    def __str__(self) -> str:
        return _DRUG_NAMES[self]

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)


_DRUG_NAMES = {
    Drugs.OGKush: "OG Kush",
    Drugs.SourDiesel: "Sour Diesel",
    Drugs.GreenCrack: "Green Crack",
    Drugs.GranddaddyPurple: "Granddaddy Purple",
    Drugs.Meth: "Meth",
    Drugs.Cocaine: "Cocaine",
}

_INHERENT_EFFECTS = {
    Drugs.OGKush: Effects.Calming,
    Drugs.SourDiesel: Effects.Refreshing,
    Drugs.GreenCrack: Effects.Energizing,
    Drugs.GranddaddyPurple: Effects.Sedating,
}

_BASE_PRICES = {
    Drugs.OGKush: 35.0,
    Drugs.SourDiesel: 35.0,
    Drugs.GreenCrack: 35.0,
    Drugs.GranddaddyPurple: 35.0,
    Drugs.Meth: 70.0,
    Drugs.Cocaine: 150.0,
}

_SUBSTANCE_COSTS = {
    Substance.Cuke: 2,
    Substance.Banana: 2,
    Substance.Paracetamol: 3,
    Substance.Donut: 3,
    Substance.Viagra: 4,
    Substance.MouthWash: 4,
    Substance.FluMedicine: 5,
    Substance.Gasoline: 5,
    Substance.EnergyDrink: 6,
    Substance.MotorOil: 6,
    Substance.MegaBean: 7,
    Substance.Chili: 7,
    Substance.Battery: 8,
    Substance.Iodine: 8,
    Substance.Addy: 9,
    Substance.HorseSemen: 9,
}

_SUBSTANCE_CODES = {code: substance for code, substance in zip("ABCDEFGHIJKLMNOP", Substance)}

_EFFECT_CODES = {
    "Ag": Effects.AntiGravity,
    "At": Effects.Athletic,
    "Ba": Effects.Balding,
    "Be": Effects.BrightEyed,
    "Ca": Effects.Calming,
    "Cd": Effects.CalorieDense,
    "Cy": Effects.Cyclopean,
    "Di": Effects.Disorienting,
    "El": Effects.Electrifying,
    "En": Effects.Energizing,
    "Eu": Effects.Euphoric,
    "Ex": Effects.Explosive,
    "Fc": Effects.Focused,
    "Fo": Effects.Foggy,
    "Gi": Effects.Gingeritis,
    "Gl": Effects.Glowing,
    "Je": Effects.Jennerising,
    "La": Effects.Laxative,
    "Lf": Effects.LongFaced,
    "Mu": Effects.Munchies,
    "Pa": Effects.Paranoia,
    "Re": Effects.Refreshing,
    "Sc": Effects.Schizophrenia,
    "Se": Effects.Sedating,
    "Sh": Effects.Shrinking,
    "Si": Effects.SeizureInducing,
    "Sl": Effects.Slippery,
    "Sm": Effects.Smelly,
    "Sn": Effects.Sneaky,
    "Sp": Effects.Spicy,
    "To": Effects.Toxic,
    "Tp": Effects.ThoughtProvoking,
    "Tt": Effects.TropicThunder,
    "Zo": Effects.Zombifying,
}

_EMPTY = Effects(0)


def _contains(effects: Effects, other: Effects) -> bool:
    return int(effects) & int(other) == int(other)


def inherent_effects(drug: Drugs) -> Effects:
    """Effects a base product has before anything is mixed in."""
    return _INHERENT_EFFECTS.get(Drugs(drug), _EMPTY)


def base_price(drug: Drugs) -> float:
    """Base selling price of a product."""
    return _BASE_PRICES[Drugs(drug)]


def substance_cost(substance: Substance) -> int:
    """Purchase cost of one unit of a substance."""
    return _SUBSTANCE_COSTS[Substance(substance)]


def string_to_substance(code: str) -> Substance | None:
    """Map a one-letter rules-file code to a substance, or None if unknown."""
    return _SUBSTANCE_CODES.get(code)


def string_to_effect(code: str) -> Effects:
    """Map a two-letter rules-file code to an effect."""
    try:
        return _EFFECT_CODES[code]
    except KeyError:
        raise ValueError(f"Unknown effect: {code}") from None


def effects_from_str(text: str) -> Effects:
    """Parse effect names separated by ``|``, such as ``"Calming | Foggy"``."""
    if not text.strip():
        return _EMPTY
    result = _EMPTY
    for token in text.split("|"):
        name = token.strip()
        if not name:
            raise ValueError("encountered empty flag")
        if name.startswith("0x"):
            raise ValueError(f"unrecognized named flag `{name}`")
        try:
            member = Effects[name]
        except KeyError:
            raise ValueError(f"unrecognized named flag `{name}`") from None
        result |= member
    return result


@dataclass(frozen=True, order=True)
class Rule:
    """A conditional replacement of effects."""

    if_present: Effects
    if_not_present: Effects
    remove: Effects
    add: Effects


@dataclass(frozen=True)
class MixtureRules:
    """Replacement rules, inherent effects per substance and price multipliers."""

    replacement_rules: tuple[tuple[Rule, ...], ...]
    inherent_effects: tuple[Effects, ...]
    price_mults: tuple[float, ...]

    def apply(self, substance: Substance, effects: Effects) -> Effects:
        """Return the effects after mixing ``substance`` into ``effects``."""
        index = int(Substance(substance))
        current = int(effects)
        for rule in self.replacement_rules[index]:
            present = current & int(rule.if_present) == int(rule.if_present)
            blocked = current & int(rule.if_not_present) == int(rule.if_not_present)
            if present and not blocked:
                current = (current & ~int(rule.remove)) | int(rule.add)
        if current.bit_count() < MAX_EFFECTS:
            current |= int(self.inherent_effects[index])
        return Effects(current)

    def price_multiplier(self, effects: Effects) -> float:
        """Price multiplier of a set of effects: one plus each effect's share."""
        bits = int(effects)
        return 1.0 + sum(
            mult for i, mult in enumerate(self.price_mults) if bits & (1 << i)
        )


def _combine(codes: Iterable[str]) -> Effects:
    result = _EMPTY
    for code in codes:
        result |= string_to_effect(code)
    return result


def _field(obj: Mapping[str, Any], key: str) -> Any:
    try:
        return obj[key]
    except (KeyError, TypeError):
        raise ValueError(f"missing field `{key}`") from None


def _topological_order(edges: Iterable[tuple[Effects, Effects]]) -> Iterator[Effects]:
    """Yield nodes with no remaining predecessors; stop when none is left (e.g. a cycle)."""
    pred_count: dict[Effects, int] = {}
    successors: dict[Effects, set[Effects]] = {}
    for prec, succ in edges:
        for node in (prec, succ):
            pred_count.setdefault(node, 0)
            successors.setdefault(node, set())
        if succ not in successors[prec]:
            successors[prec].add(succ)
            pred_count[succ] += 1
    while True:
        ready = next((node for node, count in pred_count.items() if count == 0), None)
        if ready is None:
            return
        del pred_count[ready]
        for succ in successors.pop(ready):
            pred_count[succ] -= 1
        yield ready


def _order_rules(rules: list[Rule]) -> tuple[Rule, ...]:
    ordered = []
    for effects in _topological_order((r.if_not_present, r.if_present) for r in rules):
        match = next((r for r in rules if r.if_present == effects), None)
        if match is not None:
            ordered.append(match)
    return tuple(ordered)


def parse_rules(data: Mapping[str, Any]) -> MixtureRules:
    """Build mixture rules from the decoded contents of a rules file."""
    per_substance: list[list[Rule]] = [[] for _ in SUBSTANCES]

    for rule_json in _field(data, "rules"):
        substance = string_to_substance(_field(rule_json, "requires_substance"))
        if substance is None:
            continue
        remove = _EMPTY
        add = _EMPTY
        for source, target in _field(rule_json, "replace").items():
            remove |= string_to_effect(source)
            add |= string_to_effect(target)
        per_substance[substance].append(
            Rule(
                if_present=_combine(_field(rule_json, "if_present")),
                if_not_present=_combine(_field(rule_json, "if_not_present")),
                remove=remove,
                add=add,
            )
        )

    inherent = [_EMPTY] * len(SUBSTANCES)
    for effect_json in _field(data, "effects"):
        code = _field(effect_json, "substance")
        substance = string_to_substance(code)
        if substance is None:
            raise ValueError(f"unknown substance: {code}")
        inherent[substance] = _combine(_field(effect_json, "effect"))

    price_mults = [0.0] * NUM_EFFECTS
    for code, price in _field(data, "effect_price").items():
        effect = string_to_effect(code)
        price_mults[int(effect).bit_length() - 1] = float(price)

    return MixtureRules(
        replacement_rules=tuple(_order_rules(rules) for rules in per_substance),
        inherent_effects=tuple(inherent),
        price_mults=tuple(price_mults),
    )


def parse_rules_file(path: str | PathLike[str]) -> MixtureRules:
    """Read a JSON rules file."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    return parse_rules(data)