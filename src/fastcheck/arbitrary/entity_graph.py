"""Graphs of entities referencing each other: `entity_graph`.

Generation runs in two phases. The first one draws, entity after entity,
the integer indexes of the entities each relation points to; an index equal
to the current count of the target type creates a new entity, appended to
the queue of entities to process. The second phase draws the plain fields
of every entity. A final mapping replaces indexes by the entities
themselves, so the produced graph may hold cycles while everything that is
drawn and shrunk stays a tree of integers and records.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from fastcheck.arbitrary.array import array, unique_array
from fastcheck.arbitrary.constant import constant
from fastcheck.arbitrary.integer import integer
from fastcheck.arbitrary.oneof import option
from fastcheck.arbitrary.size import DepthContext, create_depth_identifier
from fastcheck.arbitrary.tuple import record, tuple_
from fastcheck.core.arbitrary import Arbitrary
from fastcheck.error import FastCheckError

Arity = Literal["0-1", "1", "many", "inverse"]
Strategy = Literal["exclusive", "successor", "any"]


@dataclass(frozen=True)
class Relation:
    """A field of an entity pointing to entities of `type`.

    Args:
        arity: "0-1" (optional link), "1" (mandatory link), "many" (list of
            links) or "inverse" (list of the entities linking to this one
            through `forward_field`, computed rather than drawn)
        type: Name of the targeted entity type
        strategy: How targets are chosen: "any" (default), "exclusive"
            (a target is never shared) or "successor" (only towards entities
            of the same type with a greater index)
        forward_field: For "inverse" relations, name of the relation field
            of `type` whose links are reverted
    """

    arity: Arity
    type: str
    strategy: Strategy = "any"
    forward_field: str | None = None


@dataclass(frozen=True)
class LinkRef:
    type: str
    index: int | list[int] | None


@dataclass
class _LinksState:
    produced_links: dict[str, list[dict[str, LinkRef]]]
    queue: list[tuple[str, int, int]] = field(default_factory=list)


def validate_relations(relations: Mapping[str, Mapping[str, Relation]]) -> None:
    """Reject relation setups the generator cannot honour."""
    non_exclusive_types: set[str] = set()
    exclusive_types: set[str] = set()
    for name, relations_for_name in relations.items():
        for field_name, relation in relations_for_name.items():
            if relation.type not in relations:
                msg = f"Relation {name}.{field_name} targets unknown type {relation.type}"
                raise FastCheckError.invalid_configuration(msg)
            if relation.arity == "inverse":
                forward = relations[relation.type].get(relation.forward_field or "")
                if forward is None or forward.arity == "inverse" or forward.type != name:
                    msg = (
                        f"Inverse relation {name}.{field_name} must point back to a forward "
                        f"relation of {relation.type} targeting {name}"
                    )
                    raise FastCheckError.invalid_configuration(msg)
                continue
            if relation.strategy == "exclusive":
                if relation.type in non_exclusive_types:
                    msg = f"Cannot mix exclusive with other strategies for type {relation.type}"
                    raise FastCheckError.invalid_configuration(msg)
                exclusive_types.add(relation.type)
            else:
                if relation.type in exclusive_types:
                    msg = f"Cannot mix exclusive with other strategies for type {relation.type}"
                    raise FastCheckError.invalid_configuration(msg)
                non_exclusive_types.add(relation.type)
            if relation.strategy == "successor" and relation.type != name:
                msg = "Cannot mix types for the strategy successor"
                raise FastCheckError.invalid_configuration(msg)
            if relation.strategy == "successor" and relation.arity == "1":
                msg = "Cannot use an arity of 1 for the strategy successor"
                raise FastCheckError.invalid_configuration(msg)


def _link_unitary_index_arbitrary(
    strategy: Strategy, current_index_if_same_type: int | None, count_in_target_type: int
) -> Arbitrary[int]:
    match strategy:
        case "exclusive":
            return constant(count_in_target_type)
        case "successor":
            low = current_index_if_same_type + 1 if current_index_if_same_type is not None else 0
            return integer(low, count_in_target_type).no_bias()
        case _:
            return integer(0, count_in_target_type).no_bias()


def _link_index_arbitrary(
    relation: Relation,
    current_index_if_same_type: int | None,
    count_in_target_type: int,
    depth: DepthContext,
) -> Arbitrary[Any]:
    link_arb = _link_unitary_index_arbitrary(
        relation.strategy, current_index_if_same_type, count_in_target_type
    )
    match relation.arity:
        case "0-1":
            return option(link_arb, nil=None, depth_identifier=depth)
        case "1":
            return link_arb
        case _:
            unicity = 0

            def selector(v: int) -> int:
                # Every request for a new entity is unique
                nonlocal unicity
                if v == count_in_target_type:
                    unicity += 1
                    return v + unicity
                return v

            def spread_new_entities(values: list[int]) -> list[int]:
                offset = 0
                spread = []
                for v in values:
                    if v == count_in_target_type:
                        spread.append(v + offset)
                        offset += 1
                    else:
                        spread.append(v)
                return spread

            # Depth does not control lengths: the option stops the recursion
            return option(
                unique_array(link_arb, selector=selector, min_length=1, depth_identifier=depth),
                nil=[],
                depth_identifier=depth,
            ).map(spread_new_entities)


def _process_from(
    relations: Mapping[str, Mapping[str, Relation]], state: _LinksState, index: int
) -> Arbitrary[dict[str, list[dict[str, LinkRef]]]]:
    while index < len(state.queue):
        entity_type, index_in_type, entity_depth = state.queue[index]
        forward_fields = [
            (name, relation)
            for name, relation in relations[entity_type].items()
            if relation.arity != "inverse"
        ]
        if forward_fields:
            break
        index += 1
    else:
        return constant(state.produced_links)

    depth = create_depth_identifier()
    depth.depth = entity_depth
    counts = [len(state.produced_links[relation.type]) for _, relation in forward_fields]
    link_arbs = [
        _link_index_arbitrary(
            relation,
            index_in_type if relation.type == entity_type else None,
            count,
            depth,
        )
        for (_, relation), count in zip(forward_fields, counts, strict=True)
    ]

    def with_links(link_indices: tuple[Any, ...]) -> Arbitrary[dict[str, list[dict[str, LinkRef]]]]:
        # Shrinking replays this function: never mutate the state it closes over
        next_state = copy.deepcopy(state)
        current_links = next_state.produced_links[entity_type][index_in_type]
        # Entities created by previous fields of this entity shift the new indexes
        created: dict[str, int] = {}
        for link_or_links, (name, relation), count in zip(
            link_indices, forward_fields, counts, strict=True
        ):
            shift = created.get(relation.type, 0)
            if link_or_links is None:
                current_links[name] = LinkRef(relation.type, None)
                continue
            links = [link_or_links] if isinstance(link_or_links, int) else link_or_links
            resolved = [link + shift if link >= count else link for link in links]
            for link in resolved:
                if link >= count:
                    next_state.queue.append((relation.type, link, entity_depth + 1))
                    next_state.produced_links[relation.type].append({})
            created[relation.type] = shift + sum(1 for link in links if link >= count)
            current_links[name] = LinkRef(
                relation.type, resolved[0] if isinstance(link_or_links, int) else resolved
            )
        return _process_from(relations, next_state, index + 1)

    return tuple_(*link_arbs).chain(with_links)


def on_the_fly_links(
    relations: Mapping[str, Mapping[str, Relation]], default_entities: Sequence[str]
) -> Arbitrary[dict[str, list[dict[str, LinkRef]]]]:
    """Link indexes of every entity, starting from `default_entities`."""
    state = _LinksState({name: [] for name in relations})
    for name in default_entities:
        state.queue.append((name, len(state.produced_links[name]), 0))
        state.produced_links[name].append({})
    return _process_from(relations, state, 0)


class LinkedEntity(dict):
    """Entity of a generated graph.

    Compared by identity: graphs may be cyclic. The repr shows links as
    `<type#index>` references.
    """

    _type: str
    _index: int
    _links: dict[str, LinkRef]

    def __eq__(self, other: object) -> bool:
        return self is other

    def __ne__(self, other: object) -> bool:
        return self is not other

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        parts = []
        for key, value in self.items():
            link = self._links.get(key)
            if link is None:
                rendered = repr(value)
            elif isinstance(value, list):
                rendered = "[" + ", ".join(f"<{_entity_ref(v)}>" for v in value) + "]"
            elif value is None:
                rendered = "None"
            else:
                rendered = f"<{_entity_ref(value)}>"
            parts.append(f"{key!r}: {rendered}")
        return "{" + ", ".join(parts) + "}"


def _entity_ref(entity: LinkedEntity) -> str:
    return f"{entity._type}#{entity._index}"


def unlinked_to_linked_entities(
    unlinked: Mapping[str, list[dict[str, Any]]],
    produced_links: Mapping[str, list[dict[str, LinkRef]]],
    relations: Mapping[str, Mapping[str, Relation]],
) -> dict[str, list[LinkedEntity]]:
    linked: dict[str, list[LinkedEntity]] = {}
    for name, entities in unlinked.items():
        linked[name] = []
        for index, fields in enumerate(entities):
            entity = LinkedEntity(fields)
            entity._type = name
            entity._index = index
            entity._links = {}
            linked[name].append(entity)
    for name, entity_links in produced_links.items():
        for index, links in enumerate(entity_links):
            instance = linked[name][index]
            for prop, ref in links.items():
                instance._links[prop] = ref
                if ref.index is None:
                    instance[prop] = None
                elif isinstance(ref.index, int):
                    instance[prop] = linked[ref.type][ref.index]
                else:
                    instance[prop] = [linked[ref.type][i] for i in ref.index]
    for name, relations_for_name in relations.items():
        for prop, relation in relations_for_name.items():
            if relation.arity != "inverse":
                continue
            for target_index, instance in enumerate(linked[name]):
                referrers = []
                for source_index, links in enumerate(produced_links[relation.type]):
                    ref = links.get(relation.forward_field or "")
                    if ref is None or ref.index is None:
                        continue
                    targets = [ref.index] if isinstance(ref.index, int) else ref.index
                    if target_index in targets:
                        referrers.append(linked[relation.type][source_index])
                instance._links[prop] = LinkRef(relation.type, None)
                instance[prop] = referrers
    return linked


def entity_graph(
    arbitraries: Mapping[str, Mapping[str, Arbitrary[Any]]],
    relations: Mapping[str, Mapping[str, Relation]],
    *,
    initial_pool_constraints: Mapping[str, Mapping[str, Any]] | None = None,
) -> Arbitrary[dict[str, list[LinkedEntity]]]:
    """Graphs of linked entities.

    Args:
        arbitraries: For each entity type, the arbitraries of its plain fields
        relations: For each entity type, its relation fields
        initial_pool_constraints: For each entity type, `array` options
            (`min_length`, `max_length`, `size`) bounding the number of
            entities created before following relations

    Returns:
        An arbitrary producing, for each entity type, the list of its entities

    Raises:
        ConfigurationError: When relations are inconsistent
    """
    full_relations = {name: dict(relations.get(name, {})) for name in arbitraries}
    validate_relations(full_relations)
    pool_constraints = initial_pool_constraints or {}
    names = list(arbitraries)

    def flatten(pools: tuple[list[str], ...]) -> list[str]:
        return [name for pool in pools for name in pool]

    default_entities_arb = tuple_(
        *[array(constant(name), **pool_constraints.get(name, {})) for name in names]
    ).map(flatten)

    def with_entities(
        produced_links: dict[str, list[dict[str, LinkRef]]],
    ) -> Arbitrary[dict[str, list[LinkedEntity]]]:
        counts = [len(produced_links[name]) for name in names]
        unlinked_arb = tuple_(
            *[
                array(record(arbitraries[name]), min_length=count, max_length=count)
                for name, count in zip(names, counts, strict=True)
            ]
        )
        return unlinked_arb.map(
            lambda unlinked: unlinked_to_linked_entities(
                dict(zip(names, unlinked, strict=True)), produced_links, full_relations
            )
        )

    return default_entities_arb.chain(
        lambda defaults: on_the_fly_links(full_relations, defaults)
    ).chain(with_entities)
