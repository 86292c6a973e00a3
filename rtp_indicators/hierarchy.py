"""
Entity hierarchy: region -> district -> circuit -> school.

The tree is held as an arena: a list of Entity nodes, an id -> position
index and per-node tuples of child positions. It is validated once when it
is built from a dim_entity table and is read-only afterwards.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterator

import pandas as pd

from .config import ENTITY_LEVELS
from .errors import EntityNotFound, HierarchyError

logger = logging.getLogger(__name__)

DIM_ENTITY_COLUMNS = ["entity_id", "entity_type", "name", "parent_id"]


def normalise_id(value) -> str | None:
    """String form of an entity or itinerary id; whole floats lose their ".0"."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


@dataclass(frozen=True)
class Entity:
    id: str
    type: str
    name: str
    parent_id: str | None
    child_ids: tuple[str, ...] = ()


class EntityTree:
    """Validated, immutable region/district/circuit/school tree.

    Children are derived from parent_id; any child_ids passed in on the
    entities are replaced with the derived ones.
    """

    def __init__(self, entities: list[Entity]):
        self._nodes: tuple[Entity, ...] = tuple(entities)
        self._index: dict[str, int] = {}
        for pos, entity in enumerate(self._nodes):
            if entity.id in self._index:
                raise HierarchyError(f"Duplicate entity id {entity.id!r}")
            self._index[entity.id] = pos

        children: list[list[int]] = [[] for _ in self._nodes]
        roots = []
        for pos, entity in enumerate(self._nodes):
            if entity.parent_id is None:
                roots.append(pos)
                continue
            parent_pos = self._index.get(entity.parent_id)
            if parent_pos is None:
                raise HierarchyError(
                    f"{entity.type} {entity.id!r} references missing parent {entity.parent_id!r}"
                )
            children[parent_pos].append(pos)

        self._children: tuple[tuple[int, ...], ...] = tuple(tuple(c) for c in children)
        self._nodes = tuple(
            replace(entity, child_ids=tuple(self._nodes[c].id for c in children[pos]))
            for pos, entity in enumerate(self._nodes)
        )
        self._roots: tuple[int, ...] = tuple(roots)
        self._validate()

    def _validate(self) -> None:
        for pos, entity in enumerate(self._nodes):
            if entity.type not in ENTITY_LEVELS:
                raise HierarchyError(f"Entity {entity.id!r} has unknown type {entity.type!r}")
            level = ENTITY_LEVELS.index(entity.type)

            if entity.parent_id is None:
                if level != 0:
                    raise HierarchyError(f"{entity.type} {entity.id!r} has no parent")
            else:
                parent = self._nodes[self._index[entity.parent_id]]
                if level == 0 or parent.type != ENTITY_LEVELS[level - 1]:
                    raise HierarchyError(
                        f"{entity.type} {entity.id!r} cannot sit under {parent.type} {parent.id!r}"
                    )

            if entity.type == ENTITY_LEVELS[-1] and self._children[pos]:
                raise HierarchyError(f"School {entity.id!r} has children")

        # Every node must be reached from a region exactly once.
        seen = set()
        stack = list(self._roots)
        while stack:
            pos = stack.pop()
            if pos in seen:
                raise HierarchyError(f"Cycle detected at {self._nodes[pos].id!r}")
            seen.add(pos)
            stack.extend(self._children[pos])
        if len(seen) != len(self._nodes):
            unreached = [e.id for i, e in enumerate(self._nodes) if i not in seen]
            raise HierarchyError(f"Entities not reachable from a region: {unreached[:5]}")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, entity_id) -> bool:
        return entity_id in self._index

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._nodes)

    def get(self, entity_id) -> Entity:
        try:
            return self._nodes[self._index[entity_id]]
        except KeyError:
            raise EntityNotFound(entity_id) from None

    def children(self, entity_id) -> list[Entity]:
        self.get(entity_id)
        return [self._nodes[c] for c in self._children[self._index[entity_id]]]

    def parent(self, entity_id) -> Entity | None:
        entity = self.get(entity_id)
        return None if entity.parent_id is None else self.get(entity.parent_id)

    def roots(self) -> list[Entity]:
        return [self._nodes[r] for r in self._roots]

    def ancestors(self, entity_id) -> list[Entity]:
        """Return the chain of ancestors, nearest first."""
        chain = []
        parent = self.parent(entity_id)
        while parent is not None:
            chain.append(parent)
            parent = self.parent(parent.id)
        return chain

    def subtree(self, entity_id) -> list[Entity]:
        """Entities under entity_id (inclusive) in post-order: children before parents."""
        return [self._nodes[p] for p in self._post_order(self._index_of(entity_id))]

    def subtree_ids(self, entity_id) -> set[str]:
        return {e.id for e in self.subtree(entity_id)}

    def _index_of(self, entity_id) -> int:
        try:
            return self._index[entity_id]
        except KeyError:
            raise EntityNotFound(entity_id) from None

    def _post_order(self, start: int) -> list[int]:
        order = []
        stack = [(start, False)]
        while stack:
            pos, expanded = stack.pop()
            if expanded:
                order.append(pos)
                continue
            stack.append((pos, True))
            for child in reversed(self._children[pos]):
                stack.append((child, False))
        return order

    def to_frame(self) -> pd.DataFrame:
        """Return the tree as a dim_entity table."""
        return pd.DataFrame(
            [
                {
                    "entity_id": e.id,
                    "entity_type": e.type,
                    "name": e.name,
                    "parent_id": e.parent_id,
                }
                for e in self._nodes
            ],
            columns=DIM_ENTITY_COLUMNS,
        )


def build_entity_tree(dim_entity: pd.DataFrame) -> EntityTree:
    """Build and validate the hierarchy from a dim_entity DataFrame.

    Parameters
    ----------
    dim_entity : DataFrame with columns entity_id, entity_type, name,
                 parent_id (null for regions).

    Returns
    -------
    EntityTree. Raises HierarchyError if the table is not a valid tree.
    """
    missing = [c for c in DIM_ENTITY_COLUMNS if c not in dim_entity.columns]
    if missing:
        raise HierarchyError(f"dim_entity is missing columns: {missing}")

    entities = []
    for row in dim_entity.itertuples(index=False):
        entity_id = normalise_id(row.entity_id)
        entities.append(
            Entity(
                id=entity_id,
                type=str(row.entity_type).strip().lower(),
                name=str(row.name) if pd.notna(row.name) else entity_id,
                parent_id=normalise_id(row.parent_id),
            )
        )

    tree = EntityTree(entities)
    logger.info("Built entity tree with %d entities (%d regions)", len(tree), len(tree.roots()))
    return tree
