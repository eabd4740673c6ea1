"""Floor-to-floor connector chains for cross-floor routing."""

from __future__ import annotations

import logging
from collections import deque

from shapely.geometry import Point as ShapelyPoint

from schoolnav.points import Connector, Point, PointInventory

logger = logging.getLogger(__name__)


def _arrival_distance(connector: Connector, destination: Point) -> float:
    return float(ShapelyPoint(connector.x, connector.y).distance(ShapelyPoint(destination.x, destination.y)))


def resolve_connector_chain(
    inventory: PointInventory,
    start: Point,
    destination: Point,
) -> list[Connector] | None:
    """Find linked connectors leading from `start`'s floor to `destination`'s floor.

    BFS starts from every connector on the start floor at once and only
    follows the link pointing towards the destination floor (up-link when
    climbing, down-link when descending), one floor per hop. Of the
    connectors reached on the destination floor, the one closest to the
    destination point wins; ties keep BFS discovery order. This greedy
    arrival choice does not optimize the walk on earlier floors.

    Returns:
        Connectors ordered from start floor to destination floor, `[]` for a
        same-floor request, or None if the floors are not linked.
    """
    start_floor = int(start.floor)
    goal_floor = int(destination.floor)
    if start_floor == goal_floor:
        return []

    step = 1 if goal_floor > start_floor else -1

    frontier = inventory.connectors(start_floor)
    if not frontier:
        logger.warning("No connectors on start floor %d", start_floor)
        return None

    parent: dict[int, Connector | None] = {c.id: None for c in frontier}
    queue: deque[Connector] = deque(frontier)
    arrivals: list[Connector] = []

    while queue:
        current = queue.popleft()
        if current.floor == goal_floor:
            arrivals.append(current)
            continue

        link = current.link_towards(goal_floor)
        if link is None:
            continue

        nxt = inventory.get(link)
        if not isinstance(nxt, Connector) or nxt.floor != current.floor + step:
            logger.warning(
                "Connector %d links to %s which is not a connector on floor %d; ignoring link",
                current.id,
                link,
                current.floor + step,
            )
            continue
        if nxt.id in parent:
            continue

        parent[nxt.id] = current
        queue.append(nxt)

    if not arrivals:
        logger.info("No connector chain from floor %d to floor %d", start_floor, goal_floor)
        return None

    best = min(arrivals, key=lambda c: _arrival_distance(c, destination))

    chain: list[Connector] = [best]
    prev = parent[best.id]
    while prev is not None:
        chain.append(prev)
        prev = parent[prev.id]
    chain.reverse()

    logger.debug("Connector chain %s", [c.id for c in chain])
    return chain


def is_linked_hop(a: Point, b: Point) -> bool:
    """True if `a -> b` climbs or descends exactly one floor via a connector link."""
    if not isinstance(a, Connector) or not isinstance(b, Connector):
        return False
    if b.floor == a.floor + 1:
        return a.up_id == b.id
    if b.floor == a.floor - 1:
        return a.down_id == b.id
    return False


def broken_links(inventory: PointInventory) -> list[str]:
    """Describe connector links that point at nothing usable."""
    problems: list[str] = []
    for connector in inventory.connectors():
        for label, link, expected_floor in (
            ("up", connector.up_id, connector.floor + 1),
            ("down", connector.down_id, connector.floor - 1),
        ):
            if link is None:
                continue
            target = inventory.get(link)
            if target is None:
                problems.append(f"connector {connector.id} {label}-link {link} is unknown")
            elif not isinstance(target, Connector):
                problems.append(f"connector {connector.id} {label}-link {link} is not a connector")
            elif target.floor != expected_floor:
                problems.append(
                    f"connector {connector.id} {label}-link {link} is on floor {target.floor}, "
                    f"expected {expected_floor}"
                )
    return problems
