"""
Selection of a fixed strain composition from the members of one cluster.
"""

import logging
from collections import namedtuple

from .exceptions import MissingStrainError

SelectionResult = namedtuple('SelectionResult', ['selected', 'requested_total', 'satisfied'])


def group_by_strain(names, strains):
    """
    Groups member ids by strain, keeping the input order inside each group.

    Raises:
        MissingStrainError: If a member has no strain.
    """
    members_by_strain = {}
    for member_id in names:
        strain = strains.get(member_id)
        if strain is None:
            logging.error(f"{member_id} has no strain defined")
            raise MissingStrainError(member_id)
        members_by_strain.setdefault(strain, []).append(member_id)
    return members_by_strain


def strain_pair_distances(distance_matrix, members_by_strain):
    """
    Collects the distances between members of every ordered pair of strains.

    Returns:
        dict: ``{(strain_a, strain_b): {(member_x, member_y): distance}}`` where
        the member pair is sorted. Strain pairs without any member pair are left out.
    """
    pair_distances = {}
    for strain_a, members_a in members_by_strain.items():
        for strain_b, members_b in members_by_strain.items():
            distances = {}
            for member_a in members_a:
                for member_b in members_b:
                    if member_a != member_b:
                        pair = tuple(sorted((member_a, member_b)))
                        distances[pair] = distance_matrix[member_a, member_b]
            if distances:
                pair_distances[(strain_a, strain_b)] = distances
    return pair_distances


def select_by_composition(distance_matrix, strains, config):
    """
    Picks the members of a cluster that match a strain composition.

    Distance constraints run first, in their declared order. Each takes the
    closest (min_distance) or farthest (max_distance) remaining member pair
    between its two strains until both strains have their count or the pairs
    run out. Remaining slots are filled with the first unselected members of
    each short strain, in distance matrix order.

    Args:
        distance_matrix (DistanceMatrix): Distances between the cluster members.
        strains (dict): Member id -> strain label.
        config (StrainPruneConfig): Requested composition and constraints.

    Returns:
        SelectionResult: Selected ids in selection order, the requested total,
        and whether exactly that many members were selected.

    Raises:
        MissingStrainError: If any member of the matrix has no strain.
    """
    members_by_strain = group_by_strain(distance_matrix.names, strains)
    pair_distances = strain_pair_distances(distance_matrix, members_by_strain)

    needed = dict(config.composition)
    selected = []
    chosen = set()

    for constraint in config.constraints:
        distances = pair_distances.get((constraint.strain_a, constraint.strain_b))
        if not distances:
            logging.debug(f"No member pairs between {constraint.strain_a} and {constraint.strain_b}")
            continue

        if constraint.farthest_first:
            candidates = sorted(distances, key=lambda pair: (-distances[pair], pair))
        else:
            candidates = sorted(distances, key=lambda pair: (distances[pair], pair))

        while candidates and (needed.get(constraint.strain_a, 0) > 0 or needed.get(constraint.strain_b, 0) > 0):
            pair = candidates.pop(0)
            new_members = [member_id for member_id in pair if member_id not in chosen]
            if len(new_members) == 2:
                needed[constraint.strain_a] = needed.get(constraint.strain_a, 0) - 1
                needed[constraint.strain_b] = needed.get(constraint.strain_b, 0) - 1
            elif len(new_members) == 1:
                strain = strains[new_members[0]]
                needed[strain] = needed.get(strain, 0) - 1
            for member_id in new_members:
                chosen.add(member_id)
                selected.append(member_id)

    for strain in config.composition:
        for member_id in members_by_strain.get(strain, []):
            if needed[strain] <= 0:
                break
            if member_id not in chosen:
                chosen.add(member_id)
                selected.append(member_id)
                needed[strain] -= 1

    requested_total = config.expected_total
    return SelectionResult(selected, requested_total, len(selected) == requested_total)
