"""
Tests for strain composition selection.
"""
import pytest

from phygecluster.config import StrainPruneConfig
from phygecluster.exceptions import ConfigurationError, MissingStrainError
from phygecluster.strains import group_by_strain, select_by_composition

from tests.conftest import make_distance_matrix


class TestStrainPruneConfig:

    def test_from_mapping(self):
        config = StrainPruneConfig.from_mapping({
            'composition': {'A': 2, 'B': 1},
            'min_distance': [['A', 'B']],
            'max_distance': [('A', 'A')],
        })
        assert config.expected_total == 3
        assert [(c.kind, c.strain_a, c.strain_b) for c in config.constraints] == [
            ('min_distance', 'A', 'B'),
            ('max_distance', 'A', 'A'),
        ]

    @pytest.mark.parametrize("args", [
        {},
        {'min_distance': [['A', 'B']]},
        {'composition': {'A': 1}, 'median_distance': [['A', 'B']]},
        {'composition': {'A': -1}},
        {'composition': {'A': 1}, 'min_distance': ['A', 'B']},
        {'composition': {'A': 1}, 'min_distance': 'A,B'},
        ['composition'],
    ])
    def test_invalid_arguments(self, args):
        with pytest.raises(ConfigurationError):
            StrainPruneConfig.from_mapping(args)


class TestSelectByComposition:

    def test_min_distance_picks_closest_pair(self, strain_distances):
        matrix, strains = strain_distances
        config = StrainPruneConfig.from_mapping({'composition': {'A': 1, 'B': 1}, 'min_distance': [['A', 'B']]})
        result = select_by_composition(matrix, strains, config)
        assert result.satisfied
        assert result.selected == ['a1', 'b2']

    def test_max_distance_picks_farthest_pair(self, strain_distances):
        matrix, strains = strain_distances
        config = StrainPruneConfig.from_mapping({'composition': {'A': 1, 'B': 1}, 'max_distance': [['A', 'B']]})
        result = select_by_composition(matrix, strains, config)
        assert result.satisfied
        assert result.selected == ['a1', 'b1']

    def test_fill_without_constraints_uses_matrix_order(self, strain_distances):
        matrix, strains = strain_distances
        result = select_by_composition(matrix, strains, StrainPruneConfig({'A': 1, 'B': 2}))
        assert result.selected == ['a1', 'b1', 'b2']
        assert result.satisfied

    def test_constraint_then_fill(self, strain_distances):
        matrix, strains = strain_distances
        config = StrainPruneConfig.from_mapping({'composition': {'A': 2, 'B': 1}, 'min_distance': [['A', 'B']]})
        result = select_by_composition(matrix, strains, config)
        assert result.selected == ['a1', 'b2', 'a2']
        assert result.satisfied

    def test_only_new_member_is_counted(self):
        names = ['a1', 'b1', 'b2']
        matrix = make_distance_matrix(names, {('a1', 'b1'): 0.1, ('a1', 'b2'): 0.2, ('b1', 'b2'): 0.9})
        strains = {'a1': 'A', 'b1': 'B', 'b2': 'B'}
        config = StrainPruneConfig.from_mapping({'composition': {'A': 1, 'B': 2}, 'min_distance': [['A', 'B']]})
        result = select_by_composition(matrix, strains, config)
        assert result.selected == ['a1', 'b1', 'b2']
        assert result.satisfied

    def test_idempotent(self, strain_distances):
        matrix, strains = strain_distances
        config = StrainPruneConfig.from_mapping({'composition': {'A': 1, 'B': 1}, 'max_distance': [['B', 'A']]})
        assert select_by_composition(matrix, strains, config) == select_by_composition(matrix, strains, config)

    def test_unsatisfiable_composition_is_rejected(self):
        names = ['a1', 'a2', 'a3']
        matrix = make_distance_matrix(names, {('a1', 'a2'): 0.1, ('a1', 'a3'): 0.2, ('a2', 'a3'): 0.3})
        strains = {'a1': 'A', 'a2': 'A', 'a3': 'A'}
        result = select_by_composition(matrix, strains, StrainPruneConfig({'A': 2, 'B': 1}))
        assert result.requested_total == 3
        assert len(result.selected) == 2
        assert not result.satisfied

    def test_missing_strain_is_fatal(self, strain_distances):
        matrix, strains = strain_distances
        del strains['b2']
        with pytest.raises(MissingStrainError, match="b2 has no strain defined"):
            select_by_composition(matrix, strains, StrainPruneConfig({'A': 1}))

    def test_group_by_strain_keeps_order(self):
        assert group_by_strain(['x', 'y', 'z'], {'x': 'B', 'y': 'A', 'z': 'B'}) == {'B': ['x', 'z'], 'A': ['y']}
