"""Tests for the tissue lattice, its species catalog and its sample log."""
import numpy as np
import pytest

from errors import InvalidDimension, NoCellFound, UnknownSpeciesOrName
from tissue import WILD_TYPE, Rectangle, Tissue, get_position


def test_get_position_requires_two_components():
    assert get_position([3, 4]) == (3, 4)
    with pytest.raises(InvalidDimension):
        get_position((1, 2, 3))
    with pytest.raises(InvalidDimension):
        get_position([5])
    with pytest.raises(ValueError):
        get_position((1.5, 2))
    assert get_position((np.int64(3), 4)) == (3, 4)


def test_rectangle_from_corner_spans_width_and_height():
    rect = Rectangle.from_corner((500, 450), 50, 25)
    assert rect == Rectangle((500, 450), (549, 474))
    assert rect.n_positions() == 50*25
    assert rect.contains((549, 474))
    assert not rect.contains((550, 474))


def test_rectangle_degenerate_and_clip():
    assert Rectangle((5, 5), (4, 9)).is_degenerate()
    assert Rectangle((5, 5), (4, 9)).n_positions() == 0
    assert Rectangle((90, 95), (109, 104)).clip((100, 100)) == Rectangle((90, 95), (99, 99))
    with pytest.raises(ValueError):
        Rectangle.from_corner((0, 0), 0, 3)


def test_epigenetic_mutant_has_two_species():
    tissue = Tissue(size = (10, 10))
    plus, minus = tissue.add_mutant('A', epigenetic_rates = {'+-': 0.01, '-+': 0.02},
                                    growth_rates = {'+': 0.2, '-': 0.08}, death_rates = {'+': 0.1, '-': 0.01})
    assert (plus.name, minus.name) == ('A+', 'A-')
    assert plus.switch_rate == 0.01 and minus.switch_rate == 0.02
    assert tissue.mutant_species('A') == {plus.ID, minus.ID}
    assert tissue.signature_of(minus.ID) == '-'

    table = tissue.get_species_table()
    assert list(table.columns) == ['mutant', 'epistate', 'growth_rate', 'death_rate', 'switch_rate']
    assert table['growth_rate'].tolist() == [0.2, 0.08]


def test_plain_mutant_and_catalog_misses():
    tissue = Tissue(size = (10, 10))
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    assert tissue.name_of(0) == 'A'
    assert np.isnan(tissue.get_species_table()['switch_rate'][0])
    with pytest.raises(UnknownSpeciesOrName):
        tissue.name_of(5)
    with pytest.raises(UnknownSpeciesOrName):
        tissue.get_species('C')
    with pytest.raises(UnknownSpeciesOrName):
        tissue.mutant_species('C')
    with pytest.raises(ValueError):
        tissue.add_mutant('A', growth_rate = 0.1, death_rate = 0.1)


def test_place_cell_records_founder(empty_tissue):
    cell = empty_tissue.place_cell('A', 25, 25)
    assert empty_tissue.cell_at((25, 25)) is cell
    assert empty_tissue.cell_at((0, 0)).is_wild_type()
    assert empty_tissue.lineage_edges() == [(WILD_TYPE, 0, 0.0)]

    added = empty_tissue.get_added_cells()
    assert added[['mutant', 'position_x', 'position_y']].values.tolist() == [['A', 25, 25]]
    with pytest.raises(ValueError):
        empty_tissue.place_cell('B', 25, 25)
    with pytest.raises(ValueError):
        empty_tissue.place_cell('B', 50, 0)


def test_place_cell_warns_on_populated_tissue(empty_tissue, caplog):
    empty_tissue.place_cell('A', 1, 1)
    empty_tissue.place_cell('B', 2, 2)
    assert 'already contains a cell' in caplog.text


def test_mutate_and_remove_cell(empty_tissue):
    empty_tissue.place_cell('A', 3, 3)
    empty_tissue.clock = 2.5
    cell = empty_tissue.mutate_cell((3, 3), 'B')
    assert cell.species.name == 'B'
    assert empty_tissue.species_graph[3, 3] == 1
    assert empty_tissue.lineage_edges()[-1] == (0, 1, 2.5)
    assert empty_tissue.get_counts()['counts'].tolist() == [0, 1]

    empty_tissue.remove_cell((3, 3))
    assert cell.ID not in empty_tissue.cells
    assert empty_tissue.cell_at((3, 3)).is_wild_type()
    assert empty_tissue.num_of_cells() == 0
    with pytest.raises(ValueError):
        empty_tissue.remove_cell((3, 3))


def test_counts_match_lattice(mixed_tissue):
    counts = mixed_tissue.get_counts()
    for species in mixed_tissue:
        expected = int((mixed_tissue.species_graph == species.ID).sum())
        assert counts['counts'][species.ID] == expected


def test_weighted_random_cell_respects_rectangle(mixed_tissue):
    rect = Rectangle((0, 0), (4, 4))
    for _ in range(50):
        cell = mixed_tissue.weighted_random_cell({0, 1}, rect)
        assert rect.contains(cell.pos)
        assert cell.species.mutant == 'A'


def test_weighted_random_cell_skips_species_without_growth():
    tissue = Tissue(size = (10, 10), seed = 5)
    tissue.add_mutant('A', growth_rate = 0.0, death_rate = 0.1)
    tissue.add_mutant('B', growth_rate = 1.0, death_rate = 0.1)
    tissue.fill('A', Rectangle((0, 0), (4, 9)))
    tissue.fill('B', Rectangle((5, 0), (5, 0)))
    for _ in range(20):
        assert tissue.weighted_random_cell([0, 1]).species.name == 'B'


def test_weighted_random_cell_without_candidates(empty_tissue):
    with pytest.raises(NoCellFound):
        empty_tissue.weighted_random_cell(0)


def test_rates_roundtrip():
    tissue = Tissue(size = (10, 10))
    tissue.add_mutant('A', epigenetic_rates = {'+-': 0.01, '-+': 0.02},
                      growth_rates = {'+': 0.2, '-': 0.08}, death_rates = {'+': 0.1, '-': 0.01})
    tissue.update_rates('A+', {'growth': 0.5, 'switch': 0.03})
    assert tissue.get_rates('A+') == {'growth': 0.5, 'death': 0.1, 'switch': 0.03}
    with pytest.raises(ValueError, match = 'Supported events are'):
        tissue.update_rates('A-', {'duplication': 1.0})


def test_sample_cells_counts_tumoural_cells(mixed_tissue):
    mixed_tissue.clock = 12.0
    rect = Rectangle((0, 0), (9, 9))
    sample = mixed_tissue.sample_cells('S_1', rect)
    expected = int((mixed_tissue.graph[0:10, 0:10] > 0).sum())
    assert len(sample.cell_ids) == expected

    info = mixed_tissue.get_samples_info()
    assert list(info.columns) == ['name', 'xmin', 'ymin', 'xmax', 'ymax', 'tumoural cells', 'time']
    assert info.iloc[0].tolist() == ['S_1', 0, 0, 9, 9, expected, 12.0]
