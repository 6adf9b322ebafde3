"""Tests for the random choice of cells, with and without the border restriction."""
import pytest

import sampling
from errors import Cancelled, NoBorderCellFound, NoCellFound
from tissue import Rectangle, Tissue


def enclosed_tissue():
    """a single A cell surrounded by a ring of B cells"""
    tissue = Tissue('Enclosed', size = (30, 30), seed = 2)
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    tissue.add_mutant('B', growth_rate = 0.2, death_rate = 0.1)
    tissue.add_cell('A', 11, 11)
    tissue.fill('B', Rectangle((10, 10), (12, 12)))
    return tissue


def test_border_cells_of_a_block(solid_block_tissue):
    is_border = lambda pos: sampling.is_border_cell(solid_block_tissue, solid_block_tissue.cell_at(pos))
    assert is_border((20, 25))
    assert is_border((29, 29))
    assert not is_border((25, 25))
    assert not is_border((21, 21))


def test_default_policy_follows_tissue(solid_block_tissue):
    for _ in range(30):
        record = sampling.choose_cell_in(solid_block_tissue, 'A')
        x, y = record.position_x, record.position_y
        assert x in (20, 29) or y in (20, 29)
        assert record.mutant == 'A'


def test_interior_cells_when_every_cell_duplicates(dense_block_tissue):
    rect = Rectangle((42, 42), (47, 47))
    for _ in range(20):
        record = sampling.choose_cell_in(dense_block_tissue, 'A', rect)
        assert rect.contains((record.position_x, record.position_y))


def test_explicit_border_flag():
    tissue = Tissue(size = (20, 20), seed = 4)
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    tissue.fill('A', Rectangle((5, 5), (14, 14)))
    assert tissue.duplicate_internal_cells
    for _ in range(20):
        record = sampling.choose_cell_in(tissue, 'A', border = True)
        assert record.position_x in (5, 14) or record.position_y in (5, 14)


def test_fully_occupied_tissue_borders_are_lattice_edges():
    tissue = Tissue(size = (5, 5), seed = 9, duplicate_internal_cells = False)
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    tissue.fill('A', Rectangle((0, 0), (4, 4)))
    for _ in range(30):
        record = sampling.choose_cell_in(tissue, 'A')
        assert record.position_x in (0, 4) or record.position_y in (0, 4)


def test_enclosed_cell_exhausts_attempts():
    tissue = enclosed_tissue()
    with pytest.raises(NoBorderCellFound) as excinfo:
        sampling.choose_cell_in(tissue, 'A', border = True, max_attempts = 25)
    assert excinfo.value.attempts == 25

    outcome = sampling.search_border_cell(tissue, {0}, max_attempts = 7)
    assert outcome == sampling.Exhausted(7)


def test_enclosing_ring_has_border_cells():
    tissue = enclosed_tissue()
    outcome = sampling.search_border_cell(tissue, {1})
    assert isinstance(outcome, sampling.Found)
    assert outcome.cell.species.mutant == 'B'


def test_no_candidate_cell(solid_block_tissue):
    with pytest.raises(NoCellFound):
        sampling.choose_cell_in(solid_block_tissue, 'A', Rectangle((0, 0), (9, 9)), border = False)
    with pytest.raises(NoCellFound):
        sampling.choose_cell_in(solid_block_tissue, 'A', Rectangle((0, 0), (9, 9)), border = True)


def test_border_search_is_cancelled():
    tissue = enclosed_tissue()
    with pytest.raises(Cancelled):
        sampling.choose_cell_in(tissue, 'A', border = True, cancel = lambda: True, check_interval = 1)


def test_sampler_uses_configured_attempts():
    sampler = sampling.TissueSampler(enclosed_tissue(), {'max_attempts': 3})
    with pytest.raises(NoBorderCellFound) as excinfo:
        sampler.choose_cell('A', border = True)
    assert excinfo.value.attempts == 3
    assert sampler.choose_cell('A', border = False).position_x == 11


def test_border_search_gives_up_after_1000_attempts():
    with pytest.raises(NoBorderCellFound) as excinfo:
        sampling.choose_cell_in(enclosed_tissue(), 'A', border = True)
    assert excinfo.value.attempts == 1000
    assert sampling.MAX_BORDER_ATTEMPTS == 1000
