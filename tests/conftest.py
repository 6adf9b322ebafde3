"""
Pytest configuration for the tissue sampling tests.
"""
import sys
import os
import pytest

# Add the repository root to the Python path so tests can import the modules
root_path = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, root_path)

from tissue import Rectangle, Tissue


def add_epigenetic_mutant(tissue, name):
    return tissue.add_mutant(name, epigenetic_rates = {'+-': 0.01, '-+': 0.01},
                             growth_rates = {'+': 0.2, '-': 0.08}, death_rates = {'+': 0.1, '-': 0.01})


# ==============================================================================
# Tissue Fixtures
# ==============================================================================

@pytest.fixture
def empty_tissue():
    """50x50 tissue with mutants A and B but no cell."""
    tissue = Tissue('Empty', size = (50, 50), seed = 1)
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    tissue.add_mutant('B', growth_rate = 0.3, death_rate = 0.1)
    return tissue


@pytest.fixture
def mixed_tissue():
    """20x15 tissue with A+ (id 0), A- (id 1) and B (id 2) cells laid out by a fixed pattern."""
    tissue = Tissue('Mixed', size = (20, 15), seed = 7)
    add_epigenetic_mutant(tissue, 'A')
    tissue.add_mutant('B', growth_rate = 0.3, death_rate = 0.05)
    labels = {0: 'A+', 1: 'A-', 2: 'B'}
    for x in range(20):
        for y in range(15):
            label = labels.get((7*x + 3*y) % 5)
            if label is not None:
                tissue.add_cell(label, x, y)
    return tissue


@pytest.fixture
def dense_block_tissue():
    """100x100 tissue with sparse A cells on a 9-step lattice and a dense 10x10 block of A at (40, 40)."""
    tissue = Tissue('Dense', size = (100, 100), seed = 3)
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    tissue.add_mutant('B', growth_rate = 0.2, death_rate = 0.1)
    for x in range(0, 100, 9):
        for y in range(0, 100, 9):
            tissue.add_cell('A', x, y)
    tissue.fill('A', Rectangle((40, 40), (49, 49)))
    return tissue


@pytest.fixture
def solid_block_tissue():
    """50x50 tissue with a solid 10x10 block of A at (20, 20) using the border growth model."""
    tissue = Tissue('Block', size = (50, 50), seed = 11, duplicate_internal_cells = False)
    tissue.add_mutant('A', growth_rate = 0.2, death_rate = 0.1)
    tissue.fill('A', Rectangle((20, 20), (29, 29)))
    return tissue
