"""Spatial sampling and queries over a tissue lattice.

Functions in this module read a Tissue and never modify its lattice:
- get_cells / query_cells / count_cells / get_cell: cell records filtered by region, species and epigenetic state
- get_tumor_bounding_box: smallest rectangle holding every tumoural cell
- search_sample: a fixed size rectangle holding more than a given number of cells of a mutant
- choose_cell_in: one random cell of a mutant, optionally restricted to cells facing the tissue border
- sorted_timed_edges / get_lineage_graph: species transitions ordered by time

TissueSampler binds these functions to a tissue and a configuration dictionary.
"""
import logging
from collections import namedtuple

import numpy as np
import pandas as pd

import utils
from errors import InfeasibleRegion, NoBorderCellFound, UnknownSpeciesOrName
from tissue import EPISTATES, WILD_TYPE, WILD_TYPE_NAME, Rectangle, TimedLineageEdge, get_position

logger = logging.getLogger(__name__)

MAX_BORDER_ATTEMPTS = 1000
CHECK_INTERVAL = 10000

CellRecord = namedtuple('CellRecord', ['cell_id', 'species_id', 'mutant', 'epistate',
                                       'position_x', 'position_y', 'birth_time'])
RECORD_COLUMNS = list(CellRecord._fields)

#cell selections accepted by query_cells
ByPosition = namedtuple('ByPosition', ['lower_corner', 'upper_corner'])
ByName = namedtuple('ByName', ['mutants', 'epistates'])

#outcomes of the border cell search
Found = namedtuple('Found', ['cell'])
Exhausted = namedtuple('Exhausted', ['attempts'])


def wrap_a_cell(cell):
    """return the CellRecord of a Cell, wild-type sites included"""
    if cell.is_wild_type():
        return CellRecord(0, WILD_TYPE, WILD_TYPE_NAME, '', cell.pos.x, cell.pos.y, None)
    species = cell.species
    return CellRecord(cell.ID, species.ID, species.mutant, species.epistate, cell.pos.x, cell.pos.y, cell.birth_time)


def records_to_frame(records):
    return pd.DataFrame(list(records), columns = RECORD_COLUMNS)


def get_rectangle(lower_corner, upper_corner):
    """build a Rectangle from two corners, raising InvalidDimension unless both are 2 dimensional"""
    return Rectangle(get_position(lower_corner), get_position(upper_corner))


def whole_tissue(tissue):
    width, height = tissue.size()
    return Rectangle((0, 0), (width-1, height-1))


def iter_cells(tissue, lower_corner, upper_corner, species_filter, epigenetic_filter, check = None):
    """yield the cells inside the rectangle whose species is in species_filter and whose
    epigenetic state is in epigenetic_filter.

    Cells are visited x first then y, i.e. for every x from lower to upper, every y from lower to upper.
    Empty sites are skipped without looking at the filters. An inverted rectangle yields nothing,
    any other rectangle must lie inside the tissue.
    """
    rectangle = get_rectangle(lower_corner, upper_corner)
    if rectangle.is_degenerate():
        return
    if not (tissue.is_valid(rectangle.lower_corner) and tissue.is_valid(rectangle.upper_corner)):
        width, height = tissue.size()
        raise ValueError(f'{rectangle} is not inside the {width} x {height} tissue')
    check = utils.CancelCheck() if check is None else check
    (x0, y0), (x1, y1) = rectangle
    for x in range(x0, x1+1):
        for y in range(y0, y1+1):
            check.tick()
            cell = tissue.cell_at((x, y))
            if cell.is_wild_type():
                continue
            if cell.species.ID in species_filter and cell.species.epistate in epigenetic_filter:
                yield cell


def get_cells(tissue, lower_corner, upper_corner, species_filter, epigenetic_filter, cancel = None,
              check_interval = CHECK_INTERVAL):
    """return a DataFrame with one CellRecord per matching cell of the rectangle, in scan order.
    Inputs:
        - tissue: Tissue
        - lower_corner, upper_corner: 2 dimensional corners of the rectangle, both included
        - species_filter: set of species IDs
        - epigenetic_filter: set of epigenetic states among '+', '-' and ''
        - cancel: optional cancellation probe
    Outputs:
        - DataFrame with columns RECORD_COLUMNS
    """
    check = utils.CancelCheck(cancel, check_interval)
    cells = iter_cells(tissue, lower_corner, upper_corner, set(species_filter), set(epigenetic_filter), check)
    return records_to_frame(wrap_a_cell(cell) for cell in cells)


def count_cells(tissue, lower_corner, upper_corner, species_filter, epigenetic_filter, cancel = None,
                check_interval = CHECK_INTERVAL):
    """number of rows get_cells would return"""
    check = utils.CancelCheck(cancel, check_interval)
    cells = iter_cells(tissue, lower_corner, upper_corner, set(species_filter), set(epigenetic_filter), check)
    return sum(1 for _ in cells)


def resolve_query(tissue, *selections):
    """turn query_cells selections into (Rectangle, species IDs, epigenetic states).

    selections holds at most one ByPosition and at most one ByName. The rectangle defaults to the
    whole tissue, the species to every species and the epigenetic states to '+', '-' and ''.
    """
    rectangle = None
    species_filter = None
    epigenetic_filter = None
    for selection in selections:
        if isinstance(selection, ByPosition):
            if rectangle is not None:
                raise TypeError('query_cells accepts a single ByPosition selection')
            rectangle = get_rectangle(selection.lower_corner, selection.upper_corner)
        elif isinstance(selection, ByName):
            if species_filter is not None:
                raise TypeError('query_cells accepts a single ByName selection')
            mutants = [selection.mutants] if isinstance(selection.mutants, str) else selection.mutants
            epistates = [selection.epistates] if isinstance(selection.epistates, str) else selection.epistates
            species_filter = tissue.species_ids_of(mutants)
            for epistate in epistates:
                if epistate not in EPISTATES:
                    raise UnknownSpeciesOrName(f'unknown epigenetic state "{epistate}", expected one of {EPISTATES}')
            epigenetic_filter = set(epistates)
        else:
            raise TypeError(f'invalid cell selection {selection!r}: expected ByPosition or ByName')

    if rectangle is None:
        rectangle = whole_tissue(tissue)
    if species_filter is None:
        species_filter = {species.ID for species in tissue}
        epigenetic_filter = set(EPISTATES)
    return rectangle, species_filter, epigenetic_filter


def query_cells(tissue, *selections, cancel = None, check_interval = CHECK_INTERVAL):
    """get_cells over a region and a mutant/epigenetic selection, both optional.

    query_cells(tissue)                                   every cell of the tissue
    query_cells(tissue, ByPosition((0, 0), (9, 9)))       every cell in the rectangle
    query_cells(tissue, ByName(['A'], ['+']))             cells of mutant A in state '+'
    query_cells(tissue, ByPosition(...), ByName(...))     both
    """
    rectangle, species_filter, epigenetic_filter = resolve_query(tissue, *selections)
    return get_cells(tissue, rectangle.lower_corner, rectangle.upper_corner, species_filter, epigenetic_filter,
                     cancel = cancel, check_interval = check_interval)


def get_cell(tissue, x, y):
    """return the CellRecord at (x, y), a wild-type record if the site is empty"""
    return wrap_a_cell(tissue.cell_at((x, y)))


def get_tumor_bounding_box(tissue, cancel = None, check_interval = CHECK_INTERVAL):
    """return the smallest Rectangle containing every tumoural cell.

    The whole lattice is scanned. For an empty tissue the lower corner is the tissue size and the upper
    corner is (0, 0), so the returned rectangle is degenerate.
    """
    check = utils.CancelCheck(cancel, check_interval)
    width, height = tissue.size()
    lower = [width, height]
    upper = [0, 0]
    for x in range(width):
        check.tick(height)
        ys = np.flatnonzero(tissue.species_graph[x] != WILD_TYPE)
        if ys.shape[0] == 0:
            continue
        lower[0] = min(lower[0], x)
        upper[0] = max(upper[0], x)
        lower[1] = min(lower[1], int(ys[0]))
        upper[1] = max(upper[1], int(ys[-1]))
    return Rectangle(lower, upper)


def collect_species_of(tissue, species):
    """species IDs selected by a mutant name or by an iterable of species IDs or names"""
    if isinstance(species, str):
        return tissue.mutant_species(species)
    return {tissue.get_species(s).ID for s in species}


def count_in(tissue, species_ids, x, y, width, height):
    """number of cells of species_ids in the width x height block at (x, y), clipped to the tissue"""
    t_width, t_height = tissue.size()
    x_max = min(x + width, t_width)
    y_max = min(y + height, t_height)
    if x >= x_max or y >= y_max:
        return 0
    block = tissue.species_graph[x:x_max, y:y_max]
    return int(np.isin(block, list(species_ids)).sum())


def spiral_buckets(grid_width, grid_height):
    """yield the buckets of a grid_width x grid_height grid ring by ring, outer ring first.

    Ring diag visits the top edge left to right, the right edge top to bottom, the bottom edge right to left,
    the corner below the left edge and finally the left edge bottom to top. The right and bottom edges lie one
    bucket past the ring's top and left edges, so the last column and row of a ring are visited by the next one.
    """
    diag_size = utils.div_ceil(min(grid_width, grid_height), 2)
    for diag in range(diag_size):
        grid_x, grid_y = diag, diag
        while grid_x < grid_width - diag:
            yield grid_x, grid_y
            grid_x += 1
        while grid_y < grid_height - diag:
            yield grid_x, grid_y
            grid_y += 1
        while grid_x > diag:
            yield grid_x, grid_y
            grid_x -= 1
        yield grid_x, grid_y
        while grid_y > diag:
            yield grid_x, grid_y
            grid_y -= 1


def search_sample(tissue, species, num_of_cells, width, height, cancel = None, check_interval = CHECK_INTERVAL):
    """search a width x height rectangle holding more than num_of_cells cells of a mutant.

    The tumor bounding box is split into a grid of width x height buckets, which are visited with
    spiral_buckets. The first bucket whose count is strictly greater than num_of_cells is returned,
    clipped to the tissue.
    Inputs:
        - tissue: Tissue
        - species: mutant name, or iterable of species IDs or names
        - num_of_cells: (int) count to exceed
        - width, height: (int) sizes of the searched rectangle
    Outputs:
        - Rectangle
    Raises InfeasibleRegion if no bucket qualifies.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f'sample width and height must be positive, got {width} and {height}')
    if num_of_cells < 0:
        raise ValueError(f'num_of_cells must be non-negative, got {num_of_cells}')
    species_ids = collect_species_of(tissue, species)
    check = utils.CancelCheck(cancel, check_interval)

    t_bbox = get_tumor_bounding_box(tissue, cancel = cancel, check_interval = check_interval)
    t_width = t_bbox.upper_corner.x - t_bbox.lower_corner.x
    t_height = t_bbox.upper_corner.y - t_bbox.lower_corner.y
    grid_width = utils.div_ceil(t_width, width)
    grid_height = utils.div_ceil(t_height, height)
    logger.debug('searching %d x %d buckets of %s', grid_width, grid_height, t_bbox)

    for grid_x, grid_y in spiral_buckets(grid_width, grid_height):
        check.tick(width*height)
        x = grid_x*width + t_bbox.lower_corner.x
        y = grid_y*height + t_bbox.lower_corner.y
        counted_cells = count_in(tissue, species_ids, x, y, width, height)
        if counted_cells > num_of_cells:
            found = Rectangle.from_corner((x, y), width, height).clip(tissue.size())
            logger.info('found %s with %d cells', found, counted_cells)
            return found

    raise InfeasibleRegion(f'no {width} x {height} region holds more than {num_of_cells} cells of {species}')


def is_border_cell(tissue, cell, directions = None):
    """True if some walk from the cell over empty sites leaves the tissue"""
    directions = utils.get_possible_directions() if directions is None else directions
    for direction in directions:
        if not tissue.is_valid(utils.walk_direction(tissue, cell.pos, direction)):
            return True
    return False


def search_border_cell(tissue, species_ids, rectangle = None, max_attempts = MAX_BORDER_ATTEMPTS, check = None):
    """draw cells of species_ids until one is a border cell. Returns Found(cell) or Exhausted(attempts)"""
    directions = utils.get_possible_directions()
    check = utils.CancelCheck() if check is None else check
    for _ in range(max_attempts):
        check.tick()
        cell = tissue.weighted_random_cell(species_ids, rectangle)
        if is_border_cell(tissue, cell, directions):
            return Found(cell)
    return Exhausted(max_attempts)


def choose_cell_in(tissue, mutant, rectangle = None, border = None, max_attempts = MAX_BORDER_ATTEMPTS,
                   cancel = None, check_interval = CHECK_INTERVAL):
    """randomly choose a cell of a mutant, optionally inside rectangle.

    When border is None the policy follows tissue.duplicate_internal_cells: any cell when it is True,
    a border cell otherwise. Border cells are searched for at most max_attempts draws.
    Outputs:
        - CellRecord
    Raises NoBorderCellFound when the attempts are exhausted.
    """
    species_ids = collect_species_of(tissue, mutant)
    if border is None:
        border = not tissue.duplicate_internal_cells
    if not border:
        return wrap_a_cell(tissue.weighted_random_cell(species_ids, rectangle))

    check = utils.CancelCheck(cancel, check_interval)
    outcome = search_border_cell(tissue, species_ids, rectangle, max_attempts, check)
    if isinstance(outcome, Exhausted):
        raise NoBorderCellFound(f'missed to find a border cell of {mutant} in {outcome.attempts} attempts',
                                attempts = outcome.attempts)
    return wrap_a_cell(outcome.cell)


def species_order(species_id):
    #the wild-type sentinel follows every species
    return (species_id == WILD_TYPE, species_id)


def sort_edges(edges):
    """sort TimedLineageEdges by time, then ancestor, then progeny. Duplicates are kept"""
    return sorted(edges, key = lambda e: (e.time, species_order(e.ancestor), species_order(e.progeny)))


def sorted_timed_edges(tissue):
    return sort_edges(TimedLineageEdge(*edge) for edge in tissue.lineage_edges())


def species_label(tissue, species_id):
    if species_id == WILD_TYPE:
        return WILD_TYPE_NAME
    return tissue.name_of(species_id)


def get_lineage_graph(tissue):
    """DataFrame of the sorted lineage edges with columns 'ancestor', 'progeny', 'first_cross'"""
    edges = sorted_timed_edges(tissue)
    return pd.DataFrame({'ancestor': [species_label(tissue, e.ancestor) for e in edges],
                         'progeny': [species_label(tissue, e.progeny) for e in edges],
                         'first_cross': [float(e.time) for e in edges]},
                        columns = ['ancestor', 'progeny', 'first_cross'])


class TissueSampler():
    """TissueSampler Class

    Description: Sampling and query front end for one tissue.

    Attributes:
    - tissue: the Tissue being queried
    - params: configuration dictionary, see main.config_params. Uses 'max_attempts' and 'check_interval'
    - cancel: optional cancellation probe polled by every long scan

    Methods:
    - query_cells(*selections): cell records, see query_cells
    - get_cell(x, y)
    - bounding_box()
    - search_sample(mutant, num_of_cells, width, height)
    - choose_cell(mutant, rectangle = None, border = None)
    - ordered_lineage_edges(): sorted TimedLineageEdges
    - get_lineage_graph()
    - sample_cells(name, rectangle), search_and_sample(name, mutant, num_of_cells, width, height)
    - get_samples_info()
    """

    def __init__(self, tissue, params = None, cancel = None) -> None:
        self.tissue = tissue
        self.params = {} if params is None else params
        self.max_attempts = self.params.get('max_attempts', MAX_BORDER_ATTEMPTS)
        self.check_interval = self.params.get('check_interval', CHECK_INTERVAL)
        self.cancel = cancel

    def query_cells(self, *selections):
        return query_cells(self.tissue, *selections, cancel = self.cancel, check_interval = self.check_interval)

    def get_cell(self, x, y):
        return get_cell(self.tissue, x, y)

    def bounding_box(self):
        return get_tumor_bounding_box(self.tissue, cancel = self.cancel, check_interval = self.check_interval)

    def search_sample(self, mutant, num_of_cells, width, height):
        return search_sample(self.tissue, mutant, num_of_cells, width, height,
                             cancel = self.cancel, check_interval = self.check_interval)

    def choose_cell(self, mutant, rectangle = None, border = None):
        return choose_cell_in(self.tissue, mutant, rectangle, border = border, max_attempts = self.max_attempts,
                              cancel = self.cancel, check_interval = self.check_interval)

    def ordered_lineage_edges(self):
        return sorted_timed_edges(self.tissue)

    def get_lineage_graph(self):
        return get_lineage_graph(self.tissue)

    def sample_cells(self, name, rectangle):
        return self.tissue.sample_cells(name, rectangle)

    def search_and_sample(self, name, mutant, num_of_cells, width, height):
        """search a region with search_sample and record it as a sample"""
        rectangle = self.search_sample(mutant, num_of_cells, width, height)
        return self.tissue.sample_cells(name, rectangle)

    def get_samples_info(self):
        return self.tissue.get_samples_info()
