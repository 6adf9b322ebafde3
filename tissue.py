#in-memory tissue lattice queried by the sampling code
import logging
from collections import namedtuple

import numpy as np
import pandas as pd

from errors import InvalidDimension, NoCellFound, UnknownSpeciesOrName

logger = logging.getLogger(__name__)

WILD_TYPE = -1 #species id of an empty lattice site
WILD_TYPE_NAME = 'Wild-type'
EPISTATES = ('+', '-', '')
EVENT_NAMES = ('death', 'growth', 'switch')

Position = namedtuple('Position', ['x', 'y'])

TimedLineageEdge = namedtuple('TimedLineageEdge', ['ancestor', 'progeny', 'time'])

AddedCell = namedtuple('AddedCell', ['species_id', 'x', 'y', 'time'])


def get_position(position):
    """turn a sequence of coordinates into a Position.
    Inputs:
        - position: sequence of integer coordinates
    Outputs:
        - Position
    Raises InvalidDimension unless the sequence has exactly 2 components and ValueError if a
    coordinate is not an integer.
    """
    try:
        n_axes = len(position)
    except TypeError:
        raise InvalidDimension(f'expected a 2 dimensional position but got {position!r}')
    if n_axes != 2:
        raise InvalidDimension(f'only 2 dimensional tissues are supported, got a position with {n_axes} components')
    for coord in position:
        if isinstance(coord, bool) or not isinstance(coord, (int, np.integer)):
            raise ValueError(f'position coordinates must be integers, got {position!r}')
    return Position(int(position[0]), int(position[1]))


class Rectangle():
    """Rectangle Class

    Description: An axis aligned rectangle of lattice positions. Both corners are included.

    Attributes:
    - lower_corner: Position with the smallest coordinates
    - upper_corner: Position with the largest coordinates

    A rectangle whose lower corner is larger than its upper corner along some axis is degenerate and contains
    no position. get_tumor_bounding_box returns one of these for an empty tissue.

    Methods:
    - from_corner(lower_corner, width, height): build the rectangle spanning width x height positions
    - is_degenerate(): True if the rectangle contains no position
    - contains(pos): True if pos lies in the rectangle
    - clip(size): the part of the rectangle inside a tissue of the given size
    - n_positions(): number of lattice positions in the rectangle
    """

    def __init__(self, lower_corner, upper_corner) -> None:
        self.lower_corner = get_position(lower_corner)
        self.upper_corner = get_position(upper_corner)

    @classmethod
    def from_corner(cls, lower_corner, width, height):
        if width <= 0 or height <= 0:
            raise ValueError(f'rectangle width and height must be positive, got {width} and {height}')
        lower = get_position(lower_corner)
        return cls(lower, (lower.x + width - 1, lower.y + height - 1))

    def is_degenerate(self):
        return self.lower_corner.x > self.upper_corner.x or self.lower_corner.y > self.upper_corner.y

    def contains(self, pos):
        x, y = get_position(pos)
        return (self.lower_corner.x <= x <= self.upper_corner.x
                and self.lower_corner.y <= y <= self.upper_corner.y)

    def clip(self, size):
        width, height = size
        return Rectangle(self.lower_corner, (min(self.upper_corner.x, width - 1), min(self.upper_corner.y, height - 1)))

    def n_positions(self):
        if self.is_degenerate():
            return 0
        return (self.upper_corner.x - self.lower_corner.x + 1)*(self.upper_corner.y - self.lower_corner.y + 1)

    def __iter__(self):
        return iter((self.lower_corner, self.upper_corner))

    def __eq__(self, other):
        if not isinstance(other, Rectangle):
            return NotImplemented
        return self.lower_corner == other.lower_corner and self.upper_corner == other.upper_corner

    def __hash__(self):
        return hash((self.lower_corner, self.upper_corner))

    def __repr__(self):
        return f'Rectangle(({self.lower_corner.x},{self.lower_corner.y}),({self.upper_corner.x},{self.upper_corner.y}))'


class Species():
    """Species Class

    Description: A population class of the tissue: a mutant (genotype) in one epigenetic state.

    Attributes:
    - ID: (int) species identifier, the order in which the species was registered
    - mutant_id: (int) identifier of the mutant the species belongs to
    - mutant: (str) mutant name
    - epistate: (str) epigenetic signature, one of '+', '-' or '' for mutants without epigenetic states
    - growth_rate, death_rate: (float) duplication and death rates
    - switch_rate: (float or None) rate of the epigenetic switch towards the other state of the mutant
    - cells: ListDict of the cells of this species

    Methods:
    - name: species name, mutant name followed by the epigenetic signature
    - num_of_cells
    - get_rate(event) / set_rate(event, value)
    """

    def __init__(self, ID, mutant_id, mutant, epistate = '', growth_rate = 0.0, death_rate = 0.0, switch_rate = None) -> None:
        if epistate not in EPISTATES:
            raise ValueError(f'epigenetic state must be one of {EPISTATES} not {epistate!r}')
        self.ID = ID
        self.mutant_id = mutant_id
        self.mutant = mutant
        self.epistate = epistate
        self.growth_rate = float(growth_rate)
        self.death_rate = float(death_rate)
        self.switch_rate = None if switch_rate is None else float(switch_rate)
        self.cells = ListDict()

    @property
    def name(self):
        return f'{self.mutant}{self.epistate}'

    def num_of_cells(self):
        return self.cells.len()

    def get_rate(self, event):
        if event == 'growth':
            return self.growth_rate
        if event == 'death':
            return self.death_rate
        if event == 'switch' and self.epistate != '':
            return self.switch_rate
        raise ValueError(unknown_event_message(event))

    def set_rate(self, event, value):
        if value < 0:
            raise ValueError(f'rates must be non-negative, got {event} = {value}')
        if event == 'growth':
            self.growth_rate = float(value)
        elif event == 'death':
            self.death_rate = float(value)
        elif event == 'switch' and self.epistate != '':
            self.switch_rate = float(value)
        else:
            raise ValueError(unknown_event_message(event))

    def __repr__(self):
        return f'Species {self.ID} ({self.name}) with {self.num_of_cells()} cells'


def unknown_event_message(event):
    names = [f'"{name}"' for name in sorted(EVENT_NAMES)]
    return f'Event "{event}" is not supported. Supported events are {", ".join(names[:-1])}, and {names[-1]}.'


class Cell():
    """Cell Class

    Description: A cell sitting on the tissue lattice, defined by its unique ID, species, and position.
    Empty lattice sites are represented by wild-type cells with ID 0 and no species.

    Attributes:
    - ID: unique identifier of the cell, 0 for wild-type
    - species: Species of the cell or None
    - pos: Position of the cell
    - birth_time: simulation time at which the cell was placed, None if unknown
    """

    def __init__(self, ID, species, pos, birth_time = None) -> None:
        self.ID = ID
        self.species = species
        self.pos = get_position(pos)
        self.birth_time = birth_time

    @classmethod
    def wild_type(cls, pos):
        return cls(0, None, pos)

    def is_wild_type(self):
        return self.species is None

    @property
    def species_id(self):
        return WILD_TYPE if self.species is None else self.species.ID

    def __repr__(self):
        if self.is_wild_type():
            return f'Wild-type site at {tuple(self.pos)}'
        return str(f'Cell# {self.ID} of {self.species.name} at {tuple(self.pos)}')


class ListDict(object):
    """ListDict Class

    Description: A list of items paired with a map from item IDs to list positions, so that items
    can be added, removed and drawn uniformly at random in constant time.

    Attributes:
    - item_to_position: Dictionary mapping item IDs to their positions in the list.
    - items: list of the items.

    Methods:
    - add_item(self, item)
    - remove_item(self, item)
    - choose_random_item(self, rng)
    - get_item(self, ID)
    - len(self)
    """

    def __init__(self):
        self.item_to_position = {}
        self.items = []

    def add_item(self, item):
        if item.ID in self.item_to_position:
            return
        self.items.append(item)
        self.item_to_position[item.ID] = len(self.items)-1

    def remove_item(self, item):
        position = self.item_to_position.pop(item.ID)
        last_item = self.items.pop()
        if position != len(self.items):
            self.items[position] = last_item
            self.item_to_position[last_item.ID] = position

    def choose_random_item(self, rng):
        return self.items[rng.integers(len(self.items))]

    def get_item(self, ID):
        return self.items[self.item_to_position[ID]]

    def len(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __contains__(self, ID):
        return ID in self.item_to_position

    def __repr__(self):
        return f'{str([item.__repr__() for item in self.items])}'


class TissueSample():
    """a named rectangular region of the tissue collected at a given time"""

    def __init__(self, name, region, time, cell_ids) -> None:
        self.name = name
        self.region = region
        self.time = time
        self.cell_ids = list(cell_ids)

    def __repr__(self):
        return f'TissueSample {self.name} of {self.region} at {self.time} with {len(self.cell_ids)} cells'


class Tissue():
    """Tissue Class

    Description: A 2 dimensional lattice of cells together with its species catalog, the log of the
    species transitions (lineage edges) and the log of the collected samples. The tissue has no growth
    dynamics: cells are placed, relabelled and removed by the caller.

    Attributes:
    - name: tissue name
    - graph: width x height integer lattice of cell IDs, 0 marks an empty site
    - species_graph: width x height integer lattice of species IDs, WILD_TYPE marks an empty site
    - cells: ListDict of the cells on the lattice
    - species: list of Species indexed by species ID
    - mutants: dictionary mapping mutant names to mutant IDs
    - lineage: list of TimedLineageEdge in the order they were recorded
    - added_cells: list of AddedCell, the founder cells placed by place_cell
    - samples: list of TissueSample
    - clock: current simulation time
    - duplicate_internal_cells: whether every cell can be chosen for duplication or only border cells
    - rng: numpy random Generator shared by every random draw on this tissue

    Methods:
    - size, is_valid, cell_at: lattice access
    - add_mutant, get_species, species_ids_of, mutant_species, name_of, signature_of: species catalog
    - place_cell, add_cell, fill, mutate_cell, remove_cell: lattice updates
    - weighted_random_cell: random draw of a cell of a set of species
    - get_counts, get_species_table, get_added_cells, get_rates, update_rates
    - sample_cells, get_samples_info
    """

    def __init__(self, name = 'Liver', size = (100, 100), seed = 0, rng = None, duplicate_internal_cells = True) -> None:
        width, height = get_position(size)
        if width <= 0 or height <= 0:
            raise ValueError(f'tissue sizes must be positive, got {width} x {height}')
        self.name = name
        self.graph = np.zeros((width, height), dtype = int)
        self.species_graph = np.full((width, height), WILD_TYPE, dtype = int)
        self.cells = ListDict()
        self.species = []
        self.species_by_name = {}
        self.mutants = {}
        self.lineage = []
        self.added_cells = []
        self.samples = []
        self.clock = 0.0
        self.next_cell_id = 1
        self.duplicate_internal_cells = duplicate_internal_cells
        self.rng = np.random.default_rng(seed) if rng is None else rng

    #lattice access

    def size(self):
        return self.graph.shape

    def is_valid(self, pos):
        x, y = pos
        width, height = self.graph.shape
        return 0 <= x < width and 0 <= y < height

    def cell_at(self, pos):
        """return the Cell at pos, a wild-type Cell if the site is empty"""
        pos = get_position(pos)
        if not self.is_valid(pos):
            raise ValueError(f'position {tuple(pos)} is outside the {self.graph.shape[0]} x {self.graph.shape[1]} tissue')
        cell_id = self.graph[pos.x, pos.y]
        if cell_id == 0:
            return Cell.wild_type(pos)
        return self.cells.get_item(cell_id)

    def num_of_cells(self):
        return self.cells.len()

    #species catalog

    def __iter__(self):
        return iter(self.species)

    def num_of_species(self):
        return len(self.species)

    def add_mutant(self, mutant, epigenetic_rates = None, growth_rates = None, death_rates = None,
                   growth_rate = None, death_rate = None):
        """register a mutant and its species.

        Without epigenetic rates the mutant has a single species with an empty signature, whose rates are
        growth_rate and death_rate. With epigenetic rates, a dictionary {'+-': rate, '-+': rate} of switch
        rates, the mutant has a '+' and a '-' species whose rates are read from the growth_rates and
        death_rates dictionaries keyed by epigenetic state.

        Returns the list of the new species.
        """
        if mutant in self.mutants:
            raise ValueError(f'mutant {mutant} has already been added')
        if mutant == WILD_TYPE_NAME:
            raise ValueError(f'{WILD_TYPE_NAME} is a reserved name')
        mutant_id = len(self.mutants)

        if epigenetic_rates is None:
            if growth_rate is None or death_rate is None:
                raise ValueError('growth_rate and death_rate are required for a mutant without epigenetic states')
            new_species = [Species(len(self.species), mutant_id, mutant, '', growth_rate, death_rate)]
        else:
            try:
                new_species = [Species(len(self.species), mutant_id, mutant, '+',
                                       growth_rates['+'], death_rates['+'], epigenetic_rates['+-']),
                               Species(len(self.species)+1, mutant_id, mutant, '-',
                                       growth_rates['-'], death_rates['-'], epigenetic_rates['-+'])]
            except (KeyError, TypeError):
                raise ValueError('epigenetic mutants need "+-" and "-+" switch rates and "+" and "-" growth and death rates')

        self.mutants[mutant] = mutant_id
        for species in new_species:
            self.species.append(species)
            self.species_by_name[species.name] = species
        logger.debug('added mutant %s with species %s', mutant, [s.name for s in new_species])
        return new_species

    def get_species(self, key):
        """return a Species from its ID or its name. Raises UnknownSpeciesOrName if there is none"""
        if isinstance(key, Species):
            return key
        if isinstance(key, str):
            try:
                return self.species_by_name[key]
            except KeyError:
                raise UnknownSpeciesOrName(f'unknown species "{key}"')
        if isinstance(key, (int, np.integer)) and 0 <= key < len(self.species):
            return self.species[key]
        raise UnknownSpeciesOrName(f'unknown species id {key}')

    def mutant_species(self, mutant):
        """return the IDs of the species of a mutant, raising UnknownSpeciesOrName for unknown mutants"""
        if mutant not in self.mutants:
            raise UnknownSpeciesOrName(f'unknown mutant "{mutant}"')
        mutant_id = self.mutants[mutant]
        return {species.ID for species in self.species if species.mutant_id == mutant_id}

    def species_ids_of(self, mutants):
        """return the IDs of the species belonging to any of the given mutant names"""
        ids = set()
        for mutant in mutants:
            ids |= self.mutant_species(mutant)
        return ids

    def name_of(self, species_id):
        return self.get_species(species_id).name

    def signature_of(self, species_id):
        return self.get_species(species_id).epistate

    #lattice updates

    def place_cell(self, species_name, x, y):
        """place a founder cell of a species at (x, y) and record the wild-type to species lineage edge"""
        if self.num_of_cells() > 0:
            logger.warning('the tissue already contains a cell')
        cell = self.add_cell(species_name, x, y)
        self.lineage.append(TimedLineageEdge(WILD_TYPE, cell.species.ID, self.clock))
        self.added_cells.append(AddedCell(cell.species.ID, cell.pos.x, cell.pos.y, self.clock))
        return cell

    def add_cell(self, species_name, x, y):
        """put a cell of a species at (x, y) as a duplication would, without recording any lineage edge"""
        species = self.get_species(species_name)
        pos = get_position((x, y))
        if not self.is_valid(pos):
            raise ValueError(f'position {tuple(pos)} is outside the tissue')
        if self.graph[pos.x, pos.y] != 0:
            raise ValueError(f'position {tuple(pos)} is already occupied by {self.cell_at(pos)}')

        cell = Cell(self.next_cell_id, species, pos, birth_time = self.clock)
        self.next_cell_id += 1
        self.graph[pos.x, pos.y] = cell.ID
        self.species_graph[pos.x, pos.y] = species.ID
        self.cells.add_item(cell)
        species.cells.add_item(cell)
        return cell

    def fill(self, species_name, rectangle):
        """add a cell of the species on every empty site of rectangle. Returns the number of added cells"""
        region = rectangle.clip(self.size())
        added = 0
        for x in range(region.lower_corner.x, region.upper_corner.x+1):
            for y in range(region.lower_corner.y, region.upper_corner.y+1):
                if self.graph[x, y] == 0:
                    self.add_cell(species_name, x, y)
                    added += 1
        return added

    def mutate_cell(self, pos, species_name):
        """move the cell at pos to another species and record the lineage edge between the two species"""
        cell = self.cell_at(pos)
        if cell.is_wild_type():
            raise ValueError(f'position {tuple(cell.pos)} holds no cell')
        species = self.get_species(species_name)
        if species is cell.species:
            return cell
        self.lineage.append(TimedLineageEdge(cell.species.ID, species.ID, self.clock))
        cell.species.cells.remove_item(cell)
        cell.species = species
        species.cells.add_item(cell)
        self.species_graph[cell.pos.x, cell.pos.y] = species.ID
        return cell

    def remove_cell(self, pos):
        cell = self.cell_at(pos)
        if cell.is_wild_type():
            raise ValueError(f'position {tuple(cell.pos)} holds no cell')
        self.graph[cell.pos.x, cell.pos.y] = 0
        self.species_graph[cell.pos.x, cell.pos.y] = WILD_TYPE
        self.cells.remove_item(cell)
        cell.species.cells.remove_item(cell)
        return cell

    #random draws

    def weighted_random_cell(self, species_ids, rectangle = None):
        """draw a random cell among the given species.

        A species is drawn with probability proportional to its growth rate times the number of its candidate
        cells, then one of its candidate cells is drawn uniformly. When rectangle is given only the cells inside
        it are candidates. Raises NoCellFound if there is no candidate.
        """
        if isinstance(species_ids, (int, np.integer, str)):
            species_ids = [species_ids]
        candidates = []
        for species_id in sorted(self.get_species(s).ID for s in species_ids):
            species = self.species[species_id]
            if rectangle is None:
                cells = species.cells.items
            else:
                cells = [cell for cell in species.cells if rectangle.contains(cell.pos)]
            if len(cells) > 0:
                candidates.append((species, cells))

        if len(candidates) == 0:
            where = '' if rectangle is None else f' in {rectangle}'
            raise NoCellFound(f'no cell of the species {sorted(species_ids)}{where}')

        weights = np.array([species.growth_rate*len(cells) for species, cells in candidates], dtype = float)
        if weights.sum() > 0:
            chosen = self.rng.choice(len(candidates), p = weights/weights.sum())
        else:
            #every candidate species has null growth rate, fall back on the cell counts
            counts = np.array([len(cells) for _, cells in candidates], dtype = float)
            chosen = self.rng.choice(len(candidates), p = counts/counts.sum())
        species, cells = candidates[chosen]
        if rectangle is None:
            return species.cells.choose_random_item(self.rng)
        return cells[self.rng.integers(len(cells))]

    #tables

    def get_species_table(self):
        """return a DataFrame describing the species: mutant, epistate, growth_rate, death_rate, switch_rate"""
        return pd.DataFrame({'mutant': [s.mutant for s in self.species],
                             'epistate': [s.epistate for s in self.species],
                             'growth_rate': [s.growth_rate for s in self.species],
                             'death_rate': [s.death_rate for s in self.species],
                             'switch_rate': [np.nan if s.switch_rate is None else s.switch_rate for s in self.species]},
                            columns = ['mutant', 'epistate', 'growth_rate', 'death_rate', 'switch_rate'])

    def get_counts(self):
        """return a DataFrame with the current number of cells per species"""
        return pd.DataFrame({'mutant': [s.mutant for s in self.species],
                             'epistate': [s.epistate for s in self.species],
                             'counts': [s.num_of_cells() for s in self.species]},
                            columns = ['mutant', 'epistate', 'counts'])

    def get_added_cells(self):
        rows = [(self.species[a.species_id].mutant, self.species[a.species_id].epistate, a.x, a.y, a.time)
                for a in self.added_cells]
        return pd.DataFrame(rows, columns = ['mutant', 'epistate', 'position_x', 'position_y', 'time'])

    def get_rates(self, species_name):
        species = self.get_species(species_name)
        rates = {'growth': species.growth_rate, 'death': species.death_rate}
        if species.epistate != '':
            rates['switch'] = species.switch_rate
        return rates

    def update_rates(self, species_name, rates):
        species = self.get_species(species_name)
        for event, value in rates.items():
            species.set_rate(event, value)

    #samples

    def sample_cells(self, sample_name, rectangle):
        """record a sample of the tissue region in rectangle at the current time"""
        region = rectangle.clip(self.size())
        if region.is_degenerate():
            cell_ids = []
        else:
            (x0, y0), (x1, y1) = region
            block = self.graph[x0:x1+1, y0:y1+1]
            cell_ids = block[block > 0].tolist()
        sample = TissueSample(sample_name, region, self.clock, cell_ids)
        self.samples.append(sample)
        logger.info('sampled %s: %d tumoural cells', sample_name, len(cell_ids))
        return sample

    def get_samples_info(self):
        rows = [(s.name, s.region.lower_corner.x, s.region.lower_corner.y,
                 s.region.upper_corner.x, s.region.upper_corner.y, len(s.cell_ids), s.time)
                for s in self.samples]
        return pd.DataFrame(rows, columns = ['name', 'xmin', 'ymin', 'xmax', 'ymax', 'tumoural cells', 'time'])

    def lineage_edges(self):
        return list(self.lineage)

    def __repr__(self):
        return f'Tissue {self.name} ({self.graph.shape[0]} x {self.graph.shape[1]}) with {self.num_of_cells()} cells'
