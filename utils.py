#lattice helpers, tables and plots for tissues
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.patches import Rectangle as RectanglePatch

from errors import Cancelled
from tissue import WILD_TYPE


def get_possible_directions():
    """return the 8 lattice directions of the moore neighborhood as rows of a 2d numpy array.
    Directions combine an x move in (+1, -1, 0) with a y move in (+1, -1, 0), the null move excluded,
    and are listed in that order.
    """
    directions = []
    for i in [1, -1, 0]:
        for j in [1, -1, 0]:
            directions.append([i, j])
    return np.array(directions[:-1])


def walk_direction(tissue, start_pos, direction):
    """starting next to start_pos, move along direction over empty sites.
    Inputs:
        - tissue: Tissue
        - start_pos: position the walk starts from
        - direction: lattice step, one row of get_possible_directions()
    Outputs:
        - the first position that is either outside the tissue or occupied by a cell
    """
    cur_pos = np.array(start_pos) + direction
    while tissue.is_valid(cur_pos) and tissue.species_graph[cur_pos[0], cur_pos[1]] == WILD_TYPE:
        cur_pos += direction
    return tuple(int(c) for c in cur_pos)


def div_ceil(dividend, divisor):
    if dividend <= 0:
        return 0
    return 1 + (dividend - 1)//divisor


class CancelCheck():
    """Polls a cancellation probe while a long scan is running.

    Attributes:
    - cancel: zero-argument callable returning True when the scan must stop, or None
    - interval: number of scan steps between two polls
    - steps: scan steps counted so far
    """

    def __init__(self, cancel = None, interval = 10000) -> None:
        if interval <= 0:
            raise ValueError(f'check interval must be positive, got {interval}')
        self.cancel = cancel
        self.interval = interval
        self.steps = 0
        self.next_check = interval

    def tick(self, steps = 1):
        self.steps += steps
        if self.steps < self.next_check:
            return
        self.next_check = (self.steps//self.interval + 1)*self.interval
        if self.cancel is not None and self.cancel():
            raise Cancelled(f'scan cancelled after {self.steps} steps')


def tissue_summary(tissue):
    """turn the tissue into a dataframe with one row per cell:
    'cell_ID' 'x' 'y' 'r' 'angle' 'species_id' 'mutant' 'epistate' 'birth_time'
    r and angle are measured from the center of the lattice
    """
    mat = tissue.graph
    width, height = mat.shape
    center = (width//2, height//2)
    cell_ID = mat[mat > 0]
    x, y = np.indices(mat.shape)
    x = x[mat > 0]
    y = y[mat > 0]
    dx = x - center[0]
    dy = y - center[1]
    r = np.sqrt(dx**2 + dy**2)
    angle = (360/2/np.pi)*np.arctan2(dy, dx)

    cells = [tissue.cells.get_item(ID) for ID in cell_ID]
    df = pd.DataFrame({'cell_ID': cell_ID, 'x': x, 'y': y, 'r': r, 'angle': angle,
                       'species_id': [cell.species.ID for cell in cells],
                       'mutant': [cell.species.mutant for cell in cells],
                       'epistate': [cell.species.epistate for cell in cells],
                       'birth_time': [cell.birth_time for cell in cells]})
    df['t'] = tissue.clock
    return df


def plot_rectangle(ax, rectangle, color = 'g', label = None):
    """given an axis object drawn by plot_tissue, outline rectangle on it. Return the axis"""
    (x0, y0), (x1, y1) = rectangle
    #heatmap rows are x and columns are y
    patch = RectanglePatch((y0, x0), y1 - y0 + 1, x1 - x0 + 1, edgecolor = color, fill = False, linewidth = 1.5)
    ax.add_patch(patch)
    if label is not None:
        ax.text(y0, x0, label, color = color, fontsize = 8, va = 'bottom')
    return ax


def plot_tissue(tissue, samples = True, trim = 0, ax = None):
    """heatmap of the species lattice, empty sites left blank. Sample regions are outlined when samples is True"""
    graph = tissue.species_graph.astype(float)
    graph[graph == WILD_TYPE] = np.nan
    if trim > 0:
        graph = graph[trim:-trim, trim:-trim]
    ax = sns.heatmap(graph, cbar = False, square = True, ax = ax, xticklabels = False, yticklabels = False)
    if samples:
        for sample in tissue.samples:
            (x0, y0), (x1, y1) = sample.region
            shifted = ((x0 - trim, y0 - trim), (x1 - trim, y1 - trim))
            plot_rectangle(ax, shifted, label = sample.name)
    ax.set_title(f'{tissue.name} at t = {tissue.clock:.2f}')
    return ax
