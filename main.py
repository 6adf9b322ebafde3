#file with end-user functions to set parameters, build a tissue and sample it
import json
import logging
import os
import sys
from pathlib import Path

import sampling
from tissue import Rectangle, Tissue

logger = logging.getLogger(__name__)

#default parameters:
TISSUE_NAME = 'Liver'
TISSUE_SIZE = (100, 100)
SEED = 0
DUPLICATE_INTERNAL_CELLS = True
MAX_ATTEMPTS = sampling.MAX_BORDER_ATTEMPTS
CHECK_INTERVAL = sampling.CHECK_INTERVAL
OUT_PATH = '.'


def get_kwargs_from_file(path):
    """
    Retrieves arguments from a file.

    Parameters:
    - path: Path to a .json or .txt file holding a JSON object.

    Returns:
    - A dictionary containing the arguments, an empty dictionary if path is None.
    """
    if path is None:
        return {}

    ext = path.split('.')[-1]
    if ext != 'txt' and ext != 'json':
        raise ValueError(f'expected a .json or .txt configuration file but got {path}')
    with open(path, 'r') as f:
        obj = json.load(f)
    if type(obj) is not dict:
        raise ValueError(f'expected dict but got {type(obj)}')
    return obj


def config_params(kwargs):
    """wrapper to handle user parameters. Accepts a dictionary of keyword arguments, sets defaults, runs sanity checks,
    returns the configured parameters used to build the tissue and the sampler.
    """
    kwargs = dict(kwargs)
    if 'tissue_name' not in kwargs:
        kwargs['tissue_name'] = TISSUE_NAME
    if 'tissue_size' not in kwargs:
        kwargs['tissue_size'] = TISSUE_SIZE
    if 'seed' not in kwargs:
        kwargs['seed'] = SEED
    if 'duplicate_internal_cells' not in kwargs:
        kwargs['duplicate_internal_cells'] = DUPLICATE_INTERNAL_CELLS
    if 'max_attempts' not in kwargs:
        kwargs['max_attempts'] = MAX_ATTEMPTS
    if 'check_interval' not in kwargs:
        kwargs['check_interval'] = CHECK_INTERVAL
    if 'mutants' not in kwargs:
        kwargs['mutants'] = []
    if 'cells' not in kwargs:
        kwargs['cells'] = []
    if 'fills' not in kwargs:
        kwargs['fills'] = []
    if 'search' not in kwargs:
        kwargs['search'] = None
    if 'out_path' not in kwargs:
        kwargs['out_path'] = OUT_PATH

    logger.debug('starting sanity checks...')
    size = kwargs['tissue_size']
    if len(size) != 2 or min(size) <= 0:
        raise ValueError(f'tissue_size must be two positive integers, got {size}')
    kwargs['tissue_size'] = tuple(int(s) for s in size)
    if kwargs['max_attempts'] <= 0:
        raise ValueError(f'max_attempts must be positive, got {kwargs["max_attempts"]}')
    if kwargs['check_interval'] <= 0:
        raise ValueError(f'check_interval must be positive, got {kwargs["check_interval"]}')
    for mutant in kwargs['mutants']:
        if 'name' not in mutant:
            raise ValueError(f'every mutant needs a name, got {mutant}')
    for cell in kwargs['cells']:
        if not {'species', 'x', 'y'} <= set(cell):
            raise ValueError(f'cells need "species", "x" and "y", got {cell}')
    for fill in kwargs['fills']:
        if not {'species', 'lower_corner', 'upper_corner'} <= set(fill):
            raise ValueError(f'fills need "species", "lower_corner" and "upper_corner", got {fill}')
    search = kwargs['search']
    if search is not None:
        search = dict(search)
        kwargs['search'] = search
        missing = {'mutant', 'num_of_cells', 'width', 'height'} - set(search)
        if missing:
            raise ValueError(f'search is missing {sorted(missing)}')
        if search['width'] <= 0 or search['height'] <= 0:
            raise ValueError('search width and height must be positive')
        search.setdefault('name', 'S_1')

    return kwargs


def build_tissue(params):
    """build the tissue described by configured params: register mutants, place founder cells, fill regions"""
    tissue = Tissue(name = params['tissue_name'], size = params['tissue_size'], seed = params['seed'],
                    duplicate_internal_cells = params['duplicate_internal_cells'])
    for mutant in params['mutants']:
        spec = dict(mutant)
        name = spec.pop('name')
        tissue.add_mutant(name, **spec)
    for cell in params['cells']:
        tissue.place_cell(cell['species'], cell['x'], cell['y'])
    for fill in params['fills']:
        tissue.fill(fill['species'], Rectangle(fill['lower_corner'], fill['upper_corner']))
    return tissue


def sampleTissue(kwargs):
    """function to configure a tissue, run the configured search and collect the found sample.
    Returns the TissueSampler."""
    params = config_params(kwargs)
    tissue = build_tissue(params)
    sampler = sampling.TissueSampler(tissue, params)
    print(f'built {tissue}')
    print(tissue.get_counts().to_string(index = False))

    search = params['search']
    if search is not None:
        print(f'searching a {search["width"]}x{search["height"]} sample with more than {search["num_of_cells"]} cells of {search["mutant"]}...')
        sample = sampler.search_and_sample(search['name'], search['mutant'], search['num_of_cells'],
                                           search['width'], search['height'])
        print(f'found {sample}')
    return sampler


def save_tables(sampler, out_path):
    """write the cells, samples and lineage tables as csv files in out_path"""
    Path(out_path).mkdir(parents = True, exist_ok = True)
    sampler.query_cells().to_csv(os.path.join(out_path, 'cells.csv'), index = False)
    sampler.get_samples_info().to_csv(os.path.join(out_path, 'samples.csv'), index = False)
    sampler.get_lineage_graph().to_csv(os.path.join(out_path, 'lineage.csv'), index = False)


if __name__ == '__main__':
    logging.basicConfig(level = logging.INFO, format = '%(asctime)s %(name)s %(levelname)s: %(message)s')
    try:
        config_file = sys.argv[1]
    except(IndexError):
        config_file = None
    try:
        display = sys.argv[2]
    except(IndexError):
        display = False
    kwargs = get_kwargs_from_file(config_file)
    out = sampleTissue(kwargs)
    save_tables(out, out.params['out_path'])
    print('done!')
    if display:
        print('plotting tissue...')
        import matplotlib.pyplot as plt
        import utils
        utils.plot_tissue(out.tissue)
        plt.show()
        summary = utils.tissue_summary(out.tissue)
        print(summary.groupby('mutant')['r'].describe())
