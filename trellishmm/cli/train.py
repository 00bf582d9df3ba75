#!/usr/bin/env python3
"""
trellishmm train
Iteratively train a saved TrellisHMM model on one observation sequence.

Each iteration is one Viterbi or Baum-Welch training step; training stops
when a step reports no parameter change or --max-iter is reached.

Observations:
- discrete models:   whitespace-separated symbol indices (one sequence)
- continuous models: M rows of N log-likelihoods (one row per timepoint)
If the model file already carries observations, --observations is optional.
"""

import argparse
import logging
import sys

import numpy as np
from tqdm import tqdm

from trellishmm.cli.common import (
    add_iteration_args,
    add_method_args,
    add_output_args,
    add_verbose_args,
    add_version_args,
)
from trellishmm.core.errors import TrellisHMMError
from trellishmm.core.hmm import TrellisHMM
from trellishmm.core.model_io import load_model, save_model
from trellishmm.core.report import format_model

log = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='trellishmm-train',
        description='Train a TrellisHMM model with Viterbi or Baum-Welch re-estimation',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument('model', help='Initial model file (.json)')
    parser.add_argument('-i', '--observations', default=None,
                        help='Observation file (symbols or log-likelihood matrix)')
    add_method_args(parser)
    add_iteration_args(parser)
    add_output_args(parser)
    add_verbose_args(parser)
    add_version_args(parser)
    return parser.parse_args(argv)


def load_observations(model: TrellisHMM, filepath: str):
    """Attach the observations in `filepath` to `model` according to its variant."""
    if model.is_discrete:
        symbols = np.loadtxt(filepath, dtype=np.int64, ndmin=1).ravel()
        model.set_observations(symbols)
    else:
        log_likelihoods = np.loadtxt(filepath, dtype=np.float64, ndmin=2)
        model.set_time_emissionprob(log_likelihoods)


def train_until_converged(model: TrellisHMM, method: str = 'baum-welch',
                          max_iter: int = None, verbose: bool = False) -> dict:
    """
    Call the training step for `method` until it reports no change.

    Returns:
        dict with 'converged', 'n_iter', 'history' (log2-likelihood per
        Baum-Welch step) and 'states' (last Viterbi prediction, if any).
    """
    if method not in ('viterbi', 'baum-welch'):
        raise ValueError(f"Unknown training method: {method}")
    if max_iter is None:
        max_iter = model.n_iter

    result = {'converged': False, 'n_iter': 0, 'history': [], 'states': None}

    iterator = tqdm(range(max_iter), desc=method, leave=False, disable=not verbose)
    for iteration in iterator:
        if method == 'viterbi':
            changed, states = model.viterbi_training()
            result['states'] = states
        else:
            changed, log_like = model.baum_welch_training()
            result['history'].append(log_like)
            if verbose:
                iterator.set_postfix({'log2-likelihood': f'{log_like:.4e}'})

        result['n_iter'] = iteration + 1
        if not changed:
            result['converged'] = True
            break

    log.info("%s training %s after %d iteration(s)", method,
             "converged" if result['converged'] else "stopped without converging",
             result['n_iter'])
    return result


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])

    try:
        model = load_model(args.model)
        if args.observations is not None:
            load_observations(model, args.observations)
        result = train_until_converged(model, args.method, args.max_iter, args.verbose)
    except (TrellisHMMError, ValueError, OSError) as e:
        logging.error(f"Training failed: {e}")
        sys.exit(1)

    if result['history']:
        logging.info(f"Final log2-likelihood: {result['history'][-1]:.6f}")
    if result['states'] is not None:
        logging.info("Predicted states: " + ' '.join(str(s) for s in result['states']))
    if args.verbose:
        print(format_model(model))

    written = save_model(model, args.output)
    logging.info(f"Saved trained model to {written}")


if __name__ == '__main__':
    main()
