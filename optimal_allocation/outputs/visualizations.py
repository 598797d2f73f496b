"""
Matplotlib figures for allocation and posterior review.
"""

import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from optimal_allocation import config
from optimal_allocation.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

C = config


def fig_allocation_bars(final_allocation, title="Recommended transect length by unit"):
    """Bar chart of recommended length per unit; negatives drawn in red."""
    lengths = final_allocation[C.RECOMMENDED_TRANSECT_LENGTH].to_numpy(dtype=float)
    ids = final_allocation[C.UNIT_ID].astype(str).tolist()
    colors = np.where(lengths < 0, "tab:red", "tab:blue")

    fig, ax = plt.subplots(figsize=(max(6, 0.4 * len(ids)), 4))
    ax.bar(ids, lengths, color=colors)
    ax.axhline(0.0, color="black", linewidth=0.8)
    ax.set_xlabel("Unit")
    ax.set_ylabel("Recommended transect length")
    ax.set_title(title)
    ax.tick_params(axis="x", rotation=90)
    fig.tight_layout()
    return fig


def fig_prior_vs_posterior(posteriors, title="Prior vs posterior probability"):
    """Paired bars of prior and posterior probability per unit."""
    ids = posteriors[C.UNIT_ID].astype(str).tolist()
    x = np.arange(len(ids))
    width = 0.4

    fig, ax = plt.subplots(figsize=(max(6, 0.5 * len(ids)), 4))
    ax.bar(x - width / 2, posteriors[C.PRIOR_PROB], width, label="prior")
    ax.bar(x + width / 2, posteriors[C.POST_PROB], width, label="posterior")
    ax.set_xticks(x)
    ax.set_xticklabels(ids, rotation=90)
    ax.set_ylim(0.0, 1.0)
    ax.set_ylabel("Probability")
    ax.set_title(title)
    ax.legend()
    fig.tight_layout()
    return fig


def save_figure(fig, output_path):
    """Write *fig* to *output_path* as PNG and close it."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    fig.savefig(output_path, dpi=C.FIGURE_DPI, bbox_inches="tight")
    plt.close(fig)
    log.info("Saved: %s", output_path)
    return output_path
