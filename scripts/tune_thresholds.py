#!/usr/bin/env python3
"""Report how cached normalized scores fall across the tier bands.

Prints percentiles and a per-band histogram so threshold changes can be
judged against real data before touching TIER_THRESHOLDS.
"""

import os
import sys

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.extensions import db
from app.models.score_cache import SourceScoreCache
from app.services.scoring_service import TIER_THRESHOLDS, TIERS

PERCENTILES = (10, 25, 50, 75, 90, 99)


def load_scores():
    rows = db.session.query(SourceScoreCache.normalized_score).filter(
        SourceScoreCache.normalized_score.isnot(None),
    ).all()
    return np.array([r[0] for r in rows], dtype=float)


def band_histogram(scores):
    edges = [0.0] + [limit for _, limit in TIER_THRESHOLDS] + [np.inf]
    counts, _ = np.histogram(scores, bins=edges)
    return counts


if __name__ == '__main__':
    app = create_app()

    with app.app_context():
        scores = load_scores()
        if scores.size == 0:
            print("No cached scores yet.")
            sys.exit(0)

        print(f"{scores.size} scored sources, mean {scores.mean():.2f}, max {scores.max():.2f}")
        for p, value in zip(PERCENTILES, np.percentile(scores, PERCENTILES)):
            print(f"  p{p:<3} {value:8.2f}")

        print("Tier distribution:")
        for tier, count in enumerate(band_histogram(scores)):
            share = count / scores.size * 100
            print(f"  {tier} {TIERS[tier]:<13} {count:6d}  {share:5.1f}%")
