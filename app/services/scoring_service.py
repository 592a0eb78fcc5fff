"""Claim-weight aggregation and tier mapping.

Pure functions, no database access:

1. claim weight = (1 + ln(helpful_votes + 1)) * impact * confidence
2. raw score = sum of claim weights
3. normalized score = raw score / sqrt(claim count)
4. tier = step function over the normalized score
"""
import math

# Lower bound of each tier above 0, in normalized-score units.
TIER_THRESHOLDS = (
    (1, 5.0),
    (2, 15.0),
    (3, 35.0),
    (4, 60.0),
)

TIERS = {
    0: 'Artisanal',
    1: 'Mostly Human',
    2: 'Questionable',
    3: 'Compromised',
    4: 'Slop',
}


def _field(claim, name):
    if isinstance(claim, dict):
        return claim.get(name) or 0
    return getattr(claim, name, 0) or 0


def calculate_claim_weight(claim):
    helpful = max(_field(claim, 'helpful_votes'), 0)
    helpful_factor = 1 + math.log(helpful + 1)
    return helpful_factor * _field(claim, 'impact') * _field(claim, 'confidence')


def score_to_tier(normalized_score):
    if normalized_score is None:
        return None
    tier = 0
    for candidate, lower_bound in TIER_THRESHOLDS:
        if normalized_score >= lower_bound:
            tier = candidate
    return tier


def tier_name(tier):
    if tier is None:
        return 'No Claims'
    return TIERS.get(tier, 'Unknown')


def calculate_source_score(claims):
    """
    Aggregate claims into a source score.
    claims: iterable of dicts or objects with impact, confidence, helpful_votes.
    Returns {tier, raw_score, normalized_score, claim_count}; tier is None
    when there are no claims.
    """
    claims = list(claims)
    if not claims:
        return {'tier': None, 'raw_score': 0.0, 'normalized_score': 0.0, 'claim_count': 0}

    raw_score = sum(calculate_claim_weight(c) for c in claims)
    normalized_score = raw_score / math.sqrt(len(claims))

    return {
        'tier': score_to_tier(normalized_score),
        'raw_score': raw_score,
        'normalized_score': normalized_score,
        'claim_count': len(claims),
    }
