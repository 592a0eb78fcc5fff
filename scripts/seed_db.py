#!/usr/bin/env python3
"""Load seed users, a source tree and claims into the database. Idempotent."""

import json
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.errors import NotFound
from app.extensions import db
from app.models.claim import Claim, ClaimVote
from app.models.user import User
from app.services.claim_service import ClaimService
from app.services.recalculation_service import RecalculationService
from app.services.source_registry import SourceRegistry
from app.utils.text import slugify


def seed_users(users):
    """Create users. Skip existing by username."""
    added = 0
    skipped = 0
    for u in users:
        if User.query.filter_by(username=u['username']).first():
            skipped += 1
            continue
        db.session.add(User(
            username=u['username'],
            email=u['email'],
            email_verified=u.get('email_verified', False),
            role=u.get('role', 'member'),
        ))
        added += 1

    db.session.commit()
    print(f"Users: {added} added, {skipped} skipped (already exist)")


def _voters(count):
    """Verified throwaway accounts used to cast seed votes."""
    voters = []
    for n in range(1, count + 1):
        username = f'voter-{n}'
        user = User.query.filter_by(username=username).first()
        if user is None:
            user = User(username=username, email=f'{username}@example.com', email_verified=True)
            db.session.add(user)
            db.session.commit()
        voters.append(user)
    return voters


def seed_tree(nodes, owner, registry, claim_service, parent_id=None, parent_segments=()):
    """Create sources depth-first. Skip existing by slug path."""
    counts = {'sources': 0, 'claims': 0}
    for node in nodes:
        segments = list(parent_segments) + [slugify(node['name'])]
        try:
            source_id = registry.resolve_by_slug_path(segments)
        except NotFound:
            created = registry.create_source(
                name=node['name'],
                created_by_user_id=owner.id,
                source_type=node.get('type'),
                description=node.get('description'),
                url=node.get('url'),
                parent_id=parent_id,
                approval_status='approved',
            )
            source_id = created['source_id']
            counts['sources'] += 1

        for c in node.get('claims', []):
            author = User.query.filter_by(username=c['author']).first()
            exists = Claim.query.filter_by(source_id=source_id, user_id=author.id, content=c['content']).first()
            if exists:
                continue
            claim = claim_service.submit_claim(
                author, source_id, content=c['content'], impact=c['impact'], confidence=c['confidence'],
            )
            for voter in _voters(c.get('helpful_votes', 0)):
                if db.session.get(ClaimVote, (claim.id, voter.id)) is None:
                    claim_service.vote_on_claim(voter, claim.id, True)
            counts['claims'] += 1

        child_counts = seed_tree(
            node.get('children', []), owner, registry, claim_service, source_id, segments,
        )
        counts['sources'] += child_counts['sources']
        counts['claims'] += child_counts['claims']
    return counts


if __name__ == '__main__':
    app = create_app()
    # Scores are rebuilt by the drain below, not per write.
    app.config['INSTANT_SCORE_RECALC'] = False
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    with open(os.path.join(project_root, 'seed_sources.json')) as f:
        seed = json.load(f)

    with app.app_context():
        print("Seeding database...")
        seed_users(seed['users'])
        owner = User.query.filter_by(username='admin').first()
        counts = seed_tree(seed['sources'], owner, SourceRegistry(), ClaimService())
        print(f"Sources: {counts['sources']} added; claims: {counts['claims']} added")

        result = RecalculationService().drain()
        print(f"Scores: {result['processed']} recalculated in {result['batches']} batch(es)")
        print("Done.")
