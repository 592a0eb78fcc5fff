#!/usr/bin/env python3
"""Drain the score recalculation queue once, for cron hosts without HTTP access."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.services.recalculation_service import RecalculationService

if __name__ == '__main__':
    app = create_app()
    batch_size = int(sys.argv[1]) if len(sys.argv) > 1 else None

    with app.app_context():
        print("Draining stale scores...")
        result = RecalculationService().drain(batch_size)
        print(f"Processed {result['processed']} in {result['batches']} batch(es), "
              f"{result['remaining']} remaining")
        if result['failed_source_ids']:
            print(f"Failed sources: {result['failed_source_ids']}")
            sys.exit(1)
