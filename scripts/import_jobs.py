#!/usr/bin/env python3
"""
Import job-meta documents into the job database.

Usage:
    python scripts/import_jobs.py --json data/jobs.json --db sqlite:///var/job.db
"""

import argparse
import sys
from pathlib import Path

from clusterjobs.database import init_database
from clusterjobs.env import load_env, load_settings
from clusterjobs.importer import import_jobs, load_documents
from clusterjobs.logger import reset_logger
from clusterjobs.repository import JobRepository


def main():
    load_env()
    # pick up log settings from .env
    reset_logger()
    settings = load_settings()

    parser = argparse.ArgumentParser(description="Import job-meta documents into the job table")
    parser.add_argument("--json", type=Path, required=True,
                        help="JSON file with a list of job documents")
    parser.add_argument("--db", default=settings.db_url,
                        help="Database URL (default: CLUSTERJOBS_DB_URL)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate documents without writing")

    args = parser.parse_args()

    if not args.json.exists():
        print(f"JSON file not found: {args.json}")
        sys.exit(1)

    documents = load_documents(args.json)
    print(f"Found {len(documents)} job documents in {args.json}")

    repo = None if args.dry_run else JobRepository(init_database(args.db))
    report = import_jobs(repo, documents, dry_run=args.dry_run)

    print(f"Imported: {report.imported}")
    print(f"Archived: {report.archived}")
    print(f"Skipped:  {report.skipped}")
    print(f"Invalid:  {report.invalid}")
    for error in report.errors:
        print(f"  {error}")

    sys.exit(1 if report.invalid else 0)


if __name__ == "__main__":
    main()
