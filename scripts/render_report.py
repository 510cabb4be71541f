#!/usr/bin/env python3
"""
Render a planning report to JSON: section tree, figures and table of contents.

Either fetches a report by id (inline content, storage bucket or HTTP URL) or
reads a local file.

Usage:
    python scripts/render_report.py --report-id REPORT_UUID
    python scripts/render_report.py --file report.md [--search "heritage"]
"""

import sys
import os
import argparse
import json
import logging

from dotenv import load_dotenv

# Load .env before planchat imports so settings pick up Supabase credentials
env_path = os.path.join(os.path.dirname(__file__), '..', '.env')
load_dotenv(env_path)

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from planchat.content import filter_sections, render_report_content
from planchat.services.report_content_service import ReportContentService, ReportContentStatus

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_content(args) -> tuple:
    if args.file:
        with open(args.file, 'r', encoding='utf-8') as f:
            return f.read(), {'file': args.file}

    result = ReportContentService().fetch_report_content(args.report_id)
    if result.status is ReportContentStatus.ERROR:
        retry_hint = " (retryable)" if result.retryable else ""
        logger.error(f"Report {result.report_id}: {result.error}{retry_hint}")
        sys.exit(1)

    metadata = {key: value for key, value in (result.report or {}).items() if key != 'generated_content'}
    metadata['source'] = result.source.value if result.source else None
    return result.content, metadata


def main():
    parser = argparse.ArgumentParser(description='Render a report to a JSON section tree')
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--report-id', type=str, help='report_generations id')
    group.add_argument('--file', type=str, help='Local report file')
    parser.add_argument('--search', type=str, help='Filter the table of contents by title')
    parser.add_argument('--toc-only', action='store_true', help='Print only the table of contents')
    args = parser.parse_args()

    content, metadata = load_content(args)
    rendered = render_report_content(content, metadata=metadata).to_dict()

    toc = rendered['table_of_contents']
    if args.search:
        toc = filter_sections(toc, args.search)
        rendered['table_of_contents'] = toc

    output = toc if args.toc_only else rendered
    print(json.dumps(output, indent=2, ensure_ascii=False))

    logger.info(
        f"Rendered {len(rendered['table_of_contents'])} TOC entries, "
        f"{len(rendered['figures'])} figures (state: {rendered['state']})"
    )


if __name__ == '__main__':
    main()
