"""
Scrape the index from the command line and print a sample of the result.

Usage: python -m goscrape [start] [end]
"""
from __future__ import annotations

import logging
import sys
from typing import List, Optional

from goscrape.domain.errors import TimeParseError
from goscrape.services.scraper import scrape


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    start = argv[0] if len(argv) > 0 else None
    end = argv[1] if len(argv) > 1 else None

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        index = scrape(start, end, report_progress=True)
    except TimeParseError as e:
        print(f"Error: {e}")
        return 1

    for path in index.paths()[:5]:
        print(path)
        print([f"{v.version} ({v.timestamp})" for v in index.packages[path].versions])

    report = index.report
    print(f"\n{len(index)} packages, {report.record_count} records from {report.url_count} windows")
    if report.failures:
        print(f"Warning: {len(report.failures)} windows failed to download")
    return 0


if __name__ == "__main__":
    sys.exit(main())
