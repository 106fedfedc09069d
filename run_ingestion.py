# /run_ingestion.py

import argparse
import os
import sys

import requests
from dotenv import load_dotenv

DEFAULT_API_URL = "http://localhost:8000"
# Crawling is slow; the API answers only once every page is stored
SCRAPE_TIMEOUT_SECONDS = 1800


def trigger_scrape(api_url: str, url: str = None) -> dict:
    """
    Asks the running API to crawl the site into its vector store and knowledge
    graph. Raises requests.HTTPError when the scrape fails.
    """
    payload = {"url": url} if url else {}
    response = requests.post(f"{api_url.rstrip('/')}/scrape", json=payload, timeout=SCRAPE_TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.json()


def main(argv=None):
    """
    Triggers ingestion on the running service and prints what was stored.
    """
    load_dotenv()

    parser = argparse.ArgumentParser(description="Scrape the recipe site into the running service's stores.")
    parser.add_argument("url", nargs="?", default=None, help="Page to start crawling from. Defaults to the service's SCRAPE_START_URL.")
    parser.add_argument("--api-url", default=os.getenv("SMARTIE_API_URL", DEFAULT_API_URL), help="Base url of the running API.")
    args = parser.parse_args(argv)

    try:
        result = trigger_scrape(args.api_url, args.url)
    except requests.RequestException as e:
        print(f"Error: ingestion request to {args.api_url} failed: {e}")
        return 1

    print(f"Pages scraped: {result['count']}")
    print(f"Documents stored: {result['documents']}")
    print(f"Graph changes: {result['graphChanges']}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
