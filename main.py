import sys
from concurrent.futures import ThreadPoolExecutor

from coa_scraper import handle_request, load_settings
from coa_scraper.log import configure_logging

MAX_WORKERS = 4


def run(lot_numbers, settings):
    def scrape(lot_no):
        return lot_no, handle_request("GET", {"lot_no": lot_no}, settings)

    with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
        return list(executor.map(scrape, lot_numbers))


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print("usage: python main.py <lot_no> [<lot_no> ...]", file=sys.stderr)
        return 2

    settings = load_settings()
    configure_logging(settings.log_level, json_output=False, stream=sys.stderr)

    failed = 0
    for lot_no, resp in run(argv, settings):
        print(f"--- {lot_no} (HTTP {resp.status})")
        print(resp.to_json())
        if resp.status != 200:
            failed += 1
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
