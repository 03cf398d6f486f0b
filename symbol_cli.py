"""
Symbol Catalog Main Controller
"""
import argparse
import sys
from dataclasses import asdict

from listing_ingestion import IngestionError
from symbol_catalog import ConfigurationError, SymbolCatalog, SymbolNotFoundError
from symbol_database import DB_FILE, StoreUnavailableError
from symbol_keys import SEARCH_LABELS


def setup_cli(argv=None):
    """
    Configure and parse command-line arguments.
    """
    parser = argparse.ArgumentParser(description="Symbol catalog controller.")
    parser.add_argument(
        "--db",
        default=DB_FILE,
        help=f"Path to the symbols database (default: {DB_FILE}).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("build", help="Download or scrape the database if it does not exist yet.")
    commands.add_parser("update", help="Delete the database and scrape it again.")
    commands.add_parser("count", help="Print the number of stored symbols.")

    lookup = commands.add_parser("lookup", help="Print one symbol record.")
    lookup.add_argument("symbol", type=str)

    search = commands.add_parser("search", help="Search symbols by ticker or name.")
    search.add_argument("query", type=str)
    search.add_argument(
        "--asset-class",
        default="Equity",
        help=f"One of: {', '.join(SEARCH_LABELS)}.",
    )
    search.add_argument("--limit", type=int, default=25, help="Maximum rows to print.")

    export = commands.add_parser("export", help="Write the whole catalog to a CSV file.")
    export.add_argument("path", type=str)

    return parser.parse_args(argv)


def run(args) -> int:
    catalog = SymbolCatalog(db_path=args.db)

    try:
        if args.command == "build":
            catalog.get_store()
            print(f"Database ready with {catalog.get_symbols_count()} symbols.")
        elif args.command == "update":
            report = catalog.update_database()
            print(f"Update complete: {report.summary()}.")
        elif args.command == "count":
            print(catalog.get_symbols_count())
        elif args.command == "lookup":
            record = catalog.get_symbol(args.symbol.upper())
            for field_name, value in asdict(record).items():
                print(f"{field_name:>12}: {value}")
        elif args.command == "search":
            matches = catalog.search_symbols(args.query, args.asset_class)
            print(f"Found {len(matches)} match(es) for '{args.query}' in {args.asset_class}.")
            for symbol, name in list(matches.items())[: args.limit]:
                print(f"  {symbol:<12} {name}")
        elif args.command == "export":
            df = catalog.get_symbols_df()
            df.to_csv(args.path, index=False)
            print(f"Wrote {len(df)} symbols to {args.path}.")
    except SymbolNotFoundError as exc:
        print(f"Error: {exc}")
        return 1
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 1
    except IngestionError as exc:
        print(f"Error: {exc}")
        print(f"Partial result: {exc.report.summary()}.")
        return 1
    except StoreUnavailableError as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        catalog.close()

    return 0


def main(argv=None) -> int:
    return run(setup_cli(argv))


if __name__ == "__main__":
    sys.exit(main())
