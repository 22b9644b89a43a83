"""
=========================================
Command-line entry point for the builder.
=========================================

Renders one statement from command-line arguments and prints it, or runs
it against the configured MySQL servers with --execute.

Usage:
    # Render a SELECT
    python main.py --table users --select id,name --where "`age` > 18" \\
        --order "`id` DESC" --skip 10 --limit 20

    # Count rows
    python main.py --table users --count total --where "`status`='active'"

    # Custom SQL with builder slots
    python main.py --table users --sql "SELECT :\\$fields FROM `users` :\\$limit" \\
        --fields id,name --limit 5

    # Run it (connection settings from .env)
    python main.py --table users --select id,name --limit 5 --execute

    # Wait for the database to come up
    python main.py --check-db

Exit codes:
    0 success, 1 error, 130 interrupted
"""

import argparse
import json
import sys
from typing import List, Optional

from core.config import config
from core.logger import get_logger, setup_logging
from sql.exceptions import QueryBuilderError
from sql.query_builder import QueryBuilder
from utils.connection import Connection
from utils.database_utils import DatabaseConnectionError, wait_for_database

logger = get_logger(__name__)


def _split_columns(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [column.strip() for column in value.split(',') if column.strip()]


def build_query(args: argparse.Namespace, executor=None) -> QueryBuilder:
    """
    Build a QueryBuilder from parsed arguments.

    Args:
        args: Parsed command-line arguments
        executor: Optional executor for --execute

    Returns:
        Configured QueryBuilder
    """
    query = QueryBuilder(args.table, executor=executor)

    if args.select is not None:
        query.select(*_split_columns(args.select))
    elif args.count:
        query.count(args.count)
    elif args.delete:
        query.delete()
    elif args.sql:
        query.sql(args.sql)

    for condition in args.where or []:
        query.where(condition)
    if args.fields:
        query.fields(*_split_columns(args.fields))
    if args.order:
        query.order(args.order)
    if args.skip is not None:
        query.skip(args.skip)
    if args.limit is not None:
        query.limit(args.limit)
    return query


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Render (and optionally run) a single-table MySQL statement',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('--table', help='Target table name')

    kind = parser.add_mutually_exclusive_group()
    kind.add_argument(
        '--select',
        metavar='COLUMNS',
        nargs='?',
        const='',
        help='SELECT statement; comma-separated columns, omit for *'
    )
    kind.add_argument('--count', metavar='ALIAS', help='SELECT COUNT(*) AS ALIAS')
    kind.add_argument('--delete', action='store_true', help='DELETE statement')
    kind.add_argument('--sql', metavar='TEMPLATE', help='Custom SQL template')

    parser.add_argument(
        '--where',
        action='append',
        metavar='CONDITION',
        help='WHERE condition (repeatable, AND-joined)'
    )
    parser.add_argument('--fields', metavar='COLUMNS', help='Projection for :$fields')
    parser.add_argument('--order', metavar='EXPR', help='ORDER BY expression')
    parser.add_argument('--skip', type=int, metavar='N', help='Rows to skip')
    parser.add_argument('--limit', type=int, metavar='N', help='Rows to return')

    parser.add_argument(
        '--execute',
        action='store_true',
        help='Run the statement and print the result as JSON'
    )
    parser.add_argument(
        '--check-db',
        action='store_true',
        help='Wait for the configured MySQL master to accept connections'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging (DEBUG level)'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run the command-line interface.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Process exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(
        log_level='DEBUG' if args.verbose else config.logging.level,
        log_file=config.logging.log_file,
        log_dir=str(config.logging.logs_dir)
    )

    try:
        if args.check_db:
            wait_for_database()
            return 0

        if not args.table:
            parser.print_help()
            logger.warning("No table specified. Use --table NAME.")
            return 1

        if not args.execute:
            print(build_query(args).build())
            return 0

        with Connection() as connection:
            result = build_query(args, executor=connection.executor()).exec()
        print(json.dumps(result, default=str, indent=2))
        return 0

    except QueryBuilderError as e:
        logger.error(f"Invalid statement: {e}")
        return 1
    except DatabaseConnectionError as e:
        logger.error(f"Database error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Operation interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
