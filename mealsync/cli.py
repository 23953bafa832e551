"""Command-line interface for the meal-plan timeline."""

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from mealsync.config import ClientSettings, SettingsLoader
from mealsync.data_layer.exceptions import NotFoundError, PlanSyncError
from mealsync.data_layer.models import PlanStatus, RecipeRef
from mealsync.output.formatters import (
    format_alternatives,
    format_meal_json,
    format_timeline_json_string,
    format_timeline_markdown,
)
from mealsync.providers.memory_store import JsonFilePlanStore
from mealsync.session import PlanSession

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_NOT_FOUND = 2
EXIT_REMOTE = 3

DEFAULT_CONFIG = "config/mealsync.yaml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mealsync",
        description="View and edit the merged timeline of your active meal plans"
    )
    parser.add_argument(
        "--plans",
        type=str,
        help="Path to a local plans JSON file (default: use the configured remote store)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG,
        help=f"Path to settings YAML file (default: {DEFAULT_CONFIG}, optional)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)

    timeline = commands.add_parser("timeline", help="Show the merged timeline")
    timeline.add_argument("--today", type=date.fromisoformat, help="Override today's date (YYYY-MM-DD)")
    timeline.add_argument(
        "--output",
        choices=["markdown", "json"],
        default="markdown",
        help="Output format: markdown (default) or json"
    )

    toggle = commands.add_parser("toggle", help="Toggle a meal's completion")
    _add_slot_arguments(toggle)

    delete = commands.add_parser("delete-meal", help="Delete a meal from a plan day")
    delete.add_argument("plan_id")
    delete.add_argument("day_index", type=int)
    delete.add_argument("meal_id")

    alternatives = commands.add_parser("alternatives", help="List alternative recipes for a meal")
    _add_slot_arguments(alternatives)
    alternatives.add_argument("--limit", type=int, help="Number of alternatives (1-10)")

    swap = commands.add_parser("swap", help="Replace a meal's recipe")
    _add_slot_arguments(swap)
    choice = swap.add_mutually_exclusive_group(required=True)
    choice.add_argument("--recipe-id", help="Catalogue id of the replacement recipe")
    choice.add_argument("--choice", type=int, help="1-based position in the alternatives list")
    swap.add_argument("--limit", type=int, help="Number of alternatives fetched for --choice")

    status = commands.add_parser("status", help="Change a plan's status")
    status.add_argument("plan_id")
    status.add_argument("status", choices=[s.value for s in PlanStatus])

    return parser


def _add_slot_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("plan_id")
    parser.add_argument("day_index", type=int)
    parser.add_argument("meal_index", type=int)


def load_settings(config_path: str) -> ClientSettings:
    """Settings from the YAML file when present, else from the environment."""
    if Path(config_path).exists():
        return SettingsLoader(config_path).load()
    return ClientSettings.from_env()


def build_session(args: argparse.Namespace, settings: ClientSettings) -> PlanSession:
    if args.plans:
        return PlanSession(JsonFilePlanStore(args.plans, tz=settings.tzinfo()), settings)
    return PlanSession.from_settings(settings)


async def _await_write(ticket, what: str) -> int:
    if ticket is None:
        print(f"Error: {what} not found", file=sys.stderr)
        return EXIT_NOT_FOUND
    outcome = await ticket
    if outcome.error is not None:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return EXIT_NOT_FOUND if isinstance(outcome.error, NotFoundError) else EXIT_REMOTE
    return EXIT_OK


async def run_command(args: argparse.Namespace, session: PlanSession) -> int:
    """Execute one sub-command against a loaded session."""
    await session.load()

    if args.command == "timeline":
        today = args.today or date.today()
        result = session.timeline(today)
        if args.output == "json":
            print(format_timeline_json_string(result, today))
        else:
            print(format_timeline_markdown(result, today))
        return EXIT_OK

    if args.command == "toggle":
        code = await _await_write(
            session.toggle_completion(args.plan_id, args.day_index, args.meal_index), "Meal"
        )
        if code == EXIT_OK:
            meal = session.collection.get_meal(args.plan_id, args.day_index, args.meal_index)
            state = "completed" if meal.is_completed else "pending"
            print(f"Meal {meal.meal_id} marked as {state}")
        return code

    if args.command == "delete-meal":
        code = await _await_write(
            session.delete_meal(args.plan_id, args.day_index, args.meal_id), "Meal"
        )
        if code == EXIT_OK:
            print(f"Deleted meal {args.meal_id}")
        return code

    if args.command == "alternatives":
        recipes = await session.fetch_alternatives(args.plan_id, args.day_index, args.meal_index, args.limit)
        print(format_alternatives(recipes))
        return EXIT_OK

    if args.command == "swap":
        if args.recipe_id:
            ref = RecipeRef(recipe_id=args.recipe_id)
        else:
            recipes = await session.fetch_alternatives(args.plan_id, args.day_index, args.meal_index, args.limit)
            if not 1 <= args.choice <= len(recipes):
                print(f"Error: choice {args.choice} out of range (1-{len(recipes)})", file=sys.stderr)
                return EXIT_USAGE
            ref = RecipeRef.for_recipe(recipes[args.choice - 1])
        meal = await session.apply_alternative(args.plan_id, args.day_index, args.meal_index, ref)
        print(f"Meal {meal.meal_id} now uses '{format_meal_json(meal)['recipe']['name']}'")
        return EXIT_OK

    if args.command == "status":
        code = await _await_write(
            session.set_plan_status(args.plan_id, PlanStatus(args.status)), "Meal plan"
        )
        if code == EXIT_OK:
            print(f"Plan {args.plan_id} is now {args.status}")
        return code

    return EXIT_USAGE


async def _run(args: argparse.Namespace, settings: ClientSettings) -> int:
    session = build_session(args, settings)
    async with session:
        return await run_command(args, session)


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the command and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        settings = load_settings(args.config)
        return asyncio.run(_run(args, settings))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except NotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except PlanSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_REMOTE


def main():
    """Main CLI entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
