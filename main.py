#!/usr/bin/env python3
# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "pydantic==2.8.2",
#     "pytest==8.2.0",
#     "requests==2.32.3",
#     "trueskill==0.4.5",
# ]
# ///
"""! @brief Command line front end for building a ranking through battles and manual moves"""

import argparse
import sys
from rankkeeper.app import build_application
from rankkeeper.configuration import get_config_path, read_configuration
from rankkeeper.errors import RankKeeperError
from rankkeeper.logger import create_logger
from rankkeeper.scheduler import ManualScheduler

logger = create_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rankkeeper")
    parser.add_argument("-c", "--config", help="configuration file location")
    parser.add_argument("-s", "--store", help="ratings store file location")
    commands = parser.add_subparsers(dest="command", required=True)

    show = commands.add_parser("show", help="print the current leaderboard")
    show.add_argument("-n", "--size", type=int)

    battle = commands.add_parser("battle", help="record a battle result")
    battle.add_argument("winner")
    battle.add_argument("loser")

    move = commands.add_parser("move", help="place an item at a ranking position")
    move.add_argument("item")
    move.add_argument("index", type=int)

    pending = commands.add_parser("pending", help="manage the pending battle set")
    pending.add_argument("action", choices=["add", "remove", "list"])
    pending.add_argument("item", nargs="?")

    commands.add_parser("refine", help="show the next scheduled battle")
    commands.add_parser("sync", help="push local ratings to the cloud")
    commands.add_parser("pull", help="merge ratings from the cloud")

    login = commands.add_parser("login", help="attach a signed-in identity")
    login.add_argument("identity")

    commands.add_parser("logout", help="continue anonymously")
    commands.add_parser("clear", help="remove every rating")
    return parser


def print_leaderboard(app, size=None):
    rows = app.view.leaderboard(size)
    if not rows:
        print("No ratings yet")
        return
    for position, item_id, rating in rows:
        print(
            f"{position:>4}  {item_id:<24} score {rating.score:8.4f}  "
            f"mu {rating.mu:7.3f}  sigma {rating.sigma:6.3f}  battles {rating.battle_count}"
        )
    print(f"Total battles: {app.store.total_battles}")


def run(args) -> int:
    config, _ = read_configuration(args.config or get_config_path())
    scheduler = ManualScheduler()
    app = build_application(
        config,
        scheduler=scheduler,
        on_warning=lambda message: print(f"Warning: {message}", file=sys.stderr),
        store_location=args.store,
    )
    # a signed-in record has to be repopulated before commands read it
    app.wait_for_sync()

    command = args.command
    if command == "show":
        print_leaderboard(app, args.size)
    elif command == "battle":
        winner, loser = app.recorder.record_battle(args.winner, args.loser)
        print(f"{args.winner}: {winner.score:.4f}  {args.loser}: {loser.score:.4f}")
    elif command == "move":
        result = app.view.move_item(args.item, args.index)
        print(f"Moved {result.moved_id} to position {result.new_index + 1}")
    elif command == "pending":
        if args.action == "list":
            for item_id in app.store.get_pending_battles():
                print(item_id)
        elif not args.item:
            print("An item id is required", file=sys.stderr)
            return 2
        elif args.action == "add":
            app.store.add_pending_battle(args.item)
        else:
            app.store.remove_pending_battle(args.item)
    elif command == "refine":
        pair = app.recorder.next_battle()
        print(f"{pair[0]} vs {pair[1]}" if pair else "Nothing scheduled")
    elif command == "sync":
        app.wait_for_sync()
        if not app.engine.sync_to_cloud():
            print("Nothing was pushed", file=sys.stderr)
    elif command == "pull":
        app.engine.load_from_cloud()
    elif command == "login":
        app.engine.attach_identity(args.identity)
    elif command == "logout":
        app.engine.detach_identity()
    elif command == "clear":
        app.store.clear_all()

    app.wait_for_sync()
    app.close()
    return 0


def main():
    args = build_parser().parse_args()
    try:
        sys.exit(run(args))
    except (IndexError, ValueError, RankKeeperError) as error:
        logger.error(error)
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
