"""
Matchday Event Ledger - Main Entry Point
Replays a file of live-match rows through the console and prints the outcome
"""

import argparse
import json
import sys
from logger_config import setup_logging
from event_ledger import JsonLinesEventLedger, MemoryEventLedger
from idempotency_guard import IdempotencyGuard, JsonIdempotencyStore
from match_console import MatchConsole
from webhook_notifier import WebhookNotifier
import config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay operator match rows through the event ledger")
    parser.add_argument('events_file', help="JSON file: {'match': {...}, 'events': [...]} or a list of rows")
    parser.add_argument('--match-id', help="Match id when the file has no 'match' block")
    parser.add_argument('--away', action='store_true', help="Our team is the away side")
    parser.add_argument('--opponent', default='')
    parser.add_argument('--starters', default='', help="Comma-separated starting lineup")
    parser.add_argument('--notify', action='store_true', help="Send notifications to the Make webhook")
    parser.add_argument('--webhook-url', default=None)
    parser.add_argument('--persist', action='store_true',
                        help=f"Use {config.EVENT_LEDGER_FILE} and {config.IDEMPOTENCY_DB_FILE}")
    return parser


def load_rows(path: str, args) -> tuple:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, list):
        match = {}
        rows = data
    else:
        match = data.get('match', {})
        rows = data.get('events', [])

    match_info = {
        'match_id': match.get('match_id') or args.match_id,
        'is_home_team': match.get('is_home_team', not args.away),
        'opponent': match.get('opponent') or args.opponent,
        'starting_players': match.get('starting_players')
        or [name.strip() for name in args.starters.split(',') if name.strip()],
    }
    return match_info, rows


def main(argv=None) -> int:
    """Main application entry point"""
    args = build_parser().parse_args(argv)
    logger = setup_logging()

    try:
        match_info, rows = load_rows(args.events_file, args)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot read {args.events_file}: {e}")
        return 2

    if not match_info['match_id']:
        logger.error("No match id: add a 'match' block or pass --match-id")
        return 2

    if args.persist:
        ledger = JsonLinesEventLedger()
        guard = IdempotencyGuard(JsonIdempotencyStore())
    else:
        ledger = MemoryEventLedger()
        guard = IdempotencyGuard()

    dispatcher = WebhookNotifier(webhook_url=args.webhook_url) if args.notify else None
    console = MatchConsole(ledger=ledger, guard=guard, dispatcher=dispatcher)
    coordinator = console.open_match(**match_info)

    rejected = 0
    for index, row in enumerate(rows, start=1):
        result = coordinator.submit(row)
        if not result.success:
            rejected += 1
        line = f"#{index:03d} {result.outcome.value:<9}"
        if result.event is not None:
            line += f" {result.event.kind.value} {result.event.minute}'"
        if result.error is not None:
            line += f" [{result.error.code}] {result.error.message}"
        for anomaly in result.anomalies:
            line += f" !{anomaly.code}"
        if result.dispatch_failed:
            line += f" (notify failed: {result.dispatch.error_detail})"
        print(line)

    state = coordinator.state
    print("=" * 60)
    print(f"Match {state.match.match_id}: {state.score} ({state.period.value})")
    for summary in state.player_summaries().values():
        print(f"  {summary.name:<24} {summary.minutes:>3} min  "
              f"G{summary.goals} A{summary.assists} Y{summary.yellow_cards} R{summary.red_cards}")
    if state.anomalies:
        print(f"{len(state.anomalies)} anomalies recorded for review")

    return 1 if rejected else 0


if __name__ == "__main__":
    sys.exit(main())
