from __future__ import annotations

import argparse
import os

from .client import APIError, MindBridgeClient
from config import MINDBRIDGE_API_URL


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Browse peers, keep a mindfulness journal and talk to the companion from the terminal."
    )
    parser.add_argument("--api-url", default=MINDBRIDGE_API_URL, help=f"API base URL (default: {MINDBRIDGE_API_URL})")
    parser.add_argument(
        "--token",
        default=os.environ.get("MINDBRIDGE_TOKEN"),
        help="Supabase access token (default: $MINDBRIDGE_TOKEN)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    peers = commands.add_parser("peers", help="List matching peers")
    peers.add_argument("--support-type", choices=["give", "need"], help="Only peers who give or need support")
    peers.add_argument("--preference", action="append", dest="preferences", help="Support preference (repeatable)")
    peers.add_argument("--active-only", action="store_true", help="Only peers active in the last hour")
    peers.add_argument(
        "--sort-by",
        choices=["match", "rating", "peopleSupported", "availability"],
        default="match",
    )

    requests_cmd = commands.add_parser("requests", help="List support requests")
    requests_cmd.add_argument("--type", choices=["all", "sent", "received"], default="all")
    requests_cmd.add_argument("--status", help="Only requests with this status")

    connect = commands.add_parser("connect", help="Send a support request")
    connect.add_argument("receiver_id")
    connect.add_argument("message")
    connect.add_argument("--anonymous", action="store_true")

    journal = commands.add_parser("journal", help="List entries, or add one with --add")
    journal.add_argument("--type", choices=["journal", "gratitude", "strength"], default="journal")
    journal.add_argument("--add", metavar="TEXT", help="Content of a new entry")
    journal.add_argument("--mood", help="Mood for journal entries")

    commands.add_parser("streak", help="Record today's mindfulness activity")

    ask = commands.add_parser("ask", help="Send one message to the AI companion")
    ask.add_argument("message")

    return parser.parse_args(argv)


def _print_peers(peers: list[dict]) -> None:
    if not peers:
        print("No peers found")
        return
    for peer in peers:
        status = "🟢" if peer.get("isActive") else "⚪"
        prefs = ", ".join(peer.get("supportPreferences") or [])
        print(f"{status} {peer['name']:<24} {peer['matchScore']:>3}%  ★{peer['rating']}  {peer['location']}")
        if prefs:
            print(f"    {prefs}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if not args.token:
        raise SystemExit("--token or MINDBRIDGE_TOKEN is required")

    client = MindBridgeClient(args.api_url, access_token=args.token)

    try:
        if args.command == "peers":
            _print_peers(client.list_peers(
                support_type=args.support_type,
                support_preferences=args.preferences,
                active_only=True if args.active_only else None,
                sort_by=args.sort_by,
            ))
        elif args.command == "requests":
            for req in client.list_requests(args.type, args.status):
                other = req.get("receiver_name") if req.get("isSender") else (req.get("sender") or {}).get("name")
                arrow = "→" if req.get("isSender") else "←"
                print(f"{arrow} {other or 'Anonymous User'}  [{req['status']}]  {req.get('message', '')}")
        elif args.command == "connect":
            created = client.send_request(args.receiver_id, args.message, is_anonymous=args.anonymous)
            print(f"✅ Request sent ({created.get('id')})")
        elif args.command == "journal":
            if args.add:
                entry = {"type": args.type, "content": args.add}
                if args.mood:
                    entry["mood"] = args.mood
                created = client.create_entry(entry)
                print(f"✅ Saved {created['type']} entry {created['id']}")
            else:
                for entry in client.list_entries(args.type):
                    print(f"{(entry.get('created_at') or '')[:10]}  {entry.get('mood') or ''} {entry['content']}")
        elif args.command == "streak":
            result = client.record_streak()
            days = (result.get("data") or {}).get("mindfulness", 0)
            print(f"🔥 {days} day streak" + ("" if result.get("streakIncremented") else " (already counted today)"))
        elif args.command == "ask":
            reply = client.ask_companion([{"role": "user", "content": args.message}])
            print(reply["response"])
    except APIError as e:
        raise SystemExit(f"Error: {e}") from e


if __name__ == "__main__":
    main()
