#!/usr/bin/env python3
"""
Workout Engine
Command-line entry point: read a generation request, print the result as JSON.
"""

import argparse
import json
import sys
import traceback

from dotenv import load_dotenv

from workout_engine.config import build_gateway, load_config
from workout_engine.errors import ConfigurationError
from workout_engine.logging_config import setup_logging
from workout_engine.plan_generator import PlanGenerator
from workout_engine.progression_engine import suggest_workout_progression, summarize_progression
from workout_engine.safety_limits import limits_for_profile, verify_catalog


def print_banner():
    """Print welcome banner."""
    banner = """
╔══════════════════════════════════════════════════════════════╗
║                                                              ║
║        WORKOUT ENGINE                                        ║
║        Safe workouts, with or without Claude AI              ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
    """
    print(banner, file=sys.stderr)


def parse_args():
    parser = argparse.ArgumentParser(description="Generate a safety-checked workout or weekly plan.")
    parser.add_argument(
        "request",
        type=str,
        help="Path to a JSON request file, or '-' to read from stdin.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="",
        help="Optional config.yaml path (defaults to the repo's config.yaml).",
    )
    parser.add_argument(
        "--context",
        type=str,
        default="",
        help="Optional JSON file with this week's logged volume.",
    )
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip the model and use the deterministic generator.",
    )
    parser.add_argument(
        "--progression",
        type=str,
        default="",
        help="Optional JSON file of exercise histories to get next-session suggestions for.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Do not print the banner.",
    )
    return parser.parse_args()


def _read_json(path):
    if path == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def main():
    """Main application flow."""
    args = parse_args()
    if not args.quiet:
        print_banner()

    load_dotenv()
    config = load_config(args.config or None)
    setup_logging(level=config["logging"]["level"], json_output=config["logging"]["json"])
    verify_catalog()

    request = _read_json(args.request)
    if args.no_ai:
        request["useAi"] = False
        request.pop("use_ai", None)
    weekly_context = _read_json(args.context) if args.context else None

    use_ai = request.get("use_ai", request.get("useAi", True))
    gateway = build_gateway(config) if use_ai else None

    claude = config["claude"]
    orchestrator = config["orchestrator"]
    generator = PlanGenerator(
        gateway=gateway,
        max_workers=orchestrator["max_workers"],
        wait_timeout_seconds=config["gateway"]["total_timeout_seconds"] + orchestrator["wait_grace_seconds"],
        max_tokens=claude["max_tokens"],
        weekly_max_tokens=claude["weekly_max_tokens"],
        temperature=claude["temperature"],
    )
    try:
        result = generator.generate(request, weekly_context=weekly_context)
    finally:
        generator.close()

    if args.progression:
        profile = request.get("profile") or {}
        limits = limits_for_profile(
            profile.get("fitness_level", profile.get("fitnessLevel")), profile.get("goal")
        )
        suggestions = suggest_workout_progression(_read_json(args.progression), limits)
        result["progression"] = {
            "suggestions": suggestions,
            "summary": summarize_progression(suggestions),
        }

    if gateway is not None:
        result["usage"] = gateway.usage_summary(request.get("user_id", request.get("userId")))

    print(json.dumps(result, indent=2, default=str))
    return 0 if result["success"] else 2


def run():
    """Console entry point: run main() and turn failures into exit codes."""
    try:
        return main()
    except KeyboardInterrupt:
        print("\n\nExiting...", file=sys.stderr)
        return 0
    except ConfigurationError as e:
        print(f"\n❌ Error: {e.message}", file=sys.stderr)
        if e.code == "MISSING_API_KEY":
            print("\nPlease:", file=sys.stderr)
            print("1. Copy .env.example to .env", file=sys.stderr)
            print("2. Add your Anthropic API key to .env", file=sys.stderr)
            print("3. Or run with --no-ai to use the deterministic generator", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"\n❌ Unexpected error: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(run())
