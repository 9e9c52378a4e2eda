#!/usr/bin/env python3
# Replay a saved raw LLM response through one call site's reconciler
# Used to debug responses that were logged as unparseable in production

import argparse
import json
import logging
import sys
from typing import List

from advisor_gateway.models import Scholarship, University
from advisor_gateway.services.reconciliation import (
    reconcile_chat,
    reconcile_matches,
    reconcile_profile,
    reconcile_suggestions,
    reconcile_tasks,
)

CALL_SITES = ("matching", "suggestions", "tasks", "chat", "profile")


def load_records(path: str, model) -> List:
    """Context records from a JSON file holding a list of objects"""
    if not path:
        return []
    with open(path, encoding="utf-8") as f:
        return [model(**item) for item in json.load(f)]


def replay(call_site: str, raw: str, universities: List[University], scholarships: List[Scholarship]):
    if call_site == "matching":
        return reconcile_matches(raw, universities)
    if call_site == "suggestions":
        return reconcile_suggestions(raw, universities, scholarships)
    if call_site == "tasks":
        return reconcile_tasks(raw)
    if call_site == "profile":
        return reconcile_profile(raw)
    return reconcile_chat(raw)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run a saved LLM response through the reconciliation pipeline"
    )
    parser.add_argument("call_site", choices=CALL_SITES,
                        help="Which call site's reconciler to run")
    parser.add_argument("response", nargs="?", default="-",
                        help="File holding the raw response (default: stdin)")
    parser.add_argument("--universities", type=str, default="",
                        help="JSON file with stored/candidate universities")
    parser.add_argument("--scholarships", type=str, default="",
                        help="JSON file with stored scholarships")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every stage attempt")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.response == "-":
        raw = sys.stdin.read()
    else:
        with open(args.response, encoding="utf-8") as f:
            raw = f.read()

    result = replay(
        args.call_site,
        raw,
        load_records(args.universities, University),
        load_records(args.scholarships, Scholarship),
    )
    print(result.model_dump_json(indent=2))
    return 0 if getattr(result, "success", True) else 1


if __name__ == "__main__":
    sys.exit(main())
