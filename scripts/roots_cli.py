#!/usr/bin/env python3
"""
Talk to a running rootify service from the command line.

  roots_cli.py import roots.csv [--yes]     preview a CSV, then merge it into the dictionary
  roots_cli.py export [--out roots.csv]     write the dictionary as CSV
  roots_cli.py translate fields.txt         translate one field name per line (tab-separated output)

CSV format (same as the management page):
  中文词根,英文对应
  交易,transaction
  "日期","date"

The service URL comes from --base-url, else $ROOTIFY_URL, else http://127.0.0.1:8000.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

DEFAULT_BASE_URL = "http://127.0.0.1:8000"
TIMEOUT = 30


class ApiError(RuntimeError):
    pass


def api_request(
    session: requests.Session,
    base_url: str,
    method: str,
    path: str,
    payload: Optional[Dict[str, Any]] = None,
) -> requests.Response:
    url = base_url.rstrip("/") + path
    try:
        resp = session.request(method, url, json=payload, timeout=TIMEOUT)
    except requests.RequestException as e:
        raise ApiError(f"Failed to reach rootify at {base_url}. Is the service running?") from e

    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail")
        except ValueError:
            detail = resp.text
        raise ApiError(f"{method} {path} -> {resp.status_code}: {detail}")
    return resp


def cmd_import(session: requests.Session, base_url: str, csv_path: Path, assume_yes: bool) -> int:
    text = csv_path.read_text(encoding="utf-8-sig")
    preview: List[Dict[str, str]] = api_request(
        session, base_url, "POST", "/roots/import/preview", {"csv": text}
    ).json()

    adds = sum(1 for p in preview if p["action"] == "add")
    updates = len(preview) - adds
    for p in preview:
        print(f"  [{p['action']}] {p['chinese']} -> {p['english']}")
    print(f"Preview: {adds} new, {updates} updated")

    if not assume_yes:
        answer = input("Import these roots? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Aborted.")
            return 1

    roots = {p["chinese"]: p["english"] for p in preview}
    out = api_request(session, base_url, "POST", "/roots/import", {"roots": roots}).json()
    print(f"Imported: {out.get('imported', len(roots))}")
    return 0


def cmd_export(session: requests.Session, base_url: str, out: Optional[Path]) -> int:
    resp = api_request(session, base_url, "GET", "/roots/export")
    if resp.status_code == 204 or not resp.text:
        print("No roots to export.", file=sys.stderr)
        return 0

    if out is None:
        sys.stdout.write(resp.text)
    else:
        # BOM so spreadsheet apps pick up UTF-8
        out.write_text("\ufeff" + resp.text, encoding="utf-8")
        print(f"Wrote: {out}")
    return 0


def cmd_translate(session: requests.Session, base_url: str, src: Path) -> int:
    lines = [ln.strip() for ln in src.read_text(encoding="utf-8").splitlines()]
    lines = [ln for ln in lines if ln]
    if not lines:
        print("Nothing to translate.", file=sys.stderr)
        return 0

    results = api_request(session, base_url, "POST", "/translate/batch", {"lines": lines}).json()
    incomplete = 0
    for r in results:
        mark = "" if r["complete"] else "\t(incomplete)"
        if not r["complete"]:
            incomplete += 1
        print(f"{r['text']}\t{r['translation']}{mark}")

    if incomplete:
        print(f"{incomplete}/{len(results)} lines contain unknown roots", file=sys.stderr)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="rootify command-line client")
    ap.add_argument("--base-url", default=os.getenv("ROOTIFY_URL", DEFAULT_BASE_URL))
    sub = ap.add_subparsers(dest="command", required=True)

    p_imp = sub.add_parser("import", help="Preview and import roots from CSV")
    p_imp.add_argument("csv_path", type=Path)
    p_imp.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")

    p_exp = sub.add_parser("export", help="Export roots as CSV")
    p_exp.add_argument("--out", type=Path, default=None, help="Output file (default: stdout)")

    p_tr = sub.add_parser("translate", help="Translate one field name per line")
    p_tr.add_argument("src", type=Path)

    args = ap.parse_args(argv)

    with requests.Session() as session:
        try:
            if args.command == "import":
                return cmd_import(session, args.base_url, args.csv_path, args.yes)
            if args.command == "export":
                return cmd_export(session, args.base_url, args.out)
            return cmd_translate(session, args.base_url, args.src)
        except ApiError as e:
            print(f"error: {e}", file=sys.stderr)
            return 2


if __name__ == "__main__":
    sys.exit(main())
