# cli/reconcile.py
# Command-line front end for the receipt reconciliation pipeline.
# - date:     validate/repair one OCR date string
# - classify: partial/complete judgment for one page record
# - merge:    merge page records (in capture order) into one record
# - dupes:    duplicate groups over an expense history
# - check:    screen one candidate record against an expense history
#
# Examples:
#   python -m cli.reconcile date "O1/O3/2O24" --taken 2024-03-02
#   python -m cli.reconcile classify data/pages/top.json
#   python -m cli.reconcile merge data/pages/top.json data/pages/bottom.json --json
#   python -m cli.reconcile dupes data/expenses.yaml
#   python -m cli.reconcile check data/merged.json data/expenses.yaml --family fam-1

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional, Tuple

import click

from config.loader import load_config
from pipeline.capture import CaptureSession
from reconcile.completeness import detect_partial, is_complete, partial_guidance
from reconcile.dates import validate_date
from reconcile.duplicates import check_for_receipt_duplicates, detect_duplicates
from reconcile.quality import error_message, is_usable, low_confidence_line_items
from reconcile.settings import Rules, load_rules
from rr_utils.logging_setup import setup_logging
from storage.loaders import load_expenses, load_record

LOGGER = logging.getLogger("reconcile")
SCHEMA_VERSION = "1.0"


class InputError(click.ClickException):
    """Unreadable input or config file."""

    exit_code = 3


def _emit_json(payload: Any) -> None:
    click.echo(json.dumps({"schema_version": SCHEMA_VERSION, "result": payload}, ensure_ascii=True))


def _parse_day(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(f"expected YYYY-MM-DD, got {value!r}", param_hint=name)


def _rules(ctx: click.Context) -> Rules:
    return ctx.obj["rules"]


def _load(loader, path: str):
    try:
        return loader(Path(path))
    except (ValueError, TypeError, KeyError) as e:
        raise InputError(f"{path}: {e}")


# ----------------------------- CLI -----------------------------
@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Thresholds TOML (default: config.toml at the repo root).",
)
@click.option("--verbose", is_flag=True, help="Verbose logging.")
@click.option("--quiet", is_flag=True, help="Only warnings and errors.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool, quiet: bool) -> None:
    """Receipt reconciliation CLI."""
    try:
        cfg = load_config(Path(config_path) if config_path else None, required=bool(config_path))
        rules = load_rules(cfg)
    except (FileNotFoundError, ValueError) as e:
        raise InputError(str(e))

    level = (cfg.get("logging") or {}).get("level", "WARNING")
    if quiet:
        level = "WARNING"
    if verbose:
        level = "DEBUG"
    setup_logging(level)
    ctx.obj = {"rules": rules}


@cli.command("date")
@click.argument("text")
@click.option("--taken", default=None, help="Date the photo was taken (YYYY-MM-DD).")
@click.option("--today", default=None, help="Override today's date (YYYY-MM-DD).")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON.")
@click.pass_context
def date_cmd(ctx: click.Context, text: str, taken: Optional[str], today: Optional[str], as_json: bool) -> None:
    """Validate and repair one extracted date string."""
    result = validate_date(
        text,
        _parse_day(taken, "--taken"),
        today=_parse_day(today, "--today"),
        rules=_rules(ctx).dates,
    )
    if as_json:
        _emit_json(result.to_dict())
        return
    status = "ok" if result.is_valid else "invalid"
    shown = result.corrected_date.isoformat() if result.corrected_date else "N/A"
    click.echo(f"[{status}] {shown} (confidence {result.confidence:.2f})")
    for note in result.notes:
        click.echo(f"  - {note}")


@cli.command("classify")
@click.argument("page", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON.")
@click.pass_context
def classify_cmd(ctx: click.Context, page: str, as_json: bool) -> None:
    """Judge whether one page record is a whole receipt or a fragment."""
    record = _load(load_record, page)
    rules = _rules(ctx).completeness
    detection = detect_partial(record, rules)
    guidance = partial_guidance(record, rules)
    usable = is_usable(record)
    shaky = low_confidence_line_items(record)
    problem = error_message(record.error_type) if record.error else None
    if as_json:
        _emit_json(
            {
                "is_partial": detection.is_partial,
                "is_complete": is_complete(record),
                "reason": detection.reason,
                "warning": detection.warning,
                "guidance": guidance,
                "usable": usable,
                "low_confidence_items": [i.description for i in shaky],
                "error": problem,
            }
        )
        return
    click.echo(f"[{'partial' if detection.is_partial else 'complete'}] {page}")
    for line in (problem, detection.reason, detection.warning, guidance):
        if line:
            click.echo(f"  - {line}")
    if shaky:
        names = ", ".join(i.description for i in shaky)
        click.echo(f"  - Check {len(shaky)} low-confidence line item(s): {names}")
    if not usable:
        click.echo("  - Not reliable enough to pre-fill; review every field.")


@cli.command("merge")
@click.argument("pages", nargs=-1, type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON.")
@click.pass_context
def merge_cmd(ctx: click.Context, pages: Tuple[str, ...], as_json: bool) -> None:
    """Merge page records, given in capture order, into one record."""
    if not pages:
        raise click.UsageError("Provide one or more PAGES in capture order.")

    session = CaptureSession(rules=_rules(ctx))
    for path in pages:
        result = session.add_page(_load(load_record, path), image_ref=path)
        if not as_json:
            tag = "partial" if result.page.is_partial else "complete"
            click.echo(f"[page {result.page.page_number}] {tag} | {path}")

    final = session.finalize()
    if as_json:
        _emit_json({"record": final.record.to_dict(), "is_complete": final.is_complete})
        return
    rec = final.record
    click.echo("-" * 60)
    click.echo(f"Amount     : {rec.amount or 'N/A'}")
    click.echo(f"Date       : {rec.date or 'N/A'}")
    click.echo(f"Place      : {rec.place or 'N/A'}")
    click.echo(f"Line items : {len(rec.line_items)}")
    click.echo(f"Confidence : {rec.confidence:.2f}")
    click.echo("Receipt complete!" if final.is_complete else "Receipt still missing a final total.")


@cli.command("dupes")
@click.argument("history", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--json", "as_json", is_flag=True, help="Emit JSON.")
@click.pass_context
def dupes_cmd(ctx: click.Context, history: str, as_json: bool) -> None:
    """List groups of likely duplicate expenses in a history file."""
    expenses = _load(load_expenses, history)
    groups = detect_duplicates(expenses, _rules(ctx).duplicates)
    if as_json:
        _emit_json([g.to_dict() for g in groups])
        return
    if not groups:
        click.echo("[info] no duplicates found.")
        return
    for g in groups:
        ids = ", ".join(m.id for m in g.members)
        click.echo(f"[{g.confidence.value}] {g.reason.value}: {ids}")
    click.echo(f"[sum] groups={len(groups)} expenses={sum(len(g.members) for g in groups)}")


@cli.command("check")
@click.argument("candidate", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("history", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--family", "family_id", required=True, help="Household (family) id.")
@click.option("--amount", default=None, help="Amount as entered (default: record total).")
@click.option("--description", default=None, help="Description as entered.")
@click.option("--place", default=None, help="Place as entered.")
@click.option("--date", "entered_date", default=None, help="Date as entered (YYYY-MM-DD).")
@click.option("--json", "as_json", is_flag=True, help="Emit JSON.")
@click.pass_context
def check_cmd(
    ctx: click.Context,
    candidate: str,
    history: str,
    family_id: str,
    amount: Optional[str],
    description: Optional[str],
    place: Optional[str],
    entered_date: Optional[str],
    as_json: bool,
) -> None:
    """Screen one unsaved receipt against the household's expense history."""
    record = _load(load_record, candidate)
    expenses = _load(load_expenses, history)
    check = check_for_receipt_duplicates(
        record,
        family_id,
        amount if amount is not None else record.grand_total(),
        description if description is not None else record.description,
        place if place is not None else record.place,
        _parse_day(entered_date, "--date") or record.date,
        expenses,
        _rules(ctx).duplicates,
    )
    if as_json:
        _emit_json(check.to_dict())
        return
    if not check.has_duplicates:
        click.echo("[ok] no likely duplicates.")
        return
    for g in check.duplicate_groups:
        others = ", ".join(m.id for m in g.members if m is not check.potential_expense)
        click.echo(f"[{g.confidence.value}] {g.reason.value}: looks like {others}")


def main() -> None:
    cli(prog_name="reconcile")


if __name__ == "__main__":
    main()
