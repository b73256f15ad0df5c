#!/usr/bin/env python3
"""CLI entry point for kinai package.

Usage:
    python -m kinai list [--search TERM]
    python -m kinai show <patient_id>
    python -m kinai register [--from-json intake.json]
    python -m kinai session add <patient_id> --date 2024-01-10 --pain 7 ...
    python -m kinai session edit <patient_id> <session_id> --pain 9 ...
    python -m kinai analyze <patient_id>
    python -m kinai suggest "le duele la rodilla al subir escaleras"
    python -m kinai export csv [--output-dir DIR]
    python -m kinai export pdf <patient_id> [--output-dir DIR]
    python -m kinai summary
    python -m kinai init-config [--output kinai.toml]

Every command accepts --db and --config.
"""

import argparse
import asyncio
import json
import sys

from kinai.config import DEFAULT_CONFIG_PATH

SESSION_FLAGS = (
    ("--date", "date", "Session date (YYYY-MM-DD)"),
    ("--time", "time", "Session time (HH:MM)"),
    ("--objective", "objective", "Session objective"),
    ("--treatment", "treatment", "Treatment performed"),
    ("--evolution", "evolution", "Evolution notes"),
    ("--observations", "observations", "Other observations"),
    ("--pain", "pain_level", "Pain level, EVA 0-10"),
    ("--pain-map-url", "pain_map_url", "Link to a pain map"),
    ("--pain-map-image", "pain_map_image", "Pain map image reference"),
)


def _add_common(p):
    p.add_argument("--db", default="", help="SQLite database path (overrides config)")
    p.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to kinai.toml config file")


def main():
    parser = argparse.ArgumentParser(
        prog="kinai",
        description="Patient intake and session records for a kinesiology practice.",
    )
    sub = parser.add_subparsers(dest="command")

    # --- list ---
    list_parser = sub.add_parser("list", help="Show the patient dashboard")
    list_parser.add_argument("--search", default="", help="Filter by name or document ID")
    _add_common(list_parser)

    # --- show ---
    show_parser = sub.add_parser("show", help="Show a patient's full record")
    show_parser.add_argument("patient_id", help="Patient ID")
    _add_common(show_parser)

    # --- register ---
    register_parser = sub.add_parser("register", help="Register a new patient (intake wizard)")
    register_parser.add_argument("--from-json", default="", help="Read intake fields from a JSON file")
    _add_common(register_parser)

    # --- session ---
    session_parser = sub.add_parser("session", help="Add or edit visit sessions")
    session_sub = session_parser.add_subparsers(dest="session_action")

    add_parser = session_sub.add_parser("add", help="Add a session for a patient")
    add_parser.add_argument("patient_id", help="Patient ID")
    edit_parser = session_sub.add_parser("edit", help="Edit an existing session")
    edit_parser.add_argument("patient_id", help="Patient ID")
    edit_parser.add_argument("session_id", help="Session ID")
    for p in (add_parser, edit_parser):
        for flag, dest, help_text in SESSION_FLAGS:
            p.add_argument(flag, dest=dest, default=None, help=help_text)
        _add_common(p)

    # --- analyze ---
    analyze_parser = sub.add_parser("analyze", help="AI progress summary for a patient")
    analyze_parser.add_argument("patient_id", help="Patient ID")
    _add_common(analyze_parser)

    # --- suggest ---
    suggest_parser = sub.add_parser("suggest", help="Suggest clinical terminology for a description")
    suggest_parser.add_argument("text", help="Free-text description of symptoms")
    _add_common(suggest_parser)

    # --- export ---
    export_parser = sub.add_parser("export", help="Export records as CSV or PDF")
    export_sub = export_parser.add_subparsers(dest="export_format")
    csv_parser = export_sub.add_parser("csv", help="All patients and sessions as CSV")
    pdf_parser = export_sub.add_parser("pdf", help="One patient's record as PDF")
    pdf_parser.add_argument("patient_id", help="Patient ID")
    for p in (csv_parser, pdf_parser):
        p.add_argument("--output-dir", default="", help="Output directory (overrides config)")
        _add_common(p)

    # --- summary ---
    summary_parser = sub.add_parser("summary", help="Show record counts")
    _add_common(summary_parser)

    # --- init-config ---
    config_parser = sub.add_parser("init-config", help="Generate a kinai.toml config file")
    config_parser.add_argument("--output", default=DEFAULT_CONFIG_PATH, help="Config file output path")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "list":
        _handle_list(args)
    elif args.command == "show":
        _handle_show(args)
    elif args.command == "register":
        _handle_register(args)
    elif args.command == "session":
        _handle_session(args)
    elif args.command == "analyze":
        _handle_analyze(args)
    elif args.command == "suggest":
        _handle_suggest(args)
    elif args.command == "export":
        _handle_export(args)
    elif args.command == "summary":
        _handle_summary(args)
    elif args.command == "init-config":
        _handle_init_config(args)


def _load_config(args) -> dict:
    from kinai.config import load_config

    return load_config(args.config, warn_missing=args.config != DEFAULT_CONFIG_PATH)


def _open_db(args, config: dict):
    from kinai.db import KinaiDB

    db = KinaiDB(args.db or config["storage"]["db_path"])
    db.init_schema()
    return db


def _open_store(db, config: dict):
    from kinai.ai import build_ai_client
    from kinai.store import ClinicStore

    return ClinicStore(db, ai=build_ai_client(config))


def _require_patient(store, patient_id: str):
    from kinai.errors import PatientNotFoundError
    from kinai.views import find_patient

    patient = find_patient(store.patients, patient_id)
    if patient is None:
        print(f"Error: {PatientNotFoundError(patient_id)}", file=sys.stderr)
        sys.exit(1)
    store.open_patient(patient_id)
    return patient


def _handle_list(args):
    from kinai.formatters.markdown import render_dashboard
    from kinai.state import set_search_term

    config = _load_config(args)
    with _open_db(args, config) as db:
        store = _open_store(db, config)
        store.dispatch(set_search_term, args.search)
        print(render_dashboard(store.state))


def _handle_show(args):
    from kinai.formatters.markdown import render_patient_detail

    config = _load_config(args)
    with _open_db(args, config) as db:
        store = _open_store(db, config)
        _require_patient(store, args.patient_id)
        print(render_patient_detail(store.state, args.patient_id))


def _handle_register(args):
    from kinai.errors import ValidationError
    from kinai.state import AttachmentDraft

    config = _load_config(args)
    with _open_db(args, config) as db:
        store = _open_store(db, config)
        if args.from_json:
            with open(args.from_json, encoding="utf-8") as f:
                raw = json.load(f)
            attachments = [
                AttachmentDraft(name=a.get("name", ""), url=a.get("url", ""))
                for a in raw.pop("attachments", [])
            ]
            form, rows = raw, attachments
        else:
            _run_intake_wizard(store)
            form, rows = None, None

        try:
            patient = store.register_patient(form, rows)
        except ValidationError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    print(f"Registered {patient.full_name} ({patient.id})")


def _run_intake_wizard(store) -> None:
    """Prompt for each intake field, step by step, into the patient draft."""
    from kinai.formatters.markdown import FIELD_LABELS, render_intake_step
    from kinai import state as commands

    store.dispatch(commands.start_new_patient)
    for step in (1, 2):
        print()
        print(render_intake_step(store.state))
        print()
        for name in commands.INTAKE_STEP_FIELDS[step]:
            value = input(f"  {FIELD_LABELS[name]}: ").strip()
            store.dispatch(commands.update_patient_draft, **{name: value})
        if step == 1:
            store.dispatch(commands.wizard_next)

    print("\nAdjuntos (deje la URL vacía para terminar)")
    while True:
        url = input("  URL: ").strip()
        if not url:
            break
        name = input("  Nombre: ").strip()
        store.dispatch(commands.add_attachment_row)
        index = len(store.state.pending_attachments) - 1
        store.dispatch(commands.update_attachment_row, index, "name", name)
        store.dispatch(commands.update_attachment_row, index, "url", url)


def _handle_session(args):
    from kinai import state as commands

    if args.session_action is None:
        print("Usage: kinai session <add|edit> ...")
        sys.exit(1)

    config = _load_config(args)
    with _open_db(args, config) as db:
        store = _open_store(db, config)
        _require_patient(store, args.patient_id)

        if args.session_action == "edit":
            own = {s.id for s in store.sessions if s.patient_id == args.patient_id}
            if args.session_id not in own:
                print(f"Error: Session {args.session_id} not found for this patient.", file=sys.stderr)
                sys.exit(1)
            store.begin_edit(args.session_id)

        values = {
            dest: getattr(args, dest)
            for _, dest, _ in SESSION_FLAGS
            if getattr(args, dest) is not None
        }
        store.dispatch(commands.update_session_draft, **values)
        session = store.save_session()

    verb = "Updated" if args.session_action == "edit" else "Added"
    print(f"{verb} session {session.id} ({session.date} EVA {session.pain_level}/10)")


def _handle_analyze(args):
    config = _load_config(args)
    with _open_db(args, config) as db:
        store = _open_store(db, config)
        _require_patient(store, args.patient_id)
        text = asyncio.run(store.analyze_progress())
    print(text)


def _handle_suggest(args):
    from kinai.ai import build_ai_client

    config = _load_config(args)
    terms = asyncio.run(build_ai_client(config).suggest_terminology(args.text))
    if not terms:
        print("(sin sugerencias)")
        return
    for term in terms:
        print(f"- {term}")


def _handle_export(args):
    from kinai.export_csv import export_csv

    if args.export_format is None:
        print("Usage: kinai export <csv|pdf> ...")
        sys.exit(1)

    config = _load_config(args)
    output_dir = args.output_dir or config["export"]["output_dir"]
    with _open_db(args, config) as db:
        store = _open_store(db, config)
        if args.export_format == "csv":
            path = export_csv(store.patients, store.sessions, output_dir=output_dir)
        else:
            _require_patient(store, args.patient_id)
            path = asyncio.run(store.export_pdf(output_dir))

    print(f"Exported to {path}")


def _handle_summary(args):
    config = _load_config(args)
    with _open_db(args, config) as db:
        counts = db.summary()

    print(f"\n{'='*50}")
    print("Database Summary")
    print(f"{'='*50}")
    for collection, count in counts.items():
        print(f"  {collection:<25} {count:>6}")
    print(f"{'='*50}")


def _handle_init_config(args):
    from kinai.config import generate_config

    path = generate_config(args.output)
    print(f"Config generated at {path}")


if __name__ == "__main__":
    main()
