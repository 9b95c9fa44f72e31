"""Command-line front end for K3 hazard inspections.

Examples:
    k3-inspect analyze --task "Pemasangan kabel listrik di langit-langit" --image foto.jpg
    k3-inspect list
    k3-inspect ask <report-id> "rumah sakit terdekat"
    k3-inspect edit <report-id> "tandai area berbahaya dengan warna merah" --output hasil.png
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import config
from errors import InspectionError
from inspection_service import InspectionService
from llm_client import decode_data_url, image_file_to_data_url
from models import Location, TaskInput
from report_store import ReportStore
from report_views import highest_risk_level, summarize_all


class _TaskAction(argparse.Action):
    def __call__(self, parser, namespace, values, option_string=None):
        tasks = list(getattr(namespace, self.dest, None) or [])
        tasks.append({"description": values, "image": None})
        setattr(namespace, self.dest, tasks)


class _ImageAction(argparse.Action):
    """Attaches an image to the most recent --task."""

    def __call__(self, parser, namespace, values, option_string=None):
        tasks = getattr(namespace, self.dest, None)
        if not tasks:
            parser.error("--image must follow a --task")
        tasks[-1]["image"] = values


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="k3-inspect", description="K3 hazard identification assistant")
    parser.add_argument("--db", type=str, default=None, help="Path to the sqlite report store")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze tasks and store a new report")
    analyze.add_argument("--task", dest="tasks", action=_TaskAction, required=True, help="Task description (repeatable)")
    analyze.add_argument("--image", dest="tasks", action=_ImageAction, help="Photo for the preceding --task")
    analyze.add_argument("--lat", type=float, default=None, help="Latitude of the work site")
    analyze.add_argument("--lng", type=float, default=None, help="Longitude of the work site")

    sub.add_parser("list", help="List stored reports, most recent first")

    show = sub.add_parser("show", help="Print a stored report as JSON")
    show.add_argument("report_id")

    ask = sub.add_parser("ask", help="Ask a grounded follow-up question about a report")
    ask.add_argument("report_id")
    ask.add_argument("prompt")

    edit = sub.add_parser("edit", help="Edit the report photo with an instruction")
    edit.add_argument("report_id")
    edit.add_argument("instruction")
    edit.add_argument("--output", type=str, default=None, help="Write the edited image to this file")
    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def run(args: argparse.Namespace, service: InspectionService) -> None:
    if args.command == "analyze":
        location = None
        if args.lat is not None and args.lng is not None:
            location = Location(latitude=args.lat, longitude=args.lng)
        tasks: List[TaskInput] = []
        for task in args.tasks:
            image = image_file_to_data_url(task["image"]) if task["image"] else None
            tasks.append(TaskInput(description=task["description"], image_data_url=image))
        report = service.compose_report(tasks, location)
        _print_json(report.to_json_dict())

    elif args.command == "list":
        summaries = summarize_all(service.store.list())
        if not summaries:
            print("Belum ada laporan.")
        for summary in summaries:
            risk = summary.highest_risk_level or "Tidak ada bahaya teridentifikasi"
            print(f"{summary.id}  {summary.date:%Y-%m-%d %H:%M}  [{risk}]  {summary.title}")

    elif args.command == "show":
        report = service.store.get(args.report_id)
        _print_json(report.to_json_dict())
        level = highest_risk_level(report)
        if level:
            print(f"\nRisiko Tertinggi: {level}")

    elif args.command == "ask":
        result = service.ask(args.report_id, args.prompt)
        print(result.text)
        if result.chunks:
            print("\nSumber:")
            for i, chunk in enumerate(result.chunks, 1):
                print(f"[{i}] ({chunk.kind}) {chunk.source.title} - {chunk.source.uri}")

    elif args.command == "edit":
        report = service.edit_report_image(args.report_id, args.instruction)
        if args.output:
            _, data = decode_data_url(report.edited_image_data_url)
            Path(args.output).write_bytes(data)
            print(f"[OK] Edited image written to {args.output}")
        else:
            print(f"[OK] Edited image stored on report {report.id}")


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    args = build_parser().parse_args(argv)
    service = InspectionService(ReportStore(args.db))
    try:
        run(args, service)
    except InspectionError as exc:
        print(f"[ERROR] {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
