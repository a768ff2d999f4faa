"""CLI command printing how a file would be segmented."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from apps.swiftseg.utils.errors import SwiftsegIOError, SwiftsegValidationError
from libraries.swift import FileSource, plan_segments
from libraries.swift.models import DEFAULT_SEGMENT_SIZE


def plan(
    file: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False),
    segment_size: int = typer.Option(
        DEFAULT_SEGMENT_SIZE, "--segment-size", help="Maximum segment size in bytes."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON."),
) -> None:
    """Show the segments FILE would be split into. No network access."""

    if segment_size < 1:
        raise SwiftsegValidationError("Segment size must be a positive number of bytes.")

    try:
        source = FileSource(file)
    except OSError as exc:
        raise SwiftsegIOError(f"Unable to read '{file}': {exc}") from exc

    segments = plan_segments(source.size, segment_size)

    if as_json:
        payload = {
            "file": str(file),
            "size": source.size,
            "segment_size": segment_size,
            "manifest": len(segments) > 1,
            "segments": [
                {
                    "index": segment.index,
                    "start": segment.start,
                    "end": segment.end,
                    "size": segment.size,
                }
                for segment in segments
            ],
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo(f"{file.name}: {source.size} bytes in {len(segments)} segment(s)")
    for segment in segments:
        typer.echo(
            f"  #{segment.index:<4} {segment.start:>14} - {segment.end:<14} {segment.size} bytes"
        )
    if len(segments) > 1:
        typer.echo("A manifest object will stitch the segments together.")
