"""CLI command uploading one file as a segmented Swift object."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import structlog
import typer

from apps.swiftseg.config import load_profile
from apps.swiftseg.utils.errors import (
    SwiftsegConfigError,
    SwiftsegExternalServiceError,
    SwiftsegIOError,
    SwiftsegValidationError,
)
from apps.swiftseg.utils.progress import progress_tracker
from libraries.swift import (
    AuthError,
    Credentials,
    FileSource,
    ManifestError,
    SegmentRetryError,
    UploadOptions,
    run_upload,
)
from libraries.swift.models import DEFAULT_CONCURRENCY, DEFAULT_SEGMENT_SIZE

log = structlog.get_logger(__name__)


@dataclass
class _UploadResolvedOptions:
    credentials: Credentials
    container: str
    concurrency: int
    segment_size: int
    delete_at: int | None
    max_segment_attempts: int | None


def _prepare_upload_options(
    profile_data: Mapping[str, Any],
    *,
    auth_url: str | None,
    username: str | None,
    password: str | None,
    tenant: str | None,
    container: str | None,
    concurrency: int | None,
    segment_size: int | None,
    delete_at: int | None,
    delete_after: int | None,
    max_segment_attempts: int | None,
    now: Callable[[], float] = time.time,
) -> _UploadResolvedOptions:
    resolved_auth_url = _first(
        auth_url,
        _optional_str(profile_data.get("auth_url"), "auth_url"),
        os.getenv("OS_AUTH_URL"),
    )
    if not resolved_auth_url:
        raise SwiftsegConfigError(
            "An identity service URL must be supplied via --auth-url, the selected "
            "profile, or OS_AUTH_URL."
        )

    resolved_username = _first(
        username,
        _optional_str(profile_data.get("username"), "username"),
        os.getenv("OS_USERNAME"),
    )
    if not resolved_username:
        raise SwiftsegConfigError(
            "A username must be supplied via --username, the selected profile, or OS_USERNAME."
        )

    resolved_password = _first(password, os.getenv("OS_PASSWORD"))
    if not resolved_password:
        raise SwiftsegConfigError(
            "A password must be supplied via --password or OS_PASSWORD."
        )

    resolved_tenant = _first(
        tenant,
        _optional_str(profile_data.get("tenant"), "tenant"),
        os.getenv("OS_TENANT_NAME"),
    )
    if not resolved_tenant:
        raise SwiftsegConfigError(
            "A tenant must be supplied via --tenant, the selected profile, or OS_TENANT_NAME."
        )

    resolved_container = _first(
        container, _optional_str(profile_data.get("container"), "container")
    )
    if not resolved_container:
        raise SwiftsegConfigError(
            "A container must be supplied via --container or the selected profile."
        )

    resolved_concurrency = (
        concurrency
        if concurrency is not None
        else _optional_int(profile_data.get("concurrency"), "concurrency")
    )
    if resolved_concurrency is None:
        resolved_concurrency = _env_int("SWIFTSEG_CONCURRENCY", DEFAULT_CONCURRENCY)
    if resolved_concurrency < 1:
        raise SwiftsegValidationError("Concurrency must be at least 1.")

    resolved_segment_size = (
        segment_size
        if segment_size is not None
        else _optional_int(profile_data.get("segment_size"), "segment_size")
    )
    if resolved_segment_size is None:
        resolved_segment_size = _env_int("SWIFTSEG_SEGMENT_SIZE", DEFAULT_SEGMENT_SIZE)
    if resolved_segment_size < 1:
        raise SwiftsegValidationError("Segment size must be a positive number of bytes.")

    if delete_at is not None and delete_after is not None:
        raise SwiftsegValidationError("--delete-at and --delete-after are mutually exclusive.")
    if delete_after is None:
        delete_after = _optional_int(profile_data.get("delete_after"), "delete_after")
    resolved_delete_at = delete_at
    if resolved_delete_at is None and delete_after is not None:
        if delete_after <= 0:
            raise SwiftsegValidationError("--delete-after must be a positive number of seconds.")
        resolved_delete_at = int(now()) + delete_after
    if resolved_delete_at is not None and resolved_delete_at <= int(now()):
        raise SwiftsegValidationError(
            f"Expiry timestamp {resolved_delete_at} is already in the past."
        )

    resolved_attempts = (
        max_segment_attempts
        if max_segment_attempts is not None
        else _optional_int(
            profile_data.get("max_segment_attempts"), "max_segment_attempts"
        )
    )
    if resolved_attempts is not None and resolved_attempts < 1:
        raise SwiftsegValidationError("--max-segment-attempts must be at least 1.")

    return _UploadResolvedOptions(
        credentials=Credentials(
            auth_url=resolved_auth_url,
            username=resolved_username,
            password=resolved_password,
            tenant=resolved_tenant,
        ),
        container=resolved_container,
        concurrency=resolved_concurrency,
        segment_size=resolved_segment_size,
        delete_at=resolved_delete_at,
        max_segment_attempts=resolved_attempts,
    )


def _first(*values: str | None) -> str | None:
    for value in values:
        if value:
            return value
    return None


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise SwiftsegConfigError(
            f"Environment variable {name} must be an integer, got {value!r}."
        ) from None


def _optional_str(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    raise SwiftsegConfigError(f"Configuration value '{field}' must be a string.")


def _optional_int(value: Any, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise SwiftsegConfigError(f"Configuration value '{field}' must be an integer.")
    if isinstance(value, int):
        return value
    raise SwiftsegConfigError(f"Configuration value '{field}' must be an integer.")


def upload(
    file: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False),
    object_path: str | None = typer.Argument(
        None, help="Destination object name. Defaults to the file name."
    ),
    container: str | None = typer.Option(
        None, "--container", "-c", help="Destination container."
    ),
    profile: str | None = typer.Option(
        None,
        "--profile",
        help="Configuration profile to load from swiftseg.toml files.",
    ),
    auth_url: str | None = typer.Option(
        None, "--auth-url", help="Identity service URL (OS_AUTH_URL)."
    ),
    username: str | None = typer.Option(
        None, "--username", help="Identity service user (OS_USERNAME)."
    ),
    password: str | None = typer.Option(
        None, "--password", help="Identity service password (OS_PASSWORD)."
    ),
    tenant: str | None = typer.Option(
        None, "--tenant", help="Tenant / project name (OS_TENANT_NAME)."
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", help="Maximum number of segments in flight."
    ),
    segment_size: int | None = typer.Option(
        None, "--segment-size", help="Maximum segment size in bytes."
    ),
    delete_at: int | None = typer.Option(
        None, "--delete-at", help="Unix timestamp after which the object expires."
    ),
    delete_after: int | None = typer.Option(
        None, "--delete-after", help="Expire the object this many seconds from now."
    ),
    max_segment_attempts: int | None = typer.Option(
        None,
        "--max-segment-attempts",
        help="Give up after this many failed attempts on one segment (default: retry forever).",
    ),
) -> None:
    """Upload FILE, splitting it into segments and resuming where possible."""

    profile_context = load_profile(profile=profile, workspace=file.parent)
    resolved = _prepare_upload_options(
        profile_context.data,
        auth_url=auth_url,
        username=username,
        password=password,
        tenant=tenant,
        container=container,
        concurrency=concurrency,
        segment_size=segment_size,
        delete_at=delete_at,
        delete_after=delete_after,
        max_segment_attempts=max_segment_attempts,
    )
    destination_name = object_path or file.name

    try:
        source = FileSource(file)
    except OSError as exc:
        raise SwiftsegIOError(f"Unable to read '{file}': {exc}") from exc

    destination = f"{resolved.container}/{destination_name}"
    log.info("swiftseg.upload", file=str(file), destination=destination)

    with progress_tracker(
        "Swift Upload",
        total=max(source.size, 1),
        task_description=f"Uploading {source.name}",
    ) as progress:

        def _on_progress(fraction: float, delta: int, total: int) -> None:
            progress.update(total)

        options = UploadOptions(
            concurrency=resolved.concurrency,
            delete_at=resolved.delete_at,
            segment_size=resolved.segment_size,
            on_progress=_on_progress,
            max_segment_attempts=resolved.max_segment_attempts,
        )

        try:
            total = run_upload(
                resolved.credentials,
                source,
                resolved.container,
                destination_name,
                options,
            )
        except AuthError as exc:
            progress.fail("Authentication failed.")
            raise SwiftsegConfigError(
                f"{exc}. Verify the identity service URL and credentials, then retry."
            ) from exc
        except (ManifestError, SegmentRetryError) as exc:
            progress.fail("Upload did not complete.")
            raise SwiftsegExternalServiceError(
                f"{exc}. {exc.bytes_sent} bytes were stored before the failure; "
                "re-run the same command to resume."
            ) from exc

        progress.succeed(f"Uploaded {file.name} → {destination}.")

    typer.echo(f"Uploaded {total} bytes to {destination}")
