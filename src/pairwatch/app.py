"""Command-line host wiring the ingestor, orchestrator and suggestion service."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass, field, is_dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from openai import OpenAIError

from .ai.client import AIClient, ClientSettings
from .ai.suggestion_service import SuggestionService
from .context.differ import ChangeDiffer
from .context.ingest import ChangeIngestor, FileChangeEvent
from .context.models import BuildStatus, ContextSnapshot
from .context.tracker import ContextTracker
from .editor.applier import PatchApplier
from .editor.buffers import BufferRegistry
from .orchestration.models import ExpansionRequest, OrchestratorState, PatchResult, Suggestion, SuggestionCleared, SuggestionResponse
from .orchestration.orchestrator import OrchestratorConfig, SuggestionOrchestrator
from .orchestration.rate_limiter import RateLimiter
from .services.settings import PipelineSettings, Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils
from .utils.file_io import read_text

LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_COMMANDS = ("apply", "expand", "dismiss", "request")


class _UnavailableSource:
    """Stand-in used when no AI client could be configured."""

    async def fetch(self, snapshot: ContextSnapshot) -> SuggestionResponse | None:
        return None


@dataclass(slots=True)
class Pipeline:
    """Everything :func:`build_pipeline` wires together."""

    tracker: ContextTracker
    ingestor: ChangeIngestor
    orchestrator: SuggestionOrchestrator
    buffers: BufferRegistry
    client: AIClient | None = None
    _unsubscribers: List[Callable[[], None]] = field(default_factory=list)

    async def aclose(self) -> None:
        await self.orchestrator.aclose()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self.client is not None:
            await self.client.aclose()


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except Exception as exc:  # pragma: no cover
        LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_pipeline(
    settings: Settings,
    *,
    source: Any | None = None,
    clock: Callable[[], float] | None = None,
    debug_logging: bool = False,
) -> Pipeline:
    """Assemble tracker, ingestor and orchestrator from ``settings``.

    ``source`` replaces the OpenAI-backed suggestion service, which is handy for
    tests and offline runs.
    """

    pipeline_settings = settings.pipeline
    client: AIClient | None = None
    if source is None:
        client = _build_ai_client(settings, debug_logging=debug_logging)
        if client is None:
            source = _UnavailableSource()
        else:
            source = SuggestionService(
                client,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                json_mode=settings.json_mode,
            )

    tracker = ContextTracker(
        max_recent_files=pipeline_settings.recent_files_limit,
        significance_threshold=pipeline_settings.significance_threshold,
    )
    buffers = BufferRegistry()
    orchestrator = SuggestionOrchestrator(
        source,
        applier=PatchApplier(buffer_provider=buffers, replace_mode=pipeline_settings.replace_mode),  # type: ignore[arg-type]
        rate_limiter=RateLimiter(pipeline_settings.min_interval_seconds, clock=clock),
        tracker=tracker,
        config=OrchestratorConfig(
            debounce_seconds=pipeline_settings.debounce_seconds,
            auto_expire_seconds=pipeline_settings.auto_expire_seconds,
            grace_seconds=pipeline_settings.grace_seconds,
            enabled=pipeline_settings.enabled and not isinstance(source, _UnavailableSource),
        ),
        clock=clock,
    )
    ingestor = ChangeIngestor(
        tracker,
        orchestrator.notify_context_changed,
        differ=ChangeDiffer(max_entries=pipeline_settings.max_diff_entries),
        source_extensions=pipeline_settings.source_extensions,
        ignored_fragments=pipeline_settings.ignored_path_fragments,
        max_context_lines=pipeline_settings.max_context_lines,
    )
    return Pipeline(tracker=tracker, ingestor=ingestor, orchestrator=orchestrator, buffers=buffers, client=client)


def attach_output(pipeline: Pipeline, stream: TextIO) -> None:
    """Mirror orchestrator events onto ``stream`` as JSON lines."""

    def emit(payload: Dict[str, Any]) -> None:
        stream.write(json.dumps(payload, ensure_ascii=False) + "\n")
        stream.flush()

    def on_shown(suggestion: Suggestion) -> None:
        emit({"event": "suggestion", **suggestion.to_payload()})

    def on_cleared(cleared: SuggestionCleared) -> None:
        emit({"event": "cleared", "id": cleared.suggestion.id, "reason": cleared.reason.value})

    def on_expansion(request: ExpansionRequest) -> None:
        emit(
            {
                "event": "expansion",
                "id": request.suggestion_id,
                "message": request.message,
                "prompt": request.prompt,
                "file": request.file_path,
                "snippet": request.snippet,
            }
        )

    def on_applied(result: PatchResult) -> None:
        emit(
            {
                "event": "apply_result",
                "status": result.status.value,
                "ok": result.ok,
                "detail": result.detail,
                "source": result.source,
                "replacements": result.replacements,
            }
        )

    def on_state(state: OrchestratorState) -> None:
        LOGGER.debug("Orchestrator state -> %s", state.value)

    orchestrator = pipeline.orchestrator
    pipeline._unsubscribers.extend(
        [
            orchestrator.suggestion_shown.subscribe(on_shown),
            orchestrator.suggestion_cleared.subscribe(on_cleared),
            orchestrator.expansion_requested.subscribe(on_expansion),
            orchestrator.apply_finished.subscribe(on_applied),
            orchestrator.state_changed.subscribe(on_state),
        ]
    )


async def handle_event(pipeline: Pipeline, payload: Mapping[str, Any]) -> bool:
    """Dispatch one decoded JSON-lines event. Returns ``False`` for unusable input."""

    kind = payload.get("type")
    if kind == "file":
        path = payload.get("path")
        if not isinstance(path, str) or not path:
            LOGGER.warning("File event without a path: %s", payload)
            return False
        content = payload.get("content")
        if not isinstance(content, str):
            try:
                content = await asyncio.to_thread(read_text, path)
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.warning("Unable to read %s: %s", path, exc)
                return False
        pipeline.ingestor.handle_file_event(FileChangeEvent(path=path, content=content))
        return True
    if kind == "active":
        pipeline.ingestor.handle_active_file(payload.get("path"))
        return True
    if kind == "build":
        status = _parse_build_status(payload)
        if status is None:
            LOGGER.warning("Unknown build status: %s", payload.get("status"))
            return False
        pipeline.ingestor.handle_build_status(status)
        return True
    if kind == "command":
        return await _run_command(pipeline, payload.get("name"))
    if kind == "wait":
        await pipeline.orchestrator.drain()
        seconds = payload.get("seconds")
        if isinstance(seconds, (int, float)) and seconds > 0:
            await asyncio.sleep(float(seconds))
        return True
    LOGGER.warning("Ignoring unknown event type: %r", kind)
    return False


async def run_events(pipeline: Pipeline, stream: TextIO) -> int:
    """Consume JSON lines from ``stream`` until EOF; returns the number handled."""

    handled = 0
    while True:
        line = await asyncio.to_thread(stream.readline)
        if not line:
            break
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Skipping malformed event line: %s", exc)
            continue
        if not isinstance(payload, dict):
            LOGGER.warning("Skipping non-object event: %s", line[:200])
            continue
        if await handle_event(pipeline, payload):
            handled += 1
    await pipeline.orchestrator.drain()
    return handled


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `pairwatch` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("PAIRWATCH_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("PAIRWATCH_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)
        debug = True

    with contextlib.ExitStack() as stack:
        if args.events and args.events != "-":
            stream: TextIO = stack.enter_context(open(args.events, encoding="utf-8"))
        else:
            stream = sys.stdin
        try:
            asyncio.run(_serve(settings, stream, debug_logging=debug))
        except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
            LOGGER.info("Shutdown requested by user.")


async def _serve(settings: Settings, stream: TextIO, *, debug_logging: bool = False) -> None:
    pipeline = build_pipeline(settings, debug_logging=debug_logging)
    attach_output(pipeline, sys.stdout)
    try:
        handled = await run_events(pipeline, stream)
        LOGGER.info("Processed %d event(s)", handled)
    finally:
        await pipeline.aclose()


async def _run_command(pipeline: Pipeline, name: Any) -> bool:
    orchestrator = pipeline.orchestrator
    if name == "apply":
        return await orchestrator.apply() is not None
    if name == "expand":
        return orchestrator.expand() is not None
    if name == "dismiss":
        return orchestrator.dismiss()
    if name == "request":
        return orchestrator.request_now()
    LOGGER.warning("Unknown command %r (expected one of %s)", name, ", ".join(_COMMANDS))
    return False


def _parse_build_status(payload: Mapping[str, Any]) -> BuildStatus | None:
    status = str(payload.get("status", "")).strip().lower()
    if status == "building":
        return BuildStatus.building()
    if status in {"succeeded", "success", "ok"}:
        return BuildStatus.succeeded()
    if status in {"failed", "failure", "error"}:
        errors = payload.get("errors") or ()
        if not isinstance(errors, (list, tuple)):
            errors = (str(errors),)
        count = payload.get("error_count")
        return BuildStatus.failed(
            [str(error) for error in errors],
            error_count=count if isinstance(count, int) else None,
        )
    return None


def _build_ai_client(settings: Settings, *, debug_logging: bool = False) -> AIClient | None:
    """Construct the AI client using the current settings, if possible."""

    try:
        client_settings = ClientSettings(
            base_url=settings.base_url,
            api_key=settings.api_key,
            model=settings.model,
            organization=settings.organization,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
            default_headers=settings.default_headers,
            metadata=settings.metadata,
            debug_logging=debug_logging or settings.debug_logging,
        )
        return AIClient(client_settings)
    except OpenAIError as exc:
        LOGGER.warning("AI client unavailable, suggestions disabled: %s", exc)
        return None


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pairwatch",
        add_help=True,
        description="Watch code changes from a JSON-lines feed and surface AI suggestions.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.pairwatch/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings (repeatable; use pipeline.<name> for pipeline knobs).",
    )
    parser.add_argument(
        "--events",
        metavar="PATH",
        help="Read JSON-lines events from PATH instead of stdin.",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        target: type = Settings
        field_name = key
        if key.startswith("pipeline."):
            target = PipelineSettings
            field_name = key.split(".", 1)[1]
        fields = target.__dataclass_fields__  # type: ignore[attr-defined]
        if field_name not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = get_type_hints(target).get(field_name, fields[field_name].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is type(None) or normalized.lower() in {"none", "null"}:
        return None
    if is_dataclass(target):
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dataclass overrides must be valid JSON") from exc
        if not isinstance(payload, dict):
            raise ValueError("Dataclass overrides must be JSON objects")
        return payload
    if target is list:
        try:
            return json.loads(normalized or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError("List overrides must be valid JSON arrays") from exc
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    api_key = payload.get("api_key", "")
    if isinstance(api_key, str):
        payload["api_key"] = redact_secret(api_key)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("PAIRWATCH_"))
