import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any, NoReturn, TextIO

import typer
from pydantic import ValidationError

from contextkit.bridge import ContextBridge
from contextkit.config import get_log_level
from contextkit.engines.resolver import PathResolver
from contextkit.exceptions import ContextKitError
from contextkit.index.element_index import ElementIndex
from contextkit.parsing.context_parser import ContextParser, ordered_elements
from contextkit.store.archive import SqlContextArchive
from contextkit.store.memory import InMemoryContextStore
from domain_models.config import BridgeConfig
from domain_models.manifest import ParsedElement
from domain_models.payloads import BridgeRequest, BridgeResponse

# Logging goes to stderr; stdout is reserved for responses.
logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

app = typer.Typer(
    name="contextkit",
    help="ContextKit: hierarchical learning-context tracking.",
    add_completion=False,
)


def _fail_with_error(message: str) -> NoReturn:
    """Centralized error handling: Log error and exit with code 1."""
    typer.echo(message, err=True)
    logger.error(message)
    raise typer.Exit(code=1)


def _build_config(
    resource_dir: Path | None,
    resource_name: str | None,
    url_prefix: str | None,
    archive: Path | None,
) -> BridgeConfig:
    """Build the bridge configuration, letting explicit options override the environment."""
    overrides: dict[str, Any] = {}
    if resource_dir is not None:
        overrides["resource_dir"] = resource_dir
    if resource_name is not None:
        overrides["resource_name"] = resource_name
    if url_prefix is not None:
        overrides["url_prefix"] = url_prefix
    if archive is not None:
        overrides["archive_path"] = archive
    try:
        return BridgeConfig(**overrides)
    except ValidationError as e:
        _fail_with_error(f"Invalid configuration: {e}")


def _parse_document(path: Path) -> list[ParsedElement]:
    try:
        return ordered_elements(ContextParser().parse(path))
    except ContextKitError as e:
        _fail_with_error(f"Could not parse {path}: {e}")


async def _handle_line(bridge: ContextBridge, line: str) -> BridgeResponse:
    """Decode one request line and run it through the bridge."""
    try:
        request = BridgeRequest.model_validate_json(line)
    except ValidationError as e:
        logger.warning(f"Rejected request line: {line!r}")
        return BridgeResponse.failure("Invalid request", str(e))

    try:
        return await bridge.execute(request.action, request.args)
    except Exception as e:
        logger.exception(f"Unexpected failure while handling '{request.action}'")
        return BridgeResponse.failure(f"Unexpected failure in '{request.action}'", str(e))


async def _serve(bridge: ContextBridge, stream: TextIO) -> int:
    """
    Answer JSON-lines requests from `stream` until end of input.

    Returns:
        The number of requests handled.
    """
    handled = 0
    try:
        while True:
            line = await asyncio.to_thread(stream.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            response = await _handle_line(bridge, line)
            typer.echo(response.model_dump_json(exclude_none=True))
            handled += 1
    finally:
        await bridge.session.drain()
    return handled


async def _restore_and_serve(
    store: InMemoryContextStore, bridge: ContextBridge, stream: TextIO
) -> int:
    """Reload the archived tree, if any, then run the command loop."""
    await store.restore()
    return await _serve(bridge, stream)


@app.command()
def serve(
    resource_dir: Annotated[
        Path | None,
        typer.Option(
            "--resource-dir",
            "-d",
            file_okay=False,
            dir_okay=True,
            help="Directory holding the context document. Defaults to $CONTEXTKIT_RESOURCE_DIR or '.'.",
        ),
    ] = None,
    resource_name: Annotated[
        str | None,
        typer.Option(
            "--resource-name",
            "-n",
            help="Context document name without extension. Defaults to $CONTEXTKIT_RESOURCE_NAME or 'contexts'.",
        ),
    ] = None,
    url_prefix: Annotated[
        str | None,
        typer.Option("--url-prefix", "-u", help="Prefix for deep-link URLs."),
    ] = None,
    archive: Annotated[
        Path | None,
        typer.Option(
            "--archive",
            "-a",
            file_okay=True,
            dir_okay=False,
            help="SQLite file the context tree is saved to.",
        ),
    ] = None,
) -> None:
    """
    Run the bridge as a JSON-lines command loop on stdin/stdout.

    Each input line is {"action": "...", "args": [...]}; each output line is a response.
    """
    config = _build_config(resource_dir, resource_name, url_prefix, archive)

    try:
        context_archive = (
            SqlContextArchive(db_path=config.archive_path) if config.archive_path else None
        )
    except ContextKitError as e:
        _fail_with_error(f"Could not open archive: {e}")

    try:
        store = InMemoryContextStore(archive=context_archive)
        bridge = ContextBridge(store, config)
        handled = asyncio.run(_restore_and_serve(store, bridge, sys.stdin))
    except ContextKitError as e:
        _fail_with_error(f"Could not restore archive: {e}")
    finally:
        if context_archive is not None:
            context_archive.close()

    logger.info(f"Command loop finished after {handled} requests")


@app.command()
def inspect(
    document: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            help="Path to the context document (XML).",
        ),
    ],
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the parsed elements as JSON.")
    ] = False,
) -> None:
    """
    Parse a context document and print its elements.
    """
    elements = _parse_document(document)

    if as_json:
        typer.echo(json.dumps([element.model_dump(mode="json") for element in elements], indent=2))
        return

    for element in sorted(elements, key=lambda e: e.identifier_path):
        topic = f" ({element.topic.value})" if element.topic else ""
        indent = "  " * element.depth
        typer.echo(f"{indent}{element.identifier}: {element.title} [{element.type.name}]{topic}")
    typer.echo(f"{len(elements)} contexts")


@app.command()
def resolve(
    document: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            help="Path to the context document (XML).",
        ),
    ],
    segments: Annotated[
        list[str], typer.Argument(help="Identifier path, root first.")
    ],
    url_prefix: Annotated[
        str | None,
        typer.Option("--url-prefix", "-u", help="Prefix for deep-link URLs."),
    ] = None,
) -> None:
    """
    Resolve an identifier path against a context document and print the node descriptor.
    """
    index = ElementIndex(_parse_document(document))
    resolver = PathResolver(index, url_prefix=url_prefix)

    descriptor = resolver.create_node(segments[-1], segments[:-1])
    if descriptor is None:
        _fail_with_error(f"Could not resolve identifier path {segments}")

    typer.echo(descriptor.model_dump_json(indent=2))


if __name__ == "__main__":
    app()
