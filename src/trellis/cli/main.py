"""
Main CLI entry point for Trellis.

Provides the command-line interface using Click: configuration display and
management of persisted documents.
"""

import json as _json
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import click as _click
import yaml as _yaml

import trellis
import trellis.config as config
import trellis.errors as errors
import trellis.layers.traversal as traversal
import trellis.layers.types as types
import trellis.logging as change_log
import trellis.store as store

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(trellis.__version__, "-v", "--version", prog_name="trellis")
@_click.option("--verbose", is_flag=True, help="Log debug output to stderr")
@_click.pass_context
def cli(ctx: _click.Context, verbose: bool) -> None:
    """
    Trellis - layer-tree document engine.

    \b
    Examples:
        trellis config                      # Show configuration
        trellis doc list                    # List stored documents
        trellis doc show landing-page       # Show a document outline
        trellis doc migrate landing-page    # Upgrade a stored document
    """
    try:
        settings = config.Settings()
    except config.ConfigFileError as e:
        raise _click.ClickException(str(e)) from e

    level = "debug" if verbose else settings.logging.level
    _logging.basicConfig(
        level=getattr(_logging, level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["document_manager"] = store.DocumentManager(
        settings.documents_dir,
        enabled=settings.persistence.enabled,
    )


def _fail(message: str, json_output: bool) -> _typing.NoReturn:
    """Report an error in the requested format and exit with status 1."""
    if json_output:
        _click.echo(_json.dumps({"error": message}, indent=2))
    else:
        _click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


# =============================================================================
# Configuration Commands
# =============================================================================


@cli.group(invoke_without_command=True)
@_click.pass_context
def config_cmd(ctx: _click.Context) -> None:
    """Show configuration."""
    if ctx.invoked_subcommand is None:
        settings: config.Settings = ctx.obj["settings"]
        _click.echo("Trellis Configuration:")
        _click.echo(f"  Project Root: {settings.project_root}")
        _click.echo(f"  Config Dir: {settings.config_dir}")
        _click.echo(f"  Documents Dir: {settings.documents_dir}")
        _click.echo(f"  History Limit: {settings.history.limit or 'unbounded'}")
        _click.echo(f"  Change Journal: {'on' if settings.logging.enabled else 'off'}")
        _click.echo(f"  Components File: {settings.components_file or '(none)'}")
        extras = settings.collect_all_extra_fields()
        if extras:
            _click.echo(f"\nUnknown config keys: {', '.join(sorted(extras))}")
        _click.echo("\nRun 'trellis config show' for full configuration details.")


# Register config_cmd with the name "config" to avoid shadowing the module
cli.add_command(config_cmd, name="config")


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--section", type=str, default=None, help="Show specific section only")
@_click.pass_context
def config_show(ctx: _click.Context, as_json: bool, section: str | None) -> None:
    """Show effective configuration from all sources.

    Examples:
        trellis config show                   # Show all config as YAML
        trellis config show --json            # Show as JSON
        trellis config show --section history # Show one section
    """
    settings: config.Settings = ctx.obj["settings"]

    full_config = settings.model_dump(mode="json")

    if section:
        if section not in full_config:
            raise _click.ClickException(f"Unknown section: {section}")
        full_config = {section: full_config[section]}

    if as_json:
        _click.echo(_json.dumps(full_config, indent=2))
    else:
        _click.echo(_yaml.dump(full_config, default_flow_style=False, sort_keys=False), nl=False)


# =============================================================================
# Document Commands
# =============================================================================


@cli.group()
def doc_cmd() -> None:
    """Stored document commands."""
    pass


cli.add_command(doc_cmd, name="doc")


@doc_cmd.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.option("--limit", type=int, default=20, help="Maximum documents to list")
@_click.pass_context
def doc_list(ctx: _click.Context, json_output: bool, limit: int) -> None:
    """List stored documents, most recent first."""
    manager: store.DocumentManager = ctx.obj["document_manager"]

    summaries = manager.list_summaries()[:limit]

    if json_output:
        _click.echo(_json.dumps(summaries, indent=2))
        return

    if not summaries:
        _click.echo("No documents found.")
        return

    _click.echo("Documents:")
    for s in summaries:
        layers = s["layer_count"] if s["layer_count"] is not None else "?"
        _click.echo(
            f"  {s['name']}  {s['modified'][:19]}  v{s['version']}  "
            f"{s['page_count']:>2} pages  {layers:>4} layers"
        )


def _load_document(
    manager: store.DocumentManager,
    name: str,
    json_output: bool,
) -> dict[str, _typing.Any]:
    """Load a migrated document or exit with an error."""
    try:
        data = manager.load(name)
    except errors.TrellisError as e:
        _fail(str(e), json_output)
    if data is None:
        _fail(f"Document not found: {name}", json_output)
    return data


def _outline(layer: types.Layer, depth: int = 0) -> list[str]:
    """Render a layer subtree as indented text lines."""
    label = layer.type if not layer.name or layer.name == layer.type else f"{layer.type} {layer.name!r}"
    if isinstance(layer.children, str) and layer.children:
        text = layer.children if len(layer.children) <= 40 else layer.children[:40] + "..."
        label += f": {text!r}"
    elif isinstance(layer.children, types.VariableReference):
        label += f": <{layer.children.variable_id}>"
    lines = [f"{'  ' * depth}- {label} [{layer.id}]"]
    if isinstance(layer.children, tuple):
        for child in layer.children:
            lines.extend(_outline(child, depth + 1))
    return lines


@doc_cmd.command(name="show")
@_click.argument("name")
@_click.option("--json", "json_output", is_flag=True, help="JSON output (migrated document)")
@_click.pass_context
def doc_show(ctx: _click.Context, name: str, json_output: bool) -> None:
    """Show a document outline."""
    manager: store.DocumentManager = ctx.obj["document_manager"]
    data = _load_document(manager, name, json_output)

    if json_output:
        _click.echo(_json.dumps(data, indent=2))
        return

    try:
        state = store.DocumentState.from_dict(data)
    except errors.DocumentFormatError as e:
        _fail(str(e), json_output)

    _click.echo(f"Document: {name}")
    _click.echo(f"  Pages: {len(state.pages)}")
    _click.echo(f"  Layers: {traversal.count_layers(state.pages)}")
    _click.echo(f"  Variables: {len(state.variables)}")
    for page in state.pages:
        _click.echo()
        _click.echo("\n".join(_outline(page)))
    if state.variables:
        _click.echo("\nVariables:")
        for variable in state.variables:
            _click.echo(
                f"  {variable.id}  {variable.name} ({variable.type}) = {variable.default_value!r}"
            )


@doc_cmd.command(name="migrate")
@_click.argument("name")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def doc_migrate(ctx: _click.Context, name: str, json_output: bool) -> None:
    """Upgrade a stored document to the current schema version."""
    manager: store.DocumentManager = ctx.obj["document_manager"]

    try:
        result = manager.migrate(name)
    except errors.TrellisError as e:
        _fail(str(e), json_output)
    if result is None:
        _fail(f"Document not found: {name}", json_output)

    old_version, new_version = result
    if json_output:
        _click.echo(
            _json.dumps(
                {"name": name, "from_version": old_version, "to_version": new_version},
                indent=2,
            )
        )
    elif old_version == new_version:
        _click.echo(f"{name} is already at version {new_version}.")
    else:
        _click.echo(f"Migrated {name} from version {old_version} to {new_version}.")


@doc_cmd.command(name="import")
@_click.argument("path", type=_click.Path(exists=True, dir_okay=False, path_type=_pathlib.Path))
@_click.option("--name", "name", type=str, default=None, help="Document name (default: file stem)")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.option("--force", is_flag=True, help="Overwrite an existing document")
@_click.pass_context
def doc_import(
    ctx: _click.Context,
    path: _pathlib.Path,
    name: str | None,
    json_output: bool,
    force: bool,
) -> None:
    """Import a document from a JSON file, migrating it to the current schema."""
    settings: config.Settings = ctx.obj["settings"]
    manager: store.DocumentManager = ctx.obj["document_manager"]
    name = name or path.stem

    try:
        store.validate_document_name(name)
        data = _json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise errors.DocumentFormatError("Document must be a JSON object")
        document = store.DocumentStore.from_dict(data, settings.load_component_registry())
    except _json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {path}: {e}", json_output)
    except errors.TrellisError as e:
        _fail(str(e), json_output)

    if manager.exists(name) and not force:
        _fail(f"Document already exists: {name} (use --force to overwrite)", json_output)

    written = manager.save(name, document)
    if written is None:
        _fail("Persistence is disabled", json_output)

    if settings.logging.enabled:
        with change_log.ChangeLogger(
            log_dir=settings.logs_dir,
            private_mode=settings.logging.private,
            document=name,
        ) as journal:
            journal.log_event("import", source=str(path), path=str(written))

    if json_output:
        _click.echo(_json.dumps({"name": name, "path": str(written)}, indent=2))
    else:
        _click.echo(f"Imported {path} as {name}.")


@doc_cmd.command(name="delete")
@_click.argument("name")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.option("--yes", is_flag=True, help="Skip confirmation")
@_click.pass_context
def doc_delete(ctx: _click.Context, name: str, json_output: bool, yes: bool) -> None:
    """Delete a stored document."""
    manager: store.DocumentManager = ctx.obj["document_manager"]

    try:
        exists = manager.exists(store.validate_document_name(name))
    except errors.InvalidDocumentNameError as e:
        _fail(str(e), json_output)
    if not exists:
        _fail(f"Document not found: {name}", json_output)

    if not yes and not json_output and not _click.confirm(f"Delete document {name}?"):
        _click.echo("Cancelled.")
        return

    deleted = manager.delete(name)

    if json_output:
        _click.echo(_json.dumps({"deleted": deleted, "name": name}, indent=2))
    else:
        _click.echo(f"Deleted document: {name}")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="trellis")


if __name__ == "__main__":
    main()
