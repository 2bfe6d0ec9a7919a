"""
objectschema CLI - Check schema documents and validate data against them.

Commands:
    objectschema check      Load schema files and report types and dependencies
    objectschema validate   Validate a YAML/JSON document against a registered type
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from objectschema.dependencies import extract_schema_dependencies
from objectschema.errors import ObjectSchemaError, ObjectValidationError
from objectschema.loader import SchemaLoader
from objectschema.logger import configure_logging
from objectschema.registry import ObjectSchemaRegistry


@click.group()
@click.version_option(package_name="objectschema")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Override OBJECTSCHEMA_LOG_LEVEL",
)
def main(log_level: Optional[str]):
    """objectschema - Declarative, namespaced, versioned object schemas."""
    configure_logging(level=log_level)


@main.command("check")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check_cmd(files: tuple[Path, ...]):
    """Load schema files and report their types and external references.

    Example:
        objectschema check schemas/acme.yaml schemas/billing.yaml
    """
    loader = SchemaLoader()
    failed = 0

    for file in files:
        try:
            schema = loader.load(file)
        except (ObjectSchemaError, TypeError, yaml.YAMLError) as exc:
            failed += 1
            click.echo(f"[FAIL] {file}: {exc}", err=True)
            continue

        external = sorted(
            str(ref)
            for ref in extract_schema_dependencies(schema)
            if ref.schema_key != schema.key
        )
        click.echo(f"[OK]   {file}: {schema.key}")
        click.echo(f"       types: {', '.join(schema.get_type_names()) or '(none)'}")
        if external:
            click.echo(f"       references: {', '.join(external)}")

    if failed:
        click.echo(f"\n{failed} of {len(files)} schema file(s) failed", err=True)
        sys.exit(1)


@main.command("validate")
@click.option(
    "--schemas",
    "-s",
    "schema_paths",
    multiple=True,
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Schema file or directory (repeatable)",
)
@click.option("--ref", "-r", required=True, help="Type to validate against, e.g. ns://acme/1.0.0#Person")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate_cmd(schema_paths: tuple[Path, ...], ref: str, as_json: bool, data_file: Path):
    """Validate a YAML/JSON document against a registered type.

    Every schema given with --schemas is registered first, so references
    between them resolve.

    Example:
        objectschema validate -s schemas/ -r ns://acme/1.0.0#Person person.yaml
    """
    loader = SchemaLoader()
    registry = ObjectSchemaRegistry()

    try:
        for path in schema_paths:
            if path.is_dir():
                loader.load_directory(path, registry)
            else:
                registry.register_schema(loader.load(path))
        type_ = registry.get_schema_type(ref)
    except (ObjectSchemaError, TypeError, yaml.YAMLError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)

    if type_ is None:
        click.echo(f"Error: type not registered: {ref}", err=True)
        sys.exit(2)

    try:
        with open(data_file) as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        click.echo(f"Error: cannot parse {data_file}: {exc}", err=True)
        sys.exit(2)

    try:
        type_.validate(data, registry.resolve)
    except ObjectValidationError as exc:
        if as_json:
            click.echo(json.dumps(exc.to_dict(), indent=2, default=str))
        else:
            click.echo(f"[FAIL] {data_file} does not conform to {ref}")
            for violation in exc.violations:
                click.echo(f"  - {violation}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({"type": type_.name, "error_count": 0, "errors": []}, indent=2))
    else:
        click.echo(f"[OK]   {data_file} conforms to {ref}")


if __name__ == "__main__":
    main()
