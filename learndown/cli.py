# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Command line tools for course maintainers.

Encrypt the database configuration distributed to course applications,
check that it works, inspect session log artifacts and push retained
artifacts to MongoDB by hand.

Usage:
    learndown encrypt --password-file <(pass show course) --config-file conf.json > conf.blob
    learndown configure --url https://example.org/course/conf.blob
    learndown read-log shiny_logs/shinylogs_app01_1598274821730014000.json
    learndown transfer shiny_logs
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from learndown.core.config.bootstrap import ConfigBootstrapper
from learndown.core.config.settings import get_settings
from learndown.core.security.cipher import DecryptionError, InvalidArgument, decrypt, encrypt
from learndown.domains.tracking.normalizer import ParseError, read_shinylogs
from learndown.domains.tracking.transfer import LogTransferPipeline, list_artifacts
from learndown.utils.datetime import format_iso
from learndown.utils.json import dumps_compact
from learndown.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def _read_password(password: str | None, password_file) -> str:
    if password_file is not None:
        return password_file.read().rstrip("\n")
    if password:
        return password
    raise click.UsageError("Give --password or --password-file")


@click.group()
@click.option("--debug", is_flag=True, help="Log every step at DEBUG level")
def cli(debug):
    """Tools for learndown course telemetry."""
    settings = get_settings()
    if debug:
        settings = settings.model_copy(update={"debug": True})
    setup_logging(settings)


@cli.command("encrypt", help="Encrypt a JSON configuration file")
@click.option("--password", envvar="LEARNDOWN_CONFIG_PASSWORD", help="Password of the blob")
@click.option(
    "--password-file", type=click.File("r"),
    help="Path to file containing the password",
)
@click.option(
    "--config-file", type=click.File("r"), required=True,
    help="Path to the JSON configuration, or - for stdin",
)
def cli_encrypt(password, password_file, config_file):
    """
    Encrypt a configuration mapping and write the blob to stdout.
    """
    try:
        conf = json.load(config_file)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Not a JSON document: {e}", param_hint="--config-file")
    try:
        blob = encrypt(conf, _read_password(password, password_file))
    except InvalidArgument as e:
        raise click.UsageError(str(e))
    click.echo(blob.to_bytes().decode("ascii"))


@cli.command("decrypt", help="Decrypt a configuration blob")
@click.option("--password", envvar="LEARNDOWN_CONFIG_PASSWORD", help="Password of the blob")
@click.option(
    "--password-file", type=click.File("r"),
    help="Path to file containing the password",
)
@click.option(
    "--blob-file", type=click.File("rb"), required=True,
    help="Path to the encrypted blob, or - for stdin",
)
def cli_decrypt(password, password_file, blob_file):
    """
    Decrypt a blob and print the configuration as JSON.
    """
    try:
        conf = decrypt(blob_file.read(), _read_password(password, password_file))
    except InvalidArgument as e:
        raise click.UsageError(str(e))
    except DecryptionError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(conf, indent=2, sort_keys=True, ensure_ascii=False))


@cli.command("configure", help="Fetch the configuration and check the database answers")
@click.option("--url", help="URL or path of the encrypted configuration")
@click.option("--password", help="Password of the configuration")
@click.option(
    "--cache", type=click.Path(dir_okay=False, path_type=Path),
    help="Local cache file",
)
def cli_configure(url, password, cache):
    """
    Run the bootstrapper once; exit with status 1 when it fails.
    """
    settings = get_settings()
    bootstrapper = ConfigBootstrapper(
        url=url or settings.bootstrap.url,
        password=password or settings.bootstrap.password.get_secret_value(),
        cache=cache or settings.bootstrap.cache,
        mongo=settings.mongo,
        timeout=settings.bootstrap.timeout,
    )
    try:
        result = asyncio.run(bootstrapper.run())
    except InvalidArgument as e:
        raise click.UsageError(str(e))

    if not result:
        click.echo(f"Configuration failed: {result.error}", err=True)
        sys.exit(1)
    click.echo(
        f"Configuration set from {result.source.value}: "
        f"database {result.settings.base}"
    )


@cli.command("read-log", help="Print the normalized events of an artifact")
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--version", "app_version", default=None, help="Application version")
@click.option("--outputs/--no-outputs", default=None, help="Include output events")
@click.option("--errors/--no-errors", default=None, help="Include error events")
def cli_read_log(path, app_version, outputs, errors):
    """
    Print one JSON document per event, sorted by date.
    """
    tracking = get_settings().tracking
    try:
        records = read_shinylogs(
            path,
            version=app_version if app_version is not None else tracking.app_version,
            log_errors=errors if errors is not None else tracking.log_errors,
            log_outputs=outputs if outputs is not None else tracking.log_outputs,
        )
    except ParseError as e:
        raise click.ClickException(str(e))

    for record in records:
        document = record.to_document()
        document["date"] = format_iso(record.date)
        click.echo(dumps_compact(document))


@cli.command("transfer", help="Transfer the artifacts of a directory to MongoDB")
@click.argument(
    "directory", required=False,
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option("--url", help="MongoDB URL (defaults to MONGO_URL)")
@click.option("--database", help="Database name (defaults to MONGO_BASE)")
@click.option("--collection", help="Collection name")
@click.option("--drop-dir", is_flag=True, help="Remove the directory once drained")
def cli_transfer(directory, url, database, collection, drop_dir):
    """
    Drain a directory of retained artifacts; failed ones stay in place.
    """
    settings = get_settings()
    directory = directory or settings.tracking.log_dir
    pipeline = LogTransferPipeline(
        url or settings.mongo.resolved_url,
        database or settings.mongo.base,
        collection=collection or settings.tracking.collection,
        version=settings.tracking.app_version,
        log_errors=settings.tracking.log_errors,
        log_outputs=settings.tracking.log_outputs,
        drop_dir=drop_dir,
        server_selection_timeout_ms=settings.mongo.server_selection_timeout_ms,
    )
    if not asyncio.run(pipeline.transfer_all(directory)):
        click.echo(f"No log file found in {directory}")
        return
    remaining = len(list_artifacts(directory))
    logger.info("Transfer finished", directory=str(directory), remaining=remaining)
    click.echo(f"Transfer finished, {remaining} log file(s) left in {directory}")


if __name__ == "__main__":
    cli()
