"""resilient-http command line.

One command per HTTP verb, each a thin wrapper over the matching
``ResilientClient`` helper.  Defaults come from ``Settings`` (and so from
``RESILIENT_HTTP_*`` environment variables); flags override them.

Exit status is 0 on success and 1 on any request failure, including a
call rejected by an open circuit.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import click

from resilient_http.client import ResilientClient
from resilient_http.core.config import Settings
from resilient_http.core.errors import CircuitOpenError, ErrorResponse, ResilientHTTPError
from resilient_http.models import Response
from resilient_http.transport import HttpxTransport

_REQUEST_OPTIONS = [
    click.option("-H", "--header", "headers", multiple=True, help='Add a header ("Name: Value").'),
    click.option("-r", "--max-retries", type=click.IntRange(min=0), help="Maximum number of retries."),
    click.option("-t", "--timeout", type=float, help="Per-attempt timeout in seconds."),
    click.option("-b", "--base-delay", type=float, help="Base backoff delay in seconds."),
    click.option("--max-delay", type=float, help="Backoff delay cap in seconds."),
    click.option("--jitter/--no-jitter", default=None, help="Randomise backoff delays."),
    click.option("--circuit-breaker/--no-circuit-breaker", default=None, help="Enable the circuit breaker."),
    click.option("--failure-threshold", type=click.IntRange(min=1), help="Failures before the circuit opens."),
    click.option("--success-threshold", type=click.IntRange(min=1), help="Probe successes before it closes."),
    click.option("--circuit-timeout", type=float, help="Seconds the circuit stays open before probing."),
    click.option("-o", "--output", type=click.Path(dir_okay=False, writable=True), help="Write the body to a file."),
    click.option("-q", "--quiet", is_flag=True, help="Suppress retry and circuit messages."),
    click.option("-v", "--verbose", is_flag=True, help="Print timing, status and breaker state."),
]

_DATA_OPTION = click.option("-d", "--data", help="JSON request body.")


def _request_options(func: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(_REQUEST_OPTIONS):
        func = option(func)
    return func


def _build_transport() -> HttpxTransport:
    return HttpxTransport()


def parse_headers(raw_headers: tuple[str, ...]) -> dict[str, str]:
    """Parse ``Name: Value`` pairs; entries without a colon are ignored."""
    headers: dict[str, str] = {}
    for raw in raw_headers:
        if ":" in raw:
            name, value = raw.split(":", 1)
            headers[name.strip()] = value.strip()
    return headers


def _parse_data(data: str | None) -> Any:
    if data is None:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Invalid JSON data: {exc}", param_hint="--data") from exc


def _overrides(options: dict[str, Any]) -> dict[str, Any]:
    """Translate CLI flags into ``ResilientClient.update_config`` keywords."""
    retry = {
        "max_retries": options["max_retries"],
        "timeout": options["timeout"],
        "base_delay": options["base_delay"],
        "max_delay": options["max_delay"],
        "jitter": options["jitter"],
    }
    breaker = {
        "enabled": options["circuit_breaker"],
        "failure_threshold": options["failure_threshold"],
        "success_threshold": options["success_threshold"],
        "open_timeout": options["circuit_timeout"],
    }
    overrides: dict[str, Any] = {key: value for key, value in retry.items() if value is not None}
    overrides["circuit_breaker"] = {key: value for key, value in breaker.items() if value is not None}
    return overrides


def _format_body(response: Response) -> str:
    """Pretty-print JSON bodies; anything else, or unparsable JSON, as received."""
    if "application/json" not in response.content_type:
        return response.text
    try:
        return json.dumps(response.json(), indent=2)
    except json.JSONDecodeError:
        return response.text


def _emit_body(response: Response, output: str | None) -> None:
    text = _format_body(response)
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(text)
    else:
        click.echo(text)


async def _send(method: str, url: str, data: Any, options: dict[str, Any]) -> int:
    quiet = options["quiet"]
    verbose = options["verbose"]
    retries = 0

    def on_retry(attempt: int, error: Exception) -> None:
        nonlocal retries
        retries += 1
        if not quiet:
            click.echo(f"Retry attempt {attempt} due to: {error}", err=True)

    def on_circuit_open() -> None:
        if not quiet:
            click.echo("Circuit breaker opened", err=True)

    def on_circuit_close() -> None:
        if not quiet:
            click.echo("Circuit breaker closed", err=True)

    transport = _build_transport()
    client = ResilientClient.from_settings(
        Settings(),
        transport=transport,
        name=url,
        on_retry=on_retry,
        on_circuit_open=on_circuit_open,
        on_circuit_close=on_circuit_close,
    )
    headers = parse_headers(options["headers"])
    loop = asyncio.get_running_loop()
    start = loop.time()
    try:
        client.update_config(**_overrides(options))
        verb = getattr(client, method.lower())
        if method in ("POST", "PUT", "PATCH"):
            response = await verb(url, data, headers=headers)
        else:
            response = await verb(url, headers=headers)
    except ResilientHTTPError as exc:
        if isinstance(exc, CircuitOpenError):
            click.echo("Circuit breaker is open - service may be down", err=True)
        else:
            click.echo(f"Request failed: {exc}", err=True)
        if verbose:
            click.echo(f"Duration: {(loop.time() - start) * 1000:.0f}ms", err=True)
            click.echo(ErrorResponse.from_exception(exc).model_dump_json(), err=True)
        return 1
    finally:
        await transport.close()

    if verbose:
        click.echo(f"{method} {url}", err=True)
        click.echo(f"Duration: {(loop.time() - start) * 1000:.0f}ms", err=True)
        click.echo(f"Status: {response.status_code}", err=True)
        click.echo(f"Content-Type: {response.content_type}", err=True)
        if retries:
            click.echo(f"Retries: {retries}", err=True)
        click.echo(f"Circuit breaker: {client.get_circuit_breaker_state().state.value}", err=True)

    _emit_body(response, options["output"])
    return 0


def _run(method: str, url: str, data: Any, options: dict[str, Any]) -> None:
    level = logging.DEBUG if options["verbose"] else Settings().LOG_LEVEL
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    exit_code = asyncio.run(_send(method, url, data, options))
    click.get_current_context().exit(exit_code)


@click.group()
@click.version_option(package_name="resilient-http")
def cli() -> None:
    """Make HTTP requests with retries, backoff and a circuit breaker."""


@cli.command("get")
@click.argument("url")
@_request_options
def get_cmd(url: str, **options: Any) -> None:
    """Send a GET request to URL."""
    _run("GET", url, None, options)


@cli.command("delete")
@click.argument("url")
@_request_options
def delete_cmd(url: str, **options: Any) -> None:
    """Send a DELETE request to URL."""
    _run("DELETE", url, None, options)


@cli.command("post")
@click.argument("url")
@_DATA_OPTION
@_request_options
def post_cmd(url: str, data: str | None, **options: Any) -> None:
    """Send a POST request with a JSON body to URL."""
    _run("POST", url, _parse_data(data), options)


@cli.command("put")
@click.argument("url")
@_DATA_OPTION
@_request_options
def put_cmd(url: str, data: str | None, **options: Any) -> None:
    """Send a PUT request with a JSON body to URL."""
    _run("PUT", url, _parse_data(data), options)


@cli.command("patch")
@click.argument("url")
@_DATA_OPTION
@_request_options
def patch_cmd(url: str, data: str | None, **options: Any) -> None:
    """Send a PATCH request with a JSON body to URL."""
    _run("PATCH", url, _parse_data(data), options)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
