import json

import click

from . import __version__
from .config import get_settings
from .context import build_context
from .exceptions import ReaperException
from .providers.base import ChatMessage, ProviderError
from .providers.descriptors import ProviderKind, descriptors, parse_kind
from .telemetry.logger import setup_logging


def get_version():
    return __version__


def parse_model_overrides(values):
    """Turn ``("openai=gpt-4o", ...)`` into a provider to model mapping."""
    overrides = {}
    for value in values:
        name, sep, model = value.partition("=")
        if not sep or not model:
            raise click.BadParameter(f"expected KIND=MODEL, got '{value}'", param_hint="--model")
        try:
            overrides[parse_kind(name)] = model
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--model") from e
    return overrides


def echo_health(rows):
    click.echo(f"{'PROVIDER':<16}{'STATUS':<11}{'FAILURES':<10}{'LATENCY':<10}")
    for row in rows:
        latency = f"{row['response_time_ms']}ms" if row["response_time_ms"] is not None else "-"
        click.echo(f"{row['provider']:<16}{row['status']:<11}{row['consecutive_failures']:<10}{latency:<10}")


@click.group()
def cli():
    pass


@cli.command()
@click.option("--format", default="text", type=click.Choice(["text", "json"]))
def version(format):
    if format == "json":
        click.echo(json.dumps({"version": get_version()}))
    else:
        click.echo(f"v{get_version()}")


@cli.command()
def providers():
    """List supported providers and whether credentials are configured."""
    settings = get_settings()
    configured = settings.provider_api_keys()

    for descriptor in descriptors():
        if descriptor.kind == ProviderKind.OLLAMA:
            credentials = "enabled" if settings.ollama_enabled else "disabled"
        else:
            credentials = "configured" if descriptor.kind in configured else "missing"
        capabilities = ",".join(c.value for c in descriptor.capabilities)
        click.echo(f"{descriptor.slug:<16}{descriptor.display_name:<22}{capabilities:<24}{credentials}")
        click.echo(f"{'':<16}models: {', '.join(descriptor.default_models)}")


@cli.command()
@click.argument("prompt")
@click.option("--model", "models", multiple=True, metavar="KIND=MODEL", help="Model override for one provider")
@click.option("--system", default=None, help="System prompt")
@click.option("--max-tokens", type=int, default=None)
@click.option("--temperature", type=float, default=None)
def chat(prompt, models, system, max_tokens, temperature):
    """Send PROMPT through the router and print the reply."""
    overrides = parse_model_overrides(models)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    messages = []
    if system:
        messages.append(ChatMessage(role="system", content=system))
    messages.append(ChatMessage(role="user", content=prompt))

    try:
        context = build_context(settings)
    except ReaperException as e:
        raise click.ClickException(e.message) from e

    with context:
        try:
            response = context.chat(messages, overrides, max_tokens=max_tokens, temperature=temperature)
        except ProviderError as e:
            echo_health(context.health_report())
            raise click.ClickException(f"{type(e).__name__}: {e.message}") from e

        provider = response.provider.value if response.provider else "unknown"
        click.echo(response.content)
        click.echo()
        click.echo(f"[{provider} / {response.model}]")
        echo_health(context.health_report())


def main():
    cli()


if __name__ == "__main__":
    main()
