"""Main CLI entry point - one subcommand per node."""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

import typer

from cliprelay.core.configs import (
    CONFIG_PATH,
    get_capture_config,
    get_inference_config,
    load_raw_config,
)
from cliprelay.core.errors import ConfigError
from cliprelay.engines.base import EngineError

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="cliprelay - type LLM answers to your clipboard, from another machine.",
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# ============================================================================
# Shared setup
# ============================================================================

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(1)


def _load_raw(config_path: Path, overrides: Dict[str, Optional[object]]) -> Dict[str, str]:
    """Load raw config and apply non-empty command line overrides on top."""
    raw = load_raw_config(config_path)
    raw.update({key: str(value) for key, value in overrides.items() if value is not None})
    return raw


# ============================================================================
# Commands
# ============================================================================

@app.command()
def capture(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="Inference node HOST:PORT"),
    recv_port: Optional[int] = typer.Option(None, "--recv-port", "-r", help="Port to receive responses on"),
    config_path: Path = typer.Option(CONFIG_PATH, "--config", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every received fragment"),
) -> None:
    """
    Run the capture node: hotkey -> send clipboard -> type the response.
    """
    _configure_logging(verbose)
    try:
        config = get_capture_config(
            _load_raw(config_path, {"server": server, "recv_port": recv_port})
        )
        config.server.ensure_resolvable()
        receive_address = config.receive_address()
    except ConfigError as e:
        _fail(f"Configuration error: {e}")

    typer.echo(f"receive {receive_address}")
    typer.echo(f"send {config.server}")

    from cliprelay.desktop.clipboard import PyperclipClipboard
    from cliprelay.desktop.keyboard import PynputKeyboard, PynputKeyState
    from cliprelay.relay.capture import CaptureNode

    key_state = PynputKeyState().start()
    node = CaptureNode(
        server=config.server,
        receive_address=receive_address,
        clipboard=PyperclipClipboard(),
        keyboard=PynputKeyboard(),
        key_state=key_state,
        hotkey=config.hotkey,
        poll_interval=config.poll_interval,
    )
    try:
        asyncio.run(node.run())
    except KeyboardInterrupt:
        typer.echo("Stopped.")
    finally:
        key_state.stop()


@app.command()
def inference(
    server_port: Optional[int] = typer.Option(None, "--server-port", "-s", help="Port to accept prompts on"),
    client_port: Optional[int] = typer.Option(None, "--client-port", "-c", help="Capture node port to send responses to"),
    model_path: Optional[Path] = typer.Option(None, "--model-path", "-m", help="GGUF model file (llama engine)"),
    engine: Optional[str] = typer.Option(None, "--engine", "-e", help="Engine: llama or mistral"),
    config_path: Path = typer.Option(CONFIG_PATH, "--config", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every received fragment"),
) -> None:
    """
    Run the inference node: accumulate prompt -> generate -> stream it back.
    """
    _configure_logging(verbose)
    from cliprelay.enginefactory import EngineFactory
    from cliprelay.relay.inference import InferenceNode

    try:
        config = get_inference_config(
            _load_raw(
                config_path,
                {
                    "listen_port": server_port,
                    "client_port": client_port,
                    "model_path": model_path,
                    "engine": engine,
                },
            )
        )
        listen_address = config.listen_address()
        model = EngineFactory().create_engine(config)
    except ConfigError as e:
        _fail(f"Configuration error: {e}")

    typer.echo("setup complete")
    typer.echo(f"listening on {listen_address}")

    node = InferenceNode(
        listen_address=listen_address,
        client_port=config.client_port,
        engine=model,
        params=config.generation_params(),
    )
    try:
        asyncio.run(node.run())
    except EngineError as e:
        _fail(f"Fatal: {e}")
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@app.command()
def settings(
    action: str = typer.Argument("show", help="Action: show"),
    config_path: Path = typer.Option(CONFIG_PATH, "--config", help="Config file"),
) -> None:
    """
    Show the resolved configuration for both nodes.
    """
    if action != "show":
        _fail(f"Unknown action: {action}. Available actions: show")

    raw = load_raw_config(config_path)
    typer.secho(f"Config file: {config_path}", bold=True)

    for title, build in (("capture", get_capture_config), ("inference", get_inference_config)):
        typer.secho(f"[{title}]", fg=typer.colors.CYAN, bold=True)
        try:
            config = build(raw)
        except ConfigError as e:
            typer.secho(f"  invalid: {e}", fg=typer.colors.YELLOW)
            continue
        for key, value in vars(config).items():
            if key == "api_key" and value:
                value = value[:4] + "..."
            typer.echo(f"  {key} = {value}")


def run() -> None:
    """Entry point for console script mapping."""
    app()


if __name__ == "__main__":
    run()
