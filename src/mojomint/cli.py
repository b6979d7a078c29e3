"""MojoMint CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import random
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mojomint.config import (
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    MintConfig,
    create_default_config,
    load_config,
)
from mojomint.errors import MojoMintError, classify_error
from mojomint.narrative import (
    NARRATIVE_PATHS,
    NarrativeSession,
    NarrativeStateError,
    NarrativeWorkflow,
    UnknownPathError,
    get_path,
)
from mojomint.observability import close_file_logging, configure_logging, get_logger
from mojomint.orchestrator import MintOrchestrator, MintSession, MintStatus
from mojomint.services import (
    ImageClient,
    MetadataPinClient,
    NarrativeClient,
    RemoteServiceError,
    RewardClient,
)
from mojomint.upload import UploadCoordinator

if TYPE_CHECKING:
    from mojomint.chain.wallet import WalletProvider
    from mojomint.orchestrator import MintAttempt

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="mojomint",
    help="MojoMint: narrative-driven NFT minting.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

DEFAULT_LOG_DIR = Path("logs")


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option("--log", help="Write debug.jsonl to the log directory."),
    ] = False,
    log_dir: Annotated[
        Path,
        typer.Option("--log-dir", help="Directory for --log output.", envvar="MOJOMINT_LOG_DIR"),
    ] = DEFAULT_LOG_DIR,
) -> None:
    """MojoMint: narrative-driven NFT minting."""
    if log_to_file:
        configure_logging(verbosity=verbose, log_to_file=True, log_dir=log_dir)
        atexit.register(close_file_logging)
    else:
        configure_logging(verbosity=verbose)


def _load_config_or_exit(config_path: Path | None) -> MintConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _build_wallet(config: MintConfig, account: str | None) -> WalletProvider:
    """Create the web3 wallet adapter for the configured chain."""
    from mojomint.chain.web3_wallet import Web3Wallet

    return Web3Wallet(
        config.chain.rpc_url,
        config.chain.contract_address,
        account,
        receipt_timeout=config.chain.confirmation_timeout or 300.0,
    )


async def _connect(wallet: WalletProvider) -> str | None:
    connect = getattr(wallet, "connect", None)
    if connect is not None:
        return await connect()
    return wallet.address


def _prompt_answer(workflow: NarrativeWorkflow, session: NarrativeSession) -> str:
    question = workflow.current_prompt(session)
    assert question is not None
    return typer.prompt(question.prompt, prompt_suffix=f"\n  ({question.placeholder}) > ")


async def _collect_narrative(
    workflow: NarrativeWorkflow,
    session: NarrativeSession,
    path_key: str,
    answers: list[str],
) -> str:
    """Run the questionnaire, using ``answers`` first and prompting for the rest."""
    path = await workflow.select_path(session, path_key)
    console.print(f"[bold]{path.label}[/bold]")

    queued = list(answers)
    while workflow.current_prompt(session) is not None:
        question = workflow.current_prompt(session)
        assert question is not None
        if queued:
            answer = queued.pop(0)
            console.print(f"[cyan]?[/cyan] {question.prompt}\n  [dim]>[/dim] {answer}")
            await workflow.submit_answer(session, answer)
            continue

        answer = _prompt_answer(workflow, session)
        try:
            await workflow.submit_answer(session, answer)
        except NarrativeStateError as e:
            console.print(f"[yellow]{e}[/yellow]")

    console.print("[dim]Composing your narrative...[/dim]")
    return await workflow.finalize(session)


def _print_attempt(attempt: MintAttempt, config: MintConfig) -> None:
    if attempt.status is MintStatus.SUCCESS:
        assert attempt.tx_hash is not None
        console.print("[green]✓[/green] Mint confirmed")
        console.print(f"  Tx: [cyan]{attempt.tx_hash}[/cyan]")
        console.print(f"  Explorer: {config.chain.tx_link(attempt.tx_hash)}")
        if attempt.metadata is not None:
            console.print(
                f"  Mojo Score: [bold]{attempt.metadata.mojo_score}[/bold]"
                f"  Narrative: {attempt.metadata.flavor}"
            )
        if attempt.reward_tx_hash:
            console.print(f"  Reward tx: [cyan]{attempt.reward_tx_hash}[/cyan]")
    else:
        category = attempt.error_category.value if attempt.error_category else "unknown"
        console.print(f"[red]✗[/red] Mint failed ({category})")
        console.print(f"  {attempt.error_message}")

    for warning in attempt.warnings:
        console.print(f"  [yellow]![/yellow] {warning}")


@app.command()
def version() -> None:
    """Show version information."""
    from mojomint import __version__

    console.print(f"MojoMint v{__version__}")


@app.command()
def paths() -> None:
    """List the narrative paths and their questions."""
    table = Table(title="Narrative Paths")
    table.add_column("Path", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Questions")

    for path in NARRATIVE_PATHS.values():
        questions = "\n".join(f"{i}. {q.prompt}" for i, q in enumerate(path.questions, 1))
        table.add_row(path.key, path.title, questions)

    console.print(table)


@app.command()
def init(
    path: Annotated[
        Path,
        typer.Option("--path", "-p", help="Config file to write."),
    ] = Path(DEFAULT_CONFIG_FILENAME),
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing file."),
    ] = False,
) -> None:
    """Write a default configuration file."""
    from ruamel.yaml import YAML

    if path.exists() and not force:
        console.print(f"[red]Error:[/red] {path} already exists (use --force to overwrite)")
        raise typer.Exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    yaml = YAML()
    yaml.default_flow_style = False
    with path.open("w", encoding="utf-8") as f:
        yaml.dump(create_default_config().to_dict(), f)

    console.print(f"[green]✓[/green] Wrote config: [bold]{path}[/bold]")


@app.command()
def story(
    address: Annotated[str, typer.Option("--address", "-a", help="Wallet address (user id).")],
    path_key: Annotated[str, typer.Option("--path", "-p", help="Narrative path: A, B or C.")],
    answers: Annotated[
        list[str] | None,
        typer.Option("--answer", help="Answer in order; repeat per question. Prompts otherwise."),
    ] = None,
    image: Annotated[
        bool,
        typer.Option("--image/--no-image", help="Generate artwork for the narrative."),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help=f"Config file (default: ./{DEFAULT_CONFIG_FILENAME})."),
    ] = None,
) -> None:
    """Answer a narrative path's questions and compose the narrative."""
    config = _load_config_or_exit(config_path)
    try:
        get_path(path_key)
    except UnknownPathError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    async def _run() -> NarrativeSession:
        services = config.services
        async with (
            NarrativeClient(services.narrative_url, timeout=services.timeout) as narrative_client,
            ImageClient(services.image_url, timeout=services.timeout) as image_client,
        ):
            workflow = NarrativeWorkflow(narrative_client, image_client)
            session = NarrativeSession(user_id=address)
            await _collect_narrative(workflow, session, path_key, answers or [])
            if image:
                console.print("[dim]Generating artwork...[/dim]")
                await workflow.generate_image(session)
            return session

    try:
        session = asyncio.run(_run())
    except MojoMintError as e:
        log.error("story_failed", error=str(e))
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e

    console.print()
    console.print(Panel(session.final_narrative, title="Your narrative", border_style="green"))
    if session.image_uri:
        preview = session.image_uri if len(session.image_uri) < 120 else session.image_uri[:117]
        console.print(f"  Image: [cyan]{preview}[/cyan]")


@app.command()
def mint(
    path_key: Annotated[str, typer.Option("--path", "-p", help="Narrative path: A, B or C.")],
    narrative: Annotated[
        bool,
        typer.Option(
            "--narrative/--data-uri",
            help="Write a narrative and pin metadata to IPFS instead of an inline data URI.",
        ),
    ] = False,
    answers: Annotated[
        list[str] | None,
        typer.Option("--answer", help="Narrative answers in order (with --narrative)."),
    ] = None,
    image: Annotated[
        bool,
        typer.Option(
            "--image/--no-image",
            help="Generate artwork for the narrative (with --narrative).",
        ),
    ] = True,
    account: Annotated[
        str | None,
        typer.Option("--account", help="Sending account (default: first node account)."),
    ] = None,
    seed: Annotated[
        int | None,
        typer.Option("--seed", help="Seed for the mojo score and flavor draw."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help=f"Config file (default: ./{DEFAULT_CONFIG_FILENAME})."),
    ] = None,
) -> None:
    """Mint a Don't Kill the Jam NFT on the configured chain."""
    config = _load_config_or_exit(config_path)
    try:
        get_path(path_key)
    except UnknownPathError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    try:
        wallet = _build_wallet(config, account)
    except MojoMintError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    async def _run() -> MintAttempt:
        services = config.services
        address = await _connect(wallet)
        session = MintSession(address=address)

        async with (
            MetadataPinClient(services.metadata_url, timeout=services.timeout) as pin_client,
            NarrativeClient(services.narrative_url, timeout=services.timeout) as narrative_client,
            ImageClient(services.image_url, timeout=services.timeout) as image_client,
        ):
            rewards = (
                RewardClient(services.rewards_url, timeout=services.timeout)
                if services.rewards_url and config.policy.award_rewards
                else None
            )
            orchestrator = MintOrchestrator(
                wallet,
                config=config,
                uploader=UploadCoordinator(pin_client),
                rewards=rewards,
                rng=random.Random(seed),
            )
            try:
                if narrative and address:
                    workflow = NarrativeWorkflow(narrative_client, image_client)
                    session.narrative = NarrativeSession(user_id=address)
                    await _collect_narrative(
                        workflow, session.narrative, path_key, answers or []
                    )
                    if image:
                        console.print("[dim]Generating artwork...[/dim]")
                        try:
                            await workflow.generate_image(session.narrative)
                        except RemoteServiceError as e:
                            # Mint proceeds with the path's default image.
                            log.warning("mint_image_failed", error=str(e))
                            console.print(f"[yellow]![/yellow] Artwork unavailable: {e}")

                fee = await orchestrator.load_fee(session)
                console.print(f"  Mint fee: [bold]{fee}[/bold] wei")
                session.select(path_key)

                if narrative:
                    return await orchestrator.mint_narrative(session)
                return await orchestrator.mint(session)
            finally:
                if rewards is not None:
                    await rewards.aclose()

    try:
        attempt = asyncio.run(_run())
    except MojoMintError as e:
        classified = classify_error(e)
        log.error("mint_command_failed", category=classified.category.value, error=str(e))
        console.print(f"[red]✗[/red] {classified.message}")
        raise typer.Exit(1) from e

    _print_attempt(attempt, config)
    if attempt.status is not MintStatus.SUCCESS:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
