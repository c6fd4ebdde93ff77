"""Main CLI application using Typer."""
import asyncio

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..chat import ChatSession
from ..store import ConversationScope, Message, Sender
from .providers import (
    get_app_id,
    get_auth_token,
    get_completion,
    get_identity,
    get_store,
    make_debug_printer,
)

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="chatline",
    help="Chat with a Gemini model; conversations are persisted per user",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

EXIT_COMMANDS = ("/quit", "/exit", "exit", "quit", "q")


def render_message(message: Message) -> None:
    """Print one chat message."""
    if message.sender == Sender.USER:
        console.print(f"[bold yellow]You:[/bold yellow] {escape(message.text)}")
    elif message.is_error:
        console.print(Panel(escape(message.text), title="Error", border_style="red"))
    else:
        console.print("[bold green]Gemini:[/bold green]")
        console.print(Markdown(message.text))
    console.print()


def render_starter_prompts(session: ChatSession) -> None:
    """Print the starter prompt table."""
    table = Table(title="Try one of these", show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Prompt")
    for i, (title, prompt) in enumerate(session.starter_prompts, 1):
        table.add_row(f"/{i}", f"[bold]{title}[/bold] [dim]{escape(prompt)}[/dim]")
    console.print(table)
    console.print()


@app.command()
def chat(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show pipeline, store and completion diagnostics"
    ),
    log_level: str = typer.Option(
        "info",
        "--log-level",
        "-l",
        help="Minimum diagnostic level with --verbose: debug, info, warning, or error"
    ),
):
    """Start an interactive chat session."""
    async def _chat():
        completion = get_completion(console)
        if not completion:
            console.print("[red]Error: completion provider not configured[/red]")
            raise typer.Exit(code=1)

        try:
            store = get_store()
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            await completion.close()
            raise typer.Exit(code=1)

        session: ChatSession | None = None
        try:
            await store.connect()

            session = ChatSession(
                identity=get_identity(),
                store=store,
                completion=completion,
                app_id=get_app_id(),
                auth_token=get_auth_token()
            )
            if verbose:
                printer = make_debug_printer(console, log_level)
                session.set_debug_callback(printer)
                store.set_debug_callback(printer)
                completion.set_debug_callback(printer)

            shown: set[str] = set()

            def _render_new(messages: list[Message]) -> None:
                for message in messages:
                    if message.id and message.id not in shown:
                        shown.add(message.id)
                        render_message(message)

            session.add_listener(_render_new)
            await session.start()

            console.print("[bold cyan]chatline[/bold cyan]")
            console.print("[dim]Type '/quit' to leave, '/1'..'/4' for a starter prompt[/dim]\n")

            _render_new(session.messages)
            if session.error:
                console.print(f"[red]{escape(session.error)}[/red]\n")
            if len(session.messages) <= 1:
                render_starter_prompts(session)

            while True:
                try:
                    session.input = console.input("[bold yellow]>[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                command = session.input.strip()
                if not command:
                    continue
                if command.lower() in EXIT_COMMANDS:
                    console.print("[dim]Goodbye![/dim]")
                    break

                prompt = None
                if command.startswith("/") and command[1:].isdigit():
                    index = int(command[1:]) - 1
                    prompts = session.starter_prompts
                    if not 0 <= index < len(prompts):
                        console.print("[yellow]No such starter prompt[/yellow]")
                        continue
                    prompt = prompts[index][1]

                with console.status("[dim]Thinking...[/dim]"):
                    await session.submit(prompt)

                if session.error:
                    console.print(f"[red]{escape(session.error)}[/red]\n")

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            import traceback
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
            raise typer.Exit(code=1)
        finally:
            if session is not None:
                session.close()
            await store.disconnect()
            await completion.close()

    asyncio.run(_chat())


@app.command()
def history(
    limit: int = typer.Option(
        0,
        "--limit",
        "-n",
        help="Only show the last N messages (0 shows everything)"
    ),
):
    """Print the stored conversation of the local user."""
    async def _history():
        identity = get_identity().current
        if identity is None:
            console.print("[yellow]No signed-in user yet. Start a chat first.[/yellow]")
            return

        try:
            store = get_store()
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)

        try:
            await store.connect()
            scope = ConversationScope(app_id=get_app_id(), user_id=identity.user_id)
            messages = await store.list_messages(scope)

            if not messages:
                console.print("[yellow]No messages[/yellow]")
                return

            if limit > 0:
                messages = messages[-limit:]

            table = Table(title=f"{scope.path} ({len(messages)} messages)")
            table.add_column("Time", style="dim")
            table.add_column("Sender", style="cyan")
            table.add_column("Text")
            for message in messages:
                sender = "bot (error)" if message.is_error else message.sender.value
                timestamp = message.timestamp.strftime("%Y-%m-%d %H:%M:%S") if message.timestamp else ""
                table.add_row(timestamp, sender, escape(message.text))
            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        finally:
            await store.disconnect()

    asyncio.run(_history())


@app.command()
def whoami():
    """Show the local identity and where its messages are stored."""
    provider = get_identity()
    identity = provider.current
    if identity is None:
        console.print("[yellow]Not signed in[/yellow]")
        return

    scope = ConversationScope(app_id=get_app_id(), user_id=identity.user_id)
    kind = "anonymous" if identity.is_anonymous else "custom token"
    console.print(f"[green]+[/green] User: {identity.user_id} ({kind})")
    console.print(f"[green]+[/green] Messages: {scope.path}")
    if provider.state_path is not None:
        console.print(f"[dim]Identity state: {provider.state_path}[/dim]")


if __name__ == "__main__":
    app()
