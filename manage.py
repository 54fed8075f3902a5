import json
from pathlib import Path
import subprocess
from typing import Annotated

from rich import print
import typer

from trial_checkout.core.config import settings

app = typer.Typer()


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask all but the last ``visible`` characters of a secret."""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


@app.command()
def runserver(
    port: Annotated[
        int | None,
        typer.Option(help="Port to listen on. Defaults to the PORT setting."),
    ] = None,
):
    """
    Runs the API with uvicorn.

    Debug mode binds to localhost with auto-reload; otherwise the server binds
    to the HOST setting.
    """
    listen_port = port or settings.PORT
    try:
        server_command = (
            f"uvicorn trial_checkout.main:app --host 127.0.0.1 --port {listen_port} --reload"
            if settings.DEBUG
            else f"uvicorn trial_checkout.main:app --host {settings.HOST} --port {listen_port}"
        )
        print(f"Running FastAPI server: {server_command}")
        subprocess.run(server_command, shell=True, check=True)
    except subprocess.CalledProcessError as e:
        print(f"[red]Error:[/red] {e}")
        raise


@app.command()
def generateopenapi(
    output: Annotated[
        Path, typer.Option("--output", "-o", help="Where to write the schema.")
    ] = Path("openapi.json"),
):
    """
    Generates the OpenAPI schema for the FastAPI application and saves it to a JSON file.
    """
    from trial_checkout.main import app as fastapi_app

    with output.open("w", encoding="utf-8") as f:
        json.dump(fastapi_app.openapi(), f, ensure_ascii=False, indent=2)
    print(f"[green]OpenAPI schema generated at {output.name}[/green]")


@app.command()
def showconfig():
    """
    Prints the effective checkout configuration with secrets masked.
    """
    print("[cyan]Checkout configuration[/cyan]")
    print(f"  Customer:        {settings.STRIPE_CUSTOMER_ID}")
    print(f"  Plan:            {settings.STRIPE_PLAN_ID}")
    print(f"  Client domain:   {settings.CLIENT_DOMAIN}")
    print(f"  Stripe API key:  {mask_secret(settings.STRIPE_API_KEY)}")
    print(f"  Stripe API base: {settings.STRIPE_API_BASE_URL}")
    verify = settings.STRIPE_WEBHOOK_VERIFY_SIGNATURE
    print(
        f"  Webhook signature verification: "
        f"{'[green]enabled[/green]' if verify else '[yellow]disabled[/yellow]'}"
    )
    print(f"  Listening port:  {settings.PORT}")


@app.callback()
def main(ctx: typer.Context):
    print(f"Executing the command: {ctx.invoked_subcommand}")


if __name__ == "__main__":
    app()
