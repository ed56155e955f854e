# idp/cli/main.py
"""
CLI for creating, inspecting and updating a sovereign identity document.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from idp.config import configure_logging, resolve_store
from idp.core.errors import CorruptDocument, IdentityExists, IdpError, UnsupportedVersion
from idp.holder.session import IdentitySession
from idp.document.paths import get_path
from idp.storage.files import IdentityStore
from idp.verify.verifier import ProofVerifier

app = typer.Typer(
    name="idp",
    help="Create and manage a sovereign, self-contained identity document",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    directory: Optional[Path] = typer.Option(
        None,
        "--dir",
        help="Directory holding my.idp and my.key (overrides IDP_HOME env var)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log what the engine is doing"),
):
    """Manage an IDP identity document."""
    configure_logging(verbose)
    ctx.obj = resolve_store(directory)


def _open_session(store: IdentityStore) -> IdentitySession:
    if not store.exists():
        console.print(f"[red]Identity file not found: {store.document_path}[/]")
        console.print("[yellow]Hint: have you run `idp init` in this directory?[/]")
        raise typer.Exit(1)

    try:
        return IdentitySession(store)
    except UnsupportedVersion as e:
        console.print(f"[red]{escape(str(e))}[/]")
        console.print("[yellow]This document was written by a newer or unknown version of the protocol.[/]")
        raise typer.Exit(1)
    except CorruptDocument as e:
        console.print(f"[red]Identity file is corrupt ({len(e.violations)} problems):[/]")
        for v in e.violations:
            console.print(f"  • {escape(str(v))}")
        raise typer.Exit(1)
    except IdpError as e:
        console.print(f"[red]Failed to load identity: {escape(str(e))}[/]")
        raise typer.Exit(1)


@app.command()
def init(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="The full name for the new identity"),
    bio: str = typer.Option(..., "--bio", "-b", help="A short bio for the new identity"),
):
    """Create a new identity document and its secret key file."""
    store: IdentityStore = ctx.obj
    console.print(f"Forging a new cryptographic identity for '{escape(name)}'...")

    try:
        doc = store.init(name, bio)
    except IdentityExists as e:
        console.print("[red]Error: identity files already exist.[/]")
        console.print(f"  {escape(str(e.path))}")
        console.print("Please move or rename existing files before initializing.")
        raise typer.Exit(1)
    except IdpError as e:
        console.print(f"[red]Error creating new identity: {escape(str(e))}[/]")
        raise typer.Exit(1)

    console.print("[green]✓ Success! Your identity has been created.[/]")
    console.print(f"  ID:                      {doc.identity.id}")
    console.print(f"  Public identity saved to: {store.document_path}")
    console.print(f"  Private key saved to:     {store.secret_path}")
    console.print("\n[bold yellow]SECURITY WARNING:[/]")
    console.print(f"  '{store.secret_path.name}' is your secret. Guard it, back it up, never share it.")


@app.command()
def show(ctx: typer.Context):
    """Show the identity document."""
    session = _open_session(ctx.obj)
    doc = session.doc

    table = Table(title="Sovereign Identity", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("ID", doc.identity.id)
    table.add_row("Name", escape(doc.core.name))
    table.add_row("Bio", escape(doc.core.bio))
    table.add_row("Version", f"v{doc.identity.version}")
    table.add_row("Created", doc.identity.created_at)
    table.add_row("Updated", doc.identity.updated_at)
    for label in ("credentials", "proofs", "contracts", "reputation", "consent"):
        table.add_row(label.capitalize(), str(len(getattr(doc, label))))
    console.print(table)

    keys = Table(title="Public Keys")
    keys.add_column("Key ID")
    keys.add_column("Algorithm")
    keys.add_column("Status")
    for key in doc.system.public_keys:
        style = "green" if key.status == "active" else "red"
        keys.add_row(escape(key.key_id), escape(key.algorithm), f"[{style}]{escape(key.status)}[/]")
    console.print(keys)


@app.command()
def get(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Dotted path, e.g. core.bio or system.public_keys[0].status"),
):
    """Print the value at a path."""
    session = _open_session(ctx.obj)
    try:
        value = get_path(session.doc, path)
    except IdpError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)
    console.print(value, markup=False)


@app.command("set")
def set_value(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Dotted path to the value to set, e.g. core.bio"),
    value: str = typer.Argument(..., help="The new value"),
):
    """Set a value in the identity document and save it."""
    session = _open_session(ctx.obj)
    try:
        session.set(path, value)
    except IdpError as e:
        console.print(f"[red]✗ {type(e).__name__}: {escape(str(e))}[/]")
        raise typer.Exit(1)
    console.print(f"[green]✓ {escape(path)} updated[/]")


@app.command()
def validate(ctx: typer.Context):
    """Load the document and check every invariant."""
    _open_session(ctx.obj)
    console.print("[green]✓ Identity document is valid[/]")


@app.command()
def prove(
    ctx: typer.Context,
    claim: str = typer.Argument(..., help="Claim text to sign with the root key"),
):
    """Sign a claim with the secret key and append the proof."""
    session = _open_session(ctx.obj)
    try:
        proof = session.prove(claim)
    except IdpError as e:
        console.print(f"[red]Failed to create proof: {escape(str(e))}[/]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Added proof {proof.proof_id}[/]")
    console.print(f"  claim_hash: {proof.claim_hash}")


@app.command()
def verify(
    ctx: typer.Context,
    proof_id: str = typer.Argument(..., help="Proof to verify"),
    claim: str = typer.Argument(..., help="Claim text the proof should cover"),
    strict: bool = typer.Option(False, "--strict", help="Require every signature entry to validate"),
):
    """Verify a proof in the document against a claim."""
    session = _open_session(ctx.obj)
    proof = next((p for p in session.doc.proofs if p.proof_id == proof_id), None)
    if proof is None:
        console.print(f"[red]✗ No proof with id '{escape(proof_id)}'[/]")
        raise typer.Exit(1)

    try:
        result = ProofVerifier(session.doc, strict=strict).verify(proof, claim)
    except IdpError as e:
        console.print(f"[red]✗ Proof '{escape(proof_id)}' failed: {type(e).__name__}: {escape(str(e))}[/]")
        raise typer.Exit(1)

    if result.key_revoked:
        console.print(f"[yellow]⚠ Proof '{escape(proof_id)}' is valid but key '{escape(result.key_id)}' is revoked[/]")
    else:
        console.print(f"[green]✓ Proof '{escape(proof_id)}' is valid[/]")


@app.command("revoke-key")
def revoke_key(
    ctx: typer.Context,
    key_id: str = typer.Argument(..., help="Key to revoke"),
):
    """Mark a public key as revoked. Revoked keys are kept for audit."""
    session = _open_session(ctx.obj)
    try:
        session.revoke_key(key_id)
    except IdpError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Key '{escape(key_id)}' revoked[/]")


if __name__ == "__main__":
    app()
