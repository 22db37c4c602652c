"""CLI entrypoint: Typer app definition and command registration"""

import typer

from blockpub.cli.commands import init_cmd, insert_cmd, list_cmd, new_cmd, open_cmd, publish_cmd, show_cmd


app = typer.Typer(name="blockpub", no_args_is_help=True, help="Block document editing and encrypted NFT publishing")

app.command(name="init")(init_cmd)
app.command(name="new")(new_cmd)
app.command(name="insert")(insert_cmd)
app.command(name="show")(show_cmd)
app.command(name="publish")(publish_cmd)
app.command(name="list")(list_cmd)
app.command(name="open")(open_cmd)
