import typer

from apps.swiftseg.plan import plan
from apps.swiftseg.upload import upload
from apps.swiftseg.utils.log_config import configure_logging


app = typer.Typer(help="Segmented uploads to Swift object storage")


@app.callback()
def _root(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Emit debug logs on stderr."
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Render log lines as JSON."
    ),
) -> None:
    configure_logging(verbose, json_output=json_logs)


app.command("upload")(upload)
app.command("plan")(plan)
