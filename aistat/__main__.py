from aistat.cli import app

app(prog_name="aistat")
