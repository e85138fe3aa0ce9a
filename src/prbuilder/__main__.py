from prbuilder.cli import app

app()
