from nosleep.cli import app

app(prog_name="nosleep")
