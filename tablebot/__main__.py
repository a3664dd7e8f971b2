from tablebot.cli import app

app(prog_name="tablebot")
