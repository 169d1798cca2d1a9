from pgcacher.cli import app

app(prog_name="pgcacher")
