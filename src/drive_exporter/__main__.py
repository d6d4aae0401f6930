from drive_exporter.cli import app

app()
