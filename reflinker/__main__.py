from reflinker.cli import cli

cli()
