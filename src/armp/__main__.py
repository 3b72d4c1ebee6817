from armp import cli

cli.app()
