from exprguard.cli import cli

cli()
