from webdl.cli import cli

cli(prog_name="webdl")
