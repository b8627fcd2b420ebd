"""
CLI entry point, when used as a module: `python -m docmap`.

Useful for debugging in the IDEs (use the start-mode "Module", module "docmap").
"""
from docmap import cli

if __name__ == '__main__':
    cli.main()
