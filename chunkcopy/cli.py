"""
Console script entry point for ChunkCopy.
"""

from chunkcopy.chunkcopy import cli


def main():
    cli()


if __name__ == '__main__':
    main()
