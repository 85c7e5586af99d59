"""Compile ``*.css.scss`` and ``*.css.sass`` stylesheets with the sass executable."""
import argparse
import glob
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Iterator, List

from site_logging import setup_logging

logger = logging.getLogger(__name__)

CSS_SOURCE_RE = re.compile(r'\.css\.(.*)$')


def compile_sass(source: str, output: str) -> None:
    """
    Run sass on one file.

    Raises:
        subprocess.CalledProcessError: If sass fails
        RuntimeError: If sass produced no output file
    """
    subprocess.run(['sass', source, output], check=True)
    if not Path(output).exists():
        raise RuntimeError(f"Compiling {source} should have produced {output}")
    logger.info(f"Built CSS to {output}")


def compile_file(path: str) -> None:
    """
    Compile a stylesheet according to its extensions, innermost last.

    ``site.css.scss`` becomes ``site.css``, which needs no further work.
    """
    while True:
        output, extension = os.path.splitext(path)
        extension = extension[1:]
        if not extension:
            logger.warning(f"Unable to compile {path}: no extension")
            return
        if extension in ('scss', 'sass'):
            compile_sass(path, output)
            path = output
        elif extension in ('css', 'map'):
            return
        else:
            logger.warning(f"Unable to compile {path}: unrecognised extension")
            return


def find_sources(patterns: List[str]) -> Iterator[str]:
    """Yield stylesheet sources matching the patterns, or all of them."""
    if not patterns:
        yield from glob.glob('**/*.css.*', recursive=True)
        return

    for pattern in patterns:
        for path in glob.glob(pattern, recursive=True):
            if CSS_SOURCE_RE.search(path):
                yield path
            else:
                logger.warning(f"Not a CSS file: {path}")


def main(argv: List[str] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('paths', nargs='*', help="stylesheets or glob patterns to compile")
    args = parser.parse_args(argv)

    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    for path in find_sources(args.paths):
        compile_file(path)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
