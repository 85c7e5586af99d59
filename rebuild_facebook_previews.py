"""Ask Facebook to re-scrape every page of the site, refreshing link previews."""
import logging
import os
from pathlib import Path
from typing import List

import requests

from site_logging import setup_logging

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com/"


def page_url(host: str, file: Path) -> str:
    """
    Public URL of a generated HTML file.

    Args:
        host: Site host name, as in the CNAME file
        file: Path of the HTML file relative to the site root

    Returns:
        URL with any trailing index.html or .html removed
    """
    path = file.as_posix()
    if path.endswith('index.html'):
        path = path[:-len('index.html')]
    elif path.endswith('.html'):
        path = path[:-len('.html')]
    return f"https://{host}/{path}"


def rebuild_previews(site_dir: Path, token: str, timeout: int = 30) -> List[str]:
    """
    Request a re-scrape of every HTML page under the site directory.

    Failed requests are logged and do not stop the remaining pages.

    Args:
        site_dir: Site root containing a CNAME file
        token: Graph API access token
        timeout: HTTP request timeout in seconds

    Returns:
        URLs which could not be refreshed
    """
    host = (site_dir / 'CNAME').read_text(encoding='utf-8').strip()
    failures = []

    for file in sorted(site_dir.glob('**/*.html')):
        url = page_url(host, file.relative_to(site_dir))
        try:
            response = requests.post(
                GRAPH_URL,
                data={'id': url, 'scrape': 'true', 'access_token': token},
                timeout=timeout
            )
        except requests.RequestException as e:
            logger.error(f"Failed to refresh preview of {url}: {e}")
            failures.append(url)
            continue

        if not response.ok:
            logger.error(
                f"Failed to refresh preview of {url}: "
                f"{response.status_code} {response.text}"
            )
            failures.append(url)
        else:
            logger.info(f"Refreshed preview of {url}")

    return failures


def main() -> int:
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    site_dir = Path(os.environ.get('OUTPUT_DIR', '.'))
    failures = rebuild_previews(
        site_dir,
        os.environ.get('FB_TOKEN', ''),
        timeout=int(os.environ.get('TIMEOUT_SECONDS', '30'))
    )
    logger.info(f"Preview refresh finished with {len(failures)} failures")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
